from __future__ import annotations

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

HISTORY_LABEL_FORMAT = "%d %b %Y, %H:%M"


class StyleId(str, Enum):
    CLASSIC = "classic"
    MODERN = "modern"
    TECH_MINIMAL = "tech_minimal"
    CREATIVE = "creative"
    COMPACT = "compact"
    EXECUTIVE = "executive"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()


class _ResumeModel(BaseModel):
    # Models often answer "year": 2016; numbers become strings like the other fields.
    model_config = ConfigDict(
        frozen=True, populate_by_name=True, extra="ignore", coerce_numbers_to_str=True
    )

    @field_validator("*", mode="before")
    @classmethod
    def null_to_default(cls, v, info):  # type: ignore
        if v is None:
            field = cls.model_fields[info.field_name]
            return field.get_default(call_default_factory=True)
        return v


class WorkHistory(_ResumeModel):
    company: str = ""
    role: str = ""
    duration: str = ""
    location: str = ""
    bullet_points: List[str] = Field(default_factory=list, alias="bulletPoints")

    @field_validator("bullet_points", mode="before")
    @classmethod
    def coerce_bullets(cls, v):  # type: ignore
        return _coerce_list(v)


class Project(_ResumeModel):
    title: str = ""
    technologies: str = ""
    bullet_points: List[str] = Field(default_factory=list, alias="bulletPoints")

    @field_validator("bullet_points", mode="before")
    @classmethod
    def coerce_project_bullets(cls, v):  # type: ignore
        return _coerce_list(v)


class Education(_ResumeModel):
    school: str = ""
    degree: str = ""
    year: str = ""


class ResumeData(_ResumeModel):
    """Tailored resume record produced by the AI step.

    Instances are frozen. Manual corrections go through ``with_changes`` which
    validates and returns a full replacement.
    """

    name: str = ""
    contact_info: str = Field(
        default="",
        alias="contactInfo",
        description="Pipe-delimited contact channels, e.g. 'mail | phone | site'.",
    )
    summary: str = ""
    experience: List[WorkHistory] = Field(default_factory=list)
    projects: List[Project] = Field(default_factory=list)
    education: List[Education] = Field(default_factory=list)
    skills: List[str] = Field(default_factory=list)

    @field_validator("experience", "projects", "education", mode="before")
    @classmethod
    def coerce_entries(cls, v):  # type: ignore
        if v is None:
            return []
        if isinstance(v, dict):
            return [v]
        return v

    @field_validator("skills", mode="before")
    @classmethod
    def coerce_skills(cls, v):  # type: ignore
        return _coerce_list(v)

    @property
    def display_title(self) -> str:
        if self.experience and self.experience[0].role.strip():
            return self.experience[0].role
        return "Candidate"

    @property
    def contact_segments(self) -> List[str]:
        return [part.strip() for part in self.contact_info.split("|") if part.strip()]

    def with_changes(self, **changes: Any) -> "ResumeData":
        payload = self.model_dump()
        payload.update({k: v for k, v in changes.items() if v is not None})
        return ResumeData.model_validate(payload)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)


class HistoryEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    resume_data: ResumeData
    created_at: datetime
    path: Optional[Path] = None

    @property
    def label(self) -> str:
        return self.created_at.astimezone().strftime(HISTORY_LABEL_FORMAT)


def skills_from_text(text: str) -> List[str]:
    """Split the multi-line skills editor value into a skills list."""
    return _coerce_list(text)


def _coerce_list(value):
    if value is None:
        return []
    if isinstance(value, list):
        return [str(item).strip() for item in value if item is not None and str(item).strip()]
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return []
        return [line.strip() for line in stripped.splitlines() if line.strip()]
    return [str(value)]
