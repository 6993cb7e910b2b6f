from __future__ import annotations

import logging
from typing import Optional

from pydantic import ValidationError

from schemas.errors import TailorError
from schemas.resume import ResumeData

from .client import LLMClient, safe_json_parse
from .prompts import (
    COVER_LETTER_PROMPT,
    EVALUATION_PROMPT,
    IMAGE_JOB_DESCRIPTION_PROMPT,
    TAILORING_PROMPT,
    TAILORING_SYSTEM_PROMPT,
)

logger = logging.getLogger(__name__)

# Derived artifacts only need the gist of the posting.
EXTRAS_JOB_DESCRIPTION_CHARS = 2000
NO_TEXT_FOUND = "no text found"


def parse_ai_response(raw: str) -> ResumeData:
    """Parse a model reply (possibly fenced in markdown) into ResumeData."""
    data = safe_json_parse(raw)
    if data is None:
        raise TailorError("AI response was not valid JSON")
    return resume_from_payload(data)


def resume_from_payload(data: dict) -> ResumeData:
    try:
        return ResumeData.model_validate(data)
    except ValidationError as exc:
        raise TailorError(f"AI response did not match the resume schema: {exc}") from exc


class ResumeAI:
    """AI capabilities consumed by the generation orchestrator."""

    def __init__(self, client: Optional[LLMClient] = None):
        self.client = client

    def configure(self, client: LLMClient) -> None:
        self.client = client

    def _require_client(self) -> LLMClient:
        if self.client is None:
            raise TailorError("API key/token required.")
        return self.client

    def tailor_resume(self, resume_text: str, job_description: str) -> ResumeData:
        prompt = TAILORING_PROMPT.format(
            resume_text=resume_text, job_description=job_description
        )
        data = self._require_client().chat_json(prompt, system=TAILORING_SYSTEM_PROMPT)
        return resume_from_payload(data)

    def generate_cover_letter(self, resume: ResumeData, job_description: str) -> Optional[str]:
        prompt = COVER_LETTER_PROMPT.format(
            name=resume.name,
            summary=resume.summary,
            skills=", ".join(resume.skills),
            job_description=job_description[:EXTRAS_JOB_DESCRIPTION_CHARS],
        )
        return _text_or_none(self._require_client().chat(prompt))

    def evaluate_resume(self, resume: ResumeData, job_description: str) -> Optional[str]:
        prompt = EVALUATION_PROMPT.format(
            summary=resume.summary,
            skills=", ".join(resume.skills),
            job_description=job_description[:EXTRAS_JOB_DESCRIPTION_CHARS],
        )
        return _text_or_none(self._require_client().chat(prompt))

    def extract_text_from_image(self, image: bytes) -> Optional[str]:
        describe = getattr(self._require_client(), "chat_with_image", None)
        if describe is None:
            logger.warning("Provider %s cannot read images", type(self.client).__name__)
            return None
        text = _text_or_none(describe(IMAGE_JOB_DESCRIPTION_PROMPT, image))
        if text is None or text.strip().rstrip(".").lower() == NO_TEXT_FOUND:
            return None
        return text


def _text_or_none(text: Optional[str]) -> Optional[str]:
    if text is None or not text.strip():
        return None
    return text.strip()
