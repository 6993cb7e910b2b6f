from __future__ import annotations

import pathlib
from functools import lru_cache
from typing import Any, Dict, List, Optional, Tuple

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError, select_autoescape

from schemas.errors import RenderError
from schemas.resume import ResumeData, StyleId

from .themes import MODERN_FONT_URL, THEMES, layout_for

TEMPLATE_DIR = pathlib.Path(__file__).resolve().parent / "layouts"


@lru_cache(maxsize=1)
def _environment() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=select_autoescape(enabled_extensions=("html",), default_for_string=True),
        undefined=StrictUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=False,
    )


def list_templates() -> Dict[str, pathlib.Path]:
    return {p.stem: p for p in TEMPLATE_DIR.glob("*.html")}


def list_styles() -> List[StyleId]:
    return list(StyleId)


def split_skill(skill: str) -> Tuple[Optional[str], str]:
    """Return ``(category, body)`` for ``"Category: a, b"`` and ``(None, skill)`` otherwise."""
    category, sep, body = skill.partition(":")
    if not sep:
        return None, skill.strip()
    return category.strip(), body.strip()


def build_template_context(data: ResumeData, style: StyleId) -> Dict[str, Any]:
    """Flatten the resume into the values both layouts need."""
    skills = []
    for skill in data.skills:
        category, body = split_skill(skill)
        skills.append({"category": category, "body": body})

    ctx: Dict[str, Any] = {
        "style": style.value,
        "name": data.name,
        "title": data.display_title,
        "contact_segments": data.contact_segments,
        "summary": data.summary,
        "skills": skills,
        "experience": data.experience,
        "projects": data.projects,
        "education": data.education,
    }
    theme = THEMES.get(style)
    if theme is not None:
        ctx["css_variables"] = theme.css_variables()
        ctx["font_url"] = theme.web_font_url
    else:
        ctx["font_url"] = MODERN_FONT_URL
    return ctx


def render_resume(data: ResumeData, style: StyleId) -> str:
    """
    Render a tailored resume into a standalone HTML document.

    Modern uses the two-column layout, every other style the single-column
    layout driven by its theme row. Pure and deterministic; user text is
    HTML-escaped by the template environment.
    """
    style = StyleId(style)
    try:
        template = _environment().get_template(f"{layout_for(style)}.html")
        return template.render(**build_template_context(data, style))
    except TemplateError as exc:
        raise RenderError(f"Failed to render style {style.value}: {exc}") from exc
