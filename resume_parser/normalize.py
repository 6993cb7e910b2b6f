from __future__ import annotations

import re

# Best-effort reflow of text pulled out of PDFs. These are cosmetic heuristics,
# the AI step tolerates whatever noise survives them.
_RUN_TOGETHER_SENTENCE = re.compile(r"\.(?=[A-Z])")
_SECTION_KEYWORD = re.compile(
    r"(Experience|Education|Skills|Summary|Projects|Certifications)", re.IGNORECASE
)
# Heuristic: only bullets preceded by a lowercase letter and whitespace are split.
_INLINE_BULLET = re.compile(r"(?<=[a-z])\s+([•-])")


def normalize_text(raw: str) -> str:
    """
    Clean raw extracted resume text before it is sent to the AI step.

    Rules are applied in order over the whole string: space after a period
    glued to a capital letter, section keywords on their own block, inline
    bullets moved to a new line, double spaces turned into line breaks, and
    finally a trim. Never raises.
    """
    if not raw:
        return ""
    text = _RUN_TOGETHER_SENTENCE.sub(". ", raw)
    text = _SECTION_KEYWORD.sub(lambda m: f"\n\n{m.group(1)}\n", text)
    text = _INLINE_BULLET.sub(lambda m: f"\n{m.group(1)}", text)
    text = text.replace("  ", "\n")
    return text.strip()
