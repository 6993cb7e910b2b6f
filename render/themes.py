from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

from schemas.resume import StyleId

SINGLE_COLUMN = "single_column"
TWO_COLUMN = "two_column"


@dataclass(frozen=True)
class Theme:
    font_family: str
    primary_color: str
    secondary_color: str
    base_font_size: str
    header_alignment: str
    border_style: str
    page_margin: str
    line_height: str
    web_font_url: str

    def css_variables(self) -> Dict[str, str]:
        return {
            "--font-main": self.font_family,
            "--color-primary": self.primary_color,
            "--color-sec": self.secondary_color,
            "--font-size-base": self.base_font_size,
            "--header-align": self.header_alignment,
            "--border-style": self.border_style,
            "--margin-page": self.page_margin,
            "--line-height": self.line_height,
        }


_INTER_URL = "https://fonts.googleapis.com/css2?family=Inter:wght@300;400;600;700&display=swap"

THEMES: Dict[StyleId, Theme] = {
    StyleId.CLASSIC: Theme(
        font_family="'Merriweather', serif",
        primary_color="#000",
        secondary_color="#333",
        base_font_size="11px",
        header_alignment="center",
        border_style="1px solid #000",
        page_margin="15mm",
        line_height="1.4",
        web_font_url="https://fonts.googleapis.com/css2?family=Merriweather:ital,wght@0,300;0,400;0,700;1,300&display=swap",
    ),
    StyleId.TECH_MINIMAL: Theme(
        font_family="'Inter', sans-serif",
        primary_color="#000",
        secondary_color="#222",
        base_font_size="10pt",
        header_alignment="left",
        border_style="1px solid #999",
        page_margin="10mm",
        line_height="1.28",
        web_font_url=_INTER_URL,
    ),
    StyleId.CREATIVE: Theme(
        font_family="'Lato', sans-serif",
        primary_color="#7c3aed",
        secondary_color="#4b5563",
        base_font_size="11px",
        header_alignment="left",
        border_style="2px solid #7c3aed",
        page_margin="15mm",
        line_height="1.4",
        web_font_url="https://fonts.googleapis.com/css2?family=Lato:wght@300;400;700&display=swap",
    ),
    StyleId.COMPACT: Theme(
        font_family="'Inter', sans-serif",
        primary_color="#000",
        secondary_color="#222",
        base_font_size="10px",
        header_alignment="center",
        border_style="1px solid #ccc",
        page_margin="8mm",
        line_height="1.25",
        web_font_url=_INTER_URL,
    ),
    StyleId.EXECUTIVE: Theme(
        font_family="'Georgia', serif",
        primary_color="#1a1a1a",
        secondary_color="#444",
        base_font_size="11pt",
        header_alignment="center",
        border_style="2px solid #000",
        page_margin="18mm",
        line_height="1.5",
        web_font_url="https://fonts.googleapis.com/css2?family=Playfair+Display:wght@400;700&display=swap",
    ),
}

# Modern is structurally different and keeps a fixed look; only its font is shared.
MODERN_FONT_URL = _INTER_URL


def layout_for(style: StyleId) -> str:
    return TWO_COLUMN if style is StyleId.MODERN else SINGLE_COLUMN
