"""Standard-14 font selection and text measurement (reportlab metrics, no canvas needed)."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List

from reportlab.pdfbase.pdfmetrics import stringWidth

from models import FontFamily, FontStyle

FONT_NAMES: dict[FontFamily, dict[FontStyle, str]] = {
    FontFamily.HELVETICA: {
        FontStyle.NORMAL: "Helvetica",
        FontStyle.BOLD: "Helvetica-Bold",
        FontStyle.ITALIC: "Helvetica-Oblique",
    },
    FontFamily.TIMES: {
        FontStyle.NORMAL: "Times-Roman",
        FontStyle.BOLD: "Times-Bold",
        FontStyle.ITALIC: "Times-Italic",
    },
    FontFamily.COURIER: {
        FontStyle.NORMAL: "Courier",
        FontStyle.BOLD: "Courier-Bold",
        FontStyle.ITALIC: "Courier-Oblique",
    },
}

# Glyph box height relative to point size.
TEXT_HEIGHT_FACTOR = 1.15

_TOKEN_RE = re.compile(r"\s+|\S+")


def font_name(family: FontFamily, style: FontStyle) -> str:
    return FONT_NAMES[family][style]


@dataclass(frozen=True)
class FontMetrics:
    family: FontFamily
    size: float

    @property
    def text_height(self) -> float:
        return self.size * TEXT_HEIGHT_FACTOR

    def text_width(self, text: str, style: FontStyle = FontStyle.NORMAL) -> float:
        return stringWidth(text, font_name(self.family, style), self.size)

    def split_text(self, text: str, max_width: float, style: FontStyle = FontStyle.NORMAL) -> List[str]:
        """
        Greedy wrap to max_width under the given style. Spacing inside a row is
        kept as written; a word wider than max_width is broken by character.
        """
        name = font_name(self.family, style)
        rows: List[str] = []
        current = ""
        for token in _TOKEN_RE.findall(text):
            if token.isspace():
                if current:
                    current += token
                continue
            candidate = current + token
            if stringWidth(candidate, name, self.size) <= max_width:
                current = candidate
                continue
            if current.strip():
                rows.append(current.rstrip())
            current = ""
            if stringWidth(token, name, self.size) <= max_width:
                current = token
                continue
            for ch in token:
                if current and stringWidth(current + ch, name, self.size) > max_width:
                    rows.append(current)
                    current = ch
                else:
                    current += ch
        if current.strip():
            rows.append(current.rstrip())
        return rows
