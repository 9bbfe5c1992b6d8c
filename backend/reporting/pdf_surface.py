"""
Drawing surface over a reportlab canvas.

Every draw call carries its own style, so callers never depend on whatever font
the canvas happens to have selected. Coordinates are top-down (y = baseline
distance from the top edge) and flipped to reportlab's bottom-up space here.
"""
from __future__ import annotations

from io import BytesIO
from typing import List, Optional

from reportlab.pdfgen import canvas as rl_canvas

from models import FontFamily, FontStyle

from .fonts import FontMetrics, font_name
from .layout import PAGE_HEIGHT, PAGE_WIDTH, Align


class PdfSurface:
    """Single-threaded, stateful: calls must arrive in the order content should appear."""

    def __init__(
        self,
        family: FontFamily,
        size: float,
        page_width: float = PAGE_WIDTH,
        page_height: float = PAGE_HEIGHT,
        title: Optional[str] = None,
    ):
        self.metrics = FontMetrics(family, size)
        self.page_width = page_width
        self.page_height = page_height
        self._buffer = BytesIO()
        self._canvas = rl_canvas.Canvas(self._buffer, pagesize=(page_width, page_height))
        if title:
            self._canvas.setTitle(title)
        self._page_count = 1
        self._current_style: Optional[FontStyle] = None

    @property
    def page_count(self) -> int:
        return self._page_count

    @property
    def text_height(self) -> float:
        return self.metrics.text_height

    def text_width(self, text: str, style: FontStyle = FontStyle.NORMAL) -> float:
        return self.metrics.text_width(text, style)

    def split_text(self, text: str, max_width: float, style: FontStyle = FontStyle.NORMAL) -> List[str]:
        return self.metrics.split_text(text, max_width, style)

    def set_font(self, style: FontStyle) -> None:
        if style != self._current_style:
            self._canvas.setFont(font_name(self.metrics.family, style), self.metrics.size)
            self._current_style = style

    def draw_text(self, x: float, y: float, text: str, style: FontStyle = FontStyle.NORMAL, align: Align = "left") -> None:
        self.set_font(style)
        canvas_y = self.page_height - y
        if align == "center":
            self._canvas.drawCentredString(x, canvas_y, text)
        elif align == "right":
            self._canvas.drawRightString(x, canvas_y, text)
        else:
            self._canvas.drawString(x, canvas_y, text)

    def new_page(self) -> None:
        self._canvas.showPage()
        # showPage resets the graphics state, font included.
        self._current_style = None
        self._page_count += 1

    def save(self) -> bytes:
        self._canvas.save()
        return self._buffer.getvalue()
