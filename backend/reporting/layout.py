"""
Two-pass pagination for reservation lists.

Pass 1 wraps every line, then places blocks into columns/pages (A4, top-down
baselines in points), re-emitting "<heading> (cont.)" wherever a continuing
section lands at the top of a new column or page. Pass 2 adds "Page X of Y"
footers once the page total is known. The result is a PagePlan: every text
placement on every page, in drawing order. Nothing is drawn here.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import List, Literal, Protocol, Sequence

from errors import RenderLimitError
from models import FontStyle, RenderDocument, RenderLine, RenderSegment

from .format_utils import format_count

logger = logging.getLogger(__name__)

# A4 in points
PAGE_WIDTH = 595.28
PAGE_HEIGHT = 841.89
PAGE_MARGIN = 36.0
FOOTER_OFFSET = 16.0
COLUMN_GAP = 24.0
LINE_HEIGHT_FACTOR = 1.25
FIT_SLACK_FACTOR = 0.6
# Report lines are 45 characters wide; the barcode is right-aligned at that width.
REPORT_LINE_COLUMNS = 45
MIN_LEFT_WIDTH = 20.0

MAX_RENDER_LINES = 12_000
MAX_PDF_PAGES = 500

Align = Literal["left", "center", "right"]


class TextMeasurer(Protocol):
    @property
    def text_height(self) -> float: ...

    def text_width(self, text: str, style: FontStyle = FontStyle.NORMAL) -> float: ...

    def split_text(self, text: str, max_width: float, style: FontStyle = FontStyle.NORMAL) -> List[str]: ...


@dataclass(frozen=True)
class Placement:
    x: float
    y: float
    text: str
    style: FontStyle = FontStyle.NORMAL
    align: Align = "left"


@dataclass
class PagePlan:
    page_width: float
    page_height: float
    line_count: int
    pages: List[List[Placement]] = field(default_factory=list)

    @property
    def page_count(self) -> int:
        return len(self.pages)


@dataclass(frozen=True)
class LayoutGeometry:
    line_height: float
    fit_slack: float
    max_text_width: float
    column_width: float
    right_aligned_width: float
    continuation_indent: float
    column_xs: tuple[float, ...]
    footer_y: float
    content_bottom: float

    @classmethod
    def for_settings(cls, metrics: TextMeasurer, columns: int) -> LayoutGeometry:
        line_height = math.ceil(metrics.text_height * LINE_HEIGHT_FACTOR)
        max_text_width = PAGE_WIDTH - PAGE_MARGIN * 2
        char_width = metrics.text_width("0")
        if columns == 2:
            column_width = (max_text_width - COLUMN_GAP) / 2
            column_xs = (PAGE_MARGIN, PAGE_MARGIN + column_width + COLUMN_GAP)
        else:
            column_width = max_text_width
            column_xs = (PAGE_MARGIN,)
        footer_y = PAGE_HEIGHT - FOOTER_OFFSET
        return cls(
            line_height=line_height,
            fit_slack=math.floor(line_height * FIT_SLACK_FACTOR),
            max_text_width=max_text_width,
            column_width=column_width,
            right_aligned_width=min(column_width, REPORT_LINE_COLUMNS * char_width),
            continuation_indent=char_width * 2,
            column_xs=column_xs,
            footer_y=footer_y,
            content_bottom=footer_y - PAGE_MARGIN,
        )


# --- Wrapping ---

def _text_after_row(text: str, row: str) -> str:
    """Rest of text once the non-space characters of row are consumed."""
    remaining = sum(1 for c in row if not c.isspace())
    for index, ch in enumerate(text):
        if remaining == 0:
            return text[index:].lstrip()
        if not ch.isspace():
            remaining -= 1
    return ""


def _wrap_rows(metrics: TextMeasurer, text: str, width: float, indent: float, style: FontStyle) -> List[str]:
    """First row gets the full width; the indented rows after it get width - indent."""
    rows = metrics.split_text(text, width, style)
    if len(rows) <= 1 or indent <= 0:
        return rows
    rest = _text_after_row(text, rows[0])
    return [rows[0], *metrics.split_text(rest, max(MIN_LEFT_WIDTH, width - indent), style)]


def wrap_render_line(
    metrics: TextMeasurer,
    line: RenderLine,
    max_width: float,
    right_aligned_width: float,
    indent: float = 0.0,
) -> List[RenderLine]:
    """
    Wrap one logical line. A right field (barcode) is reserved against
    right_aligned_width and rides on the last wrapped row. Rows after the
    first are drawn indent points in, so they wrap that much narrower.
    """
    full_text = line.text
    if full_text == "":
        return [line]
    style = line.style

    if line.right_text:
        right_style = line.right_style
        right_width = metrics.text_width(line.right_text, right_style)
        gap_width = metrics.text_width("  ", FontStyle.NORMAL)
        left_max = max(MIN_LEFT_WIDTH, right_aligned_width - right_width - gap_width)
        wrapped_left = _wrap_rows(metrics, full_text, left_max, indent, style)
        if len(wrapped_left) <= 1:
            text = wrapped_left[0] if wrapped_left else full_text
            return [RenderLine(
                segments=[RenderSegment(text=text, style=style)],
                right_text=line.right_text,
                right_style=right_style,
            )]
        prefix = [
            RenderLine(segments=[RenderSegment(text=text, style=style)], continuation=index > 0)
            for index, text in enumerate(wrapped_left[:-1])
        ]
        final = RenderLine(
            segments=[RenderSegment(text=wrapped_left[-1], style=style)],
            right_text=line.right_text,
            right_style=right_style,
            continuation=True,
        )
        return [*prefix, final]

    wrapped = [text for text in _wrap_rows(metrics, full_text, max_width, indent, style) if text != ""]
    if not wrapped:
        return [line]
    return [
        RenderLine(segments=[RenderSegment(text=text, style=style)], continuation=index > 0)
        for index, text in enumerate(wrapped)
    ]


def count_trailing_blank_lines(lines: Sequence[RenderLine]) -> int:
    count = 0
    for line in reversed(lines):
        if not line.is_blank:
            break
        count += 1
    return count


@dataclass
class _WrappedBlock:
    lines: List[RenderLine]
    section_heading: RenderLine
    has_heading: bool


# --- Placement ---

class _PageCursor:
    """Column/page cursor. Owns the page list and every placement appended to it."""

    def __init__(
        self,
        metrics: TextMeasurer,
        geometry: LayoutGeometry,
        wrapped_title: List[RenderLine],
        max_pages: int,
    ):
        self.metrics = metrics
        self.geometry = geometry
        self.wrapped_title = wrapped_title
        self.max_pages = max_pages
        self.pages: List[List[Placement]] = []
        self.column_index = 0
        self.y = 0.0
        self.content_start_y = 0.0
        self._start_new_page()

    @property
    def remaining(self) -> float:
        return self.geometry.content_bottom - self.y

    @property
    def column_height(self) -> float:
        return self.geometry.content_bottom - self.content_start_y

    def _start_new_page(self) -> None:
        self.pages.append([])
        g = self.geometry
        y = PAGE_MARGIN
        for line in self.wrapped_title:
            if line.text != "":
                self.pages[-1].append(Placement(PAGE_WIDTH / 2, y, line.text, line.style, "center"))
            y += g.line_height
        self.content_start_y = y + g.line_height
        self.y = self.content_start_y
        self.column_index = 0

    def advance(self) -> None:
        """Move to the next column, or to a fresh page when on the last column."""
        if self.column_index < len(self.geometry.column_xs) - 1:
            self.column_index += 1
            self.y = self.content_start_y
            return
        if len(self.pages) >= self.max_pages:
            raise RenderLimitError(
                "pages",
                len(self.pages) + 1,
                self.max_pages,
                f"Output is too large to render safely (more than {format_count(self.max_pages)} pages). "
                f"Maximum allowed is {format_count(self.max_pages)} pages. Please split the list into smaller batches.",
            )
        self._start_new_page()

    def draw_lines(self, lines: Sequence[RenderLine]) -> None:
        g = self.geometry
        left_x = g.column_xs[self.column_index]
        right_x = left_x + g.right_aligned_width
        page = self.pages[-1]
        for line in lines:
            x = left_x + (g.continuation_indent if line.continuation else 0.0)
            for segment in line.segments:
                if segment.text == "":
                    continue
                page.append(Placement(x, self.y, segment.text, segment.style))
                x += self.metrics.text_width(segment.text, segment.style)
            if line.right_text:
                page.append(Placement(right_x, self.y, line.right_text, line.right_style, "right"))
            self.y += g.line_height

    def draw_continued_heading(self, section_heading: RenderLine) -> None:
        g = self.geometry
        heading = RenderLine.styled(f"{section_heading.text} (cont.)", FontStyle.BOLD)
        lines = [
            *wrap_render_line(
                self.metrics, heading, g.column_width, g.right_aligned_width, g.continuation_indent
            ),
            RenderLine.plain(""),
        ]
        self.draw_lines(lines)

    def advance_for(self, block: _WrappedBlock) -> None:
        self.advance()
        if not block.has_heading:
            self.draw_continued_heading(block.section_heading)


def paginate(
    document: RenderDocument,
    metrics: TextMeasurer,
    columns: int = 1,
    max_lines: int = MAX_RENDER_LINES,
    max_pages: int = MAX_PDF_PAGES,
) -> PagePlan:
    """
    Lay out a document. Raises RenderLimitError (no partial plan) when the
    wrapped line total exceeds max_lines or more than max_pages pages are needed.
    """
    g = LayoutGeometry.for_settings(metrics, columns)
    wrapped_title = wrap_render_line(
        metrics, RenderLine.styled(document.title, FontStyle.BOLD), g.max_text_width, g.max_text_width
    )
    wrapped_blocks = [
        _WrappedBlock(
            lines=[
                wrapped
                for line in block.lines
                for wrapped in wrap_render_line(
                    metrics, line, g.column_width, g.right_aligned_width, g.continuation_indent
                )
            ],
            section_heading=block.section_heading,
            has_heading=block.has_heading,
        )
        for block in document.blocks
    ]

    total_lines = len(wrapped_title) + sum(len(b.lines) for b in wrapped_blocks)
    if total_lines > max_lines:
        logger.warning("[layout] line cap exceeded lines=%d limit=%d", total_lines, max_lines)
        raise RenderLimitError(
            "lines",
            total_lines,
            max_lines,
            f"Output is too large to render safely ({format_count(total_lines)} lines). "
            f"Maximum allowed is {format_count(max_lines)} lines. Please split the list into smaller batches.",
        )

    cursor = _PageCursor(metrics, g, wrapped_title, max_pages)
    for block in wrapped_blocks:
        _place_block(cursor, block)

    # Second pass: totals are only known now.
    page_count = len(cursor.pages)
    for number, page in enumerate(cursor.pages, start=1):
        page.append(Placement(PAGE_WIDTH / 2, g.footer_y, f"Page {number} of {page_count}", FontStyle.NORMAL, "center"))

    logger.info(
        "[layout] title=%r blocks=%d lines=%d pages=%d columns=%d",
        document.title, len(wrapped_blocks), total_lines, page_count, columns,
    )
    return PagePlan(page_width=PAGE_WIDTH, page_height=PAGE_HEIGHT, line_count=total_lines, pages=cursor.pages)


def _place_block(cursor: _PageCursor, block: _WrappedBlock) -> None:
    g = cursor.geometry
    lines = block.lines

    trailing_blank = count_trailing_blank_lines(lines)
    if trailing_blank > 0:
        trimmed = lines[: len(lines) - trailing_blank]
        full_height = len(lines) * g.line_height
        trimmed_height = len(trimmed) * g.line_height
        if full_height > cursor.remaining + g.fit_slack and trimmed_height <= cursor.remaining + g.fit_slack:
            lines = trimmed

    block_height = len(lines) * g.line_height
    if block_height > cursor.column_height:
        for line in lines:
            if cursor.y + g.line_height > g.content_bottom:
                cursor.advance_for(block)
            cursor.draw_lines([line])
        return

    if block_height > cursor.remaining + g.fit_slack:
        cursor.advance_for(block)
    cursor.draw_lines(lines)

