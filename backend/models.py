from __future__ import annotations

from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Audience(str, Enum):
    ADULT = "adult"
    JUNIOR = "junior"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class FontStyle(str, Enum):
    NORMAL = "normal"
    BOLD = "bold"
    ITALIC = "italic"


class FontFamily(str, Enum):
    HELVETICA = "helvetica"
    TIMES = "times"
    COURIER = "courier"


class Entry(BaseModel):
    """
    One reservation hold recovered from the report.

    - raw_lines: the record's original text lines, in order (blank lines included)
    - original_index: position in the source report; final sort tie-break only
    """

    model_config = ConfigDict(frozen=True)

    raw_lines: tuple[str, ...]
    barcode: str
    shelfmark: str = ""
    author: str = ""
    item_type: str = ""
    sequence: str = ""
    audience: Audience
    original_index: int = Field(ge=0)


class ParseResult(BaseModel):
    library_name: str = "Unknown Library"
    report_date: str = "Unknown date"
    entries: List[Entry] = Field(default_factory=list)


class RenderSegment(BaseModel):
    text: str
    style: FontStyle = FontStyle.NORMAL


class RenderLine(BaseModel):
    """One output line: styled segments, optional right-aligned field, continuation flag."""

    segments: List[RenderSegment] = Field(default_factory=list)
    right_text: Optional[str] = None
    right_style: FontStyle = FontStyle.NORMAL
    continuation: bool = False

    @classmethod
    def plain(cls, text: str) -> RenderLine:
        return cls(segments=[RenderSegment(text=text)])

    @classmethod
    def styled(cls, text: str, style: FontStyle) -> RenderLine:
        return cls(segments=[RenderSegment(text=text, style=style)])

    @property
    def text(self) -> str:
        return "".join(segment.text for segment in self.segments)

    @property
    def style(self) -> FontStyle:
        return self.segments[0].style if self.segments else FontStyle.NORMAL

    @property
    def is_blank(self) -> bool:
        return self.text == "" and not self.right_text


class RenderBlock(BaseModel):
    """Atomic layout unit. section_heading is re-emitted when the block lands on a new page/column."""

    lines: List[RenderLine] = Field(default_factory=list)
    section_heading: RenderLine
    has_heading: bool = False


class RenderDocument(BaseModel):
    title: str
    blocks: List[RenderBlock] = Field(default_factory=list)


class SortResult(BaseModel):
    original_count: int = Field(ge=0)
    adult_count: int = Field(ge=0)
    junior_count: int = Field(ge=0)
    is_valid: bool
    adult_doc: RenderDocument
    junior_doc: RenderDocument

    @property
    def status_line(self) -> str:
        return (
            f"Original items: {self.original_count} | "
            f"Adult items: {self.adult_count} | "
            f"Junior items: {self.junior_count}"
        )

    def document_for(self, audience: Audience) -> RenderDocument:
        return self.adult_doc if audience == Audience.ADULT else self.junior_doc


DEFAULT_TEXT_SIZE = 11
MIN_TEXT_SIZE = 8
MAX_TEXT_SIZE = 14


class LayoutSettings(BaseModel):
    """
    Render settings chosen by the user. Lenient on input: unknown fonts fall back
    to helvetica, text size is clamped to 8..14, any column count other than 2 means 1.
    """

    model_config = ConfigDict(frozen=True)

    font: FontFamily = FontFamily.HELVETICA
    text_size: int = DEFAULT_TEXT_SIZE
    columns: Literal[1, 2] = 1

    @field_validator("font", mode="before")
    @classmethod
    def normalize_font(cls, v: object) -> FontFamily:
        value = str(v or "").strip().lower()
        if value in (FontFamily.TIMES.value, FontFamily.COURIER.value):
            return FontFamily(value)
        return FontFamily.HELVETICA

    @field_validator("text_size", mode="before")
    @classmethod
    def clamp_text_size(cls, v: object) -> int:
        try:
            parsed = int(str(v).strip())
        except (TypeError, ValueError):
            return DEFAULT_TEXT_SIZE
        return min(MAX_TEXT_SIZE, max(MIN_TEXT_SIZE, parsed))

    @field_validator("columns", mode="before")
    @classmethod
    def normalize_columns(cls, v: object) -> int:
        return 2 if str(v).strip() == "2" else 1


# --- API request/response schemas ---

class SettingsPayload(BaseModel):
    """Persisted/posted settings: three string fields, as stored."""
    font: str = FontFamily.HELVETICA.value
    textSize: str = str(DEFAULT_TEXT_SIZE)
    columns: str = "1"


class SortRequest(BaseModel):
    text: str


class SessionCreateRequest(BaseModel):
    text: str = ""
    settings: Optional[SettingsPayload] = None


class SourceUpdateRequest(BaseModel):
    text: str


class SortStatus(BaseModel):
    ok: bool
    message: str
    original_count: int = 0
    adult_count: int = 0
    junior_count: int = 0
    library_name: Optional[str] = None
    report_date: Optional[str] = None
    downloads_enabled: bool = False


class SessionResponse(BaseModel):
    session_id: str
    settings: SettingsPayload
    stale: bool
    status: Optional[SortStatus] = None
