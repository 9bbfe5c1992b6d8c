"""
Partition parsed entries by audience, order them by local shelving policy and
group them into headed sections ready for layout.
"""
from __future__ import annotations

import logging
import re
import unicodedata
from functools import cmp_to_key, lru_cache
from typing import List, Sequence, Tuple, Union

from models import (
    Audience,
    Entry,
    FontStyle,
    ParseResult,
    RenderBlock,
    RenderDocument,
    RenderLine,
    RenderSegment,
    SortResult,
)
from report_parse import BARCODE_PATTERN

logger = logging.getLogger(__name__)

BUCKET_NON_FICTION = 0
BUCKET_FICTION = 1
BUCKET_GRAPHIC_FICTION = 2
BUCKET_OTHER = 3

_DVD_RE = re.compile(r"\bdvd\b", re.IGNORECASE)
_NON_FICTION_RE = re.compile(r"^\s*(adult|junior)\s+non[- ]fiction\b", re.IGNORECASE)
_FICTION_RE = re.compile(r"^\s*(adult|junior)\s+fiction\b", re.IGNORECASE)
_GRAPHIC_FICTION_RE = re.compile(r"graphic\s+fiction", re.IGNORECASE)
_ADULT_FICTION_RE = re.compile(r"^adult fiction$", re.IGNORECASE)

# Adult Fiction shelving: thrillers are filed with crime; these genres go to general fiction.
SEQUENCE_REMAP = {"thriller": "Crime"}
GENERAL_FICTION_SEQUENCES = frozenset({"historical", "romance", "saga", "horror", "western"})

_FIRST_LINE_RE = re.compile(rf"^(.*?)\s+({BARCODE_PATTERN})\s*$")
_METADATA_LINE_RE = re.compile(r"^(Item Type|Sequence|Reserved at)\s*:", re.IGNORECASE)
_EMPTY_SEQUENCE_RE = re.compile(r"^Sequence\s*:\s*$", re.IGNORECASE)
_CHUNK_RE = re.compile(r"(\d+)")

HEADING_DASH = "—"


# --- Comparison ---

_RANK_SYMBOL = 0
_RANK_DIGITS = 1
_RANK_LETTER = 2


@lru_cache(maxsize=8192)
def _collation_key(text: str) -> Tuple[Tuple[int, Union[int, str]], ...]:
    """
    Case/accent-insensitive key; digit runs compare by numeric value.
    Spaces and punctuation order before digits, digits before letters.
    """
    decomposed = unicodedata.normalize("NFKD", text)
    base = "".join(c for c in decomposed if not unicodedata.combining(c)).casefold()
    key = []
    for chunk in _CHUNK_RE.split(base):
        if not chunk:
            continue
        if chunk.isdecimal():
            key.append((_RANK_DIGITS, int(chunk)))
            continue
        for c in chunk:
            key.append((_RANK_LETTER if c.isalpha() else _RANK_SYMBOL, c))
    return tuple(key)


def _cmp(a, b) -> int:
    return (a > b) - (a < b)


def compare_text(a: str, b: str) -> int:
    return _cmp(_collation_key(a), _collation_key(b))


def item_type_bucket(item_type: str) -> int:
    if _DVD_RE.search(item_type):
        return BUCKET_OTHER
    if _NON_FICTION_RE.match(item_type):
        return BUCKET_NON_FICTION
    if _FICTION_RE.match(item_type):
        return BUCKET_FICTION
    if _GRAPHIC_FICTION_RE.search(item_type):
        return BUCKET_GRAPHIC_FICTION
    return BUCKET_OTHER


def normalize_sequence_for_sorting(item_type: str, sequence: str) -> str:
    if not _ADULT_FICTION_RE.match(item_type.strip()):
        return sequence
    normalized = sequence.strip().lower()
    if normalized in SEQUENCE_REMAP:
        return SEQUENCE_REMAP[normalized]
    if normalized in GENERAL_FICTION_SEQUENCES:
        return ""
    return sequence


def compare_sequence(a: str, b: str) -> int:
    """Blank sequences sort before any non-blank one."""
    a_blank = a.strip() == ""
    b_blank = b.strip() == ""
    if a_blank and b_blank:
        return 0
    if a_blank:
        return -1
    if b_blank:
        return 1
    return compare_text(a, b)


def compare_entries(a: Entry, b: Entry) -> int:
    result = item_type_bucket(a.item_type) - item_type_bucket(b.item_type)
    if result:
        return result
    result = compare_text(a.item_type, b.item_type)
    if result:
        return result
    result = compare_sequence(
        normalize_sequence_for_sorting(a.item_type, a.sequence),
        normalize_sequence_for_sorting(b.item_type, b.sequence),
    )
    if result:
        return result
    for field in ("shelfmark", "author", "barcode"):
        result = compare_text(getattr(a, field), getattr(b, field))
        if result:
            return result
    return a.original_index - b.original_index


def sort_entries(entries: Sequence[Entry]) -> List[Entry]:
    return sorted(entries, key=cmp_to_key(compare_entries))


# --- Render model ---

def format_group_heading(item_type: str, effective_sequence: str) -> str:
    if effective_sequence.strip() == "":
        return f"{item_type} {HEADING_DASH}"
    return f"{item_type} {HEADING_DASH} {effective_sequence}"


def build_entry_render_lines(raw_lines: Sequence[str]) -> List[RenderLine]:
    """
    Clean one record for display: blanks dropped, barcode split to a right field,
    the line before the first metadata line italicised as the title, empty
    `Sequence :` omitted.
    """
    non_blank = [line for line in raw_lines if line.strip() != ""]
    if not non_blank:
        return []

    first = non_blank[0].lstrip()
    m = _FIRST_LINE_RE.match(first)
    lines: List[RenderLine] = []
    if m:
        lines.append(RenderLine(
            segments=[RenderSegment(text=m.group(1).rstrip())],
            right_text=m.group(2),
        ))
    else:
        lines.append(RenderLine.plain(first))

    remaining = [line.lstrip() for line in non_blank[1:]]
    metadata_start = next((i for i, line in enumerate(remaining) if _METADATA_LINE_RE.match(line)), -1)
    title_index = metadata_start - 1 if metadata_start > 0 else -1

    for i, line in enumerate(remaining):
        if _EMPTY_SEQUENCE_RE.match(line):
            continue
        if i == title_index:
            lines.append(RenderLine.styled(line, FontStyle.ITALIC))
        else:
            lines.append(RenderLine.plain(line))
    return lines


def build_render_blocks(entries: Sequence[Entry]) -> List[RenderBlock]:
    blocks: List[RenderBlock] = []
    last_group_key: tuple[str, str] | None = None
    section_heading: RenderLine | None = None

    for entry in entries:
        effective_sequence = normalize_sequence_for_sorting(entry.item_type, entry.sequence)
        group_key = (entry.item_type, effective_sequence)
        entry_lines = build_entry_render_lines(entry.raw_lines)

        if group_key != last_group_key:
            section_heading = RenderLine.styled(
                format_group_heading(entry.item_type, effective_sequence), FontStyle.BOLD
            )
            blocks.append(RenderBlock(
                lines=[section_heading, RenderLine.plain(""), *entry_lines, RenderLine.plain("")],
                section_heading=section_heading,
                has_heading=True,
            ))
            last_group_key = group_key
            continue

        blocks.append(RenderBlock(
            lines=[*entry_lines, RenderLine.plain("")],
            section_heading=section_heading,
            has_heading=False,
        ))

    if blocks:
        last_lines = blocks[-1].lines
        while last_lines and last_lines[-1].is_blank:
            last_lines.pop()
    return blocks


def build_document(
    audience_label: str,
    library_name: str,
    report_date: str,
    entries: Sequence[Entry],
) -> RenderDocument:
    title = f"{audience_label} reservation list {HEADING_DASH} {library_name} {HEADING_DASH} {report_date}"
    return RenderDocument(title=title, blocks=build_render_blocks(entries))


def build_sorted_lists(parsed: ParseResult) -> SortResult:
    """Split by audience, sort each side, build both documents and check the partition."""
    all_entries = parsed.entries
    adult = sort_entries([e for e in all_entries if e.audience == Audience.ADULT])
    junior = sort_entries([e for e in all_entries if e.audience == Audience.JUNIOR])

    all_indices = {e.original_index for e in all_entries}
    split_indices = [e.original_index for e in (*adult, *junior)]
    is_valid = len(split_indices) == len(all_indices) and set(split_indices) == all_indices
    if not is_valid:
        logger.warning(
            "[sort] partition check failed original=%d adult=%d junior=%d",
            len(all_entries), len(adult), len(junior),
        )

    logger.info("[sort] original=%d adult=%d junior=%d", len(all_entries), len(adult), len(junior))
    return SortResult(
        original_count=len(all_entries),
        adult_count=len(adult),
        junior_count=len(junior),
        is_valid=is_valid,
        adult_doc=build_document(Audience.ADULT.label, parsed.library_name, parsed.report_date, adult),
        junior_doc=build_document(Audience.JUNIOR.label, parsed.library_name, parsed.report_date, junior),
    )
