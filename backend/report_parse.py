"""
Parse the plain-text "items on reservation" report into entries + header metadata.
Line-sequential: header lines until the first entry-start line, then one record per
entry-start line. Entry count is checked against a raw count of entry-start lines.
"""
from __future__ import annotations

import logging
import re
from enum import Enum
from typing import Iterable, Iterator

from errors import ParseIntegrityError, ReportParseError
from models import Audience, Entry, ParseResult

logger = logging.getLogger(__name__)

BARCODE_PATTERN = r"30120\d+"
ENTRY_START_RE = re.compile(rf"^\s*(.*?)\s+({BARCODE_PATTERN})\s*$")

LIBRARY_NAME_RE = re.compile(r"^\s*Items at\s+(.+?)\s*$", re.IGNORECASE)
REPORT_DATE_RE = re.compile(r"^\s*res_itm_noloan\s+(\d{2}/\d{2}/\d{2})\s*$", re.IGNORECASE)

UNKNOWN_LIBRARY = "Unknown Library"
UNKNOWN_DATE = "Unknown date"


class _State(str, Enum):
    HEADER = "header"
    ENTRY = "entry"


def split_lines(text: str) -> list[str]:
    """Normalize line endings and split."""
    return text.replace("\r", "").split("\n")


def is_entry_start(line: str) -> bool:
    return ENTRY_START_RE.match(line) is not None


def count_entry_start_lines(lines: Iterable[str]) -> int:
    return sum(1 for line in lines if is_entry_start(line))


def extract_header_metadata(header_lines: Iterable[str]) -> tuple[str, str]:
    """Return (library_name, report_date); placeholders when absent. Last match wins."""
    library_name = UNKNOWN_LIBRARY
    report_date = UNKNOWN_DATE
    for line in header_lines:
        m = LIBRARY_NAME_RE.match(line)
        if m:
            library_name = m.group(1).strip()
        m = REPORT_DATE_RE.match(line)
        if m:
            report_date = m.group(1)
    return library_name, report_date


def find_field(lines: Iterable[str], field_name: str) -> str:
    """Value of the first `<field_name> : <value>` line (case-insensitive), else ""."""
    regex = re.compile(rf"^\s*{re.escape(field_name)}\s*:\s*(.*)$", re.IGNORECASE)
    for line in lines:
        m = regex.match(line)
        if m:
            return (m.group(1) or "").strip()
    return ""


def classify_audience(item_type: str, sequence: str) -> Audience:
    type_ = item_type.strip()
    if re.match(r"adult\b", type_, re.IGNORECASE):
        return Audience.ADULT
    if re.match(r"junior\b", type_, re.IGNORECASE):
        return Audience.JUNIOR
    if re.search(r"children", type_, re.IGNORECASE) or re.search(r"children", sequence, re.IGNORECASE):
        return Audience.JUNIOR
    # Anything without a junior marker is shelved as adult.
    return Audience.ADULT


def parse_entry(raw_lines: list[str], original_index: int) -> Entry:
    first_line = raw_lines[0] if raw_lines else ""
    m = ENTRY_START_RE.match(first_line)
    if not m:
        raise ReportParseError(f"Invalid entry start at item {original_index + 1}.")

    pre_barcode = m.group(1).strip()
    tokens = pre_barcode.split()
    item_type = find_field(raw_lines, "Item Type")
    sequence = find_field(raw_lines, "Sequence")
    return Entry(
        raw_lines=tuple(raw_lines),
        barcode=m.group(2),
        shelfmark=tokens[0] if tokens else "",
        author=raw_lines[1].strip() if len(raw_lines) > 1 else "",
        item_type=item_type,
        sequence=sequence,
        audience=classify_audience(item_type, sequence),
        original_index=original_index,
    )


def _iter_records(lines: Iterable[str], header: list[str]) -> Iterator[list[str]]:
    """
    Two-state scan. HEADER collects lines into `header` until the first entry-start line;
    ENTRY yields one record per entry-start line, continuation lines appended in order.
    """
    state = _State.HEADER
    current: list[str] = []
    for line in lines:
        starts_entry = is_entry_start(line)
        if state == _State.HEADER:
            if not starts_entry:
                header.append(line)
                continue
            state = _State.ENTRY
            current = [line]
            continue
        if starts_entry:
            yield current
            current = [line]
        else:
            current.append(line)
    if current:
        yield current


def parse_list(text: str) -> ParseResult:
    """
    Parse report text. Raises ReportParseError when nothing can be recovered and
    ParseIntegrityError when entry-start lines were lost along the way.
    """
    lines = split_lines(text)
    source_count = count_entry_start_lines(lines)
    if source_count == 0:
        raise ReportParseError(
            "No item entries found. Check that the pasted text includes full reservation entries."
        )

    header: list[str] = []
    entries: list[Entry] = []
    for record in _iter_records(lines, header):
        entries.append(parse_entry(record, len(entries)))

    if len(entries) != source_count:
        logger.warning("[parse] integrity mismatch source=%d parsed=%d", source_count, len(entries))
        raise ParseIntegrityError(source_count, len(entries))
    if not entries:
        raise ReportParseError("Entries could not be parsed.")

    library_name, report_date = extract_header_metadata(header)
    logger.info(
        "[parse] entries=%d header_lines=%d library=%r date=%r",
        len(entries), len(header), library_name, report_date,
    )
    return ParseResult(library_name=library_name, report_date=report_date, entries=entries)
