"""
Reservation list workflow state: pasted text, layout settings and the last sort result.

A result is only usable while the text and settings it was produced from are
unchanged; any edit marks the session stale and downloads require a fresh sort.
Every pipeline failure is turned into a user-facing message here.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Optional

from engine.sorting import build_sorted_lists
from errors import (
    InputRejectedError,
    ParseIntegrityError,
    RenderLimitError,
    ReportParseError,
    ReservationListError,
    StaleResultError,
    ValidityError,
)
from models import Audience, LayoutSettings, SortResult, SortStatus
from report_parse import parse_list
from reporting.format_utils import format_bytes
from reporting.list_builder import build_list_pdf, list_filename

logger = logging.getLogger(__name__)

MAX_INPUT_BYTES = 1_048_576

INTEGRITY_FAIL_SUFFIX = "\nIntegrity check: FAIL\n\nDo not use output until this is resolved."
STALE_MESSAGE = "The list has changed since it was sorted. Please click Sort again."
UNREADABLE_INPUT_MESSAGE = "The pasted text contains characters that could not be read. Please copy the list again."
GENERIC_SORT_ERROR = "There was an error while sorting. Please reload the page and try again."


def validate_input(text: str) -> None:
    """Reject empty or oversized input before any parsing."""
    if not text.strip():
        raise InputRejectedError("Please paste a reservation list before sorting.")
    try:
        size = len(text.encode("utf-8"))
    except UnicodeEncodeError as e:
        # Lone surrogates survive JSON decoding but are not text.
        raise InputRejectedError(UNREADABLE_INPUT_MESSAGE) from e
    if size > MAX_INPUT_BYTES:
        raise InputRejectedError(
            f"Input is too large ({format_bytes(size)}). Maximum allowed is {format_bytes(MAX_INPUT_BYTES)}."
        )


def user_message(error: Exception) -> str:
    if isinstance(error, ParseIntegrityError):
        return (
            f"Processing failed: the source list has {error.source_count} entries, but only "
            f"{error.parsed_count} made it into the new list. Please check the pasted text and try again."
        )
    if isinstance(error, ReportParseError):
        return "Could not read this reservation list. Please check the pasted text and click Sort again."
    if isinstance(error, (InputRejectedError, RenderLimitError, ValidityError, StaleResultError)):
        return str(error)
    return GENERIC_SORT_ERROR


@dataclass
class RenderedList:
    audience: Audience
    title: str
    filename: str
    pdf_bytes: bytes


class ReservationSession:
    """
    One user's working state. Sync API handlers run on a threadpool, so every
    method takes the session lock; render() works from a snapshot taken under it.
    """

    def __init__(self, source_text: str = "", settings: Optional[LayoutSettings] = None):
        self.source_text = source_text
        self.settings = settings or LayoutSettings()
        self.result: Optional[SortResult] = None
        self.status: Optional[SortStatus] = None
        self._sorted_source: Optional[str] = None
        self._sorted_settings: Optional[LayoutSettings] = None
        self._lock = threading.RLock()

    @property
    def stale(self) -> bool:
        with self._lock:
            return (
                self.result is None
                or self._sorted_source != self.source_text
                or self._sorted_settings != self.settings
            )

    @property
    def is_ready(self) -> bool:
        with self._lock:
            return not self.stale and self.result is not None and self.result.is_valid

    def invalidate(self) -> None:
        with self._lock:
            self.result = None
            self.status = None
            self._sorted_source = None
            self._sorted_settings = None

    def update_source(self, text: str) -> None:
        with self._lock:
            if text == self.source_text:
                return
            self.source_text = text
            if self.result is not None:
                logger.info("[session] source edited; result invalidated")
                self.invalidate()

    def update_settings(self, settings: LayoutSettings) -> None:
        with self._lock:
            if settings == self.settings:
                return
            self.settings = settings
            if self.result is not None:
                logger.info("[session] settings changed; result invalidated")
                self.invalidate()

    def sort(self) -> SortStatus:
        """Parse and sort the current text. Never raises for pipeline failures."""
        with self._lock:
            self.invalidate()
            try:
                validate_input(self.source_text)
                parsed = parse_list(self.source_text)
                result = build_sorted_lists(parsed)
            except ReservationListError as e:
                logger.warning("[session] sort failed: %s", e)
                self.status = SortStatus(ok=False, message=user_message(e))
                return self.status

            counts = {
                "original_count": result.original_count,
                "adult_count": result.adult_count,
                "junior_count": result.junior_count,
                "library_name": parsed.library_name,
                "report_date": parsed.report_date,
            }
            # Kept for diagnostics even when invalid; render() refuses it.
            self.result = result
            if not result.is_valid:
                self.status = SortStatus(ok=False, message=result.status_line + INTEGRITY_FAIL_SUFFIX, **counts)
                return self.status

            self._sorted_source = self.source_text
            self._sorted_settings = self.settings
            self.status = SortStatus(ok=True, message=result.status_line, downloads_enabled=True, **counts)
            return self.status

    def render(self, audience: Audience, use_cache: bool = True) -> RenderedList:
        """
        Build the PDF for one audience. Raises ValidityError, StaleResultError or
        RenderLimitError; map with user_message() at the boundary.
        """
        with self._lock:
            result = self.result
            settings = self.settings
            stale = self.stale
        if result is not None and not result.is_valid:
            raise ValidityError(f"{result.status_line}{INTEGRITY_FAIL_SUFFIX}")
        if stale or result is None:
            raise StaleResultError(STALE_MESSAGE)
        document = result.document_for(audience)
        pdf_bytes = build_list_pdf(document, settings, use_cache=use_cache)
        return RenderedList(
            audience=audience,
            title=document.title,
            filename=list_filename(audience),
            pdf_bytes=pdf_bytes,
        )
