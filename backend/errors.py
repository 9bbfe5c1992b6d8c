"""
Failure taxonomy for the reservation list pipeline.
All are ValueErrors so callers that only care about "bad input" can catch one type.
"""
from __future__ import annotations


class ReservationListError(ValueError):
    """Base for every recoverable pipeline failure."""


class InputRejectedError(ReservationListError):
    """Input refused before parsing (empty or over the byte cap)."""


class ReportParseError(ReservationListError):
    """The report could not be turned into entries."""


class ParseIntegrityError(ReportParseError):
    """Some entry-start lines did not become entries."""

    def __init__(self, source_count: int, parsed_count: int):
        self.source_count = source_count
        self.parsed_count = parsed_count
        super().__init__(
            f"Parsing integrity check failed: {source_count} entries detected in source "
            f"but only {parsed_count} were successfully parsed. Do not use the output."
        )


class ValidityError(ReservationListError):
    """Audience partition does not reconstruct the original entry set."""


class StaleResultError(ReservationListError):
    """No current sort result (never sorted, failed, or input/settings changed since)."""


class RenderLimitError(ReservationListError):
    """Rendering would exceed a hard line or page cap."""

    def __init__(self, kind: str, count: int, limit: int, message: str):
        self.kind = kind
        self.count = count
        self.limit = limit
        super().__init__(message)
