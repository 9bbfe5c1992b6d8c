"""Backend services."""

from services.session import (
    RenderedList,
    ReservationSession,
    user_message,
    validate_input,
)

__all__ = [
    "RenderedList",
    "ReservationSession",
    "user_message",
    "validate_input",
]
