"""Consistent formatting for counts and sizes in user-facing messages."""
from __future__ import annotations


def format_count(value: int) -> str:
    return f"{value:,}"


def format_bytes(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"
