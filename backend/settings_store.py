"""
Store and retrieve layout settings (font, text size, columns) as a JSON file on disk.
Read once at startup; written on explicit request. Missing or corrupt files give defaults.
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from models import LayoutSettings, SettingsPayload

logger = logging.getLogger(__name__)

SETTINGS_DIR = Path(__file__).resolve().parent / "settings"
SETTINGS_FILENAME = "layout_settings.json"


def settings_path() -> Path:
    return Path(os.getenv("SETTINGS_PATH") or (SETTINGS_DIR / SETTINGS_FILENAME))


def settings_to_payload(settings: LayoutSettings) -> SettingsPayload:
    return SettingsPayload(
        font=settings.font.value,
        textSize=str(settings.text_size),
        columns=str(settings.columns),
    )


def settings_from_payload(data: Any) -> LayoutSettings:
    """Lenient: only string fields are taken; anything else keeps its default."""
    if not isinstance(data, dict):
        return LayoutSettings()
    fields: dict[str, str] = {}
    for key, field in (("font", "font"), ("textSize", "text_size"), ("columns", "columns")):
        value = data.get(key)
        if isinstance(value, str) and value.strip():
            fields[field] = value
    return LayoutSettings(**fields)


def load_settings(path: Path | None = None) -> LayoutSettings:
    path = path or settings_path()
    if not path.is_file():
        return LayoutSettings()
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning("[settings] ignoring unreadable settings file %s: %s", path, e)
        return LayoutSettings()
    return settings_from_payload(data)


def save_settings(settings: LayoutSettings, path: Path | None = None) -> Path:
    path = path or settings_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(settings_to_payload(settings).model_dump(), f, indent=2)
    logger.info("[settings] saved %s", path)
    return path
