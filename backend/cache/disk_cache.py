"""
Content-hash disk cache for rendered reservation lists.
Key = sha256(render document JSON + layout settings JSON) -> PDF bytes.
Any change to the sorted content or to font/size/columns gives a new key.
"""
from __future__ import annotations

import hashlib
import json
import logging
import os
import uuid
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

_CACHE_DIR = Path(__file__).resolve().parent


def list_cache_dir() -> Path:
    return Path(os.getenv("LIST_PDF_CACHE_DIR") or (_CACHE_DIR / "lists"))


def _ensure_dir(d: Path) -> None:
    d.mkdir(parents=True, exist_ok=True)


def _list_key(document_dict: dict[str, Any], settings_dict: dict[str, Any]) -> str:
    payload = json.dumps(
        {"document": document_dict, "settings": settings_dict},
        sort_keys=True,
        default=str,
    )
    return hashlib.sha256(payload.encode()).hexdigest()


def get_cached_list_pdf(document_dict: dict[str, Any], settings_dict: dict[str, Any]) -> bytes | None:
    """Return cached PDF bytes, or None."""
    cache_dir = list_cache_dir()
    _ensure_dir(cache_dir)
    path = cache_dir / f"{_list_key(document_dict, settings_dict)}.pdf"
    if not path.exists():
        return None
    try:
        return path.read_bytes()
    except OSError as e:
        logger.warning("[cache] unreadable entry %s: %s", path.name, e)
        return None


def set_cached_list_pdf(document_dict: dict[str, Any], settings_dict: dict[str, Any], pdf_bytes: bytes) -> None:
    """Store PDF bytes in cache."""
    cache_dir = list_cache_dir()
    _ensure_dir(cache_dir)
    path = cache_dir / f"{_list_key(document_dict, settings_dict)}.pdf"
    # Readers only ever see a complete file.
    tmp_path = path.with_name(f"{path.stem}.{uuid.uuid4().hex}.tmp")
    try:
        tmp_path.write_bytes(pdf_bytes)
        os.replace(tmp_path, path)
    except OSError as e:
        logger.warning("[cache] could not store %s: %s", path.name, e)
        tmp_path.unlink(missing_ok=True)
