from __future__ import annotations

import json

from models import FontFamily, LayoutSettings
from settings_store import load_settings, save_settings, settings_from_payload, settings_path, settings_to_payload


def test_missing_file_gives_defaults(tmp_path):
    settings = load_settings(tmp_path / "absent.json")
    assert settings == LayoutSettings()
    assert (settings.font, settings.text_size, settings.columns) == (FontFamily.HELVETICA, 11, 1)


def test_corrupt_file_gives_defaults(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")
    assert load_settings(path) == LayoutSettings()


def test_non_object_json_gives_defaults(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("[1, 2, 3]", encoding="utf-8")
    assert load_settings(path) == LayoutSettings()


def test_save_then_load_uses_env_path():
    saved = LayoutSettings(font="times", text_size=9, columns=2)
    path = save_settings(saved)

    assert path == settings_path()
    assert json.loads(path.read_text(encoding="utf-8")) == {"font": "times", "textSize": "9", "columns": "2"}
    assert load_settings() == saved


def test_values_are_normalised():
    settings = settings_from_payload({"font": "Comic Sans", "textSize": "30", "columns": "3"})
    assert settings == LayoutSettings(font="helvetica", text_size=14, columns=1)

    settings = settings_from_payload({"font": " COURIER ", "textSize": "2", "columns": "2"})
    assert settings == LayoutSettings(font="courier", text_size=8, columns=2)


def test_non_string_fields_keep_defaults():
    settings = settings_from_payload({"font": 7, "textSize": 12, "columns": None})
    assert settings == LayoutSettings()
    assert settings_from_payload({"textSize": "abc"}).text_size == 11


def test_payload_round_trip():
    settings = LayoutSettings(font="courier", text_size=13, columns=2)
    payload = settings_to_payload(settings)
    assert payload.model_dump() == {"font": "courier", "textSize": "13", "columns": "2"}
    assert settings_from_payload(payload.model_dump()) == settings
