"""Add backend to path so modules resolve 'from models import' when run from project root."""
import os
import sys

_backend_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if _backend_dir not in sys.path:
    sys.path.insert(0, _backend_dir)

import pytest

from models import FontStyle

SAMPLE_REPORT = """Items at Springfield Library
res_itm_noloan 04/03/24

AF SMI  The silent harbour  30120012345678
Smith, Anna
The silent harbour
Item Type: Adult Fiction
Sequence: Thriller
Reserved at: Springfield

JF DAH  Matilda  30120098765432
Dahl, Roald
Matilda
Item Type: Junior Fiction
Sequence:
Reserved at: Springfield
"""


def make_record(
    shelfmark: str,
    barcode: str,
    item_type: str,
    sequence: str = "",
    author: str = "Author, Any",
    title: str = "A title",
) -> str:
    return "\n".join([
        f"{shelfmark}  {title}  {barcode}",
        author,
        title,
        f"Item Type: {item_type}",
        f"Sequence: {sequence}",
        "Reserved at: Springfield",
        "",
    ])


class FixedMetrics:
    """Monospace stand-in for font metrics: every character is 6pt wide, text height 10pt."""

    char_width = 6.0
    text_height = 10.0

    def text_width(self, text: str, style: FontStyle = FontStyle.NORMAL) -> float:
        return len(text) * self.char_width

    def split_text(self, text: str, max_width: float, style: FontStyle = FontStyle.NORMAL) -> list[str]:
        lines: list[str] = []
        current: list[str] = []
        width = -self.char_width
        for word in text.split():
            word_width = len(word) * self.char_width
            if current and width + self.char_width + word_width > max_width:
                lines.append(" ".join(current))
                current = [word]
                width = word_width
            else:
                current.append(word)
                width += self.char_width + word_width
        if current:
            lines.append(" ".join(current))
        return lines


@pytest.fixture
def sample_report() -> str:
    return SAMPLE_REPORT


@pytest.fixture
def fixed_metrics() -> FixedMetrics:
    return FixedMetrics()


@pytest.fixture(autouse=True)
def isolated_storage(tmp_path, monkeypatch):
    """Keep settings files and rendered-PDF cache out of the source tree."""
    monkeypatch.setenv("SETTINGS_PATH", str(tmp_path / "settings" / "layout_settings.json"))
    monkeypatch.setenv("LIST_PDF_CACHE_DIR", str(tmp_path / "list_cache"))
    return tmp_path
