"""
Sort a reservation report and write adult-list.pdf and junior-list.pdf.

Usage:
  cd backend
  python3 scripts/build_reservation_lists.py report.txt --out-dir out [--font times] [--size 10] [--columns 2]

Settings not given on the command line come from the saved settings file.
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from errors import ReservationListError
from models import Audience, LayoutSettings
from services.session import ReservationSession, user_message
from settings_store import load_settings


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("report", type=Path, help="plain-text reservation report")
    parser.add_argument("--out-dir", type=Path, default=Path("."))
    parser.add_argument("--font", choices=["helvetica", "times", "courier"])
    parser.add_argument("--size", type=int, help="text size in points (8-14)")
    parser.add_argument("--columns", type=int, choices=[1, 2])
    parser.add_argument("--no-cache", action="store_true", help="always re-render")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s %(message)s")
    args = _parse_args(argv)

    saved = load_settings()
    settings = LayoutSettings(
        font=args.font or saved.font.value,
        text_size=args.size if args.size is not None else saved.text_size,
        columns=args.columns or saved.columns,
    )

    try:
        text = args.report.read_text(encoding="utf-8")
    except OSError as e:
        print(f"Could not read {args.report}: {e}", file=sys.stderr)
        return 2
    except UnicodeDecodeError as e:
        print(f"Could not read {args.report}: not UTF-8 text ({e.reason} at byte {e.start}).", file=sys.stderr)
        return 2

    session = ReservationSession(text, settings)
    status = session.sort()
    print(status.message)
    if not status.ok:
        return 1

    # Render both before writing either, so a failure leaves no files behind.
    try:
        rendered_lists = [session.render(audience, use_cache=not args.no_cache) for audience in Audience]
    except ReservationListError as e:
        print(user_message(e), file=sys.stderr)
        return 1

    args.out_dir.mkdir(parents=True, exist_ok=True)
    for rendered in rendered_lists:
        path = args.out_dir / rendered.filename
        path.write_bytes(rendered.pdf_bytes)
        print(f"Wrote {path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
