from __future__ import annotations

import threading

import pytest

from conftest import make_record
from errors import (
    InputRejectedError,
    ParseIntegrityError,
    RenderLimitError,
    ReportParseError,
    StaleResultError,
    ValidityError,
)
from models import Audience, LayoutSettings
from services import session as session_module
from services.session import (
    GENERIC_SORT_ERROR,
    MAX_INPUT_BYTES,
    STALE_MESSAGE,
    UNREADABLE_INPUT_MESSAGE,
    ReservationSession,
    user_message,
    validate_input,
)


def test_sort_reports_counts_and_enables_downloads(sample_report):
    session = ReservationSession(sample_report)
    status = session.sort()

    assert status.ok
    assert status.downloads_enabled
    assert status.message == "Original items: 2 | Adult items: 1 | Junior items: 1"
    assert (status.library_name, status.report_date) == ("Springfield Library", "04/03/24")
    assert session.is_ready
    assert not session.stale


def test_render_both_audiences(sample_report):
    session = ReservationSession(sample_report, LayoutSettings(font="courier"))
    session.sort()

    adult = session.render(Audience.ADULT)
    junior = session.render(Audience.JUNIOR)
    assert adult.filename == "adult-list.pdf"
    assert junior.filename == "junior-list.pdf"
    assert adult.title.startswith("Adult reservation list")
    assert adult.pdf_bytes.startswith(b"%PDF")
    assert junior.pdf_bytes.startswith(b"%PDF")


def test_render_before_sort_is_stale(sample_report):
    with pytest.raises(StaleResultError, match="Sort again"):
        ReservationSession(sample_report).render(Audience.ADULT)


def test_editing_source_invalidates_result(sample_report):
    session = ReservationSession(sample_report)
    session.sort()
    session.update_source(sample_report + make_record("AF", "3012099", "Adult Fiction"))

    assert session.stale
    assert session.result is None
    assert session.status is None
    with pytest.raises(StaleResultError):
        session.render(Audience.ADULT)

    assert session.sort().message.startswith("Original items: 3")
    assert session.is_ready


def test_unchanged_source_keeps_result(sample_report):
    session = ReservationSession(sample_report)
    session.sort()
    session.update_source(sample_report)
    session.update_settings(LayoutSettings())
    assert session.is_ready


def test_settings_change_invalidates_result(sample_report):
    session = ReservationSession(sample_report)
    session.sort()
    session.update_settings(LayoutSettings(columns=2))

    assert session.stale
    with pytest.raises(StaleResultError):
        session.render(Audience.JUNIOR)


def test_empty_input_rejected():
    status = ReservationSession("   \n  ").sort()
    assert not status.ok
    assert not status.downloads_enabled
    assert status.message == "Please paste a reservation list before sorting."


def test_oversized_input_rejected():
    with pytest.raises(InputRejectedError) as exc:
        validate_input("x" * (MAX_INPUT_BYTES + 1))
    assert str(exc.value) == "Input is too large (1.0 MB). Maximum allowed is 1.0 MB."
    validate_input("x" * MAX_INPUT_BYTES)


def test_unparseable_input_gives_friendly_message():
    status = ReservationSession("hello\nworld\n").sort()
    assert not status.ok
    assert status.message.startswith("Could not read this reservation list.")


def test_integrity_failure_message(sample_report, monkeypatch):
    def lose_one(text):
        raise ParseIntegrityError(2, 1)

    monkeypatch.setattr(session_module, "parse_list", lose_one)
    session = ReservationSession(sample_report)
    status = session.sort()

    assert not status.ok
    assert "the source list has 2 entries, but only 1 made it into the new list" in status.message
    assert session.result is None


def test_invalid_partition_blocks_downloads(sample_report, monkeypatch):
    real_build = session_module.build_sorted_lists

    def invalid(parsed):
        return real_build(parsed).model_copy(update={"is_valid": False})

    monkeypatch.setattr(session_module, "build_sorted_lists", invalid)
    session = ReservationSession(sample_report)
    status = session.sort()

    assert not status.ok
    assert not status.downloads_enabled
    assert status.adult_count == 1
    assert status.message.endswith("Integrity check: FAIL\n\nDo not use output until this is resolved.")
    assert session.result is not None
    with pytest.raises(ValidityError):
        session.render(Audience.ADULT)


def test_render_limit_surfaces_through_session(sample_report, monkeypatch):
    def too_big(document, settings, use_cache=True):
        raise RenderLimitError("lines", 12_001, 12_000, "Output is too large to render safely (12,001 lines).")

    monkeypatch.setattr(session_module, "build_list_pdf", too_big)
    session = ReservationSession(sample_report)
    session.sort()
    with pytest.raises(RenderLimitError) as exc:
        session.render(Audience.ADULT)
    assert user_message(exc.value) == "Output is too large to render safely (12,001 lines)."


def test_user_message_mapping():
    assert user_message(ReportParseError("internal detail")).startswith("Could not read")
    assert user_message(StaleResultError(STALE_MESSAGE)) == STALE_MESSAGE
    assert user_message(RuntimeError("boom")) == GENERIC_SORT_ERROR


def test_lone_surrogate_is_rejected_with_a_message():
    with pytest.raises(InputRejectedError) as exc:
        validate_input("hello \ud800 world")
    assert str(exc.value) == UNREADABLE_INPUT_MESSAGE

    status = ReservationSession("AF  T  301201\n\ud800\n").sort()
    assert not status.ok
    assert status.message == UNREADABLE_INPUT_MESSAGE


def test_sort_waits_for_the_session_lock(sample_report):
    session = ReservationSession(sample_report)
    statuses = []

    with session._lock:
        worker = threading.Thread(target=lambda: statuses.append(session.sort()))
        worker.start()
        worker.join(timeout=0.2)
        assert worker.is_alive()
        assert statuses == []
    worker.join(timeout=5)

    assert statuses[0].ok
    assert session.is_ready


def test_concurrent_sort_and_render_never_crash(sample_report, monkeypatch):
    monkeypatch.setattr(session_module, "build_list_pdf", lambda document, settings, use_cache=True: b"%PDF-stub")
    session = ReservationSession(sample_report)
    session.sort()
    errors = []

    def keep_sorting():
        for i in range(200):
            session.update_source(sample_report + ("\n" if i % 2 else ""))
            session.sort()

    def keep_rendering():
        for _ in range(200):
            try:
                session.render(Audience.ADULT)
            except StaleResultError:
                pass
            except Exception as e:
                errors.append(e)

    threads = [threading.Thread(target=keep_sorting), threading.Thread(target=keep_rendering)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert errors == []
