from __future__ import annotations

import pytest

import report_parse
from conftest import make_record
from errors import ParseIntegrityError, ReportParseError
from models import Audience
from report_parse import (
    UNKNOWN_DATE,
    UNKNOWN_LIBRARY,
    classify_audience,
    count_entry_start_lines,
    extract_header_metadata,
    find_field,
    is_entry_start,
    parse_entry,
    parse_list,
)


def test_parse_sample_report_header_and_entries(sample_report):
    parsed = parse_list(sample_report)

    assert parsed.library_name == "Springfield Library"
    assert parsed.report_date == "04/03/24"
    assert len(parsed.entries) == 2

    adult, junior = parsed.entries
    assert adult.barcode == "30120012345678"
    assert adult.shelfmark == "AF"
    assert adult.author == "Smith, Anna"
    assert adult.item_type == "Adult Fiction"
    assert adult.sequence == "Thriller"
    assert adult.audience == Audience.ADULT
    assert adult.original_index == 0

    assert junior.item_type == "Junior Fiction"
    assert junior.sequence == ""
    assert junior.audience == Audience.JUNIOR
    assert junior.original_index == 1


def test_record_keeps_raw_lines_until_next_entry_start(sample_report):
    parsed = parse_list(sample_report)
    first = parsed.entries[0]
    assert first.raw_lines[0] == "AF SMI  The silent harbour  30120012345678"
    assert first.raw_lines[-2] == "Reserved at: Springfield"
    # Blank separator lines belong to the preceding record.
    assert first.raw_lines[-1] == ""


def test_missing_header_uses_placeholders():
    text = make_record("AF", "301201", "Adult Fiction")
    parsed = parse_list(text)
    assert parsed.library_name == UNKNOWN_LIBRARY
    assert parsed.report_date == UNKNOWN_DATE


def test_header_lines_after_first_entry_are_record_text():
    text = make_record("AF", "301201", "Adult Fiction") + "\nItems at Elsewhere\n"
    parsed = parse_list("Items at Springfield\n" + text)
    assert parsed.library_name == "Springfield"
    assert "Items at Elsewhere" in parsed.entries[0].raw_lines


def test_extract_header_metadata_last_match_wins():
    library, date = extract_header_metadata([
        "Items at First Branch",
        "res_itm_noloan 01/01/24",
        "Items at Second Branch",
        "res_itm_noloan 31/12/24",
    ])
    assert library == "Second Branch"
    assert date == "31/12/24"


def test_report_date_requires_two_digit_groups():
    _, date = extract_header_metadata(["res_itm_noloan 4/3/2024"])
    assert date == UNKNOWN_DATE


def test_crlf_line_endings():
    text = "Items at Springfield\r\n" + make_record("AF", "3012077", "Adult Fiction").replace("\n", "\r\n")
    parsed = parse_list(text)
    assert parsed.library_name == "Springfield"
    assert parsed.entries[0].item_type == "Adult Fiction"


def test_entry_start_detection():
    assert is_entry_start("AF SMI  Title  30120012345678")
    assert is_entry_start("  J 823  Title 30120999   ")
    assert not is_entry_start("30120012345678")  # no text before the barcode
    assert not is_entry_start("AF SMI  Title  40120012345678")
    assert not is_entry_start("AF SMI  Title  30120012345678 extra")
    assert count_entry_start_lines(["x 301201", "y", "z 301202"]) == 2


def test_find_field_case_insensitive_first_match():
    lines = ["ITEM TYPE :  Adult Fiction ", "Item Type: Junior Fiction"]
    assert find_field(lines, "Item Type") == "Adult Fiction"
    assert find_field(lines, "Sequence") == ""


@pytest.mark.parametrize(
    "item_type,sequence,expected",
    [
        ("Adult Fiction", "", Audience.ADULT),
        ("adult non-fiction", "", Audience.ADULT),
        ("Junior Picture Book", "", Audience.JUNIOR),
        ("Picture Book", "Children's", Audience.JUNIOR),
        ("Childrens Audio", "", Audience.JUNIOR),
        ("Juniors DVD", "", Audience.ADULT),
        ("Large Print", "", Audience.ADULT),
        ("", "", Audience.ADULT),
    ],
)
def test_classify_audience(item_type, sequence, expected):
    assert classify_audience(item_type, sequence) == expected


def test_parse_entry_rejects_non_entry_first_line():
    with pytest.raises(ReportParseError, match="Invalid entry start at item 3."):
        parse_entry(["not an entry"], 2)


def test_no_entries_is_parse_error():
    with pytest.raises(ReportParseError, match="No item entries found"):
        parse_list("Items at Springfield\nres_itm_noloan 04/03/24\n\nnothing here\n")


def test_every_entry_start_line_becomes_an_entry():
    text = "".join(make_record("AF", f"30120{i:04d}", "Adult Fiction") for i in range(25))
    parsed = parse_list(text)
    assert len(parsed.entries) == 25
    assert [e.original_index for e in parsed.entries] == list(range(25))


def test_lost_record_fails_integrity_check(monkeypatch):
    original = report_parse._iter_records

    def swallow_second(lines, header):
        records = list(original(lines, header))
        yield records[0] + records[1]
        yield from records[2:]

    monkeypatch.setattr(report_parse, "_iter_records", swallow_second)
    text = "".join(make_record("AF", f"3012000{i}", "Adult Fiction") for i in range(3))

    with pytest.raises(ParseIntegrityError) as exc:
        parse_list(text)
    assert exc.value.source_count == 3
    assert exc.value.parsed_count == 2
    assert "3 entries detected in source but only 2" in str(exc.value)
