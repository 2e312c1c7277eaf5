"""Tests for the device payload parsers."""
from __future__ import annotations

import pytest

from ess_receiver.protocol.models import (
    AttendanceRecord,
    FingerprintRecord,
    LegacyAttendanceRecord,
    PunchStatus,
    UnknownVerifyMode,
    UserRecord,
    VerifyMode,
)
from ess_receiver.protocol.parser import (
    LineParseError,
    detect_grammar,
    parse,
    parse_attendance_line,
    parse_current,
    parse_key_values,
    parse_legacy,
    parse_payload,
)


# ---------------------------------------------------------------------------
# USER lines
# ---------------------------------------------------------------------------


def test_user_line_minimal():
    """USER line with three keys leaves the rest empty."""
    records = parse("USER PIN=7\tName=Alice\tPri=0")

    assert records == [UserRecord(pin="7", name="Alice", privilege=0)]
    user = records[0]
    assert user.password == ""
    assert user.card == ""
    assert user.valid_count == ""


def test_user_line_all_keys():
    line = (
        "USER PIN=42\tName=Bob Smith\tPri=14\tPasswd=1234\tCard=998877\tGrp=2\t"
        "TZ=0000000100000000\tExpires=1\tStartDatetime=2024-01-01 00:00:00\t"
        "EndDatetime=2024-12-31 23:59:59\tValidCount=5"
    )
    (user,) = parse(line)

    assert user.pin == "42"
    assert user.name == "Bob Smith"
    assert user.privilege == 14
    assert user.password == "1234"
    assert user.card == "998877"
    assert user.group == "2"
    assert user.timezone == "0000000100000000"
    assert user.expires == "1"
    assert user.start_datetime == "2024-01-01 00:00:00"
    assert user.end_datetime == "2024-12-31 23:59:59"
    assert user.valid_count == "5"


def test_user_line_is_deterministic():
    body = "USER PIN=7\tName=Alice\tPri=0\nUSER PIN=8\tName=Bo\tPri=14"
    assert parse(body) == parse(body)


def test_user_duplicate_keys_last_wins():
    (user,) = parse("USER PIN=7\tName=First\tName=Second")
    assert user.name == "Second"


def test_user_keys_and_values_are_trimmed():
    (user,) = parse("USER  PIN = 7 \t Name = Alice ")
    assert user.pin == "7"
    assert user.name == "Alice"


def test_user_value_may_contain_equals():
    (user,) = parse("USER PIN=7\tPasswd=a=b")
    assert user.password == "a=b"


def test_user_missing_privilege_defaults_to_zero():
    (user,) = parse("USER PIN=7\tName=Alice")
    assert user.privilege == 0


def test_user_without_pin_is_skipped():
    result = parse_current("USER Name=Alice\tPri=0")
    assert result.records == []
    assert result.errors[0].reason == "USER line has no PIN"


def test_user_non_numeric_privilege_is_skipped():
    result = parse_current("USER PIN=7\tPri=admin")
    assert result.records == []
    assert "Pri" in result.errors[0].reason


def test_malformed_key_value_skips_line():
    result = parse_current("USER PIN=7\tgarbage\nUSER PIN=8")
    assert [r.pin for r in result.records] == ["8"]
    assert result.errors[0].line_number == 1
    assert "malformed" in result.errors[0].reason


def test_parse_key_values_ignores_empty_chunks():
    assert parse_key_values("PIN=1\t\tName=X\t") == {"PIN": "1", "Name": "X"}


def test_parse_key_values_rejects_chunk_without_equals():
    with pytest.raises(LineParseError):
        parse_key_values("PIN=1\tNoEquals")


# ---------------------------------------------------------------------------
# FP lines
# ---------------------------------------------------------------------------


def test_fingerprint_line():
    (fp,) = parse("FP PIN=7\tFID=6\tSize=1024\tValid=1\tTMP=TVNTUzIx+/==")

    assert fp == FingerprintRecord(
        pin="7", template_id=6, size_bytes=1024, valid=1, template="TVNTUzIx+/=="
    )


def test_fingerprint_non_numeric_size_is_not_fatal():
    (fp,) = parse("FP PIN=7\tFID=6\tSize=big\tValid=\tTMP=x")
    assert fp.size_bytes is None
    assert fp.valid is None
    assert fp.template == "x"


def test_fingerprint_missing_fid_is_skipped():
    result = parse_current("FP PIN=7\tSize=10")
    assert result.records == []
    assert result.errors[0].reason == "FP line has no FID"


# ---------------------------------------------------------------------------
# Attendance lines
# ---------------------------------------------------------------------------


def test_attendance_line_five_fields():
    (rec,) = parse("123456\t2024-01-15 09:00:00\t0\t15\t0")

    assert rec == AttendanceRecord(
        user_pin="123456",
        timestamp="2024-01-15 09:00:00",
        status=PunchStatus.CHECK_IN,
        verify_mode=VerifyMode.FINGERPRINT_TEMPLATE,
        work_code=0,
        reserved=("", "", "0", "0"),
    )


def test_attendance_reserved_fields_captured_verbatim():
    rec = parse_attendance_line("1\t2024-01-15 09:00:00\t1\t1\t3\ta\tb\tc\td\textra")
    assert rec.reserved == ("a", "b", "c", "d")
    assert rec.work_code == 3


def test_attendance_reserved_partial_defaults():
    rec = parse_attendance_line("1\t2024-01-15 09:00:00\t1\t1\t0\tx")
    assert rec.reserved == ("x", "", "0", "0")


@pytest.mark.parametrize(
    "code, expected",
    [("0", PunchStatus.CHECK_IN), ("1", PunchStatus.CHECK_OUT), ("2", PunchStatus.CHECK_OUT), ("255", PunchStatus.CHECK_OUT)],
)
def test_attendance_status_mapping(code, expected):
    (rec,) = parse(f"1\t2024-01-15 09:00:00\t{code}\t1\t0")
    assert rec.status is expected


def test_attendance_known_and_unknown_verify_modes():
    known, unknown = parse(
        "1\t2024-01-15 09:00:00\t0\t15\t0\n"
        "2\t2024-01-15 09:00:00\t0\t99\t0"
    )
    assert known.verify_mode is VerifyMode.FINGERPRINT_TEMPLATE
    assert unknown.verify_mode == UnknownVerifyMode(code=99)
    assert unknown.verify_mode.label == "Unknown (99)"


def test_short_attendance_line_is_isolated():
    body = (
        "USER PIN=7\tName=Alice\n"
        "123\t2024-01-15 09:00:00\t0\t1\n"
        "456\t2024-01-15 09:05:00\t1\t2\t0\n"
    )
    result = parse_current(body)

    assert [r.kind for r in result.records] == ["user", "attendance"]
    assert result.records[1].user_pin == "456"
    assert len(result.errors) == 1
    assert result.errors[0].line_number == 2


@pytest.mark.parametrize(
    "line",
    [
        "1\t2024-01-15 09:00:00\tx\t1\t0",
        "1\t2024-01-15 09:00:00\t0\tface\t0",
        "1\t2024-01-15 09:00:00\t0\t1\t",
    ],
)
def test_attendance_non_numeric_fields_skip_line(line):
    result = parse_current(line)
    assert result.records == []
    assert result.error_count == 1


# ---------------------------------------------------------------------------
# Line handling
# ---------------------------------------------------------------------------


def test_blank_lines_and_crlf():
    body = "\r\n  \nUSER PIN=7\r\n\n123\t2024-01-15 09:00:00\t0\t1\t0\r\n"
    records = parse(body)
    assert [r.kind for r in records] == ["user", "attendance"]
    assert records[1].work_code == 0


def test_bare_tags_produce_no_record():
    result = parse_current("USER\nFP\nUSER PIN=1")
    assert [r.pin for r in result.records] == ["1"]
    assert [e.line_number for e in result.errors] == [1, 2]


def test_mixed_payload_keeps_input_order():
    body = (
        "123\t2024-01-15 09:00:00\t0\t1\t0\n"
        "FP PIN=7\tFID=1\tSize=8\tValid=1\tTMP=abc\n"
        "USER PIN=7\tName=Alice"
    )
    records = parse(body)
    assert [type(r) for r in records] == [AttendanceRecord, FingerprintRecord, UserRecord]


@pytest.mark.parametrize("body", ["", None])
def test_empty_body(body):
    result = parse_payload(body)
    assert result.records == []
    assert result.errors == []


# ---------------------------------------------------------------------------
# Legacy grammar and dispatch
# ---------------------------------------------------------------------------


def test_legacy_record():
    (rec,) = parse("RECORD=1\t100\t2024-01-15 09:00:00\t0\t15")

    assert rec == LegacyAttendanceRecord(
        record_num="1",
        user_id="100",
        timestamp="2024-01-15 09:00:00",
        status=PunchStatus.CHECK_IN,
        verify_mode=VerifyMode.FINGERPRINT_TEMPLATE,
    )
    assert rec.describe() == (
        "Record 1: User 100 - Check-In at 2024-01-15 09:00:00 via Fingerprint Template"
    )


def test_legacy_two_records():
    body = (
        "RECORD=1\t123456\t2024-01-15 09:00:00\t0\t15\n"
        "RECORD=2\t789012\t2024-01-15 09:01:00\t1\t25"
    )
    first, second = parse(body)
    assert first.status is PunchStatus.CHECK_IN
    assert second.status is PunchStatus.CHECK_OUT
    assert second.verify_mode is VerifyMode.FACE_TEMPLATE


def test_legacy_ignores_other_lines_and_skips_short_records():
    body = "header line\nRECORD=1\t100\nRECORD=2\t200\t2024-01-15 09:00:00\t1\t3"
    result = parse_legacy(body)
    assert [r.record_num for r in result.records] == ["2"]
    assert result.errors[0].line_number == 2


def test_detect_grammar():
    assert detect_grammar("RECORD=1\t1\t2024-01-15 09:00:00\t0\t1") == "legacy"
    assert detect_grammar("foo\n  RECORD=1") == "legacy"
    assert detect_grammar("USER PIN=1\n1\t2\t0\t1\t0") == "current"


def test_parse_payload_reports_grammar():
    assert parse_payload("RECORD=1\t1\tt\t0\t1").grammar == "legacy"
    assert parse_payload("USER PIN=1").grammar == "current"


def test_legacy_record_after_data_prefix():
    (rec,) = parse("DATA=RECORD=1\t100\t2024-01-15 09:00:00\t0\t15")

    assert rec.record_num == "1"
    assert rec.user_id == "100"
    assert rec.status is PunchStatus.CHECK_IN
    assert rec.verify_mode is VerifyMode.FINGERPRINT_TEMPLATE


def test_legacy_undecoded_form_body_keeps_first_record():
    body = (
        "SN=K90&STAMP=1&DATA=RECORD=1\t100\t2024-01-15 09:00:00\t0\t15\n"
        "RECORD=2\t200\t2024-01-15 09:01:00\t1\t25"
    )
    result = parse_payload(body)

    assert result.grammar == "legacy"
    assert [r.record_num for r in result.records] == ["1", "2"]
    assert result.errors == []


def test_legacy_short_record_after_data_prefix_is_reported():
    result = parse_payload("SN=K90&DATA=RECORD=1\t100")

    assert result.grammar == "legacy"
    assert result.records == []
    assert result.errors[0].line_number == 1


def test_detect_grammar_sees_data_prefix():
    assert detect_grammar("SN=K90&DATA=RECORD=1\t1\tt\t0\t1") == "legacy"
    assert detect_grammar("SN=K90&DATA=") == "current"
