"""Parsers for the payloads ESS / ZKTeco terminals push to ``/cdata``.

Two grammars share the same endpoints:

* current: the whole body is a sequence of ``USER ...`` lines, ``FP ...``
  lines and bare tab-separated attendance lines;
* legacy: a ``DATA`` form field holding ``RECORD=`` lines with five
  tab-separated fields.

``parse_payload`` picks the grammar by looking for ``RECORD=`` lines,
including one that follows ``DATA=`` in an undecoded form body.
Every function here is pure: a bad line becomes a ``LineError`` in the
result and never aborts the rest of the payload.
"""
from __future__ import annotations

from typing import Callable, Dict, Iterator, List, Optional, Tuple

from ess_receiver.protocol.models import (
    AttendanceRecord,
    DeviceRecord,
    FingerprintRecord,
    Grammar,
    LegacyAttendanceRecord,
    LineError,
    ParseResult,
    PunchStatus,
    UserRecord,
    lookup_verify_mode,
)

USER_PREFIX = "USER "
FP_PREFIX = "FP "
RECORD_PREFIX = "RECORD="
DATA_PREFIX = "DATA="

MIN_ATTENDANCE_FIELDS = 5
MIN_LEGACY_FIELDS = 5

# Defaults for attendance fields 5-8 when the device omits them.
RESERVED_DEFAULTS = ("", "", "0", "0")

# USER key -> UserRecord field (Pri is handled separately as an integer)
USER_KEYS = {
    "PIN": "pin",
    "Name": "name",
    "Passwd": "password",
    "Card": "card",
    "Grp": "group",
    "TZ": "timezone",
    "Expires": "expires",
    "StartDatetime": "start_datetime",
    "EndDatetime": "end_datetime",
    "ValidCount": "valid_count",
}


class LineParseError(ValueError):
    """Raised by the per-line parsers when a line cannot become a record."""


def _iter_lines(raw_body: str) -> Iterator[Tuple[int, str]]:
    """Yield (1-based number, line) for every non-blank line."""
    for number, line in enumerate(raw_body.split("\n"), start=1):
        line = line.rstrip("\r")
        if line.strip():
            yield number, line


def _to_int(value: str, name: str) -> int:
    try:
        return int(value.strip())
    except ValueError:
        raise LineParseError(f"{name} is not an integer: {value!r}") from None


def _to_int_or_none(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def parse_key_values(text: str) -> Dict[str, str]:
    """Split ``K=V<TAB>K=V`` text into a mapping. Later keys win."""
    fields: Dict[str, str] = {}
    for chunk in text.split("\t"):
        if not chunk.strip():
            continue
        if "=" not in chunk:
            raise LineParseError(f"malformed key=value chunk: {chunk!r}")
        key, value = chunk.split("=", 1)
        fields[key.strip()] = value.strip()
    return fields


def parse_user_line(text: str) -> UserRecord:
    """Parse the part of a ``USER`` line after the prefix."""
    fields = parse_key_values(text)
    if not fields.get("PIN"):
        raise LineParseError("USER line has no PIN")

    values = {attr: fields[key] for key, attr in USER_KEYS.items() if key in fields}
    pri = fields.get("Pri", "")
    values["privilege"] = _to_int(pri, "Pri") if pri else 0
    return UserRecord(**values)


def parse_fingerprint_line(text: str) -> FingerprintRecord:
    """Parse the part of an ``FP`` line after the prefix."""
    fields = parse_key_values(text)
    if not fields.get("PIN"):
        raise LineParseError("FP line has no PIN")
    if "FID" not in fields:
        raise LineParseError("FP line has no FID")

    return FingerprintRecord(
        pin=fields["PIN"],
        template_id=_to_int(fields["FID"], "FID"),
        size_bytes=_to_int_or_none(fields.get("Size")),
        valid=_to_int_or_none(fields.get("Valid")),
        template=fields.get("TMP", ""),
    )


def parse_attendance_line(line: str) -> AttendanceRecord:
    """Parse a bare attendance line.

    Layout: ``pin, timestamp, status, verify, workcode[, reserved x4]``.
    """
    fields = line.split("\t")
    if len(fields) < MIN_ATTENDANCE_FIELDS:
        raise LineParseError(
            f"expected at least {MIN_ATTENDANCE_FIELDS} fields, got {len(fields)}"
        )

    status_code = _to_int(fields[2], "status")
    verify_code = _to_int(fields[3], "verify mode")
    work_code = _to_int(fields[4], "work code")
    reserved = tuple(
        fields[5 + i] if len(fields) > 5 + i else default
        for i, default in enumerate(RESERVED_DEFAULTS)
    )

    return AttendanceRecord(
        user_pin=fields[0],
        timestamp=fields[1],
        status=PunchStatus.CHECK_IN if status_code == 0 else PunchStatus.CHECK_OUT,
        verify_mode=lookup_verify_mode(verify_code),
        work_code=work_code,
        reserved=reserved,
    )


def parse_legacy_line(line: str) -> LegacyAttendanceRecord:
    """Parse ``RECORD=<num><TAB>user<TAB>time<TAB>check<TAB>verify``."""
    fields = line.strip().split("\t")
    if len(fields) < MIN_LEGACY_FIELDS:
        raise LineParseError(
            f"expected at least {MIN_LEGACY_FIELDS} fields, got {len(fields)}"
        )

    return LegacyAttendanceRecord(
        record_num=fields[0].replace(RECORD_PREFIX, "", 1),
        user_id=fields[1],
        timestamp=fields[2],
        status=PunchStatus.CHECK_IN if fields[3] == "0" else PunchStatus.CHECK_OUT,
        verify_mode=lookup_verify_mode(_to_int(fields[4], "verify code")),
    )


def _legacy_text(line: str) -> Optional[str]:
    """Return the ``RECORD=...`` part of a line, or None for non-record lines.

    A raw form body keeps its first record on the ``SN=...&DATA=`` line, so
    the text after the last ``DATA=`` counts too.
    """
    text = line.strip()
    if not text.startswith(RECORD_PREFIX) and DATA_PREFIX in text:
        text = text.rsplit(DATA_PREFIX, 1)[1]
    return text if text.startswith(RECORD_PREFIX) else None


def _classify(line: str) -> Optional[Callable[[], DeviceRecord]]:
    if line.startswith(USER_PREFIX):
        return lambda: parse_user_line(line[len(USER_PREFIX):])
    if line.startswith(FP_PREFIX):
        return lambda: parse_fingerprint_line(line[len(FP_PREFIX):])
    if line.strip() in ("USER", "FP"):
        return None
    return lambda: parse_attendance_line(line)


def parse_current(raw_body: str) -> ParseResult:
    """Parse a body in the ``USER`` / ``FP`` / attendance grammar."""
    records: List[DeviceRecord] = []
    errors: List[LineError] = []

    for number, line in _iter_lines(raw_body):
        parser = _classify(line)
        if parser is None:
            errors.append(LineError(line_number=number, line=line, reason="bare tag without fields"))
            continue
        try:
            records.append(parser())
        except LineParseError as e:
            errors.append(LineError(line_number=number, line=line, reason=str(e)))

    return ParseResult(grammar="current", records=records, errors=errors)


def parse_legacy(raw_body: str) -> ParseResult:
    """Parse ``RECORD=`` lines; anything else in the body is ignored."""
    records: List[DeviceRecord] = []
    errors: List[LineError] = []

    for number, line in _iter_lines(raw_body):
        text = _legacy_text(line)
        if text is None:
            continue
        try:
            records.append(parse_legacy_line(text))
        except LineParseError as e:
            errors.append(LineError(line_number=number, line=line, reason=str(e)))

    return ParseResult(grammar="legacy", records=records, errors=errors)


def detect_grammar(raw_body: str) -> Grammar:
    """Return ``legacy`` if any line starts with ``RECORD=`` (after any ``DATA=``)."""
    for _, line in _iter_lines(raw_body):
        if _legacy_text(line) is not None:
            return "legacy"
    return "current"


def parse_payload(raw_body: Optional[str]) -> ParseResult:
    """Parse a payload with whichever grammar it is written in.

    A missing or empty body is not an error: it yields an empty result.
    """
    if not raw_body:
        return ParseResult(grammar="current")
    if detect_grammar(raw_body) == "legacy":
        return parse_legacy(raw_body)
    return parse_current(raw_body)


def parse(raw_body: Optional[str]) -> List[DeviceRecord]:
    """Parse a payload and return its records in input order."""
    return parse_payload(raw_body).records
