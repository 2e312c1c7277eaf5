"""Ingestion handler: parse a device request, log it, build the device's reply."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from ess_receiver.config import get_settings
from ess_receiver.core.models import DeviceRequest, LogEntry
from ess_receiver.protocol.models import LineError, ParseResult
from ess_receiver.protocol.parser import parse_payload
from ess_receiver.storage.log_store import FileLogSink, LogSink

logger = logging.getLogger(__name__)

COMMAND_POLL_RESPONSE = "NO"
COMMAND_POST_RESPONSE = "OK"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_unix_ms(moment: datetime) -> int:
    """Milliseconds since the Unix epoch, computed without float rounding."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (moment - _EPOCH) // timedelta(milliseconds=1)


def build_ack(stamp_ms: int) -> str:
    """Acknowledgment the device expects after a data upload."""
    return f"OK\nSTAMP={stamp_ms}"


class IngestionHandler:
    """Turns device requests into log entries and protocol replies.

    Never raises to the caller: the device has no way to handle an error
    reply, so parse and sink failures only show up in the process log.
    """

    def __init__(self, sink: LogSink, clock: Callable[[], datetime] = utc_now):
        self.sink = sink
        self._clock = clock

    def handle_submission(self, request: DeviceRequest) -> str:
        """Handle a data upload (``/cdata`` and friends). Returns ``OK\\nSTAMP=...``."""
        now = self._clock()
        result = self._parse(request)
        self._record(now, request, result)
        return build_ack(to_unix_ms(now))

    def handle_command_poll(self, request: DeviceRequest) -> str:
        """Handle ``GET /devicecmd``. There are never pending commands."""
        now = self._clock()
        logger.info("Device %s checking for commands from %s", request.serial, request.client_ip)
        self._record(now, request, ParseResult(grammar="current"))
        return COMMAND_POLL_RESPONSE

    def handle_command_post(self, request: DeviceRequest) -> str:
        """Handle ``POST /devicecmd`` (command results). Logged, then ``OK``."""
        now = self._clock()
        result = self._parse(request)
        self._record(now, request, result)
        return COMMAND_POST_RESPONSE

    def _parse(self, request: DeviceRequest) -> ParseResult:
        try:
            return parse_payload(request.payload_text())
        except Exception as e:
            logger.exception("Parser failed on payload from %s", request.client_ip)
            return ParseResult(
                grammar="current",
                errors=[LineError(line_number=0, line="", reason=f"parser failure: {e}")],
            )

    def _record(self, now: datetime, request: DeviceRequest, result: ParseResult) -> None:
        entry = LogEntry(
            timestamp=now,
            endpoint=request.endpoint,
            method=request.method,
            client_ip=request.client_ip,
            user_agent=request.header("user-agent"),
            content_type=request.header("content-type"),
            content_length=request.header("content-length"),
            raw_body=request.raw_body,
            grammar=result.grammar,
            records=result.records,
            parse_errors=result.errors,
            query_params=request.query_params,
        )

        logger.info(
            "%s %s from %s: %d records, %d skipped lines",
            request.method,
            request.endpoint,
            request.client_ip,
            result.record_count,
            result.error_count,
        )
        for record in result.records:
            logger.info("  %s", record.describe())
        for error in result.errors:
            logger.warning("  Skipped line %d (%s): %r", error.line_number, error.reason, error.line)

        try:
            self.sink.write(entry)
        except Exception as e:
            logger.error("Failed to write request log for %s: %s", request.endpoint, e)


# Lazy-loaded singleton
_handler: Optional[IngestionHandler] = None


def get_handler() -> IngestionHandler:
    """Get the process-wide handler writing to the configured log files."""
    global _handler
    if _handler is None:
        settings = get_settings()
        _handler = IngestionHandler(FileLogSink(settings.log_file_path, settings.log_dir_path))
    return _handler
