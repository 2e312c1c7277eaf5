"""Append-only request log: one text block per device request."""
from __future__ import annotations

import json
import logging
import re
import threading
from datetime import date
from pathlib import Path
from typing import Dict, List, Optional, Protocol

from ess_receiver.core.models import LogEntry

logger = logging.getLogger(__name__)

SEPARATOR = "=" * 40

# Only a line that is exactly the separator delimits a block.
_SEPARATOR_LINE = re.compile(rf"^{re.escape(SEPARATOR)}\r?$", re.MULTILINE)


class LogSink(Protocol):
    """Anything that accepts one complete log entry per request."""

    def write(self, entry: LogEntry) -> None:
        ...


def format_entry(entry: LogEntry) -> str:
    """Render an entry as a text block. Every value fits on one line."""
    records = [r.model_dump(mode="json") for r in entry.records]
    errors = [e.model_dump(mode="json") for e in entry.parse_errors]
    lines = [
        f"Timestamp: {entry.timestamp.isoformat()}",
        f"Endpoint: {entry.endpoint}",
        f"Client IP: {entry.client_ip}",
        f"Device User-Agent: {entry.user_agent or 'Unknown'}",
        f"Content-Type: {entry.content_type or 'Unknown'}",
        f"Content-Length: {entry.content_length or 'Unknown'}",
        f"Raw Body: {json.dumps(entry.raw_body)}",
        f"Grammar: {entry.grammar}",
        f"Parsed Records: {json.dumps(records)}",
        f"Parse Errors: {json.dumps(errors)}",
        f"Query Parameters: {json.dumps(entry.query_params)}",
    ]
    return "\n" + SEPARATOR + "\n" + "\n".join(lines) + "\n" + SEPARATOR + "\n\n"


def parse_blocks(text: str) -> List[Dict[str, str]]:
    """Split log text back into ``{key: value}`` dicts, one per block."""
    entries = []
    for block in _SEPARATOR_LINE.split(text):
        if not block.strip():
            continue
        data = {}
        for line in block.strip().split("\n"):
            if ":" in line:
                key, value = line.split(":", 1)
                data[key.strip()] = value.strip()
        entries.append(data)
    return entries


class FileLogSink:
    """Writes each entry to a main log file and a per-day file.

    The day file is chosen from the entry's own timestamp. A lock keeps
    blocks from concurrent requests from interleaving.
    """

    def __init__(self, main_file: Path, daily_dir: Path):
        self.main_file = Path(main_file)
        self.daily_dir = Path(daily_dir)
        self._lock = threading.Lock()

    def daily_file(self, day: date) -> Path:
        return self.daily_dir / f"attendance_{day.isoformat()}.txt"

    def write(self, entry: LogEntry) -> None:
        block = format_entry(entry)
        with self._lock:
            self.main_file.parent.mkdir(parents=True, exist_ok=True)
            self.daily_dir.mkdir(parents=True, exist_ok=True)
            with open(self.main_file, "a", encoding="utf-8") as f:
                f.write(block)
            with open(self.daily_file(entry.timestamp.date()), "a", encoding="utf-8") as f:
                f.write(block)

    def read_text(self, day: Optional[date] = None) -> str:
        """Return the main log, or the log for ``day``.

        Raises FileNotFoundError if nothing has been logged there yet.
        """
        path = self.daily_file(day) if day else self.main_file
        with self._lock:
            return path.read_text(encoding="utf-8")

    def read_entries(self, limit: int = 50) -> List[Dict[str, str]]:
        """Return the last ``limit`` entries of the main log as dicts."""
        entries = parse_blocks(self.read_text())
        return entries[-limit:] if limit > 0 else entries

    def clear(self) -> None:
        """Truncate the main log. Day files are kept."""
        with self._lock:
            self.main_file.parent.mkdir(parents=True, exist_ok=True)
            self.main_file.write_text("", encoding="utf-8")
        logger.info("Cleared request log %s", self.main_file)


class MemoryLogSink:
    """Keeps entries in a list. Used for dry runs and tests."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.entries: List[LogEntry] = []

    def write(self, entry: LogEntry) -> None:
        with self._lock:
            self.entries.append(entry)
