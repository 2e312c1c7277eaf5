"""Pydantic models passed between the transport, the handler and the log sink."""
from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from ess_receiver.protocol.models import DeviceRecord, Grammar, LineError

DATA_FIELD = "DATA"


class DeviceRequest(BaseModel):
    """One device request, independent of the web framework that received it."""

    endpoint: str = Field(description="Request path, e.g. /iclock/cdata")
    method: str = "POST"
    client_ip: str = "unknown"
    headers: Dict[str, str] = Field(default_factory=dict, description="Lower-cased header names")
    raw_body: str = ""
    form: Dict[str, str] = Field(default_factory=dict, description="Decoded form fields, if any")
    query_params: Dict[str, str] = Field(default_factory=dict)

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name.lower())

    @property
    def serial(self) -> str:
        return self.query_params.get("SN") or self.form.get("SN") or "Unknown"

    def payload_text(self) -> str:
        """Text to hand to the parser: the ``DATA`` field when present, else the body."""
        if DATA_FIELD in self.form:
            return self.form[DATA_FIELD]
        return self.raw_body


class LogEntry(BaseModel):
    """Self-contained record of one request, written to the log sink as a unit."""

    timestamp: datetime
    endpoint: str
    method: str
    client_ip: str
    user_agent: Optional[str] = None
    content_type: Optional[str] = None
    content_length: Optional[str] = None
    raw_body: str = ""
    grammar: Grammar = "current"
    records: List[DeviceRecord] = Field(default_factory=list)
    parse_errors: List[LineError] = Field(default_factory=list)
    query_params: Dict[str, str] = Field(default_factory=dict)
