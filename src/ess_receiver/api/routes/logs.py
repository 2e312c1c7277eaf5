"""Request log viewing routes."""
from __future__ import annotations

import logging
from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, ConfigDict, Field

from ess_receiver.api.deps import get_log_store, verify_api_key
from ess_receiver.config import get_settings
from ess_receiver.core.ingest import utc_now
from ess_receiver.storage.log_store import FileLogSink

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(verify_api_key)])


class LogsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_entries: int = Field(alias="totalEntries")
    logs: List[Dict[str, str]]


class MessageResponse(BaseModel):
    message: str


@router.get("/logs", response_class=PlainTextResponse)
def get_logs(store: FileLogSink = Depends(get_log_store)):
    """Full request log as text."""
    try:
        return store.read_text()
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="No logs found")


@router.get("/logs/today", response_class=PlainTextResponse)
def get_logs_today(store: FileLogSink = Depends(get_log_store)):
    """Today's (UTC) request log as text."""
    try:
        return store.read_text(day=utc_now().date())
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="No logs found for today")


@router.get("/logs/json", response_model=LogsResponse)
def get_logs_json(store: FileLogSink = Depends(get_log_store)):
    """Most recent request log entries as key/value objects."""
    try:
        entries = store.read_entries(limit=0)
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="No logs found")

    limit = get_settings().LOG_VIEW_LIMIT
    return LogsResponse(total_entries=len(entries), logs=entries[-limit:])


@router.delete("/logs", response_model=MessageResponse)
def clear_logs(store: FileLogSink = Depends(get_log_store)):
    """Truncate the main request log."""
    try:
        store.clear()
    except OSError as e:
        logger.error("Failed to clear logs: %s", e)
        raise HTTPException(status_code=500, detail="Failed to clear logs")
    return MessageResponse(message="Logs cleared successfully")
