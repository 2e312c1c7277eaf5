"""FastAPI dependencies - admin auth, handler and log store injection."""
from __future__ import annotations

from typing import Optional

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import APIKeyHeader

from ess_receiver.config import get_settings
from ess_receiver.core.ingest import IngestionHandler, get_handler
from ess_receiver.storage.log_store import FileLogSink

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def verify_api_key(api_key: Optional[str] = Security(api_key_header)) -> Optional[str]:
    """Verify X-API-Key on admin routes. No key configured means open access."""
    settings = get_settings()
    if not settings.API_KEY:
        return None
    if not api_key or api_key != settings.API_KEY:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
        )
    return api_key


def get_ingestion_handler() -> IngestionHandler:
    """Dependency to get the ingestion handler."""
    return get_handler()


def get_log_store(handler: IngestionHandler = Depends(get_ingestion_handler)) -> FileLogSink:
    """Dependency to get the file-backed request log the handler writes to."""
    if not isinstance(handler.sink, FileLogSink):
        raise HTTPException(status_code=404, detail="Request log is not file-backed")
    return handler.sink
