"""Shared test fixtures."""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

FIXED_NOW = datetime(2024, 1, 15, 9, 0, 0, 123000, tzinfo=timezone.utc)
FIXED_STAMP = 1705309200123


@pytest.fixture(autouse=True)
def _env_defaults(monkeypatch, tmp_path):
    """Set default env vars for tests and point log files at tmp_path."""
    defaults = {
        "API_KEY": "",
        "API_CORS_ORIGINS": "*",
        "LOG_FILE": str(tmp_path / "attendance_logs.txt"),
        "LOG_DIR": str(tmp_path / "logs"),
        "DEVICE_URL": "http://receiver.test:3000",
        "ENVIRONMENT": "test",
    }
    for k, v in defaults.items():
        monkeypatch.setenv(k, v)

    # Reset singletons
    import ess_receiver.config as cfg
    import ess_receiver.core.ingest as ingest

    cfg._settings = None
    ingest._handler = None
    yield
    cfg._settings = None
    ingest._handler = None


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture
def memory_sink():
    from ess_receiver.storage.log_store import MemoryLogSink

    return MemoryLogSink()


@pytest.fixture
def file_sink(tmp_path):
    from ess_receiver.storage.log_store import FileLogSink

    return FileLogSink(tmp_path / "attendance_logs.txt", tmp_path / "logs")


@pytest.fixture
def handler(memory_sink, fixed_clock):
    from ess_receiver.core.ingest import IngestionHandler

    return IngestionHandler(memory_sink, clock=fixed_clock)


@pytest.fixture
def make_client():
    """Build a TestClient whose handler is replaced by the given one."""
    from fastapi.testclient import TestClient

    from ess_receiver.api.app import create_app
    from ess_receiver.api.deps import get_ingestion_handler

    def _make(h):
        app = create_app()
        app.dependency_overrides[get_ingestion_handler] = lambda: h
        return TestClient(app)

    return _make
