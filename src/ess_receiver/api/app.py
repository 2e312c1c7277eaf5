"""FastAPI application factory."""
from __future__ import annotations

import time
from datetime import datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ess_receiver import __version__
from ess_receiver.api.middleware import RequestLoggingMiddleware
from ess_receiver.api.routes import device, logs
from ess_receiver.config import get_settings

_STARTED = time.monotonic()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="ESS K90 Pro Push Receiver",
        description="Receives push-protocol uploads from ESS / ZKTeco attendance terminals",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Logging
    app.add_middleware(RequestLoggingMiddleware)

    @app.get("/")
    @app.get("/health")
    async def health():
        return {
            "status": "ESS K90 Pro Attendance Server Running",
            "service": "ess-receiver",
            "version": __version__,
            "timestamp": datetime.now().isoformat(),
            "uptime": round(time.monotonic() - _STARTED, 3),
            "endpoints": [*device.DATA_ENDPOINTS, "/devicecmd"],
            "logFile": str(settings.log_file_path),
        }

    # Routes
    app.include_router(logs.router, tags=["Logs"])
    app.include_router(device.router, tags=["Device"])
    # Catch-all POST must come after every other route
    app.include_router(device.fallback_router, tags=["Device"])

    return app
