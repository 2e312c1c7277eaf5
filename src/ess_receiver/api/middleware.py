"""Access log for the receiver: who pushed to which path, and how long the reply took."""
from __future__ import annotations

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One line per request with the terminal's address, the status and the duration.

    Terminals retry uploads they think timed out, so slow acknowledgments
    show up here before they show up as duplicate records.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.time()
        response = await call_next(request)
        duration = time.time() - start

        logger.info(
            "%s %s %s %d %.3fs",
            request.client.host if request.client else "unknown",
            request.method,
            request.url.path,
            response.status_code,
            duration,
        )
        return response
