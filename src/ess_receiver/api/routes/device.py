"""Device-facing push protocol routes.

Every route answers 200 with a plain-text body: the terminal has no
error-acknowledgment mode, so failures are only logged.
"""
from __future__ import annotations

import logging
from typing import Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse
from starlette.concurrency import run_in_threadpool

from ess_receiver.api.deps import get_ingestion_handler
from ess_receiver.core.ingest import IngestionHandler
from ess_receiver.core.models import DeviceRequest

logger = logging.getLogger(__name__)

router = APIRouter()

# Registered last by the app so it only sees paths nothing else matched.
fallback_router = APIRouter()

DATA_ENDPOINTS = ("/cdata", "/cdata.php", "/iclock/cdata", "/iclock/cdata.aspx")

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


async def _read_form(request: Request) -> Dict[str, str]:
    if not request.headers.get("content-type", "").startswith(FORM_CONTENT_TYPE):
        return {}
    try:
        form = await request.form()
    except Exception as e:
        logger.warning("Could not decode form body from %s: %s", _client_ip(request), e)
        return {}
    return {k: v for k, v in form.items() if isinstance(v, str)}


async def to_device_request(request: Request) -> DeviceRequest:
    """Collect what the handler needs from a Starlette request."""
    try:
        body = await request.body()
    except Exception as e:
        logger.error("Could not read body from %s: %s", _client_ip(request), e)
        body = b""

    return DeviceRequest(
        endpoint=request.url.path,
        method=request.method,
        client_ip=_client_ip(request),
        headers={k.lower(): v for k, v in request.headers.items()},
        raw_body=body.decode("utf-8", errors="replace"),
        form=await _read_form(request) if body else {},
        query_params=dict(request.query_params),
    )


async def receive_data(
    request: Request,
    handler: IngestionHandler = Depends(get_ingestion_handler),
) -> PlainTextResponse:
    """Data upload from the device. Replies ``OK\\nSTAMP=<ms>``."""
    device_request = await to_device_request(request)
    ack = await run_in_threadpool(handler.handle_submission, device_request)
    return PlainTextResponse(ack)


for _path in DATA_ENDPOINTS:
    router.add_api_route(
        _path,
        receive_data,
        methods=["POST"],
        response_class=PlainTextResponse,
    )


@router.get("/devicecmd", response_class=PlainTextResponse)
async def poll_commands(
    request: Request,
    handler: IngestionHandler = Depends(get_ingestion_handler),
):
    """Command poll. Always ``NO``: there is no command queue."""
    device_request = await to_device_request(request)
    return PlainTextResponse(await run_in_threadpool(handler.handle_command_poll, device_request))


@router.post("/devicecmd", response_class=PlainTextResponse)
async def post_command_result(
    request: Request,
    handler: IngestionHandler = Depends(get_ingestion_handler),
):
    device_request = await to_device_request(request)
    return PlainTextResponse(await run_in_threadpool(handler.handle_command_post, device_request))


@fallback_router.post("/{path:path}", response_class=PlainTextResponse, include_in_schema=False)
async def receive_unknown(
    request: Request,
    path: str,
    handler: IngestionHandler = Depends(get_ingestion_handler),
):
    """Any other POST is treated as a data upload."""
    logger.warning("Unknown endpoint accessed: /%s from %s", path, _client_ip(request))
    device_request = await to_device_request(request)
    ack = await run_in_threadpool(handler.handle_submission, device_request)
    return PlainTextResponse(ack)
