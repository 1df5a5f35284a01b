"""USSD gateway webhook.

The gateway posts the whole ``*``-joined navigation path on every request
and expects ``text/plain`` back, prefixed ``CON`` to keep the session open
or ``END`` to close it.  This endpoint always answers 200: a failed or
unconfigured backend becomes an ``END`` apology rather than an HTTP error.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Form, Request
from fastapi.responses import PlainTextResponse

from src.models.channel import USSDPayload
from src.services.channel_adapters import error_text

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(prefix="/ussd", tags=["ussd"])


@router.post("", response_class=PlainTextResponse)
async def ussd_callback(
    request: Request,
    sessionId: str = Form(default=""),  # noqa: N803
    serviceCode: str = Form(default=""),  # noqa: N803
    phoneNumber: str = Form(default=""),  # noqa: N803
    text: str = Form(default=""),
) -> PlainTextResponse:
    adapter = getattr(request.app.state, "ussd_adapter", None)
    if adapter is None:
        logger.error("ussd.adapter_not_initialised")
        return PlainTextResponse(f"END {error_text()}")

    reply = await adapter.handle(
        USSDPayload(
            session_id=sessionId,
            service_code=serviceCode,
            phone_number=phoneNumber,
            text=text,
        ),
    )
    return PlainTextResponse(reply)
