"""Inbound SMS webhook."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import ORJSONResponse
from pydantic import BaseModel

from src.services.channel_adapters import parse_sms_webhook

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(prefix="/sms", tags=["sms"])


class MessageWebhookResponse(BaseModel):
    success: bool
    message: str
    reply: str | None = None
    media_url: str | None = None


@router.post("", response_model=MessageWebhookResponse, response_model_exclude_none=True)
async def sms_callback(request: Request) -> Any:
    """Handle an incoming SMS and reply through the SMS gateway.

    Accepts the gateway's form fields (``from``, ``text``, ``id``).
    Returns 400 when the sender or text is missing, 503 when the channel
    has not been initialised.
    """
    form = await request.form()
    payload = parse_sms_webhook(form)
    if payload is None:
        logger.warning("sms.invalid_payload", fields=sorted(form.keys()))
        return ORJSONResponse(
            status_code=400,
            content={"success": False, "message": "Missing required fields"},
        )

    adapter = getattr(request.app.state, "sms_adapter", None)
    if adapter is None:
        return ORJSONResponse(
            status_code=503,
            content={"success": False, "message": "SMS channel is not available"},
        )

    reply = await adapter.handle(payload)
    return MessageWebhookResponse(success=True, message="SMS processed", reply=reply.text)
