"""Inbound WhatsApp webhook.

Accepts either the simple ``{"from", "text", "messageId"}`` body or a Meta
Cloud API ``entry[].changes[].value.messages[]`` envelope.
"""

from __future__ import annotations

from typing import Any

import orjson
import structlog
from fastapi import APIRouter, Request
from fastapi.responses import ORJSONResponse

from src.api.v1.sms import MessageWebhookResponse
from src.services.channel_adapters import parse_whatsapp_webhook

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(prefix="/whatsapp", tags=["whatsapp"])


@router.post("", response_model=MessageWebhookResponse)
async def whatsapp_callback(request: Request) -> Any:
    try:
        body = orjson.loads(await request.body())
    except orjson.JSONDecodeError:
        body = None

    payload = parse_whatsapp_webhook(body) if isinstance(body, dict) else None
    if payload is None and isinstance(body, dict) and "entry" in body:
        # Delivery receipts and other non-message events are acknowledged.
        return MessageWebhookResponse(success=True, message="No message to process")
    if payload is None:
        logger.warning("whatsapp.invalid_payload")
        return ORJSONResponse(
            status_code=400,
            content={"success": False, "message": "Missing required fields"},
        )

    adapter = getattr(request.app.state, "whatsapp_adapter", None)
    if adapter is None:
        return ORJSONResponse(
            status_code=503,
            content={"success": False, "message": "WhatsApp channel is not available"},
        )

    reply = await adapter.handle(payload)
    return MessageWebhookResponse(
        success=True,
        message="WhatsApp message processed",
        reply=reply.text,
        media_url=reply.media_url,
    )
