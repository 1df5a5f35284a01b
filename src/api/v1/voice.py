"""Voice (IVR) gateway webhook.

Each request carries only the digits pressed since the last prompt; the
adapter accumulates them per call.  The reply is the gateway's JSON action
list (``say``, ``getDigits``, ``dial``, ``play``).

Gateways name the caller field differently; ``callerNumber``,
``phoneNumber`` and ``from`` are all accepted.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Form, Request

from src.models.channel import VoiceAction, VoicePayload, VoiceResponse
from src.models.enums import VoiceActionType
from src.services.channel_adapters import error_text

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(prefix="/voice", tags=["voice"])


def _is_active(value: str) -> bool:
    return value.strip().lower() not in ("0", "false", "no")


@router.post("")
async def voice_callback(
    request: Request,
    sessionId: str = Form(default=""),  # noqa: N803
    callerNumber: str = Form(default=""),  # noqa: N803
    phoneNumber: str = Form(default=""),  # noqa: N803
    from_: str = Form(default="", alias="from"),
    dtmfDigits: str = Form(default=""),  # noqa: N803
    isActive: str = Form(default="1"),  # noqa: N803
    callSessionState: str | None = Form(default=None),  # noqa: N803
) -> dict[str, Any]:
    adapter = getattr(request.app.state, "voice_adapter", None)
    if adapter is None:
        logger.error("voice.adapter_not_initialised")
        return VoiceResponse(
            actions=[VoiceAction(action=VoiceActionType.SAY, text=error_text())],
        ).to_payload()

    response = await adapter.handle(
        VoicePayload(
            session_id=sessionId,
            caller=callerNumber or phoneNumber or from_,
            dtmf_digits=dtmfDigits,
            is_active=_is_active(isActive),
            call_session_state=callSessionState,
        ),
    )
    return response.to_payload()
