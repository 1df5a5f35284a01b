"""Channel-agnostic session and dispatch models plus channel envelopes."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from src.models.content import HealthContentResult
from src.models.enums import ChannelType, VoiceActionType


class Session(BaseModel):
    """One dialogue as seen by a single request.

    Nothing here is stored between requests: ``tokens`` carries the full
    navigation path and the current node is recomputed from it every time.
    """

    channel: ChannelType
    caller_id: str
    tokens: list[str] = Field(default_factory=list)
    session_id: str | None = None


class ActionResult(BaseModel):
    """What an action handler hands back to the channel adapter."""

    text: str
    end_session: bool = True
    audio_script: str | None = None
    media_url: str | None = None
    dial_number: str | None = None
    content: HealthContentResult | None = None


class DispatchOutcome(BaseModel):
    kind: Literal["menu", "action"]
    text: str
    node_id: str | None = None
    invalid: bool = False
    action: str | None = None
    result: ActionResult | None = None

    @property
    def end_session(self) -> bool:
        if self.kind == "menu":
            return False
        return self.result.end_session if self.result is not None else True


# ---------------------------------------------------------------------------
# Voice envelope
# ---------------------------------------------------------------------------


class VoiceAction(BaseModel):
    """A single primitive in the voice gateway's action list."""

    model_config = ConfigDict(populate_by_name=True)

    action: VoiceActionType
    text: str | None = None
    num_digits: int | None = Field(default=None, alias="numDigits")
    timeout: int | None = None
    finish_on_key: str | None = Field(default=None, alias="finishOnKey")
    phone_numbers: list[str] | None = Field(default=None, alias="phoneNumbers")
    record: bool | None = None
    url: str | None = None


class VoiceResponse(BaseModel):
    actions: list[VoiceAction] = Field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        return {
            "actions": [
                action.model_dump(mode="json", by_alias=True, exclude_none=True)
                for action in self.actions
            ],
        }


# ---------------------------------------------------------------------------
# Inbound webhook payloads
# ---------------------------------------------------------------------------


class USSDPayload(BaseModel):
    session_id: str = ""
    service_code: str = ""
    phone_number: str = ""
    text: str = ""


class VoicePayload(BaseModel):
    session_id: str = ""
    caller: str = ""
    dtmf_digits: str = ""
    is_active: bool = True
    call_session_state: str | None = None


class TextMessagePayload(BaseModel):
    """An inbound SMS or WhatsApp message after wire-format parsing."""

    channel: ChannelType
    sender: str
    text: str
    message_id: str | None = None


class MessageReply(BaseModel):
    text: str
    media_url: str | None = None
    media_type: Literal["text", "audio"] = "text"
