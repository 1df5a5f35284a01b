"""Channel adapters: wire format in, dispatcher, wire format out.

Each adapter only extracts the raw payload and caller, runs
tokenizer -> dispatcher, and wraps the reply in the channel's envelope:

* USSD      -- ``CON ``/``END `` prefixed plain text, 182 characters a page;
* voice     -- ``say``/``getDigits``/``dial``/``play`` action list;
* SMS       -- plain text, sent back through the SMS gateway;
* WhatsApp  -- rich text with an optional audio attachment.

A caller never sees a raw error: any failure becomes the generic apology
that names the emergency number.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Final

import structlog

from src.middleware.privacy import mask_phone, normalize_phone
from src.models.channel import (
    DispatchOutcome,
    MessageReply,
    Session,
    TextMessagePayload,
    USSDPayload,
    VoiceAction,
    VoicePayload,
    VoiceResponse,
)
from src.models.consultation import CommunicationLog
from src.models.enums import ChannelType, Direction, VoiceActionType
from src.services.cache import SessionStore
from src.services.consultations import ConsultationGateway
from src.services.dispatcher import Dispatcher
from src.services.messaging import DeliveryStatus, MessagingService, strip_rich_text

logger = structlog.get_logger(__name__)

USSD_PAGE_LIMIT: Final[int] = 182
VOICE_DIGIT_TIMEOUT: Final[int] = 30
CALL_COMPLETED: Final[str] = "Completed"


def error_text(emergency_number: str = "117") -> str:
    return f"Sorry, there was an error, please try again or call {emergency_number}."


def caller_id_from(raw: str) -> str:
    """E.164 caller id when the number is recognisable, else the raw value."""
    try:
        return normalize_phone(raw)
    except ValueError:
        return raw.strip()


async def _log_communication(
    consultations: ConsultationGateway,
    phone_number: str,
    channel: ChannelType,
    direction: Direction,
    content: str,
    *,
    status: str = "received",
    external_id: str | None = None,
) -> None:
    try:
        await consultations.log_communication(
            CommunicationLog(
                phone_number=phone_number,
                communication_type=channel,
                direction=direction,
                content=content,
                status=status,
                external_id=external_id,
            ),
        )
    except Exception:
        logger.warning(
            "channel.communication_log_failed",
            channel=channel,
            caller=mask_phone(phone_number),
            exc_info=True,
        )


# ---------------------------------------------------------------------------
# USSD
# ---------------------------------------------------------------------------


class USSDAdapter:
    """Africa's Talking style USSD: the gateway resends the whole path."""

    __slots__ = ("_dispatcher", "_emergency_number")

    def __init__(self, dispatcher: Dispatcher, emergency_number: str = "117") -> None:
        self._dispatcher = dispatcher
        self._emergency_number = emergency_number

    async def handle(self, payload: USSDPayload) -> str:
        log = logger.bind(session_id=payload.session_id, caller=mask_phone(payload.phone_number))
        if not payload.phone_number:
            log.warning("ussd.missing_phone_number")
            return f"END {error_text(self._emergency_number)}"

        try:
            tokens = self._dispatcher.tokenize(ChannelType.USSD, payload.text)
            outcome = await self._dispatcher.dispatch(
                Session(
                    channel=ChannelType.USSD,
                    caller_id=caller_id_from(payload.phone_number),
                    tokens=tokens,
                    session_id=payload.session_id or None,
                ),
            )
        except Exception:
            log.error("ussd.dispatch_failed", exc_info=True)
            return f"END {error_text(self._emergency_number)}"

        prefix = "END" if outcome.end_session else "CON"
        body = enforce_ussd_limit(strip_rich_text(outcome.text), USSD_PAGE_LIMIT - len(prefix) - 1)
        log.info("ussd.reply", prefix=prefix, node=outcome.node_id, action=outcome.action)
        return f"{prefix} {body}"


def enforce_ussd_limit(text: str, limit: int = USSD_PAGE_LIMIT) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


# ---------------------------------------------------------------------------
# Voice
# ---------------------------------------------------------------------------


class VoiceAdapter:
    """IVR adapter.

    The voice gateway posts only the digits entered since the last prompt,
    so the digits of a call are accumulated in the session store under the
    call's session id and replayed through the dispatcher each time.
    """

    __slots__ = ("_consultations", "_dispatcher", "_emergency_number", "_store", "_ttl")

    def __init__(
        self,
        dispatcher: Dispatcher,
        store: SessionStore,
        consultations: ConsultationGateway,
        *,
        emergency_number: str = "117",
        session_ttl: int = 900,
    ) -> None:
        self._dispatcher = dispatcher
        self._store = store
        self._consultations = consultations
        self._emergency_number = emergency_number
        self._ttl = session_ttl

    @staticmethod
    def _key(payload: VoicePayload) -> str | None:
        """Per-call key; ``None`` when the request identifies no call."""
        call_ref = payload.session_id.strip() or payload.caller.strip()
        return f"dtmf:{call_ref}" if call_ref else None

    async def handle(self, payload: VoicePayload) -> VoiceResponse:
        key = self._key(payload)
        log = logger.bind(session_id=payload.session_id, caller=mask_phone(payload.caller))

        if payload.call_session_state == CALL_COMPLETED or not payload.is_active:
            await self._forget(key)
            log.info("voice.call_completed")
            return VoiceResponse()

        try:
            if key is None:
                # Without a call reference only this request's digits are used.
                log.warning("voice.no_call_reference")
                previous = ""
            else:
                previous = await self._store.get(key, "")
            digits = previous + "".join(ch for ch in payload.dtmf_digits if ch.isdigit())
            tokens = self._dispatcher.tokenize(ChannelType.VOICE, digits)
            outcome = await self._dispatcher.dispatch(
                Session(
                    channel=ChannelType.VOICE,
                    caller_id=caller_id_from(payload.caller),
                    tokens=tokens,
                    session_id=payload.session_id or None,
                ),
            )
            response = await self._respond(key, digits, outcome)
        except Exception:
            log.error("voice.dispatch_failed", exc_info=True)
            return VoiceResponse(
                actions=[VoiceAction(action=VoiceActionType.SAY, text=error_text(self._emergency_number))],
            )

        await _log_communication(
            self._consultations,
            caller_id_from(payload.caller),
            ChannelType.VOICE,
            Direction.INBOUND,
            f"DTMF: {payload.dtmf_digits}, Menu: {'->'.join(tokens)}",
            external_id=payload.session_id or None,
        )
        log.info("voice.reply", node=outcome.node_id, action=outcome.action, actions=len(response.actions))
        return response

    async def _remember(self, key: str | None, digits: str) -> None:
        if key is not None:
            await self._store.set(key, digits, ttl_seconds=self._ttl)

    async def _forget(self, key: str | None) -> None:
        if key is not None:
            await self._store.delete(key)

    async def _respond(self, key: str | None, digits: str, outcome: DispatchOutcome) -> VoiceResponse:
        say = VoiceAction(action=VoiceActionType.SAY, text=outcome.text)

        if outcome.kind == "menu":
            await self._remember(key, digits)
            return VoiceResponse(actions=[say, self._get_digits()])

        result = outcome.result
        if result is None:
            await self._forget(key)
            return VoiceResponse(
                actions=[VoiceAction(action=VoiceActionType.SAY, text=error_text(self._emergency_number))],
            )

        if result.dial_number:
            await self._forget(key)
            return VoiceResponse(
                actions=[
                    say,
                    VoiceAction(
                        action=VoiceActionType.DIAL,
                        phone_numbers=[result.dial_number],
                        record=True,
                    ),
                ],
            )

        if not result.end_session:
            # Content was played; the next digit starts again from the main menu.
            await self._remember(key, "")
            actions = [say]
            if result.media_url:
                actions.append(VoiceAction(action=VoiceActionType.PLAY, url=result.media_url))
            elif result.audio_script:
                actions.append(VoiceAction(action=VoiceActionType.SAY, text=result.audio_script))
            actions.append(
                VoiceAction(
                    action=VoiceActionType.SAY,
                    text=self._dispatcher.tree.root.prompt_for(ChannelType.VOICE),
                ),
            )
            actions.append(self._get_digits())
            return VoiceResponse(actions=actions)

        await self._forget(key)
        return VoiceResponse(actions=[say])

    @staticmethod
    def _get_digits() -> VoiceAction:
        return VoiceAction(
            action=VoiceActionType.GET_DIGITS,
            num_digits=1,
            timeout=VOICE_DIGIT_TIMEOUT,
            finish_on_key="#",
        )


# ---------------------------------------------------------------------------
# SMS and WhatsApp
# ---------------------------------------------------------------------------


class _TextChannelAdapter:
    """Shared flow for message channels: log, dispatch, send, log."""

    channel: ChannelType

    __slots__ = ("_consultations", "_dispatcher", "_emergency_number", "_messaging")

    def __init__(
        self,
        dispatcher: Dispatcher,
        messaging: MessagingService,
        consultations: ConsultationGateway,
        emergency_number: str = "117",
    ) -> None:
        self._dispatcher = dispatcher
        self._messaging = messaging
        self._consultations = consultations
        self._emergency_number = emergency_number

    async def handle(self, payload: TextMessagePayload) -> MessageReply:
        caller_id = caller_id_from(payload.sender)
        log = logger.bind(channel=self.channel, caller=mask_phone(caller_id), message_id=payload.message_id)

        await _log_communication(
            self._consultations, caller_id, self.channel, Direction.INBOUND, payload.text,
            external_id=payload.message_id,
        )

        try:
            tokens = self._dispatcher.tokenize(self.channel, payload.text)
            outcome = await self._dispatcher.dispatch(
                Session(channel=self.channel, caller_id=caller_id, tokens=tokens),
            )
            reply = self._format(outcome)
        except Exception:
            log.error("text_channel.dispatch_failed", exc_info=True)
            reply = MessageReply(text=error_text(self._emergency_number))

        status = await self._send(caller_id, reply)
        await _log_communication(
            self._consultations, caller_id, self.channel, Direction.OUTBOUND, reply.text,
            status=str(status.status), external_id=status.provider_message_id,
        )
        log.info("text_channel.reply", delivery=status.status, length=len(reply.text))
        return reply

    def _format(self, outcome: DispatchOutcome) -> MessageReply:
        raise NotImplementedError

    async def _send(self, caller_id: str, reply: MessageReply) -> DeliveryStatus:
        raise NotImplementedError


class SMSAdapter(_TextChannelAdapter):
    channel = ChannelType.SMS

    __slots__ = ()

    def _format(self, outcome: DispatchOutcome) -> MessageReply:
        # Multi-part SMS is acceptable; nothing is cut here.
        return MessageReply(text=strip_rich_text(outcome.text))

    async def _send(self, caller_id: str, reply: MessageReply) -> DeliveryStatus:
        return await self._messaging.send_sms(caller_id, reply.text)


class WhatsAppAdapter(_TextChannelAdapter):
    channel = ChannelType.WHATSAPP

    __slots__ = ()

    def _format(self, outcome: DispatchOutcome) -> MessageReply:
        media_url = outcome.result.media_url if outcome.result is not None else None
        return MessageReply(
            text=outcome.text,
            media_url=media_url,
            media_type="audio" if media_url else "text",
        )

    async def _send(self, caller_id: str, reply: MessageReply) -> DeliveryStatus:
        return await self._messaging.send_whatsapp(caller_id, reply.text, media_url=reply.media_url)


# ---------------------------------------------------------------------------
# Inbound payload parsing
# ---------------------------------------------------------------------------


def parse_sms_webhook(form: Mapping[str, Any]) -> TextMessagePayload | None:
    """Parse a form-encoded SMS callback; *None* if ``from`` or ``text`` is missing."""
    sender = str(form.get("from") or form.get("sender") or form.get("phoneNumber") or "").strip()
    text = str(form.get("text") or form.get("message") or "").strip()
    message_id = form.get("id") or form.get("messageId")
    if not sender or not text:
        return None
    return TextMessagePayload(
        channel=ChannelType.SMS,
        sender=sender,
        text=text,
        message_id=str(message_id) if message_id else None,
    )


def parse_whatsapp_webhook(body: Mapping[str, Any]) -> TextMessagePayload | None:
    """Parse either ``{from, text, messageId}`` or a Meta Cloud API webhook."""
    if "entry" in body:
        return _parse_meta_webhook(body)

    sender = str(body.get("from") or "").strip()
    text = str(body.get("text") or body.get("message") or "").strip()
    message_id = body.get("messageId") or body.get("id")
    if not sender or not text:
        return None
    return TextMessagePayload(
        channel=ChannelType.WHATSAPP,
        sender=sender,
        text=text,
        message_id=str(message_id) if message_id else None,
    )


def _parse_meta_webhook(body: Mapping[str, Any]) -> TextMessagePayload | None:
    try:
        value = body["entry"][0]["changes"][0]["value"]
    except (KeyError, IndexError, TypeError):
        return None

    messages = value.get("messages") or []
    if not messages:
        # Delivery status callbacks carry no message.
        return None

    message = messages[0]
    msg_type = message.get("type", "text")
    if msg_type == "text":
        text = message.get("text", {}).get("body", "")
    elif msg_type == "interactive":
        interactive = message.get("interactive", {})
        reply = interactive.get("button_reply") or interactive.get("list_reply") or {}
        text = reply.get("title", "")
    elif msg_type == "button":
        text = message.get("button", {}).get("text", "")
    else:
        text = ""

    sender = str(message.get("from") or "").strip()
    if not sender or not text.strip():
        return None
    return TextMessagePayload(
        channel=ChannelType.WHATSAPP,
        sender=sender,
        text=text.strip(),
        message_id=message.get("id"),
    )
