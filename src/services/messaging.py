"""Outbound SMS and WhatsApp delivery.

1. **SMS** -- Africa's Talking bulk SMS API, or a mock provider that only
   logs.  Long replies are sent as multi-part SMS rather than cut.
2. **WhatsApp** -- Meta Cloud API text or audio messages.  Falls back to
   mock delivery when no phone number id is configured.

Every send returns a :class:`DeliveryStatus`; failures are reported in
the status rather than raised, so a webhook handler can always answer its
gateway.
"""

from __future__ import annotations

import re
import time
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Final
from uuid import uuid4

import httpx
import structlog
from pydantic import BaseModel, Field
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.middleware.privacy import mask_phone, normalize_phone

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

WHATSAPP_API_BASE: Final[str] = "https://graph.facebook.com/v18.0"
AFRICASTALKING_SMS_URL: Final[str] = "https://api.africastalking.com/version1/messaging"
AFRICASTALKING_SANDBOX_SMS_URL: Final[str] = (
    "https://api.sandbox.africastalking.com/version1/messaging"
)

_MAX_ATTEMPTS: Final[int] = 3
_WHATSAPP_MAX: Final[int] = 4096

SMS_SOFT_LIMIT: Final[int] = 160


class DeliveryState(StrEnum):
    __slots__ = ()

    SENT = "sent"
    FAILED = "failed"
    MOCK = "mock"


class DeliveryStatus(BaseModel):
    """Outcome of one outbound message."""

    message_id: str = Field(default_factory=lambda: uuid4().hex)
    channel: str
    to: str
    status: DeliveryState
    provider: str = ""
    provider_message_id: str | None = None
    error_message: str | None = None
    segments: int = 1
    sent_at: datetime | None = None

    @property
    def delivered(self) -> bool:
        return self.status != DeliveryState.FAILED


class RetryableGatewayError(Exception):
    """A 5xx or 429 from an outbound gateway."""


# ---------------------------------------------------------------------------
# SMS providers
# ---------------------------------------------------------------------------


class _SMSProviderBase:
    name: str = ""

    async def send(self, to: str, message: str) -> dict[str, Any]:
        raise NotImplementedError


class _AfricasTalkingProvider(_SMSProviderBase):
    """Africa's Talking bulk SMS (form-encoded, ``apiKey`` header)."""

    name = "africastalking"

    def __init__(self, username: str, api_key: str, sender_id: str = "") -> None:
        self._username = username
        self._api_key = api_key
        self._sender_id = sender_id

    @property
    def _url(self) -> str:
        if self._username == "sandbox":
            return AFRICASTALKING_SANDBOX_SMS_URL
        return AFRICASTALKING_SMS_URL

    async def send(self, to: str, message: str) -> dict[str, Any]:
        data = {"username": self._username, "to": to, "message": message}
        if self._sender_id and self._username != "sandbox":
            data["from"] = self._sender_id
        response = await _post_with_retry(
            self._url,
            headers={"apiKey": self._api_key, "Accept": "application/json"},
            data=data,
        )
        response.raise_for_status()
        recipients = response.json().get("SMSMessageData", {}).get("Recipients", [])
        if not recipients:
            return {"status": "failed", "error": "No recipients accepted"}
        first = recipients[0]
        return {
            "status": "sent" if first.get("status") == "Success" else "failed",
            "message_id": first.get("messageId"),
            "error": first.get("status"),
        }


class _MockProvider(_SMSProviderBase):
    """Logs instead of sending; used in development and tests."""

    name = "mock"

    async def send(self, to: str, message: str) -> dict[str, Any]:
        logger.info(
            "mock_sms.sent",
            to=mask_phone(to),
            message_preview=message[:80],
            length=len(message),
        )
        return {"status": "mock", "message_id": f"mock_{uuid4().hex[:12]}"}


async def _post_with_retry(
    url: str,
    *,
    headers: dict[str, str],
    data: dict[str, str] | None = None,
    json_body: dict[str, Any] | None = None,
) -> httpx.Response:
    """POST with exponential backoff on transport errors, 5xx and 429."""
    async for attempt in AsyncRetrying(
        retry=retry_if_exception_type((httpx.TransportError, RetryableGatewayError)),
        stop=stop_after_attempt(_MAX_ATTEMPTS),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        reraise=True,
    ):
        with attempt:
            async with httpx.AsyncClient(timeout=15.0) as client:
                response = await client.post(url, headers=headers, data=data, json=json_body)
            if response.status_code >= 500 or response.status_code == 429:
                logger.warning(
                    "messaging.retryable_status",
                    status=response.status_code,
                    attempt=attempt.retry_state.attempt_number,
                )
                raise RetryableGatewayError(f"{url} returned {response.status_code}")
    return response


# ---------------------------------------------------------------------------
# Messaging service
# ---------------------------------------------------------------------------


class MessagingService:
    """Single entry point for outbound SMS and WhatsApp messages.

    Parameters
    ----------
    sms_provider:
        ``"africastalking"`` or ``"mock"``.
    africastalking_username, africastalking_api_key, sms_sender_id:
        Africa's Talking credentials and sender id.
    whatsapp_phone_id, whatsapp_token:
        Meta Cloud API credentials; empty means mock delivery.
    """

    __slots__ = ("_sms_provider", "_whatsapp_phone_id", "_whatsapp_token")

    def __init__(
        self,
        sms_provider: str = "mock",
        *,
        africastalking_username: str = "sandbox",
        africastalking_api_key: str = "",
        sms_sender_id: str = "",
        whatsapp_phone_id: str = "",
        whatsapp_token: str = "",
    ) -> None:
        if sms_provider == "africastalking":
            self._sms_provider: _SMSProviderBase = _AfricasTalkingProvider(
                africastalking_username, africastalking_api_key, sms_sender_id,
            )
        elif sms_provider == "mock":
            self._sms_provider = _MockProvider()
        else:
            raise ValueError(
                f"Unknown SMS provider {sms_provider!r}. Supported: africastalking, mock."
            )
        self._whatsapp_phone_id = whatsapp_phone_id
        self._whatsapp_token = whatsapp_token

        logger.info(
            "messaging_service.initialised",
            sms_provider=sms_provider,
            whatsapp_enabled=bool(whatsapp_phone_id),
        )

    @property
    def sms_provider_name(self) -> str:
        return self._sms_provider.name

    # -- SMS ------------------------------------------------------------------

    async def send_sms(self, to: str, message: str) -> DeliveryStatus:
        """Send *message* to *to*; long messages go out as multi-part SMS."""
        start = time.perf_counter()
        try:
            phone = normalize_phone(to)
        except ValueError as exc:
            return DeliveryStatus(
                channel="sms", to=mask_phone(to), status=DeliveryState.FAILED,
                error_message=str(exc),
            )

        log = logger.bind(channel="sms", to=mask_phone(phone), provider=self._sms_provider.name)
        segments = calculate_sms_segments(message)
        try:
            result = await self._sms_provider.send(phone, message)
        except Exception as exc:
            log.error("sms.send_failed", error=str(exc), exc_info=True)
            return DeliveryStatus(
                channel="sms", to=phone, status=DeliveryState.FAILED,
                provider=self._sms_provider.name, error_message=str(exc), segments=segments,
            )

        raw_status = result.get("status", "sent")
        state = {"mock": DeliveryState.MOCK, "sent": DeliveryState.SENT}.get(
            raw_status, DeliveryState.FAILED,
        )
        log.info(
            "sms.sent",
            status=state,
            segments=segments,
            elapsed_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return DeliveryStatus(
            channel="sms",
            to=phone,
            status=state,
            provider=self._sms_provider.name,
            provider_message_id=result.get("message_id"),
            error_message=result.get("error") if state == DeliveryState.FAILED else None,
            segments=segments,
            sent_at=datetime.now(UTC),
        )

    # -- WhatsApp -------------------------------------------------------------

    async def send_whatsapp(
        self,
        to: str,
        message: str,
        media_url: str | None = None,
    ) -> DeliveryStatus:
        """Send a text message, followed by an audio attachment when given."""
        try:
            phone = normalize_phone(to)
        except ValueError as exc:
            return DeliveryStatus(
                channel="whatsapp", to=mask_phone(to), status=DeliveryState.FAILED,
                error_message=str(exc),
            )

        log = logger.bind(channel="whatsapp", to=mask_phone(phone))

        if not self._whatsapp_phone_id:
            log.info("mock_whatsapp.sent", message_preview=message[:80], media_url=media_url)
            return DeliveryStatus(
                channel="whatsapp", to=phone, status=DeliveryState.MOCK,
                provider="mock", sent_at=datetime.now(UTC),
            )

        payloads: list[dict[str, Any]] = [
            {"type": "text", "text": {"preview_url": False, "body": message[:_WHATSAPP_MAX]}},
        ]
        if media_url:
            payloads.append({"type": "audio", "audio": {"link": media_url}})

        url = f"{WHATSAPP_API_BASE}/{self._whatsapp_phone_id}/messages"
        headers = {
            "Authorization": f"Bearer {self._whatsapp_token}",
            "Content-Type": "application/json",
        }
        provider_message_id: str | None = None
        try:
            for body in payloads:
                response = await _post_with_retry(
                    url,
                    headers=headers,
                    json_body={
                        "messaging_product": "whatsapp",
                        "recipient_type": "individual",
                        "to": phone.lstrip("+"),
                        **body,
                    },
                )
                data = response.json()
                if response.status_code != 200 or "messages" not in data:
                    error = data.get("error", {}).get("message", str(data))
                    log.error("whatsapp.api_error", status=response.status_code, error=error)
                    return DeliveryStatus(
                        channel="whatsapp", to=phone, status=DeliveryState.FAILED,
                        provider="whatsapp_cloud_api", error_message=error,
                    )
                provider_message_id = provider_message_id or data["messages"][0].get("id")
        except Exception as exc:
            log.error("whatsapp.send_failed", error=str(exc), exc_info=True)
            return DeliveryStatus(
                channel="whatsapp", to=phone, status=DeliveryState.FAILED,
                provider="whatsapp_cloud_api", error_message=str(exc),
            )

        log.info("whatsapp.sent", wa_message_id=provider_message_id, parts=len(payloads))
        return DeliveryStatus(
            channel="whatsapp",
            to=phone,
            status=DeliveryState.SENT,
            provider="whatsapp_cloud_api",
            provider_message_id=provider_message_id,
            sent_at=datetime.now(UTC),
        )


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


_GSM7_CHARS: Final[frozenset[str]] = frozenset(
    "@$!\"#%&'()*+,-./0123456789:;<=>?"
    "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    "abcdefghijklmnopqrstuvwxyz"
    " \n\r"
)


def calculate_sms_segments(message: str) -> int:
    """Number of SMS parts needed for *message*.

    GSM-7: 160 chars single, 153 per part.  Anything else (e.g. the
    bullet character) forces UCS-2: 70 single, 67 per part.
    """
    length = len(message)
    if any(char not in _GSM7_CHARS for char in message):
        return 1 if length <= 70 else (length + 66) // 67
    return 1 if length <= 160 else (length + 152) // 153


_EMPHASIS_PATTERN: Final[re.Pattern[str]] = re.compile(r"([*_~])(?=\S)([^\n]*?\S)\1")


def strip_rich_text(text: str) -> str:
    """Unwrap WhatsApp emphasis (``*bold*``, ``_italic_``) for plain-text channels.

    Lone markers such as the ``*`` in a short code are kept.
    """
    return _EMPHASIS_PATTERN.sub(r"\2", text)
