"""Caller-privacy middleware and phone-number helpers.

Callers are identified only by their phone number, so numbers are masked
before they reach logs or the content generator, and every response
carries privacy and security headers.
"""

from __future__ import annotations

import re
from typing import Final

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

COUNTRY_CODE: Final[str] = "+232"

# ---------------------------------------------------------------------------
# Phone numbers
# ---------------------------------------------------------------------------

# Sierra Leone numbers are eight digits after the country code, or nine
# with a leading trunk zero (076 123456).
_E164_SOURCE_PATTERN: Final[re.Pattern[str]] = re.compile(r"^(?:\+?232|0)?(\d{8})$")

# Numbers embedded in free text.  Only prefixed forms are matched so that
# ordinary 8-digit figures are left alone.
_PHONE_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"(?:\+?232[\s-]?|\b0)(\d{2}[\s-]?\d{2})(\d{4})\b"
)

_EMAIL_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"
)


def normalize_phone(number: str) -> str:
    """Normalise a Sierra Leone number to E.164 (``+232XXXXXXXX``).

    Accepts ``+232XXXXXXXX``, ``232XXXXXXXX``, ``0XXXXXXXX`` and the bare
    eight-digit form; spaces, dashes and parentheses are ignored.

    Raises
    ------
    ValueError
        If the number is not a Sierra Leone number.
    """
    cleaned = re.sub(r"[\s\-\(\)]+", "", number.strip())
    match = _E164_SOURCE_PATTERN.match(cleaned)
    if not match:
        raise ValueError(f"Invalid Sierra Leone phone number: {number!r}")
    return f"{COUNTRY_CODE}{match.group(1)}"


def mask_phone(number: str) -> str:
    """Mask a single phone number, keeping the last 4 digits.

    ``+23276123456`` becomes ``XXXXXX3456``.
    """
    digits = re.sub(r"\D", "", number)
    if len(digits) <= 4:
        return "XXXX"
    return f"XXXXXX{digits[-4:]}"


def sanitize_phone(text: str) -> str:
    """Mask every phone number found in *text*."""
    return _PHONE_PATTERN.sub(lambda m: f"XXXXXX{m.group(2)}", text)


def sanitize_email(text: str) -> str:
    return _EMAIL_PATTERN.sub("[EMAIL_REDACTED]", text)


def sanitize_pii(text: str) -> str:
    return sanitize_email(sanitize_phone(text))


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------


class PrivacyMiddleware(BaseHTTPMiddleware):
    """Logs each request without PII and adds privacy/security headers."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        client_ip = request.client.host if request.client else "unknown"
        logger.info(
            "request.incoming",
            method=request.method,
            path=request.url.path,
            client_ip=sanitize_pii(client_ip),
        )

        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Strict-Transport-Security"] = "max-age=63072000; includeSubDomains"
        response.headers["X-Data-Processing-Purpose"] = "maternal-health-information"
        response.headers["X-Data-Retention-Policy"] = "session-only"
        response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, private"
        response.headers["Pragma"] = "no-cache"
        return response
