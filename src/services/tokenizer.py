"""Turns channel-specific raw input into an ordered navigation path.

* USSD gateways resend the whole path every round trip (``1*2*3``).
* Voice gateways deliver DTMF digits; each digit is one token.  Digits
  arriving over several round trips are joined by the voice adapter
  before they reach here.
* SMS and WhatsApp bodies are either a single known keyword or free text.
"""

from __future__ import annotations

from collections.abc import Collection
from typing import Final

from src.models.enums import ChannelType

USSD_DELIMITER: Final[str] = "*"

# DTMF keys that terminate input rather than select an option.
_DTMF_CONTROL_KEYS: Final[frozenset[str]] = frozenset({"*", "#"})


def tokenize(
    channel: ChannelType | str,
    raw_payload: str | None,
    keywords: Collection[str] = (),
    argument_keywords: Collection[str] = (),
) -> list[str]:
    """Return the ordered token list for *raw_payload*.

    Parameters
    ----------
    channel:
        The inbound channel.
    raw_payload:
        The accumulated USSD ``text``, the DTMF digit string, or the
        message body.
    keywords:
        Upper-case top-level keywords recognised on text channels.
    argument_keywords:
        Keywords whose action takes the rest of the message as an
        argument (``TEXT fever since Monday``).

    An empty payload yields ``[]``, which dispatches to the root menu.
    """
    if not raw_payload or not raw_payload.strip():
        return []

    channel = ChannelType(channel)
    if channel == ChannelType.USSD:
        return [segment.strip() for segment in raw_payload.split(USSD_DELIMITER) if segment.strip()]
    if channel == ChannelType.VOICE:
        return [ch for ch in raw_payload if ch.isdigit() and ch not in _DTMF_CONTROL_KEYS]
    return _tokenize_text(raw_payload, keywords, argument_keywords)


def _tokenize_text(
    body: str,
    keywords: Collection[str],
    argument_keywords: Collection[str],
) -> list[str]:
    text = body.strip()
    normalised = " ".join(text.split()).upper()
    if normalised in keywords:
        return [normalised]

    first, _, rest = text.partition(" ")
    first_upper = first.upper()
    if first_upper in argument_keywords and rest.strip():
        return [first_upper, rest.strip()]

    # Free text, kept as typed so the natural-language reply sees it verbatim.
    return [text]
