"""Tests for channel-specific tokenisation."""

from __future__ import annotations

import pytest

from src.models.enums import ChannelType
from src.services.tokenizer import tokenize

KEYWORDS = frozenset({"HELP", "BOOK", "TEXT", "EXIT"})
ARGUMENT_KEYWORDS = frozenset({"TEXT", "SMS"})


class TestEmptyPayload:
    @pytest.mark.parametrize("channel", list(ChannelType))
    @pytest.mark.parametrize("payload", ["", None, "   "])
    def test_empty_payload_is_root(self, channel: ChannelType, payload: str | None) -> None:
        assert tokenize(channel, payload, KEYWORDS) == []


class TestUSSD:
    def test_splits_on_star(self) -> None:
        assert tokenize(ChannelType.USSD, "1*2*3") == ["1", "2", "3"]

    def test_drops_empty_segments(self) -> None:
        assert tokenize(ChannelType.USSD, "1**2*") == ["1", "2"], (
            "consecutive or trailing delimiters should not produce empty tokens"
        )

    def test_free_text_segment_is_kept(self) -> None:
        assert tokenize(ChannelType.USSD, "1*2*fever and headache") == ["1", "2", "fever and headache"]

    def test_accepts_string_channel(self) -> None:
        assert tokenize("ussd", "4*3") == ["4", "3"]


class TestVoice:
    def test_each_digit_is_a_token(self) -> None:
        assert tokenize(ChannelType.VOICE, "312") == ["3", "1", "2"]

    def test_control_keys_are_ignored(self) -> None:
        assert tokenize(ChannelType.VOICE, "1#2*") == ["1", "2"]


class TestTextChannels:
    @pytest.mark.parametrize("channel", [ChannelType.SMS, ChannelType.WHATSAPP])
    def test_keyword_is_normalised(self, channel: ChannelType) -> None:
        assert tokenize(channel, "  help ", KEYWORDS) == ["HELP"]

    def test_argument_keyword_takes_rest_of_message(self) -> None:
        tokens = tokenize(ChannelType.SMS, "text fever since Monday", KEYWORDS, ARGUMENT_KEYWORDS)
        assert tokens == ["TEXT", "fever since Monday"]

    def test_argument_keyword_alone_is_plain_keyword(self) -> None:
        assert tokenize(ChannelType.SMS, "TEXT", KEYWORDS, ARGUMENT_KEYWORDS) == ["TEXT"]

    def test_free_text_is_single_token_kept_verbatim(self) -> None:
        tokens = tokenize(ChannelType.WHATSAPP, "  My baby has a Fever ", KEYWORDS, ARGUMENT_KEYWORDS)
        assert tokens == ["My baby has a Fever"]

    def test_keyword_inside_sentence_is_not_a_keyword(self) -> None:
        tokens = tokenize(ChannelType.SMS, "please help me", KEYWORDS, ARGUMENT_KEYWORDS)
        assert tokens == ["please help me"]
