"""Tests for the USSD, voice, SMS and WhatsApp channel adapters."""

from __future__ import annotations

import pytest

from src.models.channel import DispatchOutcome, TextMessagePayload, USSDPayload, VoicePayload
from src.models.enums import ChannelType, ConsultationType, Direction, VoiceActionType
from src.services.cache import SessionStore
from src.services.channel_adapters import (
    SMSAdapter,
    USSDAdapter,
    VoiceAdapter,
    WhatsAppAdapter,
    enforce_ussd_limit,
    parse_sms_webhook,
    parse_whatsapp_webhook,
)
from src.services.consultations import InMemoryConsultationStore
from src.services.dispatcher import Dispatcher
from src.services.messaging import MessagingService

CALLER = "+23277000333"


class _ExplodingDispatcher:
    """Stands in for a dispatcher whose backend is broken."""

    def tokenize(self, channel, raw_payload):
        return []

    async def dispatch(self, session):
        raise RuntimeError("boom")


class _ResultlessDispatcher:
    """Reports a finished action but hands back no result."""

    def tokenize(self, channel, raw_payload):
        return list(raw_payload)

    async def dispatch(self, session):
        return DispatchOutcome(kind="action", text="", action="book_voice_consultation")


# -----------------------------------------------------------------------
# USSD
# -----------------------------------------------------------------------


class TestUSSDAdapter:
    @pytest.fixture
    def adapter(self, numeric_dispatcher: Dispatcher) -> USSDAdapter:
        return USSDAdapter(numeric_dispatcher)

    async def test_first_request_shows_main_menu(self, adapter: USSDAdapter) -> None:
        reply = await adapter.handle(USSDPayload(session_id="s1", phone_number=CALLER, text=""))
        assert reply.startswith("CON Welcome to HealthWise")

    async def test_submenu_continues(self, adapter: USSDAdapter) -> None:
        reply = await adapter.handle(USSDPayload(session_id="s1", phone_number=CALLER, text="3"))
        assert reply.startswith("CON EMERGENCY SERVICES")

    async def test_action_ends_session(self, adapter: USSDAdapter) -> None:
        reply = await adapter.handle(USSDPayload(session_id="s1", phone_number=CALLER, text="3*1"))
        assert reply.startswith("END ")
        assert "117" in reply

    async def test_symptom_prompt_keeps_session_open(self, adapter: USSDAdapter) -> None:
        reply = await adapter.handle(USSDPayload(session_id="s1", phone_number=CALLER, text="1*2"))
        assert reply == "CON Please describe your symptoms:"

    async def test_replies_fit_one_page(self, adapter: USSDAdapter) -> None:
        for text in ("", "1", "2", "3", "4", "4*3", "2*1", "2*3", "3*3", "1*1"):
            reply = await adapter.handle(USSDPayload(session_id="s1", phone_number=CALLER, text=text))
            assert len(reply) <= 182, f"reply for {text!r} is {len(reply)} characters"

    async def test_short_code_survives(self, adapter: USSDAdapter) -> None:
        reply = await adapter.handle(USSDPayload(session_id="s1", phone_number=CALLER, text="4*2"))
        assert "*123#" in reply

    async def test_backend_failure_ends_with_apology(self) -> None:
        adapter = USSDAdapter(_ExplodingDispatcher())  # type: ignore[arg-type]
        reply = await adapter.handle(USSDPayload(session_id="s1", phone_number=CALLER, text="1"))
        assert reply == "END Sorry, there was an error, please try again or call 117."

    async def test_missing_phone_number(self, adapter: USSDAdapter) -> None:
        reply = await adapter.handle(USSDPayload(session_id="s1", text="1"))
        assert reply.startswith("END Sorry")

    def test_limit_truncates_with_ellipsis(self) -> None:
        text = enforce_ussd_limit("x" * 300, 20)
        assert text == "x" * 17 + "..."


# -----------------------------------------------------------------------
# Voice
# -----------------------------------------------------------------------


class TestVoiceAdapter:
    @pytest.fixture
    def session_store(self) -> SessionStore:
        return SessionStore(namespace="test:voice:")

    @pytest.fixture
    def adapter(
        self,
        numeric_dispatcher: Dispatcher,
        session_store: SessionStore,
        store: InMemoryConsultationStore,
    ) -> VoiceAdapter:
        return VoiceAdapter(numeric_dispatcher, session_store, store)

    @staticmethod
    def _payload(digits: str = "", **kwargs) -> VoicePayload:
        return VoicePayload(session_id="call-1", caller=CALLER, dtmf_digits=digits, **kwargs)

    async def test_call_start_reads_menu_and_collects_digit(self, adapter: VoiceAdapter) -> None:
        response = await adapter.handle(self._payload())
        actions = response.to_payload()["actions"]
        assert actions[0]["action"] == "say"
        assert actions[0]["text"].startswith("Welcome to HealthWise for Sierra Leone")
        assert actions[1] == {"action": "getDigits", "numDigits": 1, "timeout": 30, "finishOnKey": "#"}

    async def test_digits_accumulate_across_requests(
        self, adapter: VoiceAdapter, store: InMemoryConsultationStore,
    ) -> None:
        first = await adapter.handle(self._payload("3"))
        assert first.actions[0].text.startswith("Emergency services.")

        second = await adapter.handle(self._payload("1"))
        kinds = [action.action for action in second.actions]
        assert kinds == [VoiceActionType.SAY, VoiceActionType.DIAL]
        assert second.actions[1].phone_numbers == ["+232117"]
        assert second.actions[1].record is True

        [consultation] = await store.list_consultations(CALLER)
        assert consultation.channel == ChannelType.VOICE

    async def test_terminal_action_clears_history(
        self, adapter: VoiceAdapter, session_store: SessionStore,
    ) -> None:
        await adapter.handle(self._payload("1"))
        await adapter.handle(self._payload("4"))
        assert await session_store.get("dtmf:call-1") is None

        fresh = await adapter.handle(self._payload())
        assert fresh.actions[0].text.startswith("Welcome to HealthWise")

    async def test_education_plays_audio_then_returns_to_main_menu(
        self, adapter: VoiceAdapter, session_store: SessionStore,
    ) -> None:
        await adapter.handle(self._payload("2"))
        response = await adapter.handle(self._payload("1"))

        kinds = [action.action for action in response.actions]
        assert kinds == [
            VoiceActionType.SAY,
            VoiceActionType.PLAY,
            VoiceActionType.SAY,
            VoiceActionType.GET_DIGITS,
        ]
        assert response.actions[1].url == "https://audio.healthwise.sl/malaria-english.mp3"
        assert await session_store.get("dtmf:call-1") == ""

        # The next digit navigates from the main menu again.
        nxt = await adapter.handle(self._payload("4"))
        assert nxt.actions[0].text.startswith("Your account.")

    async def test_completed_call_clears_state(
        self, adapter: VoiceAdapter, session_store: SessionStore,
    ) -> None:
        await adapter.handle(self._payload("4"))
        response = await adapter.handle(self._payload(call_session_state="Completed", is_active=False))
        assert response.actions == []
        assert await session_store.get("dtmf:call-1") is None

    async def test_inbound_is_logged(self, adapter: VoiceAdapter, store: InMemoryConsultationStore) -> None:
        await adapter.handle(self._payload("2"))
        [entry] = store.list_communications(CALLER)
        assert entry.communication_type == ChannelType.VOICE
        assert entry.direction == Direction.INBOUND
        assert entry.content == "DTMF: 2, Menu: 2"

    async def test_backend_failure_says_apology(self, session_store: SessionStore, store) -> None:
        adapter = VoiceAdapter(_ExplodingDispatcher(), session_store, store)  # type: ignore[arg-type]
        response = await adapter.handle(self._payload("1"))
        assert [a.action for a in response.actions] == [VoiceActionType.SAY]
        assert "117" in (response.actions[0].text or "")

    async def test_calls_without_reference_do_not_share_history(
        self, adapter: VoiceAdapter, session_store: SessionStore,
    ) -> None:
        first = await adapter.handle(VoicePayload(dtmf_digits="3"))
        assert first.actions[0].text.startswith("Emergency services.")

        second = await adapter.handle(VoicePayload(dtmf_digits="1"))
        assert second.actions[0].text.startswith("Consultation services.")
        assert VoiceActionType.DIAL not in [a.action for a in second.actions]
        assert await session_store.get("dtmf:") is None

    async def test_caller_number_keys_history_without_session_id(self, adapter: VoiceAdapter) -> None:
        await adapter.handle(VoicePayload(caller=CALLER, dtmf_digits="3"))
        response = await adapter.handle(VoicePayload(caller=CALLER, dtmf_digits="1"))
        assert [a.action for a in response.actions] == [VoiceActionType.SAY, VoiceActionType.DIAL]

    async def test_action_without_result_says_apology(
        self, session_store: SessionStore, store: InMemoryConsultationStore,
    ) -> None:
        adapter = VoiceAdapter(_ResultlessDispatcher(), session_store, store)  # type: ignore[arg-type]
        await session_store.set("dtmf:call-1", "1")

        response = await adapter.handle(self._payload("1"))

        assert [a.action for a in response.actions] == [VoiceActionType.SAY]
        assert response.actions[0].text == "Sorry, there was an error, please try again or call 117."
        assert await session_store.get("dtmf:call-1") is None


# -----------------------------------------------------------------------
# SMS and WhatsApp
# -----------------------------------------------------------------------


class TestTextAdapters:
    @pytest.fixture
    def messaging(self) -> MessagingService:
        return MessagingService("mock")

    async def test_sms_reply_logged_both_ways(
        self,
        keyword_dispatcher: Dispatcher,
        messaging: MessagingService,
        store: InMemoryConsultationStore,
    ) -> None:
        adapter = SMSAdapter(keyword_dispatcher, messaging, store)
        reply = await adapter.handle(
            TextMessagePayload(channel=ChannelType.SMS, sender="076 000 333", text="help", message_id="m1"),
        )
        assert reply.text.startswith("HealthWise SMS Commands")

        entries = store.list_communications("+23276000333")
        assert [e.direction for e in entries] == [Direction.INBOUND, Direction.OUTBOUND]
        assert entries[0].external_id == "m1"
        assert entries[1].status == "mock"

    async def test_sms_strips_emphasis(
        self,
        keyword_dispatcher: Dispatcher,
        messaging: MessagingService,
        store: InMemoryConsultationStore,
    ) -> None:
        adapter = SMSAdapter(keyword_dispatcher, messaging, store)
        reply = await adapter.handle(TextMessagePayload(channel=ChannelType.SMS, sender=CALLER, text="video"))
        assert "*" not in reply.text
        assert reply.text.startswith("Video Consultation")

    async def test_whatsapp_education_has_audio(
        self,
        keyword_dispatcher: Dispatcher,
        messaging: MessagingService,
        store: InMemoryConsultationStore,
    ) -> None:
        adapter = WhatsAppAdapter(keyword_dispatcher, messaging, store)
        reply = await adapter.handle(
            TextMessagePayload(channel=ChannelType.WHATSAPP, sender=CALLER, text="maternal"),
        )
        assert reply.media_type == "audio"
        assert reply.media_url is not None and reply.media_url.endswith("maternal-health-english.mp3")

    async def test_dispatch_failure_still_replies(
        self, messaging: MessagingService, store: InMemoryConsultationStore,
    ) -> None:
        adapter = WhatsAppAdapter(_ExplodingDispatcher(), messaging, store)  # type: ignore[arg-type]
        reply = await adapter.handle(
            TextMessagePayload(channel=ChannelType.WHATSAPP, sender=CALLER, text="hello"),
        )
        assert "117" in reply.text


# -----------------------------------------------------------------------
# Webhook parsing
# -----------------------------------------------------------------------


class TestWebhookParsing:
    def test_sms_form(self) -> None:
        payload = parse_sms_webhook({"from": "+23276000333", "text": " BOOK ", "id": "ATXid_1"})
        assert payload is not None
        assert payload.text == "BOOK"
        assert payload.message_id == "ATXid_1"

    def test_sms_missing_text(self) -> None:
        assert parse_sms_webhook({"from": "+23276000333"}) is None

    def test_whatsapp_simple(self) -> None:
        payload = parse_whatsapp_webhook({"from": "+23276000333", "text": "hi", "messageId": "w1"})
        assert payload is not None
        assert payload.channel == ChannelType.WHATSAPP
        assert payload.message_id == "w1"

    def test_whatsapp_meta_text(self) -> None:
        body = {
            "object": "whatsapp_business_account",
            "entry": [
                {
                    "changes": [
                        {
                            "value": {
                                "messages": [
                                    {
                                        "from": "23276000333",
                                        "id": "wamid.1",
                                        "type": "text",
                                        "text": {"body": "malaria"},
                                    },
                                ],
                            },
                        },
                    ],
                },
            ],
        }
        payload = parse_whatsapp_webhook(body)
        assert payload is not None
        assert payload.sender == "23276000333"
        assert payload.text == "malaria"
        assert payload.message_id == "wamid.1"

    def test_whatsapp_meta_button_reply(self) -> None:
        body = {
            "entry": [
                {
                    "changes": [
                        {
                            "value": {
                                "messages": [
                                    {
                                        "from": "23276000333",
                                        "type": "interactive",
                                        "interactive": {"button_reply": {"id": "b1", "title": "STATUS"}},
                                    },
                                ],
                            },
                        },
                    ],
                },
            ],
        }
        payload = parse_whatsapp_webhook(body)
        assert payload is not None
        assert payload.text == "STATUS"

    def test_whatsapp_meta_status_callback(self) -> None:
        body = {"entry": [{"changes": [{"value": {"statuses": [{"status": "delivered"}]}}]}]}
        assert parse_whatsapp_webhook(body) is None


# -----------------------------------------------------------------------
# End-to-end scenarios
# -----------------------------------------------------------------------


class TestScenarios:
    async def test_ussd_voice_booking(
        self,
        numeric_dispatcher: Dispatcher,
        handlers,
        store: InMemoryConsultationStore,
    ) -> None:
        reply = await USSDAdapter(numeric_dispatcher).handle(
            USSDPayload(session_id="s1", phone_number=CALLER, text="1*1"),
        )
        await handlers.drain()

        assert reply.startswith("END ")
        [consultation] = await store.list_consultations(CALLER)
        assert consultation.consultation_type == ConsultationType.VOICE

    async def test_sms_malaria_is_short_with_audio_line(
        self, keyword_dispatcher: Dispatcher, store: InMemoryConsultationStore,
    ) -> None:
        adapter = SMSAdapter(keyword_dispatcher, MessagingService("mock"), store)
        reply = await adapter.handle(TextMessagePayload(channel=ChannelType.SMS, sender=CALLER, text="MALARIA"))

        assert len(reply.text) <= 300
        assert reply.text.endswith("For audio: Call 1234, press 1")

    async def test_sms_free_text_gets_guidance_and_117(
        self, keyword_dispatcher: Dispatcher, store: InMemoryConsultationStore,
    ) -> None:
        adapter = SMSAdapter(keyword_dispatcher, MessagingService("mock"), store)
        reply = await adapter.handle(
            TextMessagePayload(channel=ChannelType.SMS, sender=CALLER, text="I have a fever and feel very sick"),
        )
        assert "not feeling well" in reply.text
        assert "117" in reply.text
