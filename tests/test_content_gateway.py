"""Tests for the content gateways and the static-fallback wrapper."""

from __future__ import annotations

import asyncio
import importlib
import sys
from typing import Any

import pytest

from src.data.health_content import fallback_chat_reply, topic_fallback
from src.models.content import ChatMessage, LearningProfile
from src.services.content_gateway import (
    ContentGenerationError,
    GeminiContentGateway,
    ResilientContentGateway,
    StaticContentGateway,
)

VALID_CONTENT: dict[str, Any] = {
    "title": "Antenatal Care",
    "body": "Visit the clinic at least eight times during pregnancy.",
    "key_points": ["Start early", "Take iron tablets", "Sleep under a net"],
    "audio_script": "Go to the clinic early in your pregnancy.",
    "cultural_notes": "Bring your partner to the first visit.",
    "action_items": ["Book your first visit"],
}

VALID_PLAN: dict[str, Any] = {
    "weekly_topics": [
        {
            "week": 1,
            "topic": "Danger Signs in Late Pregnancy",
            "description": "Bleeding, headache and swelling mean go to the clinic now",
            "priority": "high",
            "estimated_time": "15 min",
        },
        {"week": 2, "topic": "Birth Preparedness", "priority": "medium"},
    ],
    "personalized_tips": ["Save money for transport to the facility"],
    "urgent_alerts": ["Call 117 for heavy bleeding"],
    "next_steps": ["Choose the facility where you will deliver"],
}


class _FakeLLM:
    def __init__(
        self,
        content: dict[str, Any] | None = None,
        delay: float = 0.0,
        plan: dict[str, Any] | None = None,
    ) -> None:
        self.content = content if content is not None else VALID_CONTENT
        self.plan = plan if plan is not None else VALID_PLAN
        self.delay = delay
        self.calls = 0
        self.plan_profiles: list[dict[str, Any]] = []

    async def generate_health_content(self, topic: str, language: str, profile=None) -> dict[str, Any]:
        self.calls += 1
        await asyncio.sleep(self.delay)
        return dict(self.content)

    async def generate_learning_plan(self, profile: dict[str, Any]) -> dict[str, Any]:
        self.plan_profiles.append(profile)
        await asyncio.sleep(self.delay)
        return dict(self.plan)

    async def translate(self, text: str, target_language: str) -> str:
        await asyncio.sleep(self.delay)
        return f"[{target_language}] {text}"

    async def chat(self, messages) -> str:
        await asyncio.sleep(self.delay)
        return "Drink clean water."


class _FailingGateway:
    def __init__(self) -> None:
        self.calls = 0

    async def generate_health_content(self, topic: str, language: str, profile=None):
        self.calls += 1
        raise ConnectionError("vertex unreachable")

    async def generate_personalized_plan(self, profile):
        self.calls += 1
        raise ConnectionError("vertex unreachable")

    async def translate(self, text: str, target_language: str) -> str:
        raise ConnectionError("vertex unreachable")

    async def chat_reply(self, messages) -> str:
        raise ConnectionError("vertex unreachable")


# -----------------------------------------------------------------------
# Static content
# -----------------------------------------------------------------------


class TestStaticContent:
    def test_known_topic(self) -> None:
        content = topic_fallback("malaria")
        assert content.title == "Malaria Prevention"
        assert content.key_points[:2] == ["Use bed nets every night", "Clear stagnant water"]
        assert content.is_fallback is True

    def test_unknown_topic_is_generic(self) -> None:
        content = topic_fallback("hygiene")
        assert content.title == "hygiene"
        assert len(content.key_points) >= 3

    @pytest.mark.parametrize(
        ("message", "expected"),
        [
            ("She is bleeding a lot", "call 117 immediately"),
            ("my baby has a fever", "If severe, call 117"),
            ("is the measles vaccine free", "BCG"),
            ("asdf", "I didn't understand"),
        ],
    )
    def test_chat_fallback(self, message: str, expected: str) -> None:
        assert expected in fallback_chat_reply(message)

    async def test_static_gateway_translate_is_identity(self) -> None:
        assert await StaticContentGateway().translate("Wash hands", "Krio") == "Wash hands"

    async def test_static_gateway_uses_last_user_message(self) -> None:
        reply = await StaticContentGateway().chat_reply(
            [
                ChatMessage(role="user", content="hello"),
                ChatMessage(role="assistant", content="Hi"),
                ChatMessage(role="user", content="tell me about nutrition"),
            ],
        )
        assert "dark green vegetables" in reply


# -----------------------------------------------------------------------
# Gemini gateway
# -----------------------------------------------------------------------


class TestGeminiGateway:
    async def test_valid_content(self) -> None:
        gateway = GeminiContentGateway(_FakeLLM())  # type: ignore[arg-type]
        content = await gateway.generate_health_content("antenatal", "English")
        assert content.title == "Antenatal Care"
        assert content.is_fallback is False

    async def test_missing_key_points_rejected(self) -> None:
        gateway = GeminiContentGateway(_FakeLLM({**VALID_CONTENT, "key_points": []}))  # type: ignore[arg-type]
        with pytest.raises(ContentGenerationError):
            await gateway.generate_health_content("antenatal", "English")

    async def test_invalid_shape_rejected(self) -> None:
        gateway = GeminiContentGateway(_FakeLLM({"body": "no title"}))  # type: ignore[arg-type]
        with pytest.raises(ContentGenerationError):
            await gateway.generate_health_content("antenatal", "English")

    async def test_learning_plan(self) -> None:
        llm = _FakeLLM()
        gateway = GeminiContentGateway(llm)  # type: ignore[arg-type]

        plan = await gateway.generate_personalized_plan(
            LearningProfile(pregnancy_status="pregnant", district="Kenema", children=2),
        )

        assert plan.is_fallback is False
        assert [t.week for t in plan.weekly_topics] == [1, 2]
        assert plan.weekly_topics[1].description == ""
        assert llm.plan_profiles == [
            {"pregnancy_status": "pregnant", "district": "Kenema", "children": 2},
        ], "only the fields the learner filled in are sent"

    @pytest.mark.parametrize(
        "plan",
        [
            {"weekly_topics": []},
            {"weekly_topics": [{"week": 1, "topic": "Rest", "priority": "urgent"}]},
            {"personalized_tips": ["no topics at all"]},
        ],
    )
    async def test_unusable_learning_plan_rejected(self, plan: dict[str, Any]) -> None:
        gateway = GeminiContentGateway(_FakeLLM(plan=plan))  # type: ignore[arg-type]
        with pytest.raises(ContentGenerationError):
            await gateway.generate_personalized_plan(LearningProfile())


# -----------------------------------------------------------------------
# Resilient wrapper
# -----------------------------------------------------------------------


class TestResilientGateway:
    async def test_primary_result_used(self) -> None:
        gateway = ResilientContentGateway(
            GeminiContentGateway(_FakeLLM()),  # type: ignore[arg-type]
            StaticContentGateway(),
        )
        content = await gateway.generate_health_content("antenatal", "English")
        assert content.title == "Antenatal Care"
        assert gateway.has_generator is True

    async def test_failure_falls_back_after_single_attempt(self) -> None:
        primary = _FailingGateway()
        gateway = ResilientContentGateway(primary, StaticContentGateway())

        content = await gateway.generate_health_content("malaria", "English")

        assert primary.calls == 1, "the generator must not be retried"
        assert content.is_fallback is True
        assert content.title == "Malaria Prevention"

    async def test_timeout_falls_back(self) -> None:
        gateway = ResilientContentGateway(
            GeminiContentGateway(_FakeLLM(delay=1.0)),  # type: ignore[arg-type]
            StaticContentGateway(),
            timeout=0.05,
        )
        content = await gateway.generate_health_content("child-health", "Krio")
        assert content.is_fallback is True
        assert content.title == "Child Health"

    async def test_no_generator_configured(self) -> None:
        gateway = ResilientContentGateway(None, StaticContentGateway())
        assert gateway.has_generator is False
        assert await gateway.translate("Rest well", "Temne") == "Rest well"

    async def test_translate_and_chat_fall_back(self) -> None:
        gateway = ResilientContentGateway(_FailingGateway(), StaticContentGateway())
        assert await gateway.translate("Rest well", "Mende") == "Rest well"
        reply = await gateway.chat_reply([ChatMessage(content="emergency!")])
        assert "117" in reply

    async def test_learning_plan_falls_back_to_starter_plan(self) -> None:
        primary = _FailingGateway()
        gateway = ResilientContentGateway(primary, StaticContentGateway())

        plan = await gateway.generate_personalized_plan(LearningProfile(district="Bo"))

        assert primary.calls == 1
        assert plan.is_fallback is True
        assert [t.topic for t in plan.weekly_topics][:3] == [
            "Prenatal Care Basics",
            "Nutrition for Mothers",
            "Warning Signs During Pregnancy",
        ]
        assert any("117" in alert for alert in plan.urgent_alerts)

    async def test_learning_plan_timeout_falls_back(self) -> None:
        gateway = ResilientContentGateway(
            GeminiContentGateway(_FakeLLM(delay=1.0)),  # type: ignore[arg-type]
            StaticContentGateway(),
            timeout=0.05,
        )
        plan = await gateway.generate_personalized_plan(LearningProfile())
        assert plan.is_fallback is True
        assert len(plan.weekly_topics) == 6

    async def test_starter_plan_is_not_shared(self) -> None:
        first = await StaticContentGateway().generate_personalized_plan(LearningProfile())
        first.personalized_tips.append("edited by a caller")
        second = await StaticContentGateway().generate_personalized_plan(LearningProfile())
        assert "edited by a caller" not in second.personalized_tips


# -----------------------------------------------------------------------
# Import isolation
# -----------------------------------------------------------------------


class TestWithoutVertexSDK:
    async def test_static_gateway_imports_without_vertexai(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for name in [m for m in sys.modules if m == "src.services" or m.startswith("src.services.")]:
            monkeypatch.delitem(sys.modules, name)
        monkeypatch.setitem(sys.modules, "vertexai", None)
        monkeypatch.setitem(sys.modules, "vertexai.generative_models", None)

        services = importlib.import_module("src.services")
        gateway_module = importlib.import_module("src.services.content_gateway")

        assert services.LLMService is None
        gateway = gateway_module.ResilientContentGateway(None, gateway_module.StaticContentGateway())
        content = await gateway.generate_health_content("malaria", "English")
        assert content.title == "Malaria Prevention"
