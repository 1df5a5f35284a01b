"""Content gateway: generation, translation and assistant replies.

Action handlers only ever see a :class:`ContentGateway`.  The application
wires a :class:`ResilientContentGateway` that tries the Gemini-backed
gateway once, within a time budget, and otherwise answers from
:class:`StaticContentGateway`.  No error from the generator reaches the
caller.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import TYPE_CHECKING, Protocol, runtime_checkable

import structlog
from pydantic import ValidationError

from src.data.health_content import fallback_chat_reply, fallback_learning_plan, topic_fallback
from src.models.content import ChatMessage, HealthContentResult, LearningPlan, LearningProfile

if TYPE_CHECKING:
    from src.services.llm import LLMService

logger = structlog.get_logger(__name__)


class ContentGenerationError(ValueError):
    """Generated content is unusable (malformed, empty or off-schema)."""


@runtime_checkable
class ContentGateway(Protocol):
    async def generate_health_content(
        self,
        topic: str,
        language: str,
        profile: dict[str, str] | None = None,
    ) -> HealthContentResult: ...

    async def generate_personalized_plan(self, profile: LearningProfile) -> LearningPlan: ...

    async def translate(self, text: str, target_language: str) -> str: ...

    async def chat_reply(self, messages: Sequence[ChatMessage]) -> str: ...


# ---------------------------------------------------------------------------
# Static fallback
# ---------------------------------------------------------------------------


class StaticContentGateway:
    """Deterministic answers built from :mod:`src.data.health_content`."""

    __slots__ = ()

    async def generate_health_content(
        self,
        topic: str,
        language: str,
        profile: dict[str, str] | None = None,
    ) -> HealthContentResult:
        return topic_fallback(topic)

    async def generate_personalized_plan(self, profile: LearningProfile) -> LearningPlan:
        return fallback_learning_plan()

    async def translate(self, text: str, target_language: str) -> str:
        return text

    async def chat_reply(self, messages: Sequence[ChatMessage]) -> str:
        last = next((m.content for m in reversed(messages) if m.role == "user"), "")
        return fallback_chat_reply(last)


# ---------------------------------------------------------------------------
# Gemini
# ---------------------------------------------------------------------------


class GeminiContentGateway:
    """Content gateway backed by :class:`~src.services.llm.LLMService`."""

    __slots__ = ("_llm",)

    def __init__(self, llm: LLMService) -> None:
        self._llm = llm

    async def generate_health_content(
        self,
        topic: str,
        language: str,
        profile: dict[str, str] | None = None,
    ) -> HealthContentResult:
        raw = await self._llm.generate_health_content(topic, language, profile)
        try:
            content = HealthContentResult.model_validate({**raw, "is_fallback": False})
        except ValidationError as exc:
            raise ContentGenerationError(f"Health content for {topic!r} failed validation") from exc
        if not content.key_points:
            raise ContentGenerationError(f"Health content for {topic!r} has no key points")
        return content

    async def generate_personalized_plan(self, profile: LearningProfile) -> LearningPlan:
        raw = await self._llm.generate_learning_plan(profile.model_dump(exclude_defaults=True))
        try:
            return LearningPlan.model_validate({**raw, "is_fallback": False})
        except ValidationError as exc:
            raise ContentGenerationError("Learning plan failed validation") from exc

    async def translate(self, text: str, target_language: str) -> str:
        return await self._llm.translate(text, target_language)

    async def chat_reply(self, messages: Sequence[ChatMessage]) -> str:
        return await self._llm.chat(messages)


# ---------------------------------------------------------------------------
# Timeout + fallback wrapper
# ---------------------------------------------------------------------------


class ResilientContentGateway:
    """Single attempt on *primary* bounded by *timeout*, then *fallback*.

    Parameters
    ----------
    primary:
        The generator to try first, or *None* when none is configured.
    fallback:
        Gateway that must not fail; normally :class:`StaticContentGateway`.
    timeout:
        Seconds to wait for *primary* before giving up.
    """

    __slots__ = ("_fallback", "_primary", "_timeout")

    def __init__(
        self,
        primary: ContentGateway | None,
        fallback: ContentGateway,
        timeout: float = 4.0,
    ) -> None:
        self._primary = primary
        self._fallback = fallback
        self._timeout = timeout

    @property
    def has_generator(self) -> bool:
        return self._primary is not None

    async def generate_health_content(
        self,
        topic: str,
        language: str,
        profile: dict[str, str] | None = None,
    ) -> HealthContentResult:
        if self._primary is not None:
            try:
                return await asyncio.wait_for(
                    self._primary.generate_health_content(topic, language, profile),
                    timeout=self._timeout,
                )
            except Exception as exc:
                self._log_fallback("generate_health_content", exc, topic=topic)
        return await self._fallback.generate_health_content(topic, language, profile)

    async def generate_personalized_plan(self, profile: LearningProfile) -> LearningPlan:
        if self._primary is not None:
            try:
                return await asyncio.wait_for(
                    self._primary.generate_personalized_plan(profile),
                    timeout=self._timeout,
                )
            except Exception as exc:
                self._log_fallback("generate_personalized_plan", exc)
        return await self._fallback.generate_personalized_plan(profile)

    async def translate(self, text: str, target_language: str) -> str:
        if self._primary is not None:
            try:
                return await asyncio.wait_for(
                    self._primary.translate(text, target_language),
                    timeout=self._timeout,
                )
            except Exception as exc:
                self._log_fallback("translate", exc, target_language=target_language)
        return await self._fallback.translate(text, target_language)

    async def chat_reply(self, messages: Sequence[ChatMessage]) -> str:
        if self._primary is not None:
            try:
                return await asyncio.wait_for(
                    self._primary.chat_reply(messages),
                    timeout=self._timeout,
                )
            except Exception as exc:
                self._log_fallback("chat_reply", exc)
        return await self._fallback.chat_reply(messages)

    @staticmethod
    def _log_fallback(operation: str, exc: Exception, **context: str) -> None:
        logger.warning(
            "content_gateway.fallback",
            operation=operation,
            reason="timeout" if isinstance(exc, TimeoutError) else type(exc).__name__,
            error=str(exc),
            **context,
        )
