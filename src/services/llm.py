"""Vertex AI Gemini service for HealthWise Sierra Leone.

Wraps the ``vertexai`` SDK to produce structured health-education content,
translations and short assistant replies.  Calls are made exactly once;
callers decide what to do on failure (see
:class:`src.services.content_gateway.ResilientContentGateway`).
"""

from __future__ import annotations

import json
import time
from collections.abc import Sequence
from typing import Any, Final

import structlog
import vertexai
from vertexai.generative_models import (
    Content,
    GenerationConfig,
    GenerativeModel,
    Part,
)

from src.models.content import ChatMessage
from src.services.content_gateway import ContentGenerationError

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

HEALTHWISE_SYSTEM_PROMPT: Final[str] = """\
You are a helpful maternal health assistant for HealthWise Sierra Leone.

ROLE
- Provide accurate, culturally appropriate health information.
- Focus on maternal and child health topics relevant to Sierra Leone.
- Give practical advice that works in resource-limited settings.
- Be supportive, encouraging and empathetic.
- Use simple, clear language accessible to all education levels.
- Respect local customs and cultural practices.

SAFETY
- Recognise emergencies. Always tell the user to call 117 or go to the \
nearest health facility for severe bleeding, convulsions, severe headache, \
blurred vision, severe abdominal pain, difficulty breathing or high fever.
- Always advise consulting a healthcare professional for medical decisions.
- Never ask for passwords or payment details.

FORMAT
- Many users read on basic phones or listen by voice. Keep sentences short.
- Do NOT use markdown unless asked to.\
"""

_HEALTH_CONTENT_PROMPT: Final[str] = """\
Generate maternal health education content for Sierra Leone.

Topic: {topic}
Language: {language}
User Profile: {profile}

Requirements:
- Culturally appropriate for Sierra Leone
- Accessible language level
- Include practical action items
- Consider the local healthcare context
- Audio-friendly script for voice narration
- Address common concerns and myths

Return ONLY a JSON object with these keys:
- "title": string
- "body": string
- "key_points": list of short strings (at least 3)
- "audio_script": string written to be read aloud
- "cultural_notes": string
- "action_items": list of strings

JSON response:\
"""

_LEARNING_PLAN_PROMPT: Final[str] = """\
Create a personalized 12-week maternal health learning plan for a woman in
Sierra Leone.

User Profile: {profile}

Consider her pregnancy status, district, number of children, health concerns
and learning goals. Prioritise danger signs and topics that prevent
maternal and newborn deaths.

Return ONLY a JSON object with these keys:
- "weekly_topics": list of objects with "week" (integer), "topic",
  "description", "priority" ("high", "medium" or "low") and "estimated_time"
- "personalized_tips": list of strings
- "urgent_alerts": list of strings
- "next_steps": list of strings

JSON response:\
"""

_TRANSLATE_PROMPT: Final[str] = """\
Translate the following health education content to {target_language}.
Context: this is maternal health education in Sierra Leone.
Keep it culturally sensitive and medically accurate.

Text to translate: "{text}"

Provide only the translation, no additional text.\
"""

# Approximate cost per million tokens for Gemini 2.0 Flash (USD).
_COST_PER_M_INPUT_TOKENS: Final[float] = 0.10
_COST_PER_M_OUTPUT_TOKENS: Final[float] = 0.40


class LLMResponseError(ContentGenerationError):
    """Raised when the model returns something that cannot be used."""


# ---------------------------------------------------------------------------
# LLMService
# ---------------------------------------------------------------------------


class LLMService:
    """Async interface to Vertex AI Gemini.

    * **generate_health_content** -- structured JSON education content
    * **generate_learning_plan** -- structured JSON learning plan
    * **translate** -- plain-text translation
    * **chat** -- short assistant reply to a conversation
    """

    def __init__(
        self,
        project_id: str,
        region: str = "europe-west1",
        model_name: str = "gemini-2.0-flash",
    ) -> None:
        self._project_id = project_id
        self._region = region
        self._model_name = model_name
        self._model: GenerativeModel | None = None
        self._initialized = False

    # -- lifecycle ----------------------------------------------------------

    def _initialize(self) -> None:
        """Lazily initialise the Vertex AI SDK and model handle."""
        if self._initialized:
            return
        vertexai.init(project=self._project_id, location=self._region)
        self._model = GenerativeModel(
            model_name=self._model_name,
            system_instruction=[Part.from_text(HEALTHWISE_SYSTEM_PROMPT)],
        )
        self._initialized = True
        logger.info(
            "llm.initialized",
            project=self._project_id,
            region=self._region,
            model=self._model_name,
        )

    def _get_model(self) -> GenerativeModel:
        self._initialize()
        assert self._model is not None  # noqa: S101
        return self._model

    @staticmethod
    def _estimate_cost(response: Any) -> tuple[int, int, float]:
        usage = getattr(response, "usage_metadata", None)
        input_tokens = usage.prompt_token_count if usage else 0
        output_tokens = usage.candidates_token_count if usage else 0
        cost = round(
            (input_tokens / 1_000_000) * _COST_PER_M_INPUT_TOKENS
            + (output_tokens / 1_000_000) * _COST_PER_M_OUTPUT_TOKENS,
            8,
        )
        return input_tokens, output_tokens, cost

    async def _generate(
        self,
        contents: list[Content],
        generation_config: GenerationConfig,
        event: str,
    ) -> str:
        start = time.perf_counter()
        response = await self._get_model().generate_content_async(
            contents=contents,
            generation_config=generation_config,
        )
        elapsed_ms = (time.perf_counter() - start) * 1000
        text = (response.text or "").strip()
        input_tokens, output_tokens, cost = self._estimate_cost(response)
        logger.info(
            event,
            answer_length=len(text),
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cost_usd=cost,
            processing_time_ms=round(elapsed_ms, 2),
        )
        if not text:
            raise LLMResponseError("Model returned an empty response")
        return text

    # -- public API ---------------------------------------------------------

    async def generate_health_content(
        self,
        topic: str,
        language: str,
        profile: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Generate structured education content for *topic*.

        Returns
        -------
        dict
            The parsed JSON object; validation against
            :class:`~src.models.content.HealthContentResult` is left to the
            caller.

        Raises
        ------
        LLMResponseError
            If the model output is empty or not a JSON object.
        """
        prompt = _HEALTH_CONTENT_PROMPT.format(
            topic=topic,
            language=language,
            profile=json.dumps(profile or {}, ensure_ascii=False),
        )
        raw = await self._generate(
            [Content(role="user", parts=[Part.from_text(prompt)])],
            GenerationConfig(
                temperature=0.4,
                top_p=0.9,
                max_output_tokens=2048,
                response_mime_type="application/json",
            ),
            "llm.health_content",
        )
        return _json_object(raw, "Health content")

    async def generate_learning_plan(self, profile: dict[str, Any]) -> dict[str, Any]:
        """Generate a week-by-week learning plan for *profile* as a JSON object."""
        prompt = _LEARNING_PLAN_PROMPT.format(profile=json.dumps(profile, ensure_ascii=False))
        raw = await self._generate(
            [Content(role="user", parts=[Part.from_text(prompt)])],
            GenerationConfig(
                temperature=0.5,
                max_output_tokens=3072,
                response_mime_type="application/json",
            ),
            "llm.learning_plan",
        )
        return _json_object(raw, "Learning plan")

    async def translate(self, text: str, target_language: str) -> str:
        prompt = _TRANSLATE_PROMPT.format(text=text, target_language=target_language)
        return await self._generate(
            [Content(role="user", parts=[Part.from_text(prompt)])],
            GenerationConfig(temperature=0.3, max_output_tokens=1024),
            "llm.translate",
        )

    async def chat(self, messages: Sequence[ChatMessage], max_output_tokens: int = 500) -> str:
        """Reply to a conversation.  ``assistant`` turns map to Gemini's ``model`` role."""
        contents = [
            Content(
                role="model" if message.role in ("assistant", "model") else "user",
                parts=[Part.from_text(message.content)],
            )
            for message in messages
            if message.content
        ]
        if not contents:
            raise LLMResponseError("No message content to reply to")
        return await self._generate(
            contents,
            GenerationConfig(temperature=0.7, top_p=0.95, max_output_tokens=max_output_tokens),
            "llm.chat",
        )


def _json_object(raw: str, what: str) -> dict[str, Any]:
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise LLMResponseError(f"{what} response is not valid JSON") from exc
    if not isinstance(parsed, dict):
        raise LLMResponseError(f"{what} response is not a JSON object")
    return parsed
