"""Health content, translation and assistant endpoints.

Thin passthroughs to the content gateway.  The gateway already degrades
to static content, so these endpoints answer 200 even when Gemini is not
configured or failing.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from src.models.content import (
    ChatMessage,
    HealthContentRequest,
    HealthContentResult,
    LearningPlan,
    LearningProfile,
)
from src.services.content_gateway import ContentGateway, StaticContentGateway

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(prefix="/content", tags=["content"])

_STATIC = StaticContentGateway()


class TranslateRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=5000)
    target_language: str = Field(default="Krio", max_length=50)


class TranslateResponse(BaseModel):
    translated_text: str
    target_language: str


class AssistantRequest(BaseModel):
    messages: list[ChatMessage] = Field(..., min_length=1, max_length=20)


class AssistantResponse(BaseModel):
    reply: str


def _gateway(request: Request) -> ContentGateway:
    gateway = getattr(request.app.state, "content_gateway", None)
    if gateway is None:
        logger.warning("content.gateway_not_initialised")
        return _STATIC
    return gateway


@router.post("/health", response_model=HealthContentResult)
async def health_content(body: HealthContentRequest, request: Request) -> HealthContentResult:
    return await _gateway(request).generate_health_content(body.topic, body.language, body.profile)


@router.post("/plan", response_model=LearningPlan)
async def learning_plan(body: LearningProfile, request: Request) -> LearningPlan:
    """Week-by-week learning plan; the six-week starter plan when generation fails."""
    return await _gateway(request).generate_personalized_plan(body)


@router.post("/translate", response_model=TranslateResponse)
async def translate(body: TranslateRequest, request: Request) -> TranslateResponse:
    translated = await _gateway(request).translate(body.text, body.target_language)
    return TranslateResponse(translated_text=translated, target_language=body.target_language)


@router.post("/assistant", response_model=AssistantResponse)
async def assistant(body: AssistantRequest, request: Request) -> AssistantResponse:
    """Conversational health assistant; emergencies are always pointed to the hotline."""
    reply = await _gateway(request).chat_reply(body.messages)
    return AssistantResponse(reply=reply)
