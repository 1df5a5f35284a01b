from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class HealthContentRequest(BaseModel):
    topic: str = Field(..., min_length=1, max_length=100)
    language: str = "English"
    profile: dict[str, str] = Field(default_factory=dict)


class HealthContentResult(BaseModel):
    """Structured health-education content.

    Returned both by the LLM-backed generator and by the static fallback,
    so consumers never need to know which one produced it.
    """

    title: str
    body: str
    key_points: list[str] = Field(default_factory=list)
    audio_script: str = ""
    cultural_notes: str = ""
    action_items: list[str] = Field(default_factory=list)
    is_fallback: bool = False


class ChatMessage(BaseModel):
    role: str = "user"
    content: str


class LearningProfile(BaseModel):
    """What the learner tells us about herself; every field is optional."""

    age: int | None = Field(default=None, ge=10, le=60)
    pregnancy_status: str = ""
    location: str = ""
    district: str = ""
    language: str = "English"
    children: int | None = Field(default=None, ge=0, le=20)
    health_concerns: list[str] = Field(default_factory=list, max_length=10)
    learning_goals: list[str] = Field(default_factory=list, max_length=10)


class WeeklyTopic(BaseModel):
    week: int = Field(..., ge=1, le=52)
    topic: str
    description: str = ""
    priority: Literal["high", "medium", "low"] = "medium"
    estimated_time: str = ""


class LearningPlan(BaseModel):
    """A week-by-week maternal-health learning plan."""

    weekly_topics: list[WeeklyTopic] = Field(..., min_length=1)
    personalized_tips: list[str] = Field(default_factory=list)
    urgent_alerts: list[str] = Field(default_factory=list)
    next_steps: list[str] = Field(default_factory=list)
    is_fallback: bool = False
