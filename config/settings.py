"""Application settings loaded from environment variables.

Uses pydantic-settings for validation and type coercion. App-specific
settings use the ``HEALTHWISE_`` prefix; GCP / infrastructure settings use
their canonical environment variable names via ``validation_alias``.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(StrEnum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """Central configuration for the HealthWise Sierra Leone service.

    Environment variables are loaded from a ``.env`` file when present.
    App-specific keys are prefixed with ``HEALTHWISE_``; GCP / infra keys
    use their standard names (configured via ``validation_alias``).
    """

    model_config = SettingsConfigDict(
        env_prefix="HEALTHWISE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # ── App ────────────────────────────────────────────────────────────
    env: Literal["development", "production"] = "development"
    cors_origins: str = "http://localhost:3000"

    # ── GCP ────────────────────────────────────────────────────────────
    gcp_project_id: str = Field(default="", validation_alias="GCP_PROJECT_ID")
    gcp_region: str = Field(default="europe-west1", validation_alias="GCP_REGION")

    # ── Vertex AI / Gemini ─────────────────────────────────────────────
    vertex_ai_model: str = Field(default="gemini-2.0-flash", validation_alias="VERTEX_AI_MODEL")
    vertex_ai_location: str = Field(default="europe-west1", validation_alias="VERTEX_AI_LOCATION")

    # ── Redis (voice DTMF sessions) ────────────────────────────────────
    # Empty string keeps voice sessions in process memory only.
    redis_url: str = Field(default="", validation_alias="REDIS_URL")

    # ── API ────────────────────────────────────────────────────────────
    api_host: str = Field(default="0.0.0.0", validation_alias="API_HOST")
    api_port: int = Field(default=8000, validation_alias="API_PORT")
    api_workers: int = Field(default=4, validation_alias="API_WORKERS")

    # ── Logging ────────────────────────────────────────────────────────
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_format: str = Field(default="json", validation_alias="LOG_FORMAT")

    # ── Service numbers ────────────────────────────────────────────────
    emergency_number: str = "117"
    emergency_dial_number: str = "+232117"
    operator_dial_number: str = "+2321234567"
    maternal_hotline_number: str = "1234"
    audio_line_number: str = "1234"
    audio_base_url: str = "https://audio.healthwise.sl"

    # ── Content generation ─────────────────────────────────────────────
    content_timeout_seconds: float = Field(default=4.0, gt=0)
    default_language: str = "English"

    # ── Voice sessions ─────────────────────────────────────────────────
    voice_session_ttl: int = 900  # 15 minutes, longer than any IVR call

    # ── Messaging gateways ─────────────────────────────────────────────
    sms_provider: Literal["africastalking", "mock"] = "mock"
    africastalking_username: str = Field(default="sandbox", validation_alias="AT_USERNAME")
    africastalking_api_key: str = Field(default="", validation_alias="AT_API_KEY")
    sms_sender_id: str = "HEALTHWISE"
    whatsapp_phone_number_id: str = Field(default="", validation_alias="WHATSAPP_PHONE_NUMBER_ID")
    whatsapp_access_token: str = Field(default="", validation_alias="WHATSAPP_ACCESS_TOKEN")

    # ── Development data ───────────────────────────────────────────────
    seed_demo_data: bool = True

    # ── Derived Properties ─────────────────────────────────────────────

    @property
    def is_production(self) -> bool:
        return self.env == Environment.PRODUCTION

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


# Module-level singleton; import ``settings`` everywhere.
settings = Settings()
