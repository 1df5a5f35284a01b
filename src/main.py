"""HealthWise FastAPI application entry point.

Creates the FastAPI app, configures middleware, includes routers, and
manages the lifecycle of the backend services (session store, content
gateway, consultation store, messaging, action handlers, dispatchers and
channel adapters).
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from config.settings import settings
from src.api.router import api_router
from src.middleware.privacy import PrivacyMiddleware

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Structured logging configuration
# ---------------------------------------------------------------------------


def _configure_logging() -> None:
    """Set up structlog with JSON or console rendering based on settings."""
    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            structlog.stdlib.NAME_TO_LEVEL[settings.log_level.lower()],
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Application lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage startup and shutdown of all HealthWise services.

    On startup:
      1. Initialise the voice session store (Redis or in-memory)
      2. Initialise the content gateway (Gemini with static fallback)
      3. Initialise the consultation store and seed demo data
      4. Initialise the SMS / WhatsApp messaging service
      5. Build action handlers, menu trees and dispatchers
      6. Build channel adapters
      7. Store everything on ``app.state``

    On shutdown:
      - Wait for background provider assignments.
      - Close the session store.
    """
    _configure_logging()
    logger.info(
        "app.startup",
        env=settings.env,
        gcp_project=settings.gcp_project_id,
        region=settings.gcp_region,
    )

    app.state.start_time = time.time()

    # -- 1. Voice session store --------------------------------------------
    from src.services.cache import SessionStore

    session_store = SessionStore(
        redis_url=settings.redis_url if settings.redis_url else None,
        namespace="healthwise:voice:",
        default_ttl=settings.voice_session_ttl,
    )
    app.state.session_store = session_store
    logger.info("app.session_store_initialised")

    # -- 2. Content gateway -------------------------------------------------
    from src.services.content_gateway import (
        GeminiContentGateway,
        ResilientContentGateway,
        StaticContentGateway,
    )

    primary: GeminiContentGateway | None = None
    if settings.gcp_project_id:
        try:
            from src.services.llm import LLMService

            llm = LLMService(
                project_id=settings.gcp_project_id,
                region=settings.vertex_ai_location,
                model_name=settings.vertex_ai_model,
            )
            primary = GeminiContentGateway(llm)
            logger.info("app.llm_initialised", model=settings.vertex_ai_model)
        except Exception:
            logger.warning("app.llm_init_failed", exc_info=True)
    else:
        logger.info("app.llm_not_configured", note="health content will use static fallback")

    content_gateway = ResilientContentGateway(
        primary,
        StaticContentGateway(),
        timeout=settings.content_timeout_seconds,
    )
    app.state.content_gateway = content_gateway

    # -- 3. Consultation store ---------------------------------------------
    from src.services.consultations import InMemoryConsultationStore

    consultations = InMemoryConsultationStore()
    if settings.seed_demo_data:
        try:
            from src.data.seed import seed_demo_data

            seed_demo_data(consultations)
        except Exception:
            logger.warning("app.seed_failed", exc_info=True)
    app.state.consultations = consultations
    logger.info("app.consultation_store_initialised")

    # -- 4. Messaging ------------------------------------------------------
    from src.services.messaging import MessagingService

    messaging = MessagingService(
        settings.sms_provider,
        africastalking_username=settings.africastalking_username,
        africastalking_api_key=settings.africastalking_api_key,
        sms_sender_id=settings.sms_sender_id,
        whatsapp_phone_id=settings.whatsapp_phone_number_id,
        whatsapp_token=settings.whatsapp_access_token,
    )
    app.state.messaging = messaging

    # -- 5. Actions, menus and dispatchers ----------------------------------
    from src.data.menus import ARGUMENT_KEYWORDS, build_keyword_menu, build_numeric_menu
    from src.services.actions import ActionHandlers, ServiceNumbers
    from src.services.dispatcher import Dispatcher

    handlers = ActionHandlers(
        consultations,
        content_gateway,
        ServiceNumbers.from_settings(settings),
    )
    registry = handlers.registry()

    numeric_dispatcher = Dispatcher(
        build_numeric_menu(registry.keys(), settings.emergency_number),
        registry,
    )
    keyword_dispatcher = Dispatcher(
        build_keyword_menu(registry.keys(), settings.emergency_number),
        registry,
        argument_keywords=ARGUMENT_KEYWORDS,
    )
    app.state.action_handlers = handlers
    app.state.numeric_dispatcher = numeric_dispatcher
    app.state.keyword_dispatcher = keyword_dispatcher
    logger.info("app.dispatchers_initialised", actions=len(registry))

    # -- 6. Channel adapters ------------------------------------------------
    from src.services.channel_adapters import (
        SMSAdapter,
        USSDAdapter,
        VoiceAdapter,
        WhatsAppAdapter,
    )

    app.state.ussd_adapter = USSDAdapter(numeric_dispatcher, settings.emergency_number)
    app.state.voice_adapter = VoiceAdapter(
        numeric_dispatcher,
        session_store,
        consultations,
        emergency_number=settings.emergency_number,
        session_ttl=settings.voice_session_ttl,
    )
    app.state.sms_adapter = SMSAdapter(
        keyword_dispatcher, messaging, consultations, settings.emergency_number,
    )
    app.state.whatsapp_adapter = WhatsAppAdapter(
        keyword_dispatcher, messaging, consultations, settings.emergency_number,
    )

    logger.info("app.startup_complete")

    yield

    # -- Shutdown -----------------------------------------------------------
    logger.info("app.shutdown_start")

    await handlers.drain()
    await session_store.close()

    logger.info("app.shutdown_complete")


# ---------------------------------------------------------------------------
# FastAPI application
# ---------------------------------------------------------------------------

app = FastAPI(
    title="HealthWise API",
    description=(
        "HealthWise Sierra Leone -- maternal and community health triage over "
        "USSD, voice, SMS and WhatsApp."
    ),
    version="0.1.0",
    lifespan=lifespan,
    default_response_class=ORJSONResponse,
    docs_url="/docs" if not settings.is_production else None,
    redoc_url="/redoc" if not settings.is_production else None,
)

# -- CORS middleware --------------------------------------------------------
# allow_credentials=True must not be combined with allow_origins=["*"].
if settings.is_production:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "Authorization"],
    )
else:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://localhost:8000", "http://127.0.0.1:8000"],
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS", "HEAD"],
        allow_headers=["Content-Type", "Accept", "Authorization"],
    )

# -- Custom middleware ------------------------------------------------------
app.add_middleware(PrivacyMiddleware)

# -- Prometheus metrics -----------------------------------------------------
try:
    from prometheus_fastapi_instrumentator import Instrumentator

    Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        excluded_handlers=["/metrics", "/api/v1/health"],
    ).instrument(app).expose(
        app,
        endpoint="/metrics",
        include_in_schema=not settings.is_production,
    )
    logger.info("app.prometheus_metrics_enabled")
except ImportError:
    logger.warning("app.prometheus_not_available")

# -- Include routers -------------------------------------------------------
app.include_router(api_router)


@app.get("/api", response_class=ORJSONResponse)
async def api_info() -> dict:
    """API information endpoint."""
    return {
        "name": "HealthWise API",
        "description": "Maternal and community health triage for Sierra Leone",
        "version": app.version,
        "docs": "/docs",
        "health": "/api/v1/health",
        "emergency_number": settings.emergency_number,
        "channels": ["ussd", "voice", "sms", "whatsapp"],
        "endpoints": {
            "ussd": "/api/v1/ussd",
            "voice": "/api/v1/voice",
            "sms": "/api/v1/sms",
            "whatsapp": "/api/v1/whatsapp",
            "consultations": "/api/v1/consultations",
            "content": "/api/v1/content",
            "health": "/api/v1/health",
        },
    }
