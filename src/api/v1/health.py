"""Health check endpoints for HealthWise API v1.

Provides liveness and readiness checks for container deployments.  The
readiness check reports each backing service separately so a degraded
content generator or SMS gateway is visible without failing the check.
"""

from __future__ import annotations

import time

import structlog
from fastapi import APIRouter, Request
from pydantic import BaseModel

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """Basic health check response."""

    status: str
    version: str
    uptime_seconds: float


class ReadinessResponse(BaseModel):
    """Readiness check response with individual service statuses."""

    status: str
    checks: dict[str, str]


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get("", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Liveness check.

    Returns 200 if the application process is running and able to
    handle requests.  Does *not* check downstream dependencies.
    """
    start_time: float = getattr(request.app.state, "start_time", time.time())
    uptime = time.time() - start_time

    return HealthResponse(
        status="healthy",
        version=request.app.version,
        uptime_seconds=round(uptime, 2),
    )


@router.get("/ready", response_model=ReadinessResponse)
async def readiness_check(request: Request) -> ReadinessResponse:
    """Readiness check.

    The instance is ready once both dispatchers and the session store are
    up.  The content generator and SMS provider are reported but never
    make the instance unready, since both have fallbacks.
    """
    checks: dict[str, str] = {}
    all_ok = True

    # -- Session store -----------------------------------------------------
    session_store = getattr(request.app.state, "session_store", None)
    if session_store is not None:
        try:
            await session_store.set("_health_check", "ok", ttl_seconds=10)
            val = await session_store.get("_health_check")
            if val == "ok":
                checks["session_store"] = f"ok ({session_store.backend_name})"
            else:
                checks["session_store"] = "degraded"
                all_ok = False
        except Exception as exc:
            checks["session_store"] = f"error: {exc!s}"
            all_ok = False
    else:
        checks["session_store"] = "not_configured"
        all_ok = False

    # -- Dispatchers -------------------------------------------------------
    for name in ("numeric_dispatcher", "keyword_dispatcher"):
        if getattr(request.app.state, name, None) is not None:
            checks[name] = "ok"
        else:
            checks[name] = "not_initialised"
            all_ok = False

    # -- Content generator -------------------------------------------------
    content = getattr(request.app.state, "content_gateway", None)
    if content is None:
        checks["content"] = "not_initialised"
    elif content.has_generator:
        checks["content"] = "ok (gemini)"
    else:
        checks["content"] = "static_fallback"

    # -- Messaging ---------------------------------------------------------
    messaging = getattr(request.app.state, "messaging", None)
    checks["messaging"] = messaging.sms_provider_name if messaging is not None else "not_initialised"

    status = "ready" if all_ok else "degraded"

    logger.info("health.readiness_check", status=status, checks=checks)

    return ReadinessResponse(status=status, checks=checks)
