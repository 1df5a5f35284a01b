"""Main API router combining all v1 route modules.

Aggregates all routers under the ``/api/v1`` prefix so the
FastAPI application only needs to include a single router.

Includes:
    * Channel webhooks: USSD, voice, SMS, WhatsApp
    * Consultations: booking and lookup for web and partner clients
    * Content: health education, translation, assistant
    * Health: liveness and readiness checks
"""

from __future__ import annotations

from fastapi import APIRouter

from src.api.v1 import consultations, content, health, sms, ussd, voice, whatsapp

api_router = APIRouter(prefix="/api/v1")

# -- Channel webhooks ------------------------------------------------------
api_router.include_router(ussd.router)
api_router.include_router(voice.router)
api_router.include_router(sms.router)
api_router.include_router(whatsapp.router)

# -- Service endpoints -----------------------------------------------------
api_router.include_router(consultations.router)
api_router.include_router(content.router)
api_router.include_router(health.router)
