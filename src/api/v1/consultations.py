"""Consultation booking and lookup endpoints for web and partner clients.

Menu-driven channels book through the action handlers directly; these
endpoints expose the same booking rules over JSON:

* emergencies are assigned from the emergency pool before responding;
* routine and urgent requests are assigned in the background.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel, Field, model_validator

from src.middleware.privacy import mask_phone, normalize_phone
from src.models.consultation import Consultation, ConsultationRequest
from src.models.enums import ChannelType, ConsultationType, Urgency

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(prefix="/consultations", tags=["consultations"])


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class CreateConsultationRequest(BaseModel):
    """Either ``user_id`` or ``phone_number`` identifies the patient."""

    user_id: str | None = Field(default=None, max_length=64)
    phone_number: str | None = Field(default=None, max_length=20)
    channel: ChannelType = ChannelType.WEB
    consultation_type: ConsultationType = ConsultationType.WEB
    urgency: Urgency = Urgency.ROUTINE
    symptoms: str = Field(default="", max_length=2000)

    @model_validator(mode="after")
    def _require_patient(self) -> CreateConsultationRequest:
        if not self.user_id and not self.phone_number:
            raise ValueError("Either user_id or phone_number is required")
        return self


class ConsultationResponse(BaseModel):
    consultation: Consultation
    provider_name: str | None = None
    message: str


class ConsultationListResponse(BaseModel):
    consultations: list[Consultation]
    total: int


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _services(request: Request) -> tuple:
    store = getattr(request.app.state, "consultations", None)
    handlers = getattr(request.app.state, "action_handlers", None)
    if store is None or handlers is None:
        raise HTTPException(status_code=503, detail="Consultation service is not available")
    return store, handlers


async def _patient_ref(store, user_id: str | None, phone_number: str | None) -> str:
    if user_id:
        return user_id
    try:
        phone = normalize_phone(phone_number or "")
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    user = await store.get_user_by_phone(phone)
    return user.id if user is not None else phone


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("", response_model=ConsultationResponse, status_code=201)
async def create_consultation(
    body: CreateConsultationRequest,
    request: Request,
) -> ConsultationResponse:
    store, handlers = _services(request)
    patient_ref = await _patient_ref(store, body.user_id, body.phone_number)

    consultation, provider_name = await handlers.submit(
        ConsultationRequest(
            patient_ref=patient_ref,
            channel=body.channel,
            consultation_type=body.consultation_type,
            urgency=body.urgency,
            symptoms=body.symptoms,
        ),
    )
    consultation = await store.get_consultation(consultation.id) or consultation

    if body.urgency == Urgency.EMERGENCY:
        emergency = handlers.numbers.emergency_number
        message = (
            f"Emergency raised. {provider_name} has been alerted. Call {emergency} now."
            if provider_name
            else f"Emergency raised. No provider is free yet; call {emergency} now."
        )
    else:
        message = "Consultation booked. A healthcare provider will contact you shortly."

    logger.info(
        "consultations.api_created",
        consultation_id=consultation.id,
        urgency=body.urgency,
        caller=mask_phone(body.phone_number) if body.phone_number else None,
    )
    return ConsultationResponse(consultation=consultation, provider_name=provider_name, message=message)


@router.get("", response_model=ConsultationListResponse)
async def list_consultations(
    request: Request,
    user_id: str | None = Query(default=None, max_length=64),
    phone_number: str | None = Query(default=None, max_length=20),
    limit: int = Query(default=10, ge=1, le=50),
) -> ConsultationListResponse:
    """Most recent consultations first."""
    if not user_id and not phone_number:
        raise HTTPException(status_code=400, detail="Either user_id or phone_number is required")

    store, _ = _services(request)
    patient_ref = await _patient_ref(store, user_id, phone_number)
    consultations = await store.list_consultations(patient_ref, limit=limit)
    return ConsultationListResponse(consultations=consultations, total=len(consultations))


@router.get("/{consultation_id}", response_model=Consultation)
async def get_consultation(consultation_id: str, request: Request) -> Consultation:
    store, _ = _services(request)
    consultation = await store.get_consultation(consultation_id)
    if consultation is None:
        raise HTTPException(status_code=404, detail=f"Consultation '{consultation_id}' not found")
    return consultation
