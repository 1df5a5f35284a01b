"""Consultation, user, provider and communication-log models.

These mirror the rows of the relational persistence layer.  The core
dispatch logic only ever creates :class:`ConsultationRequest` objects and
reads back :class:`Consultation` records through the consultation gateway.
"""

from __future__ import annotations

from datetime import UTC, datetime
from uuid import uuid4

from pydantic import BaseModel, Field

from src.models.enums import (
    ChannelType,
    ConsultationStatus,
    ConsultationType,
    Direction,
    Urgency,
    UserRole,
)


class ConsultationRequest(BaseModel):
    """A request for care raised from any channel.

    ``urgency == emergency`` skips normal provider matching; the emergency
    handler assigns from the emergency pool immediately.
    """

    patient_ref: str = Field(..., min_length=1, description="User id or phone number")
    channel: ChannelType
    consultation_type: ConsultationType
    urgency: Urgency = Urgency.ROUTINE
    symptoms: str = ""
    specialization: str | None = None
    requested_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class Consultation(BaseModel):
    """A persisted consultation record."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    patient_ref: str
    channel: ChannelType
    consultation_type: ConsultationType
    urgency: Urgency
    status: ConsultationStatus = ConsultationStatus.PENDING
    symptoms: str = ""
    provider_id: str | None = None
    requested_at: datetime
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_request(cls, request: ConsultationRequest) -> Consultation:
        status = (
            ConsultationStatus.IN_PROGRESS
            if request.urgency == Urgency.EMERGENCY
            else ConsultationStatus.PENDING
        )
        return cls(
            patient_ref=request.patient_ref,
            channel=request.channel,
            consultation_type=request.consultation_type,
            urgency=request.urgency,
            status=status,
            symptoms=request.symptoms,
            requested_at=request.requested_at,
        )


class User(BaseModel):
    id: str = Field(default_factory=lambda: uuid4().hex)
    phone_number: str
    full_name: str = ""
    location: str | None = None
    preferred_language: str = "English"
    role: UserRole = UserRole.PATIENT
    is_verified: bool = False


class Provider(BaseModel):
    """A healthcare provider or CHW who can take consultations."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    user_id: str
    full_name: str
    phone_number: str
    specialization: str | None = None
    is_available: bool = True


class CommunicationLog(BaseModel):
    id: str = Field(default_factory=lambda: uuid4().hex)
    user_id: str | None = None
    phone_number: str
    communication_type: ChannelType
    direction: Direction
    content: str
    status: str = "sent"
    external_id: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
