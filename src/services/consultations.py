"""Consultation, user and communication-log gateway.

:class:`ConsultationGateway` is the seam to the relational persistence
layer.  :class:`InMemoryConsultationStore` is the process-local
implementation used in development and tests.

Provider assignment reads the available pool and then assigns the first
entry without a lock.  Two concurrent emergencies may therefore be given
the same provider; assignment is best effort, not an allocation.
"""

from __future__ import annotations

import asyncio
from typing import Protocol, runtime_checkable

import structlog

from src.models.consultation import (
    CommunicationLog,
    Consultation,
    ConsultationRequest,
    Provider,
    User,
)
from src.models.enums import ConsultationStatus

logger = structlog.get_logger(__name__)


class ConsultationNotFoundError(LookupError):
    pass


class ProviderNotFoundError(LookupError):
    pass


@runtime_checkable
class ConsultationGateway(Protocol):
    async def create_consultation(self, request: ConsultationRequest) -> Consultation: ...

    async def assign_provider(self, consultation_id: str, provider_id: str) -> Consultation: ...

    async def get_available_providers(self, specialization: str | None = None) -> list[Provider]: ...

    async def get_user_by_phone(self, phone_number: str) -> User | None: ...

    async def list_consultations(self, patient_ref: str, limit: int = 10) -> list[Consultation]: ...

    async def get_consultation(self, consultation_id: str) -> Consultation | None: ...

    async def update_user_language(self, phone_number: str, language: str) -> User: ...

    async def log_communication(self, entry: CommunicationLog) -> CommunicationLog: ...


class InMemoryConsultationStore:
    """Dictionary-backed :class:`ConsultationGateway`.

    Inserts are serialised with an :class:`asyncio.Lock` so concurrent
    callers never lose each other's rows.
    """

    __slots__ = ("_communications", "_consultations", "_lock", "_providers", "_users")

    def __init__(self) -> None:
        self._consultations: dict[str, Consultation] = {}
        self._users: dict[str, User] = {}
        self._providers: dict[str, Provider] = {}
        self._communications: list[CommunicationLog] = []
        self._lock = asyncio.Lock()

    # -- seeding --------------------------------------------------------------

    def add_user(self, user: User) -> User:
        self._users[user.id] = user
        return user

    def add_provider(self, provider: Provider) -> Provider:
        self._providers[provider.id] = provider
        return provider

    # -- consultations --------------------------------------------------------

    async def create_consultation(self, request: ConsultationRequest) -> Consultation:
        consultation = Consultation.from_request(request)
        async with self._lock:
            self._consultations[consultation.id] = consultation
        logger.info(
            "consultations.created",
            consultation_id=consultation.id,
            channel=consultation.channel,
            urgency=consultation.urgency,
            consultation_type=consultation.consultation_type,
        )
        return consultation

    async def assign_provider(self, consultation_id: str, provider_id: str) -> Consultation:
        consultation = self._consultations.get(consultation_id)
        if consultation is None:
            raise ConsultationNotFoundError(consultation_id)
        if provider_id not in self._providers:
            raise ProviderNotFoundError(provider_id)

        updates: dict[str, object] = {"provider_id": provider_id}
        if consultation.status == ConsultationStatus.PENDING:
            updates["status"] = ConsultationStatus.IN_PROGRESS
        updated = consultation.model_copy(update=updates)
        self._consultations[consultation_id] = updated
        logger.info(
            "consultations.provider_assigned",
            consultation_id=consultation_id,
            provider_id=provider_id,
        )
        return updated

    async def get_available_providers(self, specialization: str | None = None) -> list[Provider]:
        return [
            provider
            for provider in self._providers.values()
            if provider.is_available
            and (specialization is None or provider.specialization == specialization)
        ]

    async def list_consultations(self, patient_ref: str, limit: int = 10) -> list[Consultation]:
        # Ties on created_at resolve to the most recently inserted record.
        matches = [c for c in reversed(self._consultations.values()) if c.patient_ref == patient_ref]
        matches.sort(key=lambda c: c.created_at, reverse=True)
        return matches[:limit]

    async def get_consultation(self, consultation_id: str) -> Consultation | None:
        return self._consultations.get(consultation_id)

    # -- users ----------------------------------------------------------------

    async def get_user_by_phone(self, phone_number: str) -> User | None:
        for user in self._users.values():
            if user.phone_number == phone_number:
                return user
        return None

    async def update_user_language(self, phone_number: str, language: str) -> User:
        """Set the caller's preferred language, registering them if unknown."""
        async with self._lock:
            user = await self.get_user_by_phone(phone_number)
            if user is None:
                user = User(phone_number=phone_number, preferred_language=language)
                self._adopt_consultations(phone_number, user.id)
            else:
                user = user.model_copy(update={"preferred_language": language})
            self._users[user.id] = user
        return user

    def _adopt_consultations(self, phone_number: str, user_id: str) -> None:
        """Re-key bookings made before the caller was registered."""
        moved = 0
        for consultation_id, consultation in list(self._consultations.items()):
            if consultation.patient_ref == phone_number:
                self._consultations[consultation_id] = consultation.model_copy(
                    update={"patient_ref": user_id},
                )
                moved += 1
        if moved:
            logger.info("consultations.adopted_by_user", user_id=user_id, count=moved)

    # -- communications -------------------------------------------------------

    async def log_communication(self, entry: CommunicationLog) -> CommunicationLog:
        async with self._lock:
            self._communications.append(entry)
        return entry

    def list_communications(self, phone_number: str | None = None) -> list[CommunicationLog]:
        if phone_number is None:
            return list(self._communications)
        return [c for c in self._communications if c.phone_number == phone_number]
