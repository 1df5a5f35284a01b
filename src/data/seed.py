"""Demo data for local runs and tests.

Loads a handful of patients, community health workers and clinicians
into the in-memory consultation store at startup so that bookings,
emergency escalation and the account menu have something to work with.
Disabled with ``HEALTHWISE_SEED_DEMO_DATA=false``.
"""

from __future__ import annotations

from typing import Final

import structlog

from src.models.consultation import Provider, User
from src.models.enums import UserRole
from src.services.consultations import InMemoryConsultationStore

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

DEMO_PATIENTS: Final[list[dict[str, str]]] = [
    {"phone_number": "+23276123456", "full_name": "Aminata Kamara", "location": "Freetown", "preferred_language": "Krio"},
    {"phone_number": "+23277654321", "full_name": "Fatmata Sesay", "location": "Bo", "preferred_language": "Mende"},
    {"phone_number": "+23278111222", "full_name": "Isatu Bangura", "location": "Makeni", "preferred_language": "Temne"},
]

DEMO_PROVIDERS: Final[list[dict[str, str]]] = [
    {"phone_number": "+23279000001", "full_name": "Dr. Mohamed Conteh", "specialization": "emergency", "role": UserRole.PROVIDER},
    {"phone_number": "+23279000002", "full_name": "Nurse Mariama Koroma", "specialization": "maternal-health", "role": UserRole.PROVIDER},
    {"phone_number": "+23279000003", "full_name": "Dr. Abu Jalloh", "specialization": "general", "role": UserRole.PROVIDER},
    {"phone_number": "+23279000004", "full_name": "Kadiatu Turay", "specialization": "emergency", "role": UserRole.CHW},
]


# ---------------------------------------------------------------------------
# Seeding
# ---------------------------------------------------------------------------


def seed_demo_data(store: InMemoryConsultationStore) -> tuple[int, int]:
    """Insert the demo patients and providers into *store*.

    Returns
    -------
    tuple[int, int]
        Number of patients and providers added.
    """
    for patient in DEMO_PATIENTS:
        store.add_user(User(role=UserRole.PATIENT, is_verified=True, **patient))

    for entry in DEMO_PROVIDERS:
        user = store.add_user(
            User(
                phone_number=entry["phone_number"],
                full_name=entry["full_name"],
                role=entry["role"],
                is_verified=True,
            ),
        )
        store.add_provider(
            Provider(
                user_id=user.id,
                full_name=user.full_name,
                phone_number=user.phone_number,
                specialization=entry["specialization"],
            ),
        )

    logger.info("seed.demo_data_loaded", patients=len(DEMO_PATIENTS), providers=len(DEMO_PROVIDERS))
    return len(DEMO_PATIENTS), len(DEMO_PROVIDERS)
