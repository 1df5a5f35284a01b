"""Shared fixtures: an in-memory store, static content and both dispatchers."""

from __future__ import annotations

import pytest

from src.data.menus import ARGUMENT_KEYWORDS, build_keyword_menu, build_numeric_menu
from src.models.consultation import Provider, User
from src.services.actions import ActionHandlers
from src.services.consultations import InMemoryConsultationStore
from src.services.content_gateway import StaticContentGateway
from src.services.dispatcher import Dispatcher

KNOWN_CALLER = "+23276123456"
UNKNOWN_CALLER = "+23277000111"


@pytest.fixture
def store() -> InMemoryConsultationStore:
    store = InMemoryConsultationStore()
    store.add_user(
        User(
            id="user-aminata",
            phone_number=KNOWN_CALLER,
            full_name="Aminata Kamara",
            location="Freetown",
            preferred_language="Krio",
        ),
    )
    store.add_provider(
        Provider(
            id="prov-emergency",
            user_id="u-1",
            full_name="Dr. Conteh",
            phone_number="+23279000001",
            specialization="emergency",
        ),
    )
    store.add_provider(
        Provider(
            id="prov-general",
            user_id="u-2",
            full_name="Nurse Koroma",
            phone_number="+23279000002",
            specialization="general",
        ),
    )
    return store


@pytest.fixture
def handlers(store: InMemoryConsultationStore) -> ActionHandlers:
    return ActionHandlers(store, StaticContentGateway())


@pytest.fixture
def numeric_dispatcher(handlers: ActionHandlers) -> Dispatcher:
    registry = handlers.registry()
    return Dispatcher(build_numeric_menu(registry.keys()), registry)


@pytest.fixture
def keyword_dispatcher(handlers: ActionHandlers) -> Dispatcher:
    registry = handlers.registry()
    return Dispatcher(
        build_keyword_menu(registry.keys()),
        registry,
        argument_keywords=ARGUMENT_KEYWORDS,
    )
