"""HealthWise service layer -- menus, dispatch, actions, gateways and channels.

Everything is exported eagerly except the Vertex AI service, which is
imported lazily so that ``import src.services`` and the static content
fallback keep working when the GCP client libraries are missing or broken.
"""

from __future__ import annotations

from src.services.actions import ActionHandlers, ServiceNumbers
from src.services.cache import MemoryHistory, SessionStore
from src.services.channel_adapters import SMSAdapter, USSDAdapter, VoiceAdapter, WhatsAppAdapter
from src.services.consultations import ConsultationGateway, InMemoryConsultationStore
from src.services.content_gateway import (
    ContentGateway,
    ContentGenerationError,
    GeminiContentGateway,
    ResilientContentGateway,
    StaticContentGateway,
)
from src.services.dispatcher import Dispatcher
from src.services.menu import ActionRef, MenuDefinitionError, MenuNode, MenuTree
from src.services.messaging import DeliveryStatus, MessagingService
from src.services.tokenizer import tokenize

# Some GCP native extension failures raise pyo3_runtime.PanicException,
# which inherits from BaseException.
try:
    from src.services.llm import LLMResponseError, LLMService
except BaseException:  # pragma: no cover  # noqa: BLE001
    LLMResponseError = None  # type: ignore[assignment,misc]
    LLMService = None  # type: ignore[assignment,misc]

__all__ = [
    "ActionHandlers",
    "ActionRef",
    "ConsultationGateway",
    "ContentGateway",
    "ContentGenerationError",
    "DeliveryStatus",
    "Dispatcher",
    "GeminiContentGateway",
    "InMemoryConsultationStore",
    "LLMResponseError",
    "LLMService",
    "MemoryHistory",
    "MenuDefinitionError",
    "MenuNode",
    "MenuTree",
    "MessagingService",
    "ResilientContentGateway",
    "SMSAdapter",
    "ServiceNumbers",
    "SessionStore",
    "StaticContentGateway",
    "USSDAdapter",
    "VoiceAdapter",
    "WhatsAppAdapter",
    "tokenize",
]
