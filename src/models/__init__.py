from src.models.channel import (
    ActionResult,
    DispatchOutcome,
    MessageReply,
    Session,
    TextMessagePayload,
    USSDPayload,
    VoiceAction,
    VoicePayload,
    VoiceResponse,
)
from src.models.consultation import (
    CommunicationLog,
    Consultation,
    ConsultationRequest,
    Provider,
    User,
)
from src.models.content import ChatMessage, HealthContentRequest, HealthContentResult
from src.models.enums import (
    ActionName,
    ChannelType,
    ConsultationStatus,
    ConsultationType,
    Direction,
    HealthTopic,
    Language,
    Urgency,
    UserRole,
    VoiceActionType,
)

__all__ = [
    "ActionName",
    "ActionResult",
    "ChannelType",
    "ChatMessage",
    "CommunicationLog",
    "Consultation",
    "ConsultationRequest",
    "ConsultationStatus",
    "ConsultationType",
    "Direction",
    "DispatchOutcome",
    "HealthContentRequest",
    "HealthContentResult",
    "HealthTopic",
    "Language",
    "MessageReply",
    "Provider",
    "Session",
    "TextMessagePayload",
    "USSDPayload",
    "Urgency",
    "User",
    "UserRole",
    "VoiceAction",
    "VoiceActionType",
    "VoicePayload",
    "VoiceResponse",
]
