from __future__ import annotations

from enum import StrEnum


class ChannelType(StrEnum):
    __slots__ = ()

    SMS = "sms"
    USSD = "ussd"
    VOICE = "voice"
    WHATSAPP = "whatsapp"
    WEB = "web"


class Urgency(StrEnum):
    __slots__ = ()

    ROUTINE = "routine"
    URGENT = "urgent"
    EMERGENCY = "emergency"


class ConsultationType(StrEnum):
    __slots__ = ()

    VOICE = "voice"
    SMS = "sms"
    USSD = "ussd"
    WHATSAPP = "whatsapp"
    CALLBACK = "callback"
    WEB = "web"


class ConsultationStatus(StrEnum):
    __slots__ = ()

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class UserRole(StrEnum):
    __slots__ = ()

    PATIENT = "patient"
    CHW = "chw"
    PROVIDER = "provider"
    ADMIN = "admin"


class Direction(StrEnum):
    __slots__ = ()

    INBOUND = "inbound"
    OUTBOUND = "outbound"


class VoiceActionType(StrEnum):
    __slots__ = ()

    SAY = "say"
    GET_DIGITS = "getDigits"
    DIAL = "dial"
    PLAY = "play"


class HealthTopic(StrEnum):
    """Health-education topics offered on every channel."""

    __slots__ = ()

    MALARIA = "malaria"
    CHILD_HEALTH = "child-health"
    MATERNAL_HEALTH = "maternal-health"
    MENTAL_HEALTH = "mental-health"


class Language(StrEnum):
    """Languages a caller can choose from the account menu."""

    __slots__ = ()

    ENGLISH = "English"
    KRIO = "Krio"
    MENDE = "Mende"
    TEMNE = "Temne"


class ActionName(StrEnum):
    """Names under which action handlers are registered."""

    __slots__ = ()

    BOOK_VOICE_CONSULTATION = "book_voice_consultation"
    BOOK_TEXT_CONSULTATION = "book_text_consultation"
    REQUEST_CALLBACK = "request_callback"
    TRIGGER_EMERGENCY = "trigger_emergency"
    SEND_EMERGENCY_LOCATION = "send_emergency_location"
    FETCH_HEALTH_EDUCATION = "fetch_health_education"
    CHECK_APPOINTMENT_STATUS = "check_appointment_status"
    VIEW_PROFILE = "view_profile"
    UPDATE_LANGUAGE = "update_language"
    CONNECT_OPERATOR = "connect_operator"
    VIDEO_CONSULTATION_INFO = "video_consultation_info"
    CHAT_REPLY = "chat_reply"
    END_SESSION = "end_session"
