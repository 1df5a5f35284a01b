"""Action handlers invoked by the dispatcher when a path ends on an action.

Every handler has the signature::

    async def handler(caller_id, channel, args=(), **params) -> ActionResult

``args`` are the tokens that followed the action's token (e.g. symptom
text) and ``params`` are the values bound on the menu's ``ActionRef``
(e.g. ``topic="malaria"``).  Handlers talk to the outside world only
through the consultation and content gateways and never raise for
collaborator failures: the caller always gets a readable answer.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any, Final

import structlog

from config.settings import Settings
from src.data.health_content import topic_audio_code, topic_fallback
from src.middleware.privacy import mask_phone
from src.models.channel import ActionResult
from src.models.consultation import CommunicationLog, Consultation, ConsultationRequest, User
from src.models.content import ChatMessage, HealthContentResult
from src.models.enums import (
    ActionName,
    ChannelType,
    ConsultationType,
    Direction,
    Urgency,
)
from src.services.consultations import ConsultationGateway
from src.services.content_gateway import ContentGateway

logger = structlog.get_logger(__name__)

ActionHandler = Callable[..., Awaitable[ActionResult]]

EMERGENCY_SPECIALIZATION: Final[str] = "emergency"
VOICE_RESPONSE_TIME: Final[str] = "30 minutes"
TEXT_RESPONSE_TIME: Final[str] = "1 hour"
CALLBACK_RESPONSE_TIME: Final[str] = "2 hours"

# Approximate budget for key points on SMS and USSD.
KEY_POINTS_BUDGET: Final[int] = 160

_CONSULTATION_TYPE_BY_CHANNEL: Final[dict[ChannelType, ConsultationType]] = {
    ChannelType.VOICE: ConsultationType.VOICE,
    ChannelType.USSD: ConsultationType.USSD,
    ChannelType.SMS: ConsultationType.SMS,
    ChannelType.WHATSAPP: ConsultationType.WHATSAPP,
    ChannelType.WEB: ConsultationType.WEB,
}


@dataclass(frozen=True, slots=True)
class ServiceNumbers:
    """Phone numbers and URLs quoted to callers."""

    emergency_number: str = "117"
    emergency_dial_number: str = "+232117"
    operator_dial_number: str = "+2321234567"
    maternal_hotline_number: str = "1234"
    audio_line_number: str = "1234"
    audio_base_url: str = "https://audio.healthwise.sl"
    default_language: str = "English"

    @classmethod
    def from_settings(cls, settings: Settings) -> ServiceNumbers:
        return cls(
            emergency_number=settings.emergency_number,
            emergency_dial_number=settings.emergency_dial_number,
            operator_dial_number=settings.operator_dial_number,
            maternal_hotline_number=settings.maternal_hotline_number,
            audio_line_number=settings.audio_line_number,
            audio_base_url=settings.audio_base_url.rstrip("/"),
            default_language=settings.default_language,
        )


class ActionHandlers:
    """The registered side-effecting actions.

    Parameters
    ----------
    consultations:
        Persistence gateway for consultations, users and communication logs.
    content:
        Content gateway; expected to degrade to static content on its own,
        but handlers also fall back if it raises.
    numbers:
        Service numbers quoted in replies.
    """

    __slots__ = ("_background", "_consultations", "_content", "_numbers")

    def __init__(
        self,
        consultations: ConsultationGateway,
        content: ContentGateway,
        numbers: ServiceNumbers | None = None,
    ) -> None:
        self._consultations = consultations
        self._content = content
        self._numbers = numbers or ServiceNumbers()
        self._background: set[asyncio.Task[None]] = set()

    @property
    def numbers(self) -> ServiceNumbers:
        return self._numbers

    def registry(self) -> dict[str, ActionHandler]:
        return {
            ActionName.BOOK_VOICE_CONSULTATION: self.book_voice_consultation,
            ActionName.BOOK_TEXT_CONSULTATION: self.book_text_consultation,
            ActionName.REQUEST_CALLBACK: self.request_callback,
            ActionName.TRIGGER_EMERGENCY: self.trigger_emergency,
            ActionName.SEND_EMERGENCY_LOCATION: self.send_emergency_location,
            ActionName.FETCH_HEALTH_EDUCATION: self.fetch_health_education,
            ActionName.CHECK_APPOINTMENT_STATUS: self.check_appointment_status,
            ActionName.VIEW_PROFILE: self.view_profile,
            ActionName.UPDATE_LANGUAGE: self.update_language,
            ActionName.CONNECT_OPERATOR: self.connect_operator,
            ActionName.VIDEO_CONSULTATION_INFO: self.video_consultation_info,
            ActionName.CHAT_REPLY: self.chat_reply,
            ActionName.END_SESSION: self.end_session,
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _lookup_user(self, caller_id: str) -> User | None:
        try:
            return await self._consultations.get_user_by_phone(caller_id)
        except Exception:
            logger.warning("actions.user_lookup_failed", caller=mask_phone(caller_id), exc_info=True)
            return None

    async def _patient_ref(self, caller_id: str) -> str:
        user = await self._lookup_user(caller_id)
        return user.id if user is not None else caller_id

    async def _create(
        self,
        caller_id: str,
        channel: ChannelType,
        consultation_type: ConsultationType,
        urgency: Urgency = Urgency.ROUTINE,
        symptoms: str = "",
    ) -> Consultation:
        request = ConsultationRequest(
            patient_ref=await self._patient_ref(caller_id),
            channel=channel,
            consultation_type=consultation_type,
            urgency=urgency,
            symptoms=symptoms,
            specialization=EMERGENCY_SPECIALIZATION if urgency == Urgency.EMERGENCY else None,
        )
        return await self._consultations.create_consultation(request)

    def _schedule_assignment(self, consultation: Consultation) -> None:
        """Assign the first available provider without waiting for it."""
        task = asyncio.create_task(self._assign_first_available(consultation.id))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _assign_first_available(
        self,
        consultation_id: str,
        specialization: str | None = None,
    ) -> str | None:
        """Best effort: first available provider, no ranking, no locking."""
        try:
            providers = await self._consultations.get_available_providers(specialization)
            if not providers:
                logger.info(
                    "actions.no_provider_available",
                    consultation_id=consultation_id,
                    specialization=specialization,
                )
                return None
            provider = providers[0]
            await self._consultations.assign_provider(consultation_id, provider.id)
            return provider.full_name
        except Exception:
            logger.error(
                "actions.provider_assignment_failed",
                consultation_id=consultation_id,
                exc_info=True,
            )
            return None

    async def drain(self) -> None:
        """Wait for outstanding background assignments (shutdown and tests)."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    async def submit(self, request: ConsultationRequest) -> tuple[Consultation, str | None]:
        """Persist a consultation raised outside the menus (web, API clients).

        Emergencies are assigned from the emergency pool before returning;
        routine requests are assigned in the background.  Returns the
        stored consultation and, for emergencies, the assigned provider's
        name if one was available.
        """
        if request.urgency == Urgency.EMERGENCY:
            request = request.model_copy(update={"specialization": EMERGENCY_SPECIALIZATION})
        consultation = await self._consultations.create_consultation(request)

        if request.urgency == Urgency.EMERGENCY:
            provider_name = await self._assign_first_available(consultation.id, EMERGENCY_SPECIALIZATION)
            return consultation, provider_name

        self._schedule_assignment(consultation)
        return consultation, None

    def _booking_failed(self) -> ActionResult:
        return ActionResult(
            text=(
                "Sorry, we could not book your consultation right now. Please try again "
                f"or call {self._numbers.emergency_number} if it is an emergency."
            ),
        )

    # ------------------------------------------------------------------
    # Consultations
    # ------------------------------------------------------------------

    async def book_voice_consultation(
        self,
        caller_id: str,
        channel: ChannelType,
        args: Sequence[str] = (),
        **params: Any,
    ) -> ActionResult:
        try:
            consultation = await self._create(
                caller_id, channel, ConsultationType.VOICE, symptoms=" ".join(args).strip(),
            )
        except Exception:
            logger.error("actions.book_voice_failed", caller=mask_phone(caller_id), exc_info=True)
            return self._booking_failed()

        self._schedule_assignment(consultation)

        if channel == ChannelType.WHATSAPP:
            text = (
                "*Voice Consultation Booked*\n\n"
                f"A healthcare provider will call you within {VOICE_RESPONSE_TIME}.\n\n"
                "*What to expect:*\n- Call duration: 15-30 minutes\n- Professional medical advice\n"
                "- Follow-up recommendations\n\n"
                "Tip: have your symptoms and medical history ready."
            )
        else:
            text = (
                "Voice consultation booked. A healthcare provider will call you "
                f"within {VOICE_RESPONSE_TIME}."
            )
        return ActionResult(text=text)

    async def book_text_consultation(
        self,
        caller_id: str,
        channel: ChannelType,
        args: Sequence[str] = (),
        **params: Any,
    ) -> ActionResult:
        symptoms = " ".join(args).strip()
        if not symptoms:
            if channel == ChannelType.USSD:
                prompt = "Please describe your symptoms:"
            else:
                prompt = (
                    "Please send TEXT followed by your symptoms, e.g. "
                    "TEXT fever and headache since Monday."
                )
            # USSD collects the description in the next round trip.
            return ActionResult(text=prompt, end_session=channel == ChannelType.VOICE)

        consultation_type = (
            ConsultationType.WHATSAPP if channel == ChannelType.WHATSAPP else ConsultationType.SMS
        )
        try:
            consultation = await self._create(caller_id, channel, consultation_type, symptoms=symptoms)
        except Exception:
            logger.error("actions.book_text_failed", caller=mask_phone(caller_id), exc_info=True)
            return self._booking_failed()

        self._schedule_assignment(consultation)
        return ActionResult(
            text=(
                "Thank you for your consultation request. A Community Health Worker "
                f"will respond via SMS within {TEXT_RESPONSE_TIME}."
            ),
        )

    async def request_callback(
        self,
        caller_id: str,
        channel: ChannelType,
        args: Sequence[str] = (),
        **params: Any,
    ) -> ActionResult:
        try:
            consultation = await self._create(caller_id, channel, ConsultationType.CALLBACK)
        except Exception:
            logger.error("actions.callback_failed", caller=mask_phone(caller_id), exc_info=True)
            return self._booking_failed()

        self._schedule_assignment(consultation)
        return ActionResult(
            text=(
                "Callback request recorded. A healthcare provider will call you back "
                f"within {CALLBACK_RESPONSE_TIME}. Thank you."
            ),
        )

    # ------------------------------------------------------------------
    # Emergencies
    # ------------------------------------------------------------------

    async def _raise_emergency(self, caller_id: str, channel: ChannelType) -> str | None:
        """Persist an emergency and assign synchronously; returns provider name."""
        try:
            consultation = await self._create(
                caller_id,
                channel,
                _CONSULTATION_TYPE_BY_CHANNEL.get(channel, ConsultationType.WEB),
                urgency=Urgency.EMERGENCY,
            )
        except Exception:
            logger.error("actions.emergency_persist_failed", caller=mask_phone(caller_id), exc_info=True)
            return None

        provider_name = await self._assign_first_available(consultation.id, EMERGENCY_SPECIALIZATION)
        logger.warning(
            "actions.emergency_raised",
            consultation_id=consultation.id,
            caller=mask_phone(caller_id),
            channel=channel,
            provider_assigned=provider_name is not None,
        )
        return provider_name

    async def trigger_emergency(
        self,
        caller_id: str,
        channel: ChannelType,
        args: Sequence[str] = (),
        kind: str = "general",
        **params: Any,
    ) -> ActionResult:
        provider_name = await self._raise_emergency(caller_id, channel)
        numbers = self._numbers

        alerted = (
            f"{provider_name} has been alerted and will contact you."
            if provider_name
            else "Your request has been sent to healthcare providers."
        )
        hotline = (
            f" Maternal emergency hotline: {numbers.maternal_hotline_number}."
            if kind == "maternal"
            else ""
        )

        if channel == ChannelType.VOICE:
            text = (
                "Emergency services activated. Transferring your call to emergency "
                f"medical response. If the call drops, dial {numbers.emergency_number}."
            )
        elif channel == ChannelType.WHATSAPP:
            text = (
                "*EMERGENCY ACTIVATED*\n\n"
                f"{alerted}\n\n"
                f"*Call {numbers.emergency_number} now* for immediate help.{hotline}\n\n"
                "While you wait:\n1. Stay where you are if safe\n2. Keep your phone nearby\n"
                "3. If possible, unlock your door\n4. Prepare any medicines you take"
            )
        else:
            text = f"EMERGENCY: {alerted} Call {numbers.emergency_number} now for immediate help.{hotline}"

        return ActionResult(text=text, dial_number=numbers.emergency_dial_number)

    async def send_emergency_location(
        self,
        caller_id: str,
        channel: ChannelType,
        args: Sequence[str] = (),
        **params: Any,
    ) -> ActionResult:
        await self._raise_emergency(caller_id, channel)
        try:
            await self._consultations.log_communication(
                CommunicationLog(
                    phone_number=caller_id,
                    communication_type=ChannelType.SMS,
                    direction=Direction.OUTBOUND,
                    content=f"EMERGENCY: caller {mask_phone(caller_id)} needs help. Location request sent.",
                ),
            )
        except Exception:
            logger.error("actions.emergency_sms_log_failed", caller=mask_phone(caller_id), exc_info=True)

        return ActionResult(
            text=(
                "Emergency SMS with your location has been sent to your emergency contacts. "
                f"Call {self._numbers.emergency_number} now if you need immediate help."
            ),
            dial_number=self._numbers.emergency_dial_number,
        )

    async def connect_operator(
        self,
        caller_id: str,
        channel: ChannelType,
        args: Sequence[str] = (),
        **params: Any,
    ) -> ActionResult:
        if channel == ChannelType.VOICE:
            return ActionResult(
                text="Connecting you to a healthcare operator. Please hold.",
                dial_number=self._numbers.operator_dial_number,
            )
        return ActionResult(
            text=f"Call our healthcare operator on {self._numbers.operator_dial_number}.",
        )

    # ------------------------------------------------------------------
    # Health education
    # ------------------------------------------------------------------

    async def fetch_health_education(
        self,
        caller_id: str,
        channel: ChannelType,
        args: Sequence[str] = (),
        topic: str = "maternal-health",
        language: str | None = None,
        **params: Any,
    ) -> ActionResult:
        user = await self._lookup_user(caller_id)
        language = language or (user.preferred_language if user else self._numbers.default_language)
        profile = {"phone": mask_phone(caller_id), "channel": str(channel)}
        if user is not None and user.location:
            profile["location"] = user.location

        try:
            content = await self._content.generate_health_content(topic, language, profile)
        except Exception:
            logger.error("actions.content_gateway_failed", topic=topic, exc_info=True)
            content = topic_fallback(topic)

        audio_url = f"{self._numbers.audio_base_url}/{topic}-{language.lower()}.mp3"

        if channel == ChannelType.VOICE:
            return ActionResult(
                text=f"Playing {content.title} information in {language}.",
                audio_script=content.audio_script or content.body,
                media_url=audio_url,
                content=content,
                end_session=False,
            )
        if channel == ChannelType.WHATSAPP:
            return ActionResult(
                text=render_rich_content(content),
                media_url=audio_url,
                content=content,
            )
        return ActionResult(
            text=self._render_short_content(content, topic),
            content=content,
        )

    def _render_short_content(self, content: HealthContentResult, topic: str) -> str:
        code = topic_audio_code(topic)
        if code is None:
            return render_key_points(content)
        footer = f"For audio: Call {self._numbers.audio_line_number}, press {code}"
        return f"{render_key_points(content)}\n\n{footer}"

    # ------------------------------------------------------------------
    # Account
    # ------------------------------------------------------------------

    async def check_appointment_status(
        self,
        caller_id: str,
        channel: ChannelType,
        args: Sequence[str] = (),
        **params: Any,
    ) -> ActionResult:
        try:
            consultations = await self._consultations.list_consultations(
                await self._patient_ref(caller_id), limit=3,
            )
        except Exception:
            logger.error("actions.appointment_lookup_failed", caller=mask_phone(caller_id), exc_info=True)
            return ActionResult(text="Sorry, we could not check your appointments right now.")

        if not consultations:
            return ActionResult(text="You have no appointments. Reply BOOK or dial *123# to book one.")

        lines = ["APPOINTMENTS:"]
        for consultation in consultations:
            lines.append(
                f"- {consultation.consultation_type.capitalize()} consultation: "
                f"{consultation.status.replace('_', ' ')} "
                f"({consultation.created_at:%d %b})"
            )
        return ActionResult(text="\n".join(lines))

    async def view_profile(
        self,
        caller_id: str,
        channel: ChannelType,
        args: Sequence[str] = (),
        **params: Any,
    ) -> ActionResult:
        user = await self._lookup_user(caller_id)
        if user is None:
            return ActionResult(
                text="No profile found for this number. Book a consultation to get started.",
            )
        return ActionResult(
            text=(
                f"Name: {user.full_name or 'Not set'}\n"
                f"Location: {user.location or 'Not set'}\n"
                f"Language: {user.preferred_language}"
            ),
        )

    async def update_language(
        self,
        caller_id: str,
        channel: ChannelType,
        args: Sequence[str] = (),
        language: str = "English",
        **params: Any,
    ) -> ActionResult:
        try:
            await self._consultations.update_user_language(caller_id, language)
        except Exception:
            logger.error("actions.language_update_failed", caller=mask_phone(caller_id), exc_info=True)
            return ActionResult(text="Sorry, we could not update your language right now.")
        return ActionResult(text=f"Your language has been set to {language}.")

    # ------------------------------------------------------------------
    # Information and conversation
    # ------------------------------------------------------------------

    async def video_consultation_info(
        self,
        caller_id: str,
        channel: ChannelType,
        args: Sequence[str] = (),
        **params: Any,
    ) -> ActionResult:
        return ActionResult(
            text=(
                "*Video Consultation*\n\nVideo consultations are available for:\n"
                "- Follow-up appointments\n- Chronic disease management\n"
                "- Mental health support\n- Specialist consultations\n\n"
                "*Requirements:*\n- Stable internet connection\n"
                "- Smartphone or computer with camera\n- Quiet, private space\n\n"
                "You'll receive a secure video link via SMS within 15 minutes."
            ),
        )

    async def chat_reply(
        self,
        caller_id: str,
        channel: ChannelType,
        args: Sequence[str] = (),
        **params: Any,
    ) -> ActionResult:
        """Natural-language fallback for text that matched no keyword."""
        message = " ".join(args).strip()
        try:
            reply = await self._content.chat_reply([ChatMessage(role="user", content=message)])
        except Exception:
            logger.error("actions.chat_reply_failed", exc_info=True)
            reply = ""

        emergency = self._numbers.emergency_number
        if not reply:
            reply = "I didn't understand. Reply HELP for commands or HEALTH for main menu."
        if emergency not in reply:
            reply = f"{reply} For emergencies, call {emergency}."
        return ActionResult(text=reply)

    async def end_session(
        self,
        caller_id: str,
        channel: ChannelType,
        args: Sequence[str] = (),
        **params: Any,
    ) -> ActionResult:
        return ActionResult(text="Thank you for using HealthWise. Stay healthy!")


# ---------------------------------------------------------------------------
# Content rendering
# ---------------------------------------------------------------------------


def render_key_points(
    content: HealthContentResult,
    max_points: int = 3,
    budget: int = KEY_POINTS_BUDGET,
) -> str:
    """``TITLE:`` followed by up to *max_points* bullets within *budget* chars."""
    text = f"{content.title.upper()}:"
    for point in content.key_points[:max_points]:
        line = f"\n• {point}"
        if len(text) + len(line) > budget and text.count("\n") > 0:
            break
        text += line
    return text


def render_rich_content(content: HealthContentResult) -> str:
    sections = [f"*{content.title}*", content.body]
    if content.key_points:
        sections.append("*Key Points:*\n" + "\n".join(f"- {p}" for p in content.key_points))
    if content.action_items:
        sections.append("*What you can do:*\n" + "\n".join(f"- {a}" for a in content.action_items))
    if content.cultural_notes:
        sections.append(f"_{content.cultural_notes}_")
    sections.append("Audio guide attached.")
    return "\n\n".join(sections)
