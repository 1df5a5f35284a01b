"""Menu definitions shared by every channel.

Two trees cover all four channels:

* the numeric tree, walked with keypad digits on USSD and voice;
* the keyword tree, walked with single SMS/WhatsApp keywords.

Both are built once at startup and validated against the registered
action handlers.
"""

from __future__ import annotations

from collections.abc import Collection
from typing import Final

from src.models.enums import ActionName, HealthTopic, Language
from src.services.menu import ActionRef, MenuNode, MenuTree

NUMERIC_EXIT_TOKEN: Final[str] = "0"
NUMERIC_BACK_TOKEN: Final[str] = "9"
KEYWORD_EXIT_TOKEN: Final[str] = "EXIT"

# Keywords whose action takes the rest of the message as its argument.
ARGUMENT_KEYWORDS: Final[frozenset[str]] = frozenset({"TEXT", "SMS"})


def _education(topic: HealthTopic) -> ActionRef:
    return ActionRef(ActionName.FETCH_HEALTH_EDUCATION, {"topic": topic.value})


# ---------------------------------------------------------------------------
# Numeric tree (USSD, voice)
# ---------------------------------------------------------------------------


def build_numeric_menu(action_names: Collection[str], emergency_number: str = "117") -> MenuTree:
    nodes = [
        MenuNode(
            id="main",
            prompt=(
                "Welcome to HealthWise\n1. Book Consultation\n2. Health Education\n"
                "3. Emergency Services\n4. My Account\n5. Talk to Operator\n0. Exit"
            ),
            spoken_prompt=(
                "Welcome to HealthWise for Sierra Leone. Press 1 for consultation, "
                "2 for health education, 3 for emergency, 4 for your account, "
                "or 5 to speak with an operator. Press 0 to end the call."
            ),
            transitions=(
                ("1", "consultation"),
                ("2", "education"),
                ("3", "emergency"),
                ("4", "account"),
                ("5", ActionRef(ActionName.CONNECT_OPERATOR)),
            ),
        ),
        MenuNode(
            id="consultation",
            prompt=(
                "Book Consultation\n1. Voice Call\n2. SMS Consultation\n3. Emergency\n"
                "4. Request Callback\n9. Back\n0. Exit"
            ),
            spoken_prompt=(
                "Consultation services. Press 1 to book a voice consultation, "
                "2 for an SMS consultation, 3 for emergency, 4 to request a callback, "
                "or 9 to return to the main menu."
            ),
            transitions=(
                ("1", ActionRef(ActionName.BOOK_VOICE_CONSULTATION)),
                ("2", ActionRef(ActionName.BOOK_TEXT_CONSULTATION)),
                ("3", ActionRef(ActionName.TRIGGER_EMERGENCY, {"kind": "general"})),
                ("4", ActionRef(ActionName.REQUEST_CALLBACK)),
            ),
        ),
        MenuNode(
            id="education",
            prompt=(
                "Health Education\n1. Malaria Prevention\n2. Child Health\n"
                "3. Maternal Health\n4. Mental Health\n9. Back\n0. Exit"
            ),
            spoken_prompt=(
                "Health education. Press 1 for malaria prevention, 2 for child health, "
                "3 for maternal health, 4 for mental health, or 9 for the main menu."
            ),
            transitions=(
                ("1", _education(HealthTopic.MALARIA)),
                ("2", _education(HealthTopic.CHILD_HEALTH)),
                ("3", _education(HealthTopic.MATERNAL_HEALTH)),
                ("4", _education(HealthTopic.MENTAL_HEALTH)),
            ),
        ),
        MenuNode(
            id="emergency",
            prompt=(
                f"EMERGENCY SERVICES\n1. Call Emergency ({emergency_number})\n"
                "2. Send Location SMS\n3. Maternal Emergency\n9. Back\n0. Exit"
            ),
            spoken_prompt=(
                "Emergency services. Press 1 to be connected to emergency services, "
                "2 to send your location to your emergency contacts, "
                "3 for a maternal emergency, or 9 for the main menu."
            ),
            transitions=(
                ("1", ActionRef(ActionName.TRIGGER_EMERGENCY, {"kind": "general"})),
                ("2", ActionRef(ActionName.SEND_EMERGENCY_LOCATION)),
                ("3", ActionRef(ActionName.TRIGGER_EMERGENCY, {"kind": "maternal"})),
            ),
        ),
        MenuNode(
            id="account",
            prompt=(
                "My Account\n1. View Profile\n2. Recent Consultations\n"
                "3. Update Language\n9. Back\n0. Exit"
            ),
            spoken_prompt=(
                "Your account. Press 1 to hear your profile, 2 for your recent "
                "consultations, 3 to change your language, or 9 for the main menu."
            ),
            transitions=(
                ("1", ActionRef(ActionName.VIEW_PROFILE)),
                ("2", ActionRef(ActionName.CHECK_APPOINTMENT_STATUS)),
                ("3", "language"),
            ),
        ),
        MenuNode(
            id="language",
            prompt="Choose Language\n1. English\n2. Krio\n3. Mende\n4. Temne\n9. Back\n0. Exit",
            spoken_prompt=(
                "Choose your language. Press 1 for English, 2 for Krio, 3 for Mende, "
                "4 for Temne, or 9 to go back."
            ),
            transitions=tuple(
                (str(index), ActionRef(ActionName.UPDATE_LANGUAGE, {"language": language.value}))
                for index, language in enumerate(Language, start=1)
            ),
        ),
    ]
    return MenuTree(
        nodes,
        root_id="main",
        action_names=action_names,
        exit_token=NUMERIC_EXIT_TOKEN,
        back_token=NUMERIC_BACK_TOKEN,
    )


# ---------------------------------------------------------------------------
# Keyword tree (SMS, WhatsApp)
# ---------------------------------------------------------------------------

_SMS_MAIN = (
    "Welcome to HealthWise! Reply with:\nBOOK - Book consultation\n"
    "EDUC - Health education\nEMER - Emergency\nHELP - Get help"
)
_WA_MAIN = (
    "Welcome to *HealthWise for Sierra Leone*!\n\nI can help you with:\n"
    "- Book consultations\n- Health education\n- Emergency services\n- Check appointments\n\n"
    "Type what you need or use these commands:\n"
    "- *book* - Book consultation\n- *education* - Health topics\n"
    "- *emergency* - Emergency help\n- *status* - Your appointments\n- *help* - Show this menu"
)


def build_keyword_menu(action_names: Collection[str], emergency_number: str = "117") -> MenuTree:
    voice = ActionRef(ActionName.BOOK_VOICE_CONSULTATION)
    text = ActionRef(ActionName.BOOK_TEXT_CONSULTATION)
    emergency = ActionRef(ActionName.TRIGGER_EMERGENCY, {"kind": "general"})
    status = ActionRef(ActionName.CHECK_APPOINTMENT_STATUS)

    transitions: list[tuple[str, str | ActionRef]] = [
        *((word, "welcome") for word in ("HEALTH", "HELLO", "HI", "START", "MENU")),
        ("HELP", "help"),
        *((word, "consult") for word in ("BOOK", "CONSULTATION")),
        *((word, "education") for word in ("EDUC", "EDUCATION", "LEARN")),
        *((word, emergency) for word in ("EMER", "EMERGENCY", "URGENT")),
        ("VOICE", voice),
        *((word, text) for word in sorted(ARGUMENT_KEYWORDS)),
        ("VIDEO", ActionRef(ActionName.VIDEO_CONSULTATION_INFO)),
        ("MALARIA", _education(HealthTopic.MALARIA)),
        ("CHILD", _education(HealthTopic.CHILD_HEALTH)),
        *((word, _education(HealthTopic.MATERNAL_HEALTH)) for word in ("MOM", "MATERNAL", "PREGNANCY")),
        ("MENTAL", _education(HealthTopic.MENTAL_HEALTH)),
        *((word, status) for word in ("STATUS", "APPOINTMENT", "APPOINTMENTS")),
    ]

    nodes = [
        MenuNode(
            id="keywords",
            prompt=_SMS_MAIN,
            rich_prompt=_WA_MAIN,
            transitions=tuple(transitions),
            free_text_action=ActionRef(ActionName.CHAT_REPLY),
        ),
        MenuNode(id="welcome", prompt=_SMS_MAIN, rich_prompt=_WA_MAIN),
        MenuNode(
            id="help",
            prompt=(
                "HealthWise SMS Commands:\nHEALTH - Main menu\nBOOK - Consultations\n"
                "EDUC - Education\nEMER - Emergency\nSTATUS - Check appointments\n"
                f"Emergency: call {emergency_number}"
            ),
            rich_prompt=_WA_MAIN,
        ),
        MenuNode(
            id="consult",
            prompt=(
                "To book a consultation, reply with:\nVOICE - Voice call\n"
                "TEXT <symptoms> - SMS consultation\nEMER - Emergency consultation"
            ),
            rich_prompt=(
                "*Consultation Services*\n\nChoose your preferred method:\n"
                "- Type *voice* for a voice call\n- Type *text* and your symptoms for SMS consultation\n"
                "- Type *video* for a video call\n- Type *emergency* for urgent care"
            ),
        ),
        MenuNode(
            id="education",
            prompt=(
                "Health Education Topics:\nMALARIA - Malaria prevention\nCHILD - Child health\n"
                "MOM - Maternal health\nMENTAL - Mental health"
            ),
            rich_prompt=(
                "*Health Education Topics*\n\nSelect a topic:\n"
                "- *malaria* - Prevention & treatment\n- *child* - Child health & nutrition\n"
                "- *maternal* - Pregnancy & childbirth\n- *mental* - Mental health support\n\n"
                "Type the topic name to get information."
            ),
        ),
    ]
    return MenuTree(
        nodes,
        root_id="keywords",
        action_names=action_names,
        exit_token=KEYWORD_EXIT_TOKEN,
        back_token=None,
    )
