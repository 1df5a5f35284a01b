"""Static health-education content used whenever generation is unavailable.

Everything in this module is immutable and loaded once at import time.
The per-topic entries are what callers on a basic phone receive when the
content generator times out, so they are kept short and practical.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Final

from src.models.content import HealthContentResult, LearningPlan, WeeklyTopic
from src.models.enums import HealthTopic

# Keypad digit announced in "For audio: Call 1234, press N".
TOPIC_AUDIO_CODES: Final = MappingProxyType({
    HealthTopic.MALARIA: "1",
    HealthTopic.CHILD_HEALTH: "2",
    HealthTopic.MATERNAL_HEALTH: "3",
    HealthTopic.MENTAL_HEALTH: "4",
})

_TOPIC_CONTENT: Final = MappingProxyType({
    HealthTopic.MALARIA: HealthContentResult(
        title="Malaria Prevention",
        body=(
            "Malaria is spread by mosquitoes that bite at night. Pregnant women "
            "and young children are at the highest risk. Sleeping under a treated "
            "bed net and getting tested quickly when fever starts saves lives."
        ),
        key_points=[
            "Use bed nets every night",
            "Clear stagnant water",
            "Seek treatment for fever",
            "Take prescribed medication fully",
        ],
        audio_script=(
            "Let's talk about malaria. Sleep under a treated bed net every night, "
            "including your children. Clear standing water near your home. If you "
            "or your child has a fever, go to the health centre the same day for a "
            "test. If you are given medicine, finish all of it."
        ),
        cultural_notes=(
            "Bed nets are free at government health centres and during community "
            "distribution campaigns."
        ),
        action_items=[
            "Check your bed net for holes tonight",
            "Visit the health centre within 24 hours of any fever",
            "Ask about preventive malaria treatment during pregnancy",
        ],
        is_fallback=True,
    ),
    HealthTopic.CHILD_HEALTH: HealthContentResult(
        title="Child Health",
        body=(
            "Breast milk gives a baby everything it needs for the first six months. "
            "Vaccines protect against measles, polio and other serious diseases. "
            "Know the danger signs and act quickly when you see them."
        ),
        key_points=[
            "Breastfeed exclusively for 6 months",
            "Vaccinate on schedule",
            "Watch for danger signs",
            "Ensure proper nutrition",
        ],
        audio_script=(
            "Let's talk about your child's health. Give only breast milk for the "
            "first six months. Take your child for every vaccination and keep the "
            "card safe. If your child has a fever, fast breathing, diarrhoea, or is "
            "not feeding, go to the health centre straight away."
        ),
        cultural_notes=(
            "Grandmothers and older relatives often guide infant feeding; include "
            "them when you discuss breastfeeding and weaning."
        ),
        action_items=[
            "Check the vaccination card for the next due date",
            "Weigh your child at the monthly clinic",
            "Learn the danger signs with your family",
        ],
        is_fallback=True,
    ),
    HealthTopic.MATERNAL_HEALTH: HealthContentResult(
        title="Maternal Health",
        body=(
            "Regular prenatal care is essential for a healthy pregnancy. Attend all "
            "your scheduled checkups, plan to deliver at a health facility, and know "
            "the danger signs that need immediate care."
        ),
        key_points=[
            "Attend all prenatal visits",
            "Deliver at health facility",
            "Recognize danger signs",
            "Eat nutritious foods",
        ],
        audio_script=(
            "Let's talk about a healthy pregnancy. Go to every prenatal visit. Take "
            "your iron and folic acid tablets. Plan how you will get to the health "
            "facility for delivery. Heavy bleeding, a severe headache, blurred "
            "vision or strong belly pain are danger signs. Call 117 straight away."
        ),
        cultural_notes=(
            "Community support is very important. Involve family members and "
            "traditional birth attendants while also seeking care at the facility."
        ),
        action_items=[
            "Schedule your next health centre visit",
            "Arrange transport for delivery day",
            "Write down any questions for your healthcare provider",
        ],
        is_fallback=True,
    ),
    HealthTopic.MENTAL_HEALTH: HealthContentResult(
        title="Mental Health",
        body=(
            "Feeling sad, worried or tired for weeks is common during and after "
            "pregnancy, and it can be treated. Talking to someone you trust is a "
            "strong first step."
        ),
        key_points=[
            "Talk to trusted people",
            "Stay physically active",
            "Avoid alcohol/drugs",
            "Seek help when needed",
        ],
        audio_script=(
            "Let's talk about how you are feeling. Many mothers feel sad or worried. "
            "You are not alone. Talk to someone you trust, rest when you can, and "
            "ask a health worker for help if the feelings last more than two weeks."
        ),
        cultural_notes=(
            "Mental health problems are sometimes hidden because of stigma. Health "
            "workers will keep what you share private."
        ),
        action_items=[
            "Tell one trusted person how you feel this week",
            "Take a short walk each day",
            "Ask your health worker about counselling",
        ],
        is_fallback=True,
    ),
})


def topic_fallback(topic: str) -> HealthContentResult:
    """Return the static content for *topic*, or generic content if unknown."""
    try:
        return _TOPIC_CONTENT[HealthTopic(topic)]
    except ValueError:
        return _generic_content(topic)


def topic_audio_code(topic: str) -> str | None:
    """Audio-line key for *topic*; ``None`` when no recording exists."""
    try:
        return TOPIC_AUDIO_CODES.get(HealthTopic(topic))
    except ValueError:
        return None


def _generic_content(topic: str) -> HealthContentResult:
    return HealthContentResult(
        title=topic,
        body=(
            f"This is important information about {topic}. Regular prenatal care is "
            "essential for a healthy pregnancy. Attend all your scheduled checkups at "
            "your local health centre, eat nutritious foods, get enough rest, and ask "
            "for help when you need it."
        ),
        key_points=[
            "Attend regular prenatal checkups",
            "Eat a balanced diet with plenty of vegetables and fruits",
            "Get adequate rest and sleep",
            "Stay hydrated by drinking clean water",
            "Seek immediate help if you notice warning signs",
        ],
        audio_script=(
            f"Let's talk about {topic}. This is very important for your health and "
            "your baby's health. Attend all your prenatal checkups, eat good food, "
            "rest well, and always ask for help when you need it."
        ),
        cultural_notes=(
            "Community support is very important. Involve family members and "
            "traditional birth attendants while also seeking modern medical care."
        ),
        action_items=[
            "Schedule your next health centre visit",
            "Discuss this topic with your family",
            "Write down any questions for your healthcare provider",
        ],
        is_fallback=True,
    )


# ---------------------------------------------------------------------------
# Natural-language fallback replies
# ---------------------------------------------------------------------------

# (keywords, reply) pairs checked in order against the lower-cased message.
_CHAT_REPLIES: Final[tuple[tuple[tuple[str, ...], str], ...]] = (
    (
        ("emergency", "urgent", "bleeding", "convulsion", "unconscious"),
        "For medical emergencies call 117 immediately. Danger signs: severe "
        "bleeding, severe headache or blurred vision, convulsions, severe belly "
        "pain, difficulty breathing, high fever. Go to the nearest health facility.",
    ),
    (
        ("fever", "sick", "pain"),
        "I understand you're not feeling well. Reply EMER for emergency or BOOK "
        "for consultation. If severe, call 117 immediately.",
    ),
    (
        ("pregnan", "prenatal", "baby", "newborn"),
        "For pregnancy/baby health: Reply MOM for maternal health info, CHILD for "
        "child health or BOOK for a consultation. Maternal emergency hotline: 1234.",
    ),
    (
        ("breastfeed", "nursing"),
        "Start breastfeeding within the first hour after birth and feed on demand, "
        "8-12 times a day. Ask a health worker if you have difficulties.",
    ),
    (
        ("nutrition", "food", "diet"),
        "Eat a variety of foods: dark green vegetables, fruits, beans, fish, eggs. "
        "Drink clean water and take iron and folic acid supplements.",
    ),
    (
        ("vaccine", "immuniz", "immunis"),
        "Babies need BCG and polio at birth, pentavalent at 6, 10 and 14 weeks, "
        "measles and yellow fever at 9 months. Keep the vaccination card safe.",
    ),
    (
        ("help", "?"),
        "Reply HEALTH for the main menu, BOOK for consultations, EDUC for health "
        "education, EMER for emergency or STATUS to check appointments.",
    ),
)

_DEFAULT_CHAT_REPLY: Final[str] = (
    "I didn't understand. Reply HELP for commands or HEALTH for main menu."
)


def fallback_chat_reply(message: str) -> str:
    """Keyword-matched reply used when the assistant model is unavailable."""
    lowered = message.lower()
    for keywords, reply in _CHAT_REPLIES:
        if any(keyword in lowered for keyword in keywords):
            return reply
    return _DEFAULT_CHAT_REPLY


# ---------------------------------------------------------------------------
# Learning plan
# ---------------------------------------------------------------------------

_FALLBACK_PLAN: Final = LearningPlan(
    weekly_topics=[
        WeeklyTopic(
            week=1,
            topic="Prenatal Care Basics",
            description="Understanding the importance of regular checkups and nutrition during pregnancy",
            priority="high",
            estimated_time="15 min",
        ),
        WeeklyTopic(
            week=2,
            topic="Nutrition for Mothers",
            description="Essential foods and nutrients for a healthy pregnancy",
            priority="high",
            estimated_time="20 min",
        ),
        WeeklyTopic(
            week=3,
            topic="Warning Signs During Pregnancy",
            description="Learn to recognize danger signs and when to seek immediate help",
            priority="high",
            estimated_time="15 min",
        ),
        WeeklyTopic(
            week=4,
            topic="Preparing for Delivery",
            description="What to expect during labor and delivery",
            priority="medium",
            estimated_time="25 min",
        ),
        WeeklyTopic(
            week=5,
            topic="Newborn Care",
            description="Essential care for your baby in the first weeks",
            priority="high",
            estimated_time="20 min",
        ),
        WeeklyTopic(
            week=6,
            topic="Breastfeeding Basics",
            description="How to breastfeed successfully and overcome common challenges",
            priority="high",
            estimated_time="20 min",
        ),
    ],
    personalized_tips=[
        "Attend all prenatal checkups at your local health center",
        "Eat a variety of nutritious foods including vegetables, fruits, and proteins",
        "Rest when you can and ask for help from family",
    ],
    urgent_alerts=[
        "Call 117 immediately if you experience severe bleeding, severe headache, or blurred vision",
        "Attend your scheduled prenatal appointments - they are crucial for you and your baby's health",
    ],
    next_steps=[
        "Complete your first week of learning",
        "Share what you learn with family members",
        "Keep track of your health symptoms",
    ],
    is_fallback=True,
)


def fallback_learning_plan() -> LearningPlan:
    """Six-week starter plan served when no generator is available."""
    return _FALLBACK_PLAN.model_copy(deep=True)
