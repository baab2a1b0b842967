"""
Basic rule-based responder.

Keyword rules checked in order against the message; the first match wins.
Used when intent based generation is unavailable.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from config import settings
from core.conversation.context import ConversationTurn, UserProfile
from core.conversation.handlers.base import DraftResponse

DEFAULT_CONFIDENCE = 0.85


@dataclass(frozen=True)
class BasicRule:
    name: str
    keywords: Tuple[str, ...]
    template: str
    confidence: float
    topics: Tuple[str, ...]
    actions: Tuple[str, ...]

    def matches(self, lowered: str) -> bool:
        return any(re.search(r"\b" + re.escape(keyword) + r"\b", lowered) for keyword in self.keywords)


BASIC_RULES: List[BasicRule] = [
    BasicRule(
        "quote", ("quote", "quotes", "estimate", "estimates", "price", "pricing"),
        "Hi {name}! I'd be happy to help you get a personalized quote. I can connect you with one of our "
        "project specialists right now, or you can start a detailed estimate request. "
        "What type of construction project are you planning?",
        0.95, ("quote", "estimate", "pricing"),
        ("schedule_consultation", "view_portfolio", "contact_specialist"),
    ),
    BasicRule(
        "services", ("service", "services", "what do you do"),
        "Great question, {name}! We specialize in comprehensive construction services including:\n\n"
        "• **Residential Construction** - Custom homes, additions, renovations\n"
        "• **Commercial Projects** - Office buildings, retail spaces, warehouses\n"
        "• **Remodeling & Renovations** - Kitchen, bathroom, whole-home updates\n"
        "• **Project Management** - Full-service project oversight\n\n"
        "What type of project are you considering?",
        0.98, ("services", "construction", "capabilities"),
        ("view_services", "browse_projects", "schedule_consultation"),
    ),
    BasicRule(
        "contact", ("contact", "phone", "email"),
        "Here's how you can reach our team, {name}:\n\n"
        "• **Phone**: {phone}\n"
        "• **Hours**: Monday-Friday 8AM-6PM, Saturday 9AM-2PM\n\n"
        "Would you like me to schedule a call back for you?",
        0.97, ("contact", "information", "support"),
        ("schedule_callback", "send_email", "view_location"),
    ),
    BasicRule(
        "timeline", ("timeline", "how long", "duration"),
        "Project timelines vary based on complexity and scope, {name}:\n\n"
        "• **Small Renovations**: 1-3 weeks\n"
        "• **Room Additions**: 4-8 weeks\n"
        "• **New Construction**: 3-8 months\n"
        "• **Full Home Remodel**: 2-6 months\n\n"
        "Factors affecting timeline include permits, weather, material availability, and project complexity. "
        "What type of construction are you planning?",
        0.94, ("timeline", "duration", "planning"),
        ("get_timeline_estimate", "schedule_consultation", "view_project_phases"),
    ),
    BasicRule(
        "credentials", ("license", "licensed", "insured", "certified"),
        "Absolutely, {name}! We maintain all required credentials: we are licensed, bonded and fully insured, "
        "with OSHA and EPA certified crews. All our work is guaranteed and backed by comprehensive insurance coverage.",
        0.99, ("credentials", "licensing", "insurance"),
        ("view_credentials", "read_testimonials", "get_quote"),
    ),
    BasicRule(
        "payment", ("payment", "payments", "invoice", "billing"),
        "We offer flexible payment options, {name}:\n\n"
        "• **Payment Methods**: Credit cards, checks, bank transfers, financing\n"
        "• **Payment Schedule**: Typically structured in project milestones\n"
        "• **Transparent Billing**: Detailed invoices with no hidden fees\n\n"
        "Would you like me to explain our payment process for your project type?",
        0.96, ("payment", "billing", "financing"),
        ("view_payment_options", "apply_financing", "contact_billing"),
    ),
    BasicRule(
        "emergency", ("emergency", "urgent", "asap"),
        "I understand this is urgent, {name}! For emergency construction needs:\n\n"
        "• **Emergency Hotline**: {phone}\n"
        "• **24/7 Response**: Available for critical situations\n"
        "• **Rapid Response**: Emergency team dispatched within 2 hours\n\n"
        "Should I connect you with our emergency dispatcher right now?",
        0.98, ("emergency", "urgent", "immediate_help"),
        ("call_emergency", "dispatch_team", "immediate_consultation"),
    ),
    BasicRule(
        "materials", ("materials", "supply", "supplies", "quality"),
        "Quality materials are fundamental to our work, {name}. We source from top-tier suppliers, inspect "
        "all materials before use and offer sustainable options. "
        "What type of materials are you considering for your project?",
        0.95, ("materials", "quality", "suppliers"),
        ("view_materials", "get_material_quote", "schedule_material_consultation"),
    ),
    BasicRule(
        "gratitude", ("thank", "thanks"),
        "You're very welcome, {name}! Is there anything else I can assist you with today? I can help you "
        "schedule a consultation, get project estimates, or connect you with our specialists.",
        0.92, ("gratitude", "assistance"),
        ("schedule_consultation", "get_quote", "view_services"),
    ),
    BasicRule(
        "greeting", ("hello", "hi", "hey"),
        "Hello {name}! I'm here to help you with quotes, project planning, or any questions about our "
        "construction services. What can I help you with today?",
        0.93, ("greeting", "welcome"),
        ("get_quote", "view_services", "schedule_consultation"),
    ),
    BasicRule(
        "farewell", ("bye", "goodbye"),
        "Thank you for chatting with us, {name}! Feel free to reach out anytime. Have a wonderful day!",
        0.91, ("farewell", "closing"),
        ("save_conversation", "schedule_followup", "contact_later"),
    ),
]

DEFAULT_TEMPLATE = (
    "I understand you're asking about \"{message}\", {name}. For specific details about {subject}, "
    "I recommend speaking with one of our specialists.\n\n"
    "Would you like me to:\n"
    "• Schedule a consultation with a project specialist\n"
    "• Provide more information about our services\n"
    "• Connect you with our customer support team\n"
    "• Help you get a project estimate"
)


def generate_basic_response(message: str,
                            history: Optional[List[ConversationTurn]] = None,
                            user_profile: Optional[UserProfile] = None) -> DraftResponse:
    """
    Generate a keyword based response.

    Args:
        message: User's message
        history: Stored turns, oldest first
        user_profile: Profile used to personalise the reply

    Returns:
        Draft response tagged with source "basic"
    """
    profile = user_profile or UserProfile()
    name = profile.user_name
    lowered = message.lower()

    for rule in BASIC_RULES:
        if rule.matches(lowered):
            return DraftResponse(
                response=rule.template.format(name=name, phone=settings.SUPPORT_PHONE),
                confidence=rule.confidence,
                topics=list(rule.topics),
                suggested_actions=list(rule.actions),
                response_metadata={"source": "basic", "rule": rule.name},
            )

    return DraftResponse(
        response=_contextual_lead(lowered, history or [], name) + DEFAULT_TEMPLATE.format(
            message=message,
            name=name,
            subject="your construction project" if "project" in lowered else "our services",
        ),
        confidence=DEFAULT_CONFIDENCE,
        topics=["general_inquiry", "assistance"],
        suggested_actions=["schedule_consultation", "get_more_info", "contact_support"],
        response_metadata={"source": "basic", "rule": "default"},
    )


def _contextual_lead(lowered: str, history: List[ConversationTurn], name: str) -> str:
    """Short lead-in that follows up on the last few turns"""
    recent_topics = [topic for turn in history[-3:] for topic in turn.metadata.get("topics", [])]
    agrees = re.search(r"\b(yes|interested)\b", lowered)
    if "quote" in recent_topics and agrees:
        return f"Perfect, {name}! Let me connect you with our estimation team. "
    if "emergency" in recent_topics and re.search(r"\byes\b", lowered):
        return f"Connecting you to our emergency dispatcher now, {name}. "
    return ""
