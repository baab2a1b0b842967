"""
Quick replies and smart suggestions attached to each turn result.
"""

from dataclasses import dataclass
from typing import Dict, Any, List, Optional, Tuple

from models.schemas import Urgency
from core.conversation.context import ConversationContext

MAX_QUICK_REPLIES = 4
MIN_QUICK_REPLIES = 3
MAX_SMART_SUGGESTIONS = 3

INTENT_QUICK_REPLIES: Dict[str, List[str]] = {
    "project_quote": ["Schedule site visit", "Upload project photos", "Discuss timeline"],
    "services_overview": ["Residential services", "Commercial services", "Get quote"],
    "contact_info": ["Schedule callback", "Send location", "Emergency contact"],
}

GENERIC_QUICK_REPLIES: List[str] = ["Get quote", "Schedule consultation", "View services"]
URGENT_QUICK_REPLIES: List[str] = ["Emergency help", "Immediate assistance"]

FALLBACK_QUICK_REPLIES: List[str] = ["Get help", "Contact support", "Try again"]


@dataclass(frozen=True)
class SuggestionRule:
    text: str
    action: str
    priority: str
    keywords: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, str]:
        return {"text": self.text, "action": self.action, "priority": self.priority}


RESPONSE_SUGGESTIONS: List[SuggestionRule] = [
    SuggestionRule("Get detailed project estimate", "get_quote", "high", ("quote", "estimate")),
    SuggestionRule("Schedule consultation", "schedule_consultation", "high", ("consultation", "meeting")),
]
ADMIN_SUGGESTION = SuggestionRule("Access admin dashboard", "admin_dashboard", "medium")
RESIDENTIAL_SUGGESTION = SuggestionRule("Explore residential services", "residential_services", "medium")
FALLBACK_SUGGESTION = SuggestionRule("Speak to a specialist", "contact_support", "high")


def generate_quick_replies(intent_name: Optional[str], context: ConversationContext) -> List[str]:
    """
    Build up to four quick replies for the detected intent.

    Urgent conversations lead with the emergency replies, and those are
    never cut by the cap.
    """
    replies = list(INTENT_QUICK_REPLIES.get(intent_name, [])) if intent_name else []

    if len(replies) < MIN_QUICK_REPLIES:
        replies.extend(GENERIC_QUICK_REPLIES)

    if context.urgency_level.level in (Urgency.HIGH, Urgency.CRITICAL):
        replies = URGENT_QUICK_REPLIES + replies

    return replies[:MAX_QUICK_REPLIES]


def generate_smart_suggestions(response_text: str, context: ConversationContext) -> List[Dict[str, Any]]:
    """Suggestions from the final response text, the user's role and remembered interests"""
    suggestions = [
        rule for rule in RESPONSE_SUGGESTIONS
        if any(keyword in response_text for keyword in rule.keywords)
    ]

    if context.user_profile.user_role == "Administrator":
        suggestions.append(ADMIN_SUGGESTION)

    if "residential" in context.long_term_memory.primary_interests:
        suggestions.append(RESIDENTIAL_SUGGESTION)

    return [rule.to_dict() for rule in suggestions[:MAX_SMART_SUGGESTIONS]]
