"""
Intent based response generation.

Each recognised intent has a template builder that fills in what the
context already knows (project type, budget, timeline, role, urgency).
Messages without a primary intent get a contextual clarification reply.
"""

from typing import Dict, Callable, List, Optional

from config import settings
from models.schemas import Urgency
from core.conversation.context import ConversationContext
from core.conversation.understanding import IntentAnalysis, IntentType
from .base import BaseResponseGenerator, DraftResponse

CONTEXTUAL_FALLBACK_CONFIDENCE = 0.75
CONFIDENCE_FLOOR = 0.1
CONFIDENCE_CEILING = 1.0

TIMELINE_ESTIMATES: Dict[str, str] = {
    "kitchen": "3-6 weeks for a complete kitchen renovation",
    "bathroom": "2-4 weeks for a full bathroom remodel",
    "addition": "8-16 weeks depending on size and complexity",
    "roofing": "1-2 weeks for a standard residential roof replacement",
    "deck": "1-2 weeks for standard deck construction",
}
DEFAULT_TIMELINE_ESTIMATE = "2-12 weeks depending on project scope and complexity"

SERVICES_LIST = (
    "• **Residential Construction** - Custom homes, additions, renovations\n"
    "• **Commercial Construction** - Office buildings, retail spaces\n"
    "• **Kitchen & Bath Remodeling** - Complete renovations and updates\n"
    "• **Roofing Services** - Replacement, repair, and maintenance\n"
    "• **Electrical & Plumbing** - Licensed specialists available"
)

Template = Callable[[IntentAnalysis, ConversationContext], DraftResponse]


def _draft(response: str, confidence: float, topics: List[str], actions: List[str]) -> DraftResponse:
    return DraftResponse(response=response, confidence=confidence, topics=topics, suggested_actions=actions)


class IntentResponseGenerator(BaseResponseGenerator):
    """
    Template response generator keyed by intent name.

    Learned confidence adjustments are read from a shared mapping keyed by
    response pattern ("<intent>_template"), so feedback on a template shifts
    the confidence of later responses built from it.
    """

    def __init__(self, confidence_adjustments: Optional[Dict[str, float]] = None):
        super().__init__()
        self.confidence_adjustments = confidence_adjustments if confidence_adjustments is not None else {}
        self.templates: Dict[str, Template] = {
            IntentType.PROJECT_QUOTE.value: self._project_quote,
            IntentType.PROJECT_TIMELINE.value: self._project_timeline,
            IntentType.PROJECT_CONSULTATION.value: self._project_consultation,
            IntentType.SERVICES_OVERVIEW.value: self._services_overview,
            IntentType.RESIDENTIAL_SERVICES.value: self._residential_services,
            IntentType.COMMERCIAL_SERVICES.value: self._commercial_services,
            IntentType.EMERGENCY_SERVICE.value: self._emergency_service,
            IntentType.CONTACT_INFO.value: self._contact_info,
            IntentType.SUPPORT_REQUEST.value: self._support_request,
            IntentType.CREDENTIALS_INQUIRY.value: self._credentials_inquiry,
            IntentType.PAYMENT_INQUIRY.value: self._payment_inquiry,
            IntentType.MATERIALS_INQUIRY.value: self._materials_inquiry,
            IntentType.GREETING.value: self._greeting,
            IntentType.FAREWELL.value: self._farewell,
            IntentType.GRATITUDE.value: self._gratitude,
        }

    async def generate_response(self, analysis: IntentAnalysis,
                                context: ConversationContext,
                                message: str) -> DraftResponse:
        intent_name = analysis.intent_name
        template = self.templates.get(intent_name or "")

        if template is not None:
            draft = template(analysis, context)
            pattern = f"{intent_name}_template"
        else:
            draft = self._contextual_fallback(context)
            pattern = "contextual_fallback"

        draft.suggested_actions.extend(self._contextual_suggestions(analysis, context))
        draft.confidence = self._adjusted_confidence(draft.confidence, pattern)
        draft.response_metadata.update({
            "source": "intent_template" if template is not None else "contextual_fallback",
            "response_pattern": pattern,
            "intent_recognized": intent_name or "unknown",
            "intent_confidence": analysis.intent_confidence,
            "conversation_turn": context.turn_index + 1,
            "response_complexity": analysis.complexity.value,
        })

        self.log_generation(analysis, draft)
        return draft

    def _adjusted_confidence(self, confidence: float, pattern: str) -> float:
        adjusted = confidence + self.confidence_adjustments.get(pattern, 0.0)
        return round(max(CONFIDENCE_FLOOR, min(CONFIDENCE_CEILING, adjusted)), 4)

    @staticmethod
    def _contextual_suggestions(analysis: IntentAnalysis, context: ConversationContext) -> List[str]:
        suggestions = []
        if analysis.intent_name == IntentType.PROJECT_QUOTE.value:
            suggestions.extend(["upload_project_photos", "schedule_site_visit"])
        if context.urgency_level.level != Urgency.NORMAL:
            suggestions.append("emergency_contact")
        if context.long_term_memory.budget_range:
            suggestions.append("financing_options")
        return suggestions

    # Templates

    def _project_quote(self, analysis: IntentAnalysis, context: ConversationContext) -> DraftResponse:
        name = context.user_profile.user_name
        memory = context.long_term_memory
        entities = analysis.entities
        project_type = entities.get("projectType") or memory.project_details.get("type")
        seen = f"I see you're interested in {project_type} work. " if project_type else ""
        response = (
            f"I'd be happy to help you get a detailed quote, {name}! {seen}"
            f"For the most accurate estimate, I'll need a few project details:\n\n"
            f"• **Project Type**: {project_type or 'What type of construction project?'}\n"
            f"• **Location**: Property address for site assessment\n"
            f"• **Budget Range**: {entities.get('budget') or memory.budget_range or 'Approximate budget range'}\n"
            f"• **Timeline**: {entities.get('timeline') or memory.timeline_preference or 'When do you need this completed?'}\n\n"
            f"Would you like me to connect you with our senior estimator for a detailed consultation?"
        )
        return _draft(response, 0.95, ["quote", "estimation", "consultation"],
                      ["get_quote", "schedule_consultation"])

    def _project_timeline(self, analysis: IntentAnalysis, context: ConversationContext) -> DraftResponse:
        name = context.user_profile.user_name
        project_type = analysis.entities.get("projectType") or context.long_term_memory.project_details.get("type")
        estimate = TIMELINE_ESTIMATES.get(project_type or "", DEFAULT_TIMELINE_ESTIMATE)
        subject = f"your {project_type} project" if project_type else "the type of work you're considering"
        permits = "1-3 weeks with expedited service" if context.user_profile.user_role == "Administrator" else "2-6 weeks"
        urgency_note = ""
        if context.urgency_level.level == Urgency.CRITICAL:
            urgency_note = "**Expedited Service Available**: we offer rush project services with premium scheduling.\n\n"
        elif context.urgency_level.level == Urgency.HIGH:
            urgency_note = "**Priority Scheduling**: we can discuss priority scheduling options for your timeline.\n\n"
        response = (
            f"Great question about project timelines, {name}! Based on {subject}, "
            f"you can typically expect {estimate}.\n\n"
            f"**Factors affecting your timeline:**\n"
            f"• Permit processing ({permits})\n"
            f"• Weather conditions and season\n"
            f"• Material availability and delivery\n"
            f"• Inspection schedules\n\n"
            f"{urgency_note}Would you like a personalized timeline estimate for your specific project?"
        )
        return _draft(response, 0.92, ["timeline", "scheduling", "planning"],
                      ["get_detailed_timeline", "schedule_consultation"])

    def _project_consultation(self, analysis: IntentAnalysis, context: ConversationContext) -> DraftResponse:
        name = context.user_profile.user_name
        response = (
            f"I'd be happy to set up a consultation, {name}! We offer initial project discussions, "
            f"detailed design consultations, site visits and video calls. "
            f"Which format works best for you, and when would you like to meet?"
        )
        return _draft(response, 0.9, ["consultation", "planning", "project"],
                      ["schedule_consultation", "request_site_visit"])

    def _services_overview(self, analysis: IntentAnalysis, context: ConversationContext) -> DraftResponse:
        name = context.user_profile.user_name
        interests = context.long_term_memory.primary_interests
        lead = (
            f"Based on your interest in {', '.join(interests)}, here's what we offer:"
            if interests else "Here's our full range of professional construction services:"
        )
        admin = (
            "**Premium Services for Administrators:** priority scheduling, dedicated project management "
            "and custom pricing.\n\n" if context.user_profile.user_role == "Administrator" else ""
        )
        response = (
            f"Welcome to our construction services, {name}! {lead}\n\n{SERVICES_LIST}\n\n{admin}"
            f"Which service area would you like to learn more about?"
        )
        return _draft(response, 0.94, ["services", "capabilities", "construction"],
                      ["explore_residential", "explore_commercial", "view_portfolio"])

    def _residential_services(self, analysis: IntentAnalysis, context: ConversationContext) -> DraftResponse:
        name = context.user_profile.user_name
        response = (
            f"Our residential team handles custom homes, additions, kitchen and bathroom remodels, "
            f"and whole-home renovations, {name}. What part of your home are you looking to improve?"
        )
        return _draft(response, 0.9, ["residential", "renovation", "construction"],
                      ["explore_residential", "get_quote"])

    def _commercial_services(self, analysis: IntentAnalysis, context: ConversationContext) -> DraftResponse:
        name = context.user_profile.user_name
        response = (
            f"We build and renovate offices, retail spaces, restaurants and warehouses, {name}, "
            f"with phased scheduling to keep your business running. What kind of commercial space is it?"
        )
        return _draft(response, 0.9, ["commercial", "construction", "project"],
                      ["explore_commercial", "get_quote"])

    def _emergency_service(self, analysis: IntentAnalysis, context: ConversationContext) -> DraftResponse:
        name = context.user_profile.user_name
        status = (
            "PRIORITY CLIENT - immediate dispatch authorized"
            if context.user_profile.user_role == "Administrator" else "Standard emergency response protocol"
        )
        response = (
            f"**Emergency Response Activated**, {name}!\n\n"
            f"I understand this is an urgent situation. Our emergency team is available 24/7.\n\n"
            f"**Immediate Actions:**\n"
            f"• Call our emergency hotline at {settings.SUPPORT_PHONE}\n"
            f"• Response time: emergency team dispatched within 2 hours\n"
            f"• Current status: {status}\n\n"
            f"For your safety, please avoid the affected area until our team arrives."
        )
        return _draft(response, 0.95, ["emergency", "urgent_service", "immediate_help"],
                      ["emergency_service", "contact_support"])

    def _contact_info(self, analysis: IntentAnalysis, context: ConversationContext) -> DraftResponse:
        name = context.user_profile.user_name
        project_type = context.long_term_memory.project_details.get("type")
        specialist = (
            f"For your {project_type} project, I recommend speaking with our specialized team. "
            if project_type else ""
        )
        response = (
            f"Here's how to reach our team, {name}:\n\n"
            f"• **Phone**: {settings.SUPPORT_PHONE}\n"
            f"• **Business Hours**: Monday-Friday 8AM-6PM, Saturday 9AM-2PM\n\n"
            f"{specialist}Would you like me to schedule a call back?"
        )
        return _draft(response, 0.95, ["contact", "communication", "support"],
                      ["schedule_callback", "contact_support"])

    def _support_request(self, analysis: IntentAnalysis, context: ConversationContext) -> DraftResponse:
        name = context.user_profile.user_name
        response = (
            f"I'm sorry you're running into trouble, {name}. Tell me a bit more about the issue and I'll "
            f"get it to the right person, or you can reach our support team at {settings.SUPPORT_PHONE}."
        )
        return _draft(response, 0.88, ["support", "assistance"], ["contact_support"])

    def _credentials_inquiry(self, analysis: IntentAnalysis, context: ConversationContext) -> DraftResponse:
        name = context.user_profile.user_name
        response = (
            f"Absolutely, {name}! Here's our qualification profile:\n\n"
            f"• **Licensed** general contractor with specialty licenses for electrical, plumbing and HVAC\n"
            f"• **Insured & Bonded**: general liability, workers' compensation, performance bonds available\n"
            f"• **Certified**: OSHA 30-Hour Construction Safety, EPA Lead-Safe\n\n"
            f"Would you like copies of any specific credentials for your records?"
        )
        return _draft(response, 0.95, ["credentials", "licensing", "insurance"],
                      ["view_certificates", "get_quote"])

    def _payment_inquiry(self, analysis: IntentAnalysis, context: ConversationContext) -> DraftResponse:
        name = context.user_profile.user_name
        response = (
            f"We keep payments simple, {name}: milestone-based schedules, credit cards, checks, bank "
            f"transfers and financing through our partners. Would you like details on financing options?"
        )
        return _draft(response, 0.9, ["payment", "billing", "financing"],
                      ["view_payment_options", "apply_financing"])

    def _materials_inquiry(self, analysis: IntentAnalysis, context: ConversationContext) -> DraftResponse:
        name = context.user_profile.user_name
        material = analysis.entities.get("material")
        lead = f"Good choice looking into {material}, {name}. " if material else f"Quality materials matter, {name}. "
        response = (
            f"{lead}We source from trusted suppliers, inspect everything before use and offer "
            f"sustainable options. What materials are you considering?"
        )
        return _draft(response, 0.88, ["materials", "quality", "suppliers"],
                      ["view_materials", "get_material_quote"])

    def _greeting(self, analysis: IntentAnalysis, context: ConversationContext) -> DraftResponse:
        name = context.user_profile.user_name
        salutation = f"Hello again, {name}" if context.turn_index > 0 else f"Hello, {name}"
        interests = context.long_term_memory.primary_interests
        remembered = (
            f"Welcome back! I remember you were interested in {interests[0].replace('_', ' ')}. "
            if interests else ""
        )
        closing = (
            "I notice this might be time-sensitive. How can I help you today?"
            if context.urgency_level.level != Urgency.NORMAL
            else "What construction project can I help you with today?"
        )
        response = (
            f"{salutation}!\n\n{remembered}I'm here to help with project quotes, service information, "
            f"consultations, emergency support and timeline planning.\n\n{closing}"
        )
        return _draft(response, 0.88, ["greeting", "welcome", "assistance"],
                      ["get_quote", "view_services", "schedule_consultation"])

    def _farewell(self, analysis: IntentAnalysis, context: ConversationContext) -> DraftResponse:
        name = context.user_profile.user_name
        response = f"Thanks for stopping by, {name}! Reach out anytime if you have more questions about your project."
        return _draft(response, 0.9, ["farewell", "closing"], ["schedule_followup"])

    def _gratitude(self, analysis: IntentAnalysis, context: ConversationContext) -> DraftResponse:
        name = context.user_profile.user_name
        response = f"You're very welcome, {name}! Is there anything else I can help you with today?"
        return _draft(response, 0.9, ["gratitude", "assistance"], ["get_quote", "view_services"])

    def _contextual_fallback(self, context: ConversationContext) -> DraftResponse:
        name = context.user_profile.user_name
        parts = [f"I want to make sure I understand your question correctly, {name}. "]
        recent_topics = context.short_term_memory.recent_topics
        if recent_topics:
            parts.append(f"I see we've been discussing {recent_topics[-1].replace('_', ' ')}. ")
        project_type = context.long_term_memory.project_details.get("type")
        if project_type:
            parts.append(f"For your {project_type} project, ")
        parts.append(
            "I can connect you with the right specialist for detailed guidance.\n\n"
            "Could you tell me more about what you're looking for?"
        )
        return _draft("".join(parts), CONTEXTUAL_FALLBACK_CONFIDENCE, ["assistance", "clarification"],
                      ["clarify_question", "speak_to_specialist", "schedule_consultation"])
