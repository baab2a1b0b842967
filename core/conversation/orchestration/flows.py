"""
Guided flow definitions.

Each flow is an ordered list of steps. Input steps carry a question, a
validation rule and next-step rules; message steps (summary, safety,
dispatch, confirmation, completion) are rendered without waiting for input.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


class StepType(str, Enum):
    """How a step collects or presents information"""
    SELECTION = "selection"
    TEXT = "text"
    TEXTAREA = "textarea"
    PHONE = "phone"
    CONTACT_FORM = "contact_form"
    SUMMARY = "summary"
    SAFETY_MESSAGE = "safety_message"
    DISPATCH = "dispatch"
    CONFIRMATION = "confirmation"
    COMPLETION = "completion"


INPUT_STEP_TYPES = {
    StepType.SELECTION,
    StepType.TEXT,
    StepType.TEXTAREA,
    StepType.PHONE,
    StepType.CONTACT_FORM,
}

PHONE_PATTERN = re.compile(r"^\(?[\d\s\-\(\)]{10,}$")
CONTACT_EMAIL_PATTERN = re.compile(r"\S+@\S+\.\S+")
CONTACT_PHONE_PATTERN = re.compile(r"[\d\s\-\(\)]{10,}")


@dataclass(frozen=True)
class FlowBranch:
    """
    Conditional next step.

    The branch is taken when the answer contains any of the keywords, or when
    the named long-term memory field is already known. A branch with a flow
    hands the conversation over to that flow.
    """
    target: str
    keywords: Tuple[str, ...] = ()
    known_field: Optional[str] = None
    flow: Optional[str] = None


@dataclass
class FlowStep:
    id: str
    step_type: StepType
    question: Optional[str] = None
    options: List[str] = field(default_factory=list)
    min_length: int = 0
    next_step: Optional[str] = None
    branches: List[FlowBranch] = field(default_factory=list)
    optional: bool = False

    @property
    def takes_input(self) -> bool:
        return self.step_type in INPUT_STEP_TYPES

    def is_valid(self, answer: str) -> bool:
        """Check an answer against this step's validation rule"""
        if self.optional:
            return True
        answer = answer.strip()
        if self.step_type == StepType.PHONE:
            return bool(PHONE_PATTERN.match(answer))
        if self.step_type == StepType.CONTACT_FORM:
            return bool(CONTACT_EMAIL_PATTERN.search(answer) and CONTACT_PHONE_PATTERN.search(answer))
        return len(answer) > self.min_length

    def render_question(self) -> str:
        if not self.question:
            return ""
        text = self.question
        if self.step_type == StepType.SELECTION and self.options:
            numbered = "\n".join(f"{i + 1}. {option}" for i, option in enumerate(self.options))
            text += f"\n\n{numbered}\n\nYou can respond with the number or type your choice."
        return text


@dataclass
class FlowDefinition:
    flow_id: str
    purpose: str
    steps: List[FlowStep]

    @property
    def first_step(self) -> FlowStep:
        return self.steps[0]

    @property
    def counted_steps(self) -> int:
        """Number of steps shown in progress, excluding completion"""
        return len([s for s in self.steps if s.step_type != StepType.COMPLETION])

    def get_step(self, step_id: Optional[str]) -> Optional[FlowStep]:
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    def position(self, step_id: str) -> int:
        for index, step in enumerate(self.steps):
            if step.id == step_id:
                return index + 1
        return 0

    def progress(self, step_id: str) -> str:
        return f"Step {self.position(step_id)} of {self.counted_steps}"


COMPLETION = FlowStep("completion", StepType.COMPLETION)

FLOWS: Dict[str, FlowDefinition] = {
    "quote_collection": FlowDefinition(
        flow_id="quote_collection",
        purpose="Collect comprehensive project information for accurate quoting",
        steps=[
            FlowStep(
                "project_type", StepType.SELECTION,
                question="What type of construction project are you planning?",
                options=["Kitchen Renovation", "Bathroom Remodel", "Home Addition",
                         "New Construction", "Commercial Project", "Other"],
                next_step="location_details",
                branches=[FlowBranch("urgency_level", keywords=("emergency", "repair"), flow="emergency_assessment")],
            ),
            FlowStep(
                "location_details", StepType.TEXT,
                question="Where is your project located? (City, State or ZIP code)",
                min_length=5,
                next_step="project_scope",
            ),
            FlowStep(
                "project_scope", StepType.TEXTAREA,
                question="Could you describe the scope of work? What specific areas or features "
                         "are you looking to address?",
                min_length=10,
                next_step="budget_range",
                branches=[FlowBranch("timeline_preference", known_field="budget_range")],
            ),
            FlowStep(
                "budget_range", StepType.SELECTION,
                question="What's your approximate budget range for this project?",
                options=["Under $10,000", "$10,000 - $25,000", "$25,000 - $50,000",
                         "$50,000 - $100,000", "$100,000+", "I need guidance on budgeting"],
                next_step="timeline_preference",
            ),
            FlowStep(
                "timeline_preference", StepType.SELECTION,
                question="When would you ideally like to start this project?",
                options=["As soon as possible", "Within 1 month", "2-3 months", "4-6 months",
                         "More than 6 months", "Flexible timing"],
                next_step="contact_preferences",
            ),
            FlowStep(
                "contact_preferences", StepType.SELECTION,
                question="How would you prefer to receive your detailed estimate and discuss next steps?",
                options=["Phone call", "Email with detailed breakdown", "In-person consultation",
                         "Video call consultation"],
                next_step="quote_summary",
            ),
            FlowStep("quote_summary", StepType.SUMMARY, next_step="completion"),
            COMPLETION,
        ],
    ),
    "emergency_assessment": FlowDefinition(
        flow_id="emergency_assessment",
        purpose="Assess and respond to emergency construction situations",
        steps=[
            FlowStep(
                "urgency_level", StepType.SELECTION,
                question="How urgent is this situation? Please select the level that best describes your needs:",
                options=["Life-threatening emergency (call 911 first)", "Immediate safety hazard",
                         "Property damage requiring immediate attention",
                         "Urgent repair needed within 24 hours", "Needs attention within a few days"],
                next_step="damage_assessment",
                branches=[FlowBranch("safety_first", keywords=("life-threatening", "safety hazard"))],
            ),
            FlowStep("safety_first", StepType.SAFETY_MESSAGE, next_step="damage_assessment"),
            FlowStep(
                "damage_assessment", StepType.TEXTAREA,
                question="Please describe the damage or issue you're experiencing:",
                min_length=10,
                next_step="location_access",
            ),
            FlowStep(
                "location_access", StepType.TEXT,
                question="What's the property address, and will our emergency team have access?",
                min_length=10,
                next_step="contact_immediate",
            ),
            FlowStep(
                "contact_immediate", StepType.PHONE,
                question="What's the best phone number to reach you immediately for our emergency response team?",
                next_step="emergency_dispatch",
            ),
            FlowStep("emergency_dispatch", StepType.DISPATCH, next_step="completion"),
            COMPLETION,
        ],
    ),
    "consultation_scheduling": FlowDefinition(
        flow_id="consultation_scheduling",
        purpose="Schedule and prepare for project consultations",
        steps=[
            FlowStep(
                "consultation_type", StepType.SELECTION,
                question="What type of consultation would work best for you?",
                options=["Initial project discussion (30 min)", "Detailed design consultation (1 hour)",
                         "Site visit and assessment", "Virtual consultation via video call",
                         "Phone consultation"],
                next_step="preferred_timing",
            ),
            FlowStep(
                "preferred_timing", StepType.SELECTION,
                question="When would you prefer to schedule this consultation?",
                options=["This week", "Next week", "Within 2 weeks",
                         "Flexible - you choose the best time", "Evenings or weekends preferred"],
                next_step="contact_details",
            ),
            FlowStep(
                "contact_details", StepType.CONTACT_FORM,
                question="Please provide your contact information for scheduling:",
                next_step="consultation_prep",
            ),
            FlowStep(
                "consultation_prep", StepType.TEXTAREA,
                question="Is there anything specific you'd like our team to prepare for the consultation?",
                optional=True,
                next_step="scheduling_confirmation",
            ),
            FlowStep("scheduling_confirmation", StepType.CONFIRMATION, next_step="completion"),
            COMPLETION,
        ],
    ),
    "project_planning": FlowDefinition(
        flow_id="project_planning",
        purpose="Comprehensive project planning and requirements gathering",
        steps=[
            FlowStep(
                "project_goals", StepType.TEXTAREA,
                question="What are your main goals for this construction project?",
                min_length=20,
                next_step="space_requirements",
            ),
            FlowStep(
                "space_requirements", StepType.TEXTAREA,
                question="Tell me about your space requirements and how you plan to use the area:",
                min_length=15,
                next_step="design_preferences",
            ),
            FlowStep(
                "design_preferences", StepType.TEXTAREA,
                question="Do you have any specific design preferences, styles, or inspiration?",
                optional=True,
                next_step="material_preferences",
            ),
            FlowStep(
                "material_preferences", StepType.TEXTAREA,
                question="Are there specific materials or finishes you prefer or want to avoid?",
                optional=True,
                next_step="sustainability_concerns",
            ),
            FlowStep(
                "sustainability_concerns", StepType.SELECTION,
                question="Are sustainability and eco-friendly materials important to you?",
                options=["Very important - please prioritize green materials",
                         "Somewhat important - consider when cost-effective",
                         "Not a primary concern",
                         "I need more information about sustainable options"],
                next_step="planning_summary",
            ),
            FlowStep("planning_summary", StepType.SUMMARY, next_step="completion"),
            COMPLETION,
        ],
    ),
}

STEP_ACKNOWLEDGMENTS: Dict[str, str] = {
    "project_type": "I understand you're planning {answer}.",
    "location_details": "I've noted the project location.",
    "project_scope": "That gives me a good understanding of your project scope.",
    "budget_range": "I've recorded your budget range.",
    "timeline_preference": "I've noted your timeline preference.",
    "urgency_level": "I understand the urgency level.",
    "consultation_type": "That consultation type sounds perfect.",
    "preferred_timing": "I've noted your scheduling preference.",
}
DEFAULT_ACKNOWLEDGMENT = "I've recorded that information."

COMPLETION_RESPONSES: Dict[str, str] = {
    "quote_collection": (
        "Excellent, {name}! I have all the information needed for your project quote.\n\n"
        "**Next Steps:**\n"
        "• Our estimating team will review your requirements\n"
        "• You'll receive a detailed quote within 2-3 business days\n"
        "• A project specialist will contact you to discuss details\n"
        "• We'll schedule a site visit if needed\n\n"
        "Is there anything else I can help you with today?"
    ),
    "emergency_assessment": (
        "Your emergency response request has been processed, {name}.\n\n"
        "Please keep your phone available for our emergency coordinator. Stay safe!"
    ),
    "consultation_scheduling": (
        "Perfect, {name}! Your consultation has been requested.\n\n"
        "**What Happens Next:**\n"
        "• Our scheduling team will contact you within 4 hours\n"
        "• We'll confirm your preferred time and format\n"
        "• You'll receive a calendar invitation with details\n\n"
        "Looking forward to discussing your project in detail!"
    ),
    "project_planning": (
        "Thank you for the detailed project information, {name}!\n\n"
        "**Your Project Planning Session:**\n"
        "• Our design team will review your requirements\n"
        "• We'll prepare initial concepts and suggestions\n"
        "• A senior project manager will be assigned\n"
        "• You'll receive a planning summary within 5 days"
    ),
}
DEFAULT_COMPLETION_RESPONSE = (
    "Thank you for providing that information, {name}! Our team will review everything and get back to you soon."
)

SAFETY_MESSAGE = (
    "**SAFETY FIRST** - If this is a life-threatening emergency, please call 911 immediately.\n\n"
    "If the situation involves gas leaks, electrical hazards, or structural collapse, please evacuate "
    "the area and contact emergency services first.\n\n"
    "Once you're safe, I'll help coordinate our emergency construction response."
)

DISPATCH_MESSAGE = (
    "**EMERGENCY DISPATCH INITIATED**\n\n"
    "Your emergency request has been processed with the following details:\n"
    "• **Priority Level**: URGENT\n"
    "• **Response Team**: Emergency Construction Unit\n"
    "• **Estimated Arrival**: Within 2 hours\n"
    "• **Emergency Contact**: {phone}\n\n"
    "**What Happens Next:**\n"
    "1. Our emergency coordinator will call you within 15 minutes\n"
    "2. Emergency team will be dispatched to your location\n"
    "3. Assessment and immediate stabilization will begin\n\n"
    "Please keep your phone available and ensure safe access for our team. Stay safe, {name}!"
)

CONFIRMATION_MESSAGE = (
    "Let me confirm your consultation request, {name}:\n\n"
    "**Consultation Details:**\n"
    "• **Type**: {consultation_type}\n"
    "• **Timing**: {preferred_timing}\n"
    "• **Contact**: {contact_details}"
)

# Actions suggested alongside a flow response, keyed by flow
FLOW_ACTIONS: Dict[str, List[str]] = {
    "quote_collection": ["upload_photos", "schedule_consultation"],
    "emergency_assessment": ["emergency_service", "contact_support"],
    "consultation_scheduling": ["view_portfolio"],
    "project_planning": ["view_portfolio", "get_quote"],
}
COMPLETED_FLOW_ACTIONS: Dict[str, List[str]] = {
    "quote_collection": ["schedule_consultation", "view_portfolio"],
    "emergency_assessment": ["contact_support"],
    "consultation_scheduling": ["get_quote"],
    "project_planning": ["get_quote", "schedule_consultation"],
}

FLOW_INTROS: Dict[str, str] = {
    "quote_collection": "I'd be glad to put together a quote for you, {name}. A few quick questions first.",
    "emergency_assessment": "I'm here to help right away, {name}.",
    "consultation_scheduling": "Let's get your consultation scheduled, {name}.",
    "project_planning": "Let's plan your project together, {name}.",
}
