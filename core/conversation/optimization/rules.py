"""
Rule tables for response optimization.

Word substitution maps, vocabularies and canned notes live here as data so
they can be tested and localized apart from the optimizer's control flow.
"""

from enum import Enum
from typing import Dict, List, Tuple


class Strategy(str, Enum):
    """Labels recorded in optimization_strategies"""
    # Content
    LENGTH_REDUCTION = "length_reduction"
    DETAIL_ENHANCEMENT = "detail_enhancement"
    EMPATHY_ENHANCEMENT = "empathy_enhancement"
    POSITIVE_REINFORCEMENT = "positive_reinforcement"
    TECHNICAL_SIMPLIFICATION = "technical_simplification"
    TECHNICAL_ENHANCEMENT = "technical_enhancement"
    URGENCY_PRIORITIZATION = "urgency_prioritization"
    REPETITION_AVOIDANCE = "repetition_avoidance"

    # Confidence
    CONFIDENCE_CALIBRATION = "confidence_calibration"

    # Contextual
    AFTER_HOURS_ADJUSTMENT = "after_hours_adjustment"
    ADMIN_ENHANCEMENT = "admin_enhancement"
    LONG_CONVERSATION_OPTIMIZATION = "long_conversation_optimization"
    MULTI_TOPIC_OPTIMIZATION = "multi_topic_optimization"

    # Learning patterns
    SUCCESSFUL_PHRASE_INTEGRATION = "successful_phrase_integration"
    STRUCTURAL_OPTIMIZATION = "structural_optimization"
    FAILURE_AVOIDANCE = "failure_avoidance"
    TRENDING_TOPIC_INTEGRATION = "trending_topic_integration"

    # Personalization
    FORMAL_TONE = "formal_tone"
    CASUAL_TONE = "casual_tone"
    TECHNICAL_EMPHASIS = "technical_emphasis"
    HIGH_DETAIL = "high_detail"
    INFORMATION_CONDENSATION = "information_condensation"

    # Finalization
    FINAL_LENGTH_ADJUSTMENT = "final_length_adjustment"
    LOW_CONFIDENCE_MITIGATION = "low_confidence_mitigation"


SHORT_RESPONSE_LIMIT = 200
DEFAULT_AVERAGE_RESPONSE_LENGTH = 300
FINAL_LENGTH_LIMIT = 1000
FINAL_TRUNCATE_AT = 800
LOW_CONFIDENCE_THRESHOLD = 0.3
CONFIDENCE_FLOOR = 0.1
CONFIDENCE_CEILING = 1.0
DEFAULT_MAX_SUGGESTIONS = 4
BUSINESS_HOURS = (9, 17)
SIMILARITY_THRESHOLD = 0.8

KEY_SENTENCE_MARKERS: List[str] = ["important", "key", "recommend"]
KEY_SENTENCE_MIN_LENGTH = 50

# Ordered (pattern, replacement) pairs
EMPATHY_SUBSTITUTIONS: List[Tuple[str, str]] = [
    ("Great question", "I understand your concern"),
    ("I'd be happy", "I want to help you"),
    ("Perfect!", "I appreciate you sharing that"),
]

POSITIVE_SUBSTITUTIONS: List[Tuple[str, str]] = [
    (r"\bThat's\b", "That's fantastic"),
    (r"\bGreat\b", "Excellent"),
    (r"\bGood\b", "Wonderful"),
]

TECHNICAL_TERMS: List[str] = [
    "structural", "load-bearing", "foundation", "framing", "HVAC",
    "electrical systems", "plumbing rough-in", "drywall", "subflooring",
    "joists", "studs", "permits", "code compliance", "inspection",
]

SIMPLIFICATIONS: Dict[str, str] = {
    "structural integrity": "building strength and safety",
    "load-bearing": "weight-supporting",
    "HVAC systems": "heating and cooling systems",
    "rough-in": "initial installation",
    "code compliance": "meeting building requirements",
    "subflooring": "floor base layer",
}

DOMAIN_KEYWORDS: List[str] = [
    "construction", "building", "renovation", "contractor", "project",
    "quote", "estimate", "materials", "timeline", "permit",
]

FORMAL_SUBSTITUTIONS: List[Tuple[str, str]] = [
    (r"\bI'm\b", "I am"),
    (r"\bwe'll\b", "we will"),
    (r"\bWe'll\b", "We will"),
    (r"\byou're\b", "you are"),
    (r"\bcan't\b", "cannot"),
    (r"\bdon't\b", "do not"),
    (r"\blet's\b", "let us"),
    (r"\bLet's\b", "Let us"),
    (r"^Hi\b", "Hello"),
]

CASUAL_SUBSTITUTIONS: List[Tuple[str, str]] = [
    (r"\bI am\b", "I'm"),
    (r"\bWe will\b", "We'll"),
    (r"\bwe will\b", "we'll"),
    (r"\bdo not\b", "don't"),
    (r"\bcannot\b", "can't"),
    (r"^Hello\b", "Hi"),
]

# Openers that can be swapped for a phrase with a proven track record
PHRASE_OPENERS: Dict[str, List[str]] = {
    "Let me help": ["Sure,", "Sure!", "Certainly,", "Of course,"],
    "I understand": ["Okay,", "OK,", "Got it,"],
    "Great question": ["Good question", "Interesting question"],
}

ACTION_MARKERS: List[str] = [
    "would you like", "let me know", "feel free", "you can", "?",
]

ACTION_ITEM_VERBS: List[str] = [
    "call", "contact", "schedule", "turn off", "shut off", "evacuate", "book", "send",
]

ALTERNATE_OPENERS: List[str] = [
    "To put it another way: ",
    "Here's a different angle: ",
    "Building on what we discussed: ",
]

PROJECT_DETAIL_NOTES: Dict[str, str] = {
    "kitchen": "Kitchen projects usually involve cabinetry, countertops, appliance layout and ventilation planning.",
    "bathroom": "Bathroom projects usually involve waterproofing, fixture selection and ventilation.",
    "addition": "Home additions usually involve foundation work, framing, permits and tie-in to existing systems.",
    "roofing": "Roofing projects usually involve decking inspection, underlayment and flashing details.",
    "commercial": "Commercial projects usually involve occupancy requirements, accessibility review and phased scheduling.",
}

# Contextual topic derivation
URGENT_TOPIC = "emergency"

# Contextual action derivation
URGENT_ACTION = "emergency_service"
PROJECT_ACTION = "get_quote"
ENGAGED_ACTION = "schedule_consultation"

ADMIN_ACTIONS: List[str] = ["admin_dashboard", "priority_support"]
SPECIALIST_ACTION = "specialist_consultation"

AFTER_HOURS_NOTE = (
    "\n\nOur office is currently closed (business hours are 9 AM to 5 PM). "
    "A team member will follow up during business hours, or call {phone} for emergencies."
)
ADMIN_NOTE = "\n\nAs an administrator, you can review this in the admin dashboard or request priority support."
LONG_CONVERSATION_NOTE = (
    "\n\nWe've covered quite a bit so far. Let me know if you'd like a summary of what we've discussed."
)
EXPANSION_PROJECT_NOTE = (
    "\n\nFor your {project_type} project specifically, this means we'll focus on the unique "
    "requirements and considerations that make this type of work successful."
)
EXPANSION_GENERIC_NOTE = (
    "\n\nI'm here to provide as much detail as you need to make informed decisions about your construction project."
)
KITCHEN_TECHNICAL_NOTE = (
    "\n\nTechnical considerations include electrical load calculations for appliances, "
    "plumbing rough-in requirements, and ventilation CFM specifications."
)
GENERIC_TECHNICAL_NOTE = "\n\nI can provide detailed technical specifications and code requirements if needed."
TECHNICAL_EMPHASIS_NOTE = (
    "\n\nTechnical note: specifications, code requirements and material data sheets are available on request."
)
STRUCTURE_CLOSING = "\n\nHow would you like to proceed?"
TRUNCATION_PROMPT = "...\n\nWould you like me to elaborate on any specific point?"
SPECIALIST_NOTE = (
    "\n\nI want to make sure I'm providing you with the most accurate information. "
    "Would you like me to connect you with one of our specialists for detailed guidance?"
)
PRIORITY_HEADER = "**Priority actions:**"
EMERGENCY_LEAD = "If anyone is in danger, call 911 first. For urgent construction issues, call (555) 123-4567 right away."
