"""
Keyword intent detection module.

This module scores every known intent against a message using pattern and
keyword tables, adjusts the scores with recent conversation topics, the
user's role and learned adjustments, and keeps the top three.
"""

import re
import logging
from typing import Dict, Any, List, Optional
from dataclasses import dataclass, field
from enum import Enum

from models.schemas import Sentiment, Complexity
from core.conversation.context import ConversationTurn
from core.conversation.understanding.entity_extractor import EntityExtractor

logger = logging.getLogger(__name__)

PATTERN_WEIGHT = 0.4
KEYWORD_WEIGHT = 0.2
RECENT_TOPIC_BOOST = 0.15
ADMIN_EMERGENCY_BOOST = 0.1
MAX_INTENTS = 3


class IntentType(str, Enum):
    """All supported intent types"""
    # Project intents
    PROJECT_QUOTE = "project_quote"
    PROJECT_TIMELINE = "project_timeline"
    PROJECT_CONSULTATION = "project_consultation"

    # Service intents
    SERVICES_OVERVIEW = "services_overview"
    RESIDENTIAL_SERVICES = "residential_services"
    COMMERCIAL_SERVICES = "commercial_services"
    EMERGENCY_SERVICE = "emergency_service"

    # Contact and support
    CONTACT_INFO = "contact_info"
    SUPPORT_REQUEST = "support_request"

    # Business
    CREDENTIALS_INQUIRY = "credentials_inquiry"
    PAYMENT_INQUIRY = "payment_inquiry"
    MATERIALS_INQUIRY = "materials_inquiry"

    # Conversational
    GREETING = "greeting"
    FAREWELL = "farewell"
    GRATITUDE = "gratitude"


@dataclass
class IntentPattern:
    """Scoring table entry for one intent"""
    intent_type: IntentType
    patterns: List[str]
    keywords: List[str]
    confidence_boost: float
    priority: str = "medium"


@dataclass
class IntentMatch:
    """A scored intent"""
    name: str
    confidence: float
    priority: str = "medium"

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "confidence": self.confidence, "priority": self.priority}


@dataclass
class IntentAnalysis:
    """Result of intent recognition for one message"""
    primary_intent: Optional[IntentMatch] = None
    alternative_intents: List[IntentMatch] = field(default_factory=list)
    entities: Dict[str, Any] = field(default_factory=dict)
    sentiment: Sentiment = Sentiment.NEUTRAL
    complexity: Complexity = Complexity.UNKNOWN

    @classmethod
    def unknown(cls) -> 'IntentAnalysis':
        """Analysis used when recognition fails"""
        return cls()

    @property
    def intent_name(self) -> Optional[str]:
        return self.primary_intent.name if self.primary_intent else None

    @property
    def intent_confidence(self) -> float:
        return self.primary_intent.confidence if self.primary_intent else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "primary_intent": self.primary_intent.to_dict() if self.primary_intent else None,
            "alternative_intents": [m.to_dict() for m in self.alternative_intents],
            "entities": dict(self.entities),
            "sentiment": self.sentiment.value,
            "complexity": self.complexity.value,
        }


INTENT_PATTERNS: List[IntentPattern] = [
    IntentPattern(IntentType.PROJECT_QUOTE,
                  ["quote", "estimate", "price", "cost", "budget", "pricing", "how much"],
                  ["project", "construction", "build", "renovation", "remodel"], 0.2, "high"),
    IntentPattern(IntentType.PROJECT_TIMELINE,
                  ["timeline", "duration", "how long", "when", "time", "schedule", "completion"],
                  ["finish", "complete", "start", "begin"], 0.15, "high"),
    IntentPattern(IntentType.PROJECT_CONSULTATION,
                  ["consultation", "meeting", "discuss", "plan", "design", "architect"],
                  ["schedule", "appointment", "visit", "site visit"], 0.18, "high"),
    IntentPattern(IntentType.SERVICES_OVERVIEW,
                  ["services", "what do you do", "capabilities", "specialties", "expertise"],
                  ["construction", "building", "contracting"], 0.15),
    IntentPattern(IntentType.RESIDENTIAL_SERVICES,
                  ["residential", "home", "house", "custom home", "addition", "renovation"],
                  ["kitchen", "bathroom", "bedroom", "living room", "garage"], 0.12),
    IntentPattern(IntentType.COMMERCIAL_SERVICES,
                  ["commercial", "business", "office", "retail", "warehouse", "industrial"],
                  ["storefront", "restaurant", "medical", "dental"], 0.12),
    IntentPattern(IntentType.EMERGENCY_SERVICE,
                  ["emergency", "urgent", "asap", "immediate", "help now", "911", "disaster"],
                  ["damage", "leak", "structural", "safety", "collapse"], 0.3, "critical"),
    IntentPattern(IntentType.CONTACT_INFO,
                  ["contact", "phone", "email", "address", "location", "office", "reach"],
                  ["call", "speak", "talk", "visit"], 0.1),
    IntentPattern(IntentType.SUPPORT_REQUEST,
                  ["help", "support", "assistance", "problem", "issue", "trouble"],
                  ["customer service", "representative", "agent"], 0.12),
    IntentPattern(IntentType.CREDENTIALS_INQUIRY,
                  ["licensed", "insured", "bonded", "certified", "qualified", "credentials"],
                  ["license", "insurance", "bond", "certification", "accredited"], 0.15),
    IntentPattern(IntentType.PAYMENT_INQUIRY,
                  ["payment", "pay", "billing", "invoice", "financing", "loan"],
                  ["credit", "cash", "check", "installment", "down payment"], 0.12),
    IntentPattern(IntentType.MATERIALS_INQUIRY,
                  ["materials", "supplies", "quality", "brands", "suppliers"],
                  ["lumber", "concrete", "steel", "drywall", "flooring", "roofing"], 0.1, "low"),
    IntentPattern(IntentType.GREETING,
                  ["hello", "hi", "hey", "good morning", "good afternoon", "greetings"],
                  ["there", "everyone"], 0.05, "low"),
    IntentPattern(IntentType.FAREWELL,
                  ["bye", "goodbye", "see you", "farewell", "talk later", "have a good"],
                  ["thanks", "thank you"], 0.05, "low"),
    IntentPattern(IntentType.GRATITUDE,
                  ["thank", "thanks", "appreciate", "grateful"],
                  ["you", "help", "assistance"], 0.05, "low"),
]

POSITIVE_WORDS = ["great", "excellent", "amazing", "wonderful", "fantastic", "good", "happy", "satisfied", "pleased"]
NEGATIVE_WORDS = ["bad", "terrible", "awful", "horrible", "disappointed", "frustrated", "angry", "upset", "poor"]


class IntentDetector:
    """
    Table driven intent detection.

    Learned per-intent adjustments are read from a shared mapping so that
    applied learning results affect later classifications.
    """

    def __init__(self, intent_adjustments: Optional[Dict[str, float]] = None):
        self.patterns = INTENT_PATTERNS
        self.intent_adjustments = intent_adjustments if intent_adjustments is not None else {}
        self.entity_extractor = EntityExtractor()

    async def classify_intent(self, message: str,
                              history: Optional[List[ConversationTurn]] = None,
                              user_context: Optional[Dict[str, Any]] = None) -> IntentAnalysis:
        """
        Classify a message.

        Args:
            message: User's message
            history: Stored turns, oldest first
            user_context: Caller supplied user fields

        Returns:
            Intent analysis with up to three scored intents
        """
        return self.detect(message, history or [], user_context or {})

    def detect(self, message: str, history: List[ConversationTurn],
               user_context: Dict[str, Any]) -> IntentAnalysis:
        lowered = message.lower()
        recent_topics = [
            topic for turn in history[-3:] for topic in turn.metadata.get("topics", [])
        ]
        is_admin = user_context.get("user_role") == "Administrator"

        matches: List[IntentMatch] = []
        for pattern in self.patterns:
            score = self._score(pattern, lowered)
            name = pattern.intent_type.value

            if score > 0 and self._related_to_topics(name, recent_topics):
                score += RECENT_TOPIC_BOOST
            if score > 0 and is_admin and pattern.intent_type == IntentType.EMERGENCY_SERVICE:
                score += ADMIN_EMERGENCY_BOOST
            if score > 0:
                score += self.intent_adjustments.get(name, 0.0)

            if score > 0:
                matches.append(IntentMatch(name=name, confidence=round(min(score, 1.0), 4),
                                           priority=pattern.priority))

        # Stable sort keeps table order on ties
        matches.sort(key=lambda m: m.confidence, reverse=True)
        top = matches[:MAX_INTENTS]

        analysis = IntentAnalysis(
            primary_intent=top[0] if top else None,
            alternative_intents=top[1:],
            entities=self.entity_extractor.extract_values(message),
            sentiment=self.analyze_sentiment(message),
            complexity=self.assess_complexity(message),
        )

        logger.info(
            f"Intent detected: {analysis.intent_name or 'none'} (confidence: {analysis.intent_confidence})"
        )
        return analysis

    @staticmethod
    def _score(pattern: IntentPattern, lowered: str) -> float:
        score = 0.0
        match_count = 0
        for phrase in pattern.patterns:
            if re.search(r"\b" + re.escape(phrase) + r"\b", lowered):
                score += PATTERN_WEIGHT
                match_count += 1
        for keyword in pattern.keywords:
            if re.search(r"\b" + re.escape(keyword) + r"\b", lowered):
                score += KEYWORD_WEIGHT
                match_count += 1
        if match_count:
            score += pattern.confidence_boost
        return score

    @staticmethod
    def _related_to_topics(intent_name: str, topics: List[str]) -> bool:
        for topic in topics:
            stem = topic.replace("_inquiry", "").replace("_service", "")
            if stem and stem in intent_name:
                return True
        return False

    @staticmethod
    def analyze_sentiment(message: str) -> Sentiment:
        lowered = message.lower()
        if any(re.search(r"\b" + word + r"\b", lowered) for word in POSITIVE_WORDS):
            return Sentiment.POSITIVE
        if any(re.search(r"\b" + word + r"\b", lowered) for word in NEGATIVE_WORDS):
            return Sentiment.NEGATIVE
        return Sentiment.NEUTRAL

    @staticmethod
    def assess_complexity(message: str) -> Complexity:
        tokens = message.split()
        if len(tokens) > 15:
            return Complexity.HIGH
        if len(tokens) > 8:
            return Complexity.MEDIUM
        return Complexity.LOW
