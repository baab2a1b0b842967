"""
Unified context management for conversations.

This module builds the typed ConversationContext for a turn from stored
history. The context is assembled through explicit builder steps, each one
owning a fixed set of fields, and is never persisted directly.
"""

import logging
import re
from collections import Counter
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Dict, Any, List, Optional, TYPE_CHECKING

from models.schemas import Urgency, ConversationTone, Complexity, Sentiment, FlowStatus

if TYPE_CHECKING:
    from core.conversation.context.storage import ContextStorage

logger = logging.getLogger(__name__)

RECENT_TURN_WINDOW = 5

URGENT_WORDS = ["emergency", "urgent", "asap", "immediately", "leak", "flood", "fire", "collapse", "danger"]
TIME_WORDS = ["today", "tonight", "right now", "right away", "now"]
POSITIVE_WORDS = ["great", "excellent", "thanks", "thank you", "perfect", "awesome", "love", "good"]
NEGATIVE_WORDS = ["bad", "terrible", "frustrated", "angry", "disappointed", "problem", "issue", "wrong", "upset"]

PROJECT_TYPES: Dict[str, List[str]] = {
    "kitchen": ["kitchen"],
    "bathroom": ["bathroom", "bath"],
    "addition": ["addition", "extension"],
    "roofing": ["roof", "roofing"],
    "basement": ["basement"],
    "deck": ["deck", "patio"],
    "commercial": ["commercial", "office", "retail"],
    "new_construction": ["new construction", "new home", "build a house"],
}

BUDGET_PATTERN = re.compile(r"\$\s?[\d,]+(?:\.\d+)?\s?k?", re.IGNORECASE)
TIMELINE_PATTERN = re.compile(r"\b(\d+\s*(?:days?|weeks?|months?)|asap|next month|this year)\b", re.IGNORECASE)

# Accepted camelCase aliases for user preference keys
PREFERENCE_ALIASES = {
    "responseLength": "response_length",
    "maxSuggestions": "max_suggestions",
    "communicationStyle": "communication_style",
    "informationDensity": "information_density",
}


@dataclass(frozen=True)
class ConversationTurn:
    """One stored message, immutable once built"""
    conversation_id: str
    user_id: str
    message: str
    role: str = "user"
    timestamp: datetime = field(default_factory=datetime.utcnow)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_user(self) -> bool:
        return self.role == "user"


@dataclass
class UserProfile:
    user_id: str = "anonymous"
    user_name: str = "there"
    user_role: str = "user"
    preferences: Dict[str, Any] = field(default_factory=dict)
    previous_interactions: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class ShortTermMemory:
    recent_topics: List[str] = field(default_factory=list)
    recent_intents: List[str] = field(default_factory=list)
    conversation_tone: ConversationTone = ConversationTone.NEUTRAL
    complexity: Complexity = Complexity.LOW


@dataclass
class LongTermMemory:
    primary_interests: List[str] = field(default_factory=list)
    project_details: Dict[str, Any] = field(default_factory=dict)
    budget_range: Optional[str] = None
    timeline_preference: Optional[str] = None


@dataclass
class UrgencyLevel:
    level: Urgency = Urgency.NORMAL
    score: float = 0.0


@dataclass
class ConversationContext:
    """Structured per-turn conversation context"""
    conversation_id: str
    user_profile: UserProfile = field(default_factory=UserProfile)
    short_term_memory: ShortTermMemory = field(default_factory=ShortTermMemory)
    long_term_memory: LongTermMemory = field(default_factory=LongTermMemory)
    urgency_level: UrgencyLevel = field(default_factory=UrgencyLevel)
    turn_index: int = 0
    engagement_level: float = 0.0
    active_flow: Optional[str] = None
    current_flow_step: Optional[str] = None
    flow_data: Dict[str, Any] = field(default_factory=dict)
    flow_status: FlowStatus = FlowStatus.INACTIVE
    current_intent: Optional[str] = None
    intent_confidence: float = 0.0
    entities: Dict[str, Any] = field(default_factory=dict)
    sentiment: Sentiment = Sentiment.NEUTRAL
    is_fallback: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging and API output"""
        return asdict(self)


def normalize_preferences(preferences: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Map camelCase preference keys onto their snake_case names"""
    normalized = {}
    for key, value in (preferences or {}).items():
        normalized[PREFERENCE_ALIASES.get(key, key)] = value
    return normalized


def _matching_words(text: str, words: List[str]) -> List[str]:
    lowered = text.lower()
    return [word for word in words if re.search(r"\b" + re.escape(word) + r"\b", lowered)]


def _contains_any(text: str, words: List[str]) -> bool:
    return bool(_matching_words(text, words))


class ContextBuilder:
    """
    Assembles a ConversationContext one step at a time.

    Every step writes only the fields it names, so stages can be reasoned
    about independently.
    """

    def __init__(self, conversation_id: str):
        self.context = ConversationContext(conversation_id=conversation_id)

    def with_user_profile(self, user_context: Dict[str, Any],
                          learned_preferences: Optional[Dict[str, Any]] = None,
                          previous_interactions: Optional[List[Dict[str, Any]]] = None) -> 'ContextBuilder':
        """Writes user_profile. Declared preferences win over learned ones."""
        preferences = normalize_preferences(learned_preferences)
        preferences.update(normalize_preferences(user_context.get("preferences")))

        interactions = list(previous_interactions or [])
        interactions.extend(user_context.get("previous_interactions") or [])

        self.context.user_profile = UserProfile(
            user_id=user_context.get("user_id") or "anonymous",
            user_name=user_context.get("user_name") or "there",
            user_role=user_context.get("user_role") or "user",
            preferences=preferences,
            previous_interactions=interactions,
        )
        return self

    def with_short_term_memory(self, history: List[ConversationTurn]) -> 'ContextBuilder':
        """Writes short_term_memory from the last few turns"""
        recent = history[-RECENT_TURN_WINDOW:]
        topics: List[str] = []
        intents: List[str] = []
        for turn in recent:
            for topic in turn.metadata.get("topics", []):
                if topic not in topics:
                    topics.append(topic)
            intent = turn.metadata.get("intent")
            if turn.is_user and intent:
                intents.append(intent)

        user_text = " ".join(turn.message for turn in recent if turn.is_user)
        if _contains_any(user_text, URGENT_WORDS):
            tone = ConversationTone.URGENT
        elif _contains_any(user_text, POSITIVE_WORDS):
            tone = ConversationTone.POSITIVE
        elif _contains_any(user_text, NEGATIVE_WORDS):
            tone = ConversationTone.NEGATIVE
        else:
            tone = ConversationTone.NEUTRAL

        self.context.short_term_memory = ShortTermMemory(
            recent_topics=topics,
            recent_intents=intents,
            conversation_tone=tone,
        )
        return self

    def with_long_term_memory(self, history: List[ConversationTurn]) -> 'ContextBuilder':
        """Writes long_term_memory from the full history"""
        topic_counts = Counter(
            topic for turn in history for topic in turn.metadata.get("topics", [])
        )
        memory = LongTermMemory(
            primary_interests=[topic for topic, _ in topic_counts.most_common(3)],
        )

        for turn in history:
            if not turn.is_user:
                continue
            lowered = turn.message.lower()
            for project_type, words in PROJECT_TYPES.items():
                if any(word in lowered for word in words):
                    memory.project_details["type"] = project_type
            budget = BUDGET_PATTERN.search(turn.message)
            if budget:
                memory.budget_range = budget.group(0).strip()
            timeline = TIMELINE_PATTERN.search(turn.message)
            if timeline:
                memory.timeline_preference = timeline.group(0).lower()

        self.context.long_term_memory = memory
        return self

    def with_urgency(self, message: str, history: List[ConversationTurn]) -> 'ContextBuilder':
        """
        Writes urgency_level from the current message and recent history.

        Every matched keyword counts: +0.3 per urgent word and +0.1 per time
        word in the message, +0.2 per urgent word in each recent user turn.
        """
        score = 0.3 * len(_matching_words(message, URGENT_WORDS))
        score += 0.1 * len(_matching_words(message, TIME_WORDS))
        for turn in history[-RECENT_TURN_WINDOW:]:
            if turn.is_user:
                score += 0.2 * len(_matching_words(turn.message, URGENT_WORDS))

        score = round(min(score, 1.0), 2)
        if score > 0.5:
            level = Urgency.CRITICAL
        elif score > 0.2:
            level = Urgency.HIGH
        else:
            level = Urgency.NORMAL

        self.context.urgency_level = UrgencyLevel(level=level, score=score)
        return self

    def with_engagement(self, history: List[ConversationTurn]) -> 'ContextBuilder':
        """Writes engagement_level as the mean of length, rate and depth scores"""
        user_turns = [turn for turn in history if turn.is_user]
        if not user_turns:
            self.context.engagement_level = 0.0
            return self

        avg_length = sum(len(turn.message) for turn in user_turns) / len(user_turns)
        length_score = min(1.0, avg_length / 100)

        duration_minutes = (user_turns[-1].timestamp - user_turns[0].timestamp).total_seconds() / 60
        rate_score = min(1.0, len(user_turns) / max(duration_minutes, 1.0) / 2)

        depth_score = min(1.0, len(user_turns) / 10)

        self.context.engagement_level = round((length_score + rate_score + depth_score) / 3, 3)
        return self

    def with_turn_index(self, history: List[ConversationTurn]) -> 'ContextBuilder':
        """Writes turn_index: the number of prior user turns"""
        self.context.turn_index = sum(1 for turn in history if turn.is_user)
        return self

    def with_flow_state(self, flow_state: Optional[Dict[str, Any]]) -> 'ContextBuilder':
        """Writes active_flow, current_flow_step and flow_data from a stored flow"""
        if flow_state and flow_state.get("active_flow"):
            self.context.active_flow = flow_state["active_flow"]
            self.context.current_flow_step = flow_state.get("current_step")
            self.context.flow_data = dict(flow_state.get("flow_data") or {})
            self.context.flow_status = FlowStatus.ACTIVE
        return self

    def build(self) -> ConversationContext:
        return self.context


class ContextManager:
    """
    Builds conversation contexts from stored history.

    The manager reads from ContextStorage but never writes to it.
    """

    def __init__(self, storage: Optional['ContextStorage'] = None):
        self.storage = storage

    async def build_context(self, conversation_id: str, message: str,
                            history: List[ConversationTurn],
                            user_context: Dict[str, Any]) -> ConversationContext:
        """
        Build the context for the current turn.

        Args:
            conversation_id: Conversation identifier
            message: Current user message
            history: Stored turns, oldest first
            user_context: Caller supplied user fields

        Returns:
            Fully built ConversationContext
        """
        learned_preferences: Dict[str, Any] = {}
        previous_interactions: List[Dict[str, Any]] = []
        flow_state = None
        user_id = user_context.get("user_id")

        if self.storage is not None:
            if user_id:
                learned_preferences = self.storage.get_learned_preferences(user_id)
                previous_interactions = self.storage.get_user_interaction_summaries(user_id)
            flow_state = self.storage.get_flow_state(conversation_id)

        context = (
            ContextBuilder(conversation_id)
            .with_user_profile(user_context, learned_preferences, previous_interactions)
            .with_short_term_memory(history)
            .with_long_term_memory(history)
            .with_urgency(message, history)
            .with_engagement(history)
            .with_turn_index(history)
            .with_flow_state(flow_state)
            .build()
        )

        logger.debug(
            f"Built context for {conversation_id}",
            extra={
                "turn_index": context.turn_index,
                "urgency": context.urgency_level.level.value,
                "active_flow": context.active_flow,
            }
        )
        return context

    @staticmethod
    def build_fallback_context(user_context: Optional[Dict[str, Any]] = None) -> ConversationContext:
        """Minimal context used when history or enrichment is unavailable"""
        user_context = user_context or {}
        return ConversationContext(
            conversation_id=user_context.get("conversation_id") or "fallback_session",
            user_profile=UserProfile(
                user_id=user_context.get("user_id") or "anonymous",
                user_name=user_context.get("user_name") or "there",
                user_role=user_context.get("user_role") or "user",
            ),
            short_term_memory=ShortTermMemory(),
            long_term_memory=LongTermMemory(),
            urgency_level=UrgencyLevel(level=Urgency.NORMAL, score=0.0),
            turn_index=0,
            is_fallback=True,
        )
