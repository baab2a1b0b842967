"""
Context storage and persistence layer.

This module keeps conversation turns, interaction telemetry, flow state and
learned adjustments in memory. It also serves as the model update port for
the learning engine, so applied adjustments shape later analytics snapshots.
"""

import logging
from collections import Counter, defaultdict, deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Any, List, Optional, Deque

from core.conversation.context.manager import ConversationTurn
from core.conversation.learning import (
    InteractionRecord,
    ModelUpdatePort,
    IntentAdjustment,
    ConfidenceAdjustment,
    UserPreferenceUpdate,
    FlowOptimization,
)

logger = logging.getLogger(__name__)

DEFAULT_ACTION_SUCCESS_RATES: Dict[str, float] = {
    "get_quote": 0.8,
    "schedule_consultation": 0.7,
    "contact_support": 0.9,
}
DEFAULT_SUCCESSFUL_PHRASES = ["I understand", "Let me help", "Great question"]
DEFAULT_SUCCESSFUL_STRUCTURES = ["greeting + information + action"]
INTENT_ADJUSTMENT_LIMIT = 0.3
ACTION_RATE_STEP = 0.05

# Intent -> the action that converts it
INTENT_ACTIONS: Dict[str, str] = {
    "project_quote": "get_quote",
    "project_consultation": "schedule_consultation",
    "support_request": "contact_support",
    "emergency_service": "contact_support",
}

# Failure factor -> stock phrases stripped from later responses
FAILURE_FACTOR_PHRASES: Dict[str, List[str]] = {
    "generic_response": ["Is there anything else I can help you with today?", "Feel free to reach out anytime."],
    "too_verbose": ["Reach out anytime if you have more questions about your project."],
}
UNTRENDABLE_TOPICS = {"general", "conversation_flow", "error"}


@dataclass
class StorageConfig:
    """Configuration for context storage"""
    max_history_items: int = 200
    max_interactions: int = 1000
    recent_bot_responses: int = 5
    trending_window: int = 50
    trending_min_count: int = 3
    default_average_response_length: int = 300
    default_technical_term_usage: float = 0.2
    min_length_samples: int = 5


@dataclass
class AnalyticsSnapshot:
    """Per-user analytics consumed by the response optimizer"""
    average_response_length: int = 300
    user_sentiment_trend: str = "neutral"
    successful_response_patterns: Optional[Dict[str, List[str]]] = None
    action_success_rates: Dict[str, float] = field(default_factory=dict)
    user_technical_term_usage: float = 0.0
    recent_bot_responses: List[str] = field(default_factory=list)
    trending_topics: List[str] = field(default_factory=list)
    failure_patterns: List[str] = field(default_factory=list)


class ContextStorage(ModelUpdatePort):
    """
    In-memory persistence for conversations.

    Collaborator methods are coroutines so callers treat them as suspension
    points, matching a database-backed implementation.
    """

    def __init__(self, config: Optional[StorageConfig] = None):
        self.config = config or StorageConfig()
        self._turns: Dict[str, Deque[ConversationTurn]] = defaultdict(
            lambda: deque(maxlen=self.config.max_history_items)
        )
        self._interactions: Deque[InteractionRecord] = deque(maxlen=self.config.max_interactions)
        self._flow_states: Dict[str, Dict[str, Any]] = {}

        # Learned state written through the model update port
        self.intent_adjustments: Dict[str, float] = {}
        self.confidence_adjustments: Dict[str, float] = {}
        self.user_preferences: Dict[str, Dict[str, Any]] = {}
        self.action_success_rates: Dict[str, float] = dict(DEFAULT_ACTION_SUCCESS_RATES)
        self.response_optimizations: Deque[Dict[str, Any]] = deque(maxlen=50)
        self.flow_optimizations: Dict[str, FlowOptimization] = {}
        self.failure_phrases: List[str] = []

    # Collaborator interface

    async def fetch_history(self, conversation_id: str, limit: Optional[int] = None) -> List[ConversationTurn]:
        """
        Get stored turns for a conversation, oldest first.

        Args:
            conversation_id: Conversation identifier
            limit: Maximum number of most recent turns

        Returns:
            List of conversation turns
        """
        turns = list(self._turns.get(conversation_id, []))
        if limit is not None:
            turns = turns[-limit:] if limit > 0 else []
        return turns

    async def persist_turn(self, conversation_id: str, user_id: str,
                           user_message: str, bot_response: str,
                           processing_time_ms: float, confidence: float,
                           metadata: Optional[Dict[str, Any]] = None) -> None:
        """Save the user message and the bot response of one turn"""
        metadata = metadata or {}
        now = datetime.utcnow()
        user_meta = {
            "intent": metadata.get("intent"),
            "topics": list(metadata.get("topics", [])),
            "sentiment": metadata.get("sentiment"),
        }
        bot_meta = {
            "topics": list(metadata.get("topics", [])),
            "confidence": confidence,
            "processing_time_ms": processing_time_ms,
            "response_pattern": metadata.get("response_pattern"),
        }
        turns = self._turns[conversation_id]
        turns.append(ConversationTurn(conversation_id, user_id, user_message, "user", now, user_meta))
        turns.append(ConversationTurn(conversation_id, user_id, bot_response, "bot", now, bot_meta))
        logger.debug(f"Persisted turn for {conversation_id}", extra={"turns_stored": len(turns)})

    async def update_analytics(self, record: InteractionRecord) -> None:
        """Append one interaction record"""
        if record.timestamp is None:
            record.timestamp = datetime.utcnow()
        self._interactions.append(record)

    async def fetch_interactions(self, conversation_id: Optional[str] = None,
                                 limit: Optional[int] = None) -> List[InteractionRecord]:
        """Get interaction records, optionally for one conversation"""
        records = [
            r for r in self._interactions
            if conversation_id is None or r.conversation_id == conversation_id
        ]
        if limit is not None:
            records = records[-limit:] if limit > 0 else []
        return records

    async def fetch_analytics(self, user_id: Optional[str], conversation_id: str) -> AnalyticsSnapshot:
        """Build the analytics snapshot used to optimize a response"""
        user_records = [r for r in self._interactions if user_id and r.user_id == user_id]

        return AnalyticsSnapshot(
            average_response_length=self._average_response_length(user_records),
            user_sentiment_trend=self._sentiment_trend(user_records),
            successful_response_patterns={
                "successful_phrases": list(DEFAULT_SUCCESSFUL_PHRASES),
                "successful_structures": list(DEFAULT_SUCCESSFUL_STRUCTURES),
            },
            action_success_rates=dict(self.action_success_rates),
            user_technical_term_usage=self.config.default_technical_term_usage,
            recent_bot_responses=[
                turn.message for turn in self._turns.get(conversation_id, []) if not turn.is_user
            ][-self.config.recent_bot_responses:],
            trending_topics=self._trending_topics(),
            failure_patterns=list(self.failure_phrases),
        )

    # Flow state

    def get_flow_state(self, conversation_id: str) -> Optional[Dict[str, Any]]:
        state = self._flow_states.get(conversation_id)
        return dict(state) if state else None

    async def save_flow_state(self, conversation_id: str, active_flow: Optional[str],
                              current_step: Optional[str], flow_data: Optional[Dict[str, Any]] = None) -> None:
        """Remember an active flow so the next turn can resume it; clears when inactive"""
        if not active_flow or not current_step:
            self._flow_states.pop(conversation_id, None)
            return
        self._flow_states[conversation_id] = {
            "active_flow": active_flow,
            "current_step": current_step,
            "flow_data": dict(flow_data or {}),
        }

    # User level lookups

    def get_learned_preferences(self, user_id: str) -> Dict[str, Any]:
        return dict(self.user_preferences.get(user_id, {}))

    def get_user_interaction_summaries(self, user_id: str) -> List[Dict[str, Any]]:
        """Outcome and rating of the user's past interactions"""
        return [
            {"outcome": r.outcome, "rating": r.user_satisfaction}
            for r in self._interactions
            if r.user_id == user_id and (r.outcome is not None or r.user_satisfaction is not None)
        ]

    # Model update port

    def apply_intent_adjustment(self, adjustment: IntentAdjustment) -> None:
        current = self.intent_adjustments.get(adjustment.intent, 0.0) + adjustment.delta
        limit = INTENT_ADJUSTMENT_LIMIT
        self.intent_adjustments[adjustment.intent] = max(-limit, min(limit, round(current, 4)))

    def apply_response_optimization(self, optimization: Dict[str, Any]) -> None:
        """
        Record an outcome optimization and fold it into the analytics snapshot.

        Failure avoidance adds the stock phrases tied to its factors to the
        failure phrases and lowers the success rate of the failed intents'
        actions. Success replication raises those rates.
        """
        self.response_optimizations.append(optimization)
        patterns = optimization.get("patterns") or {}
        kind = optimization.get("type")

        if kind == "failure_pattern_avoidance":
            for factor in patterns.get("common_factors", []):
                for phrase in FAILURE_FACTOR_PHRASES.get(factor, []):
                    if phrase not in self.failure_phrases:
                        self.failure_phrases.append(phrase)
            self._shift_action_rates(patterns.get("common_intents", []), -ACTION_RATE_STEP)
        elif kind == "success_pattern_replication":
            self._shift_action_rates(patterns.get("common_intents", []), ACTION_RATE_STEP)

    def apply_confidence_adjustment(self, adjustment: ConfidenceAdjustment) -> None:
        self.confidence_adjustments[adjustment.pattern] = adjustment.adjustment

    def apply_user_preferences(self, update: UserPreferenceUpdate) -> None:
        learned = self.user_preferences.setdefault(update.user_id, {})
        learned.update({k: v for k, v in update.preferences.items() if v is not None})

    def apply_flow_optimization(self, optimization: FlowOptimization) -> None:
        self.flow_optimizations[optimization.flow] = optimization

    def get_learning_state(self) -> Dict[str, Any]:
        """Summary of learned adjustments for metrics endpoints"""
        return {
            "intent_adjustments": dict(self.intent_adjustments),
            "confidence_adjustments": dict(self.confidence_adjustments),
            "users_with_learned_preferences": len(self.user_preferences),
            "response_optimizations": len(self.response_optimizations),
            "underperforming_flows": sorted(self.flow_optimizations),
        }

    # Helpers

    def _shift_action_rates(self, intents: List[str], delta: float) -> None:
        actions = {INTENT_ACTIONS[intent] for intent in intents if intent in INTENT_ACTIONS}
        for action in actions:
            current = self.action_success_rates.get(action, 0.5)
            self.action_success_rates[action] = round(max(0.0, min(1.0, current + delta)), 4)

    def _average_response_length(self, records: List[InteractionRecord]) -> int:
        lengths = [
            r.response_length for r in records
            if r.is_successful and r.response_length is not None
        ]
        if len(lengths) < self.config.min_length_samples:
            return self.config.default_average_response_length
        return int(sum(lengths) / len(lengths))

    @staticmethod
    def _sentiment_trend(records: List[InteractionRecord]) -> str:
        sentiments = Counter(r.sentiment for r in records[-5:] if r.sentiment)
        if not sentiments:
            return "neutral"
        return sentiments.most_common(1)[0][0]

    def _trending_topics(self) -> List[str]:
        window = list(self._interactions)[-self.config.trending_window:]
        counts = Counter(
            topic for r in window for topic in r.topics if topic not in UNTRENDABLE_TOPICS
        )
        return [
            topic for topic, count in counts.most_common(3)
            if count >= self.config.trending_min_count
        ]
