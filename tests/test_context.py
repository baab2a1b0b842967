"""
Context building and in-memory storage tests.
"""

from datetime import datetime, timedelta

import pytest

from models.schemas import Urgency, ConversationTone, FlowStatus
from core.conversation.context import (
    ContextManager,
    ContextBuilder,
    ContextStorage,
    ContextValidator,
    ConversationTurn,
)
from core.conversation.learning import InteractionRecord, IntentAdjustment


def turn(message, role="user", minutes=0, **metadata):
    return ConversationTurn(
        conversation_id="conv_1",
        user_id="user_1",
        message=message,
        role=role,
        timestamp=datetime(2026, 1, 5, 10, 0) + timedelta(minutes=minutes),
        metadata=metadata,
    )


class TestContextBuilder:
    """Each builder step in isolation."""

    def test_urgency_levels(self):
        history = [turn("We have a leak in the roof")]

        critical = ContextBuilder("conv_1").with_urgency("Emergency, come now", history).build()
        high = ContextBuilder("conv_1").with_urgency("This is urgent", []).build()
        normal = ContextBuilder("conv_1").with_urgency("Tell me about decks", []).build()

        assert critical.urgency_level.level == Urgency.CRITICAL
        assert critical.urgency_level.score == 0.6
        assert high.urgency_level.level == Urgency.HIGH
        assert normal.urgency_level.level == Urgency.NORMAL

    def test_first_message_keywords_accumulate(self):
        """Each matched keyword adds to the score, with no history needed."""
        message = "EMERGENCY! This is urgent, immediately, the ceiling may collapse"

        emergency = ContextBuilder("conv_1").with_urgency(message, []).build()
        two_words = ContextBuilder("conv_1").with_urgency("Urgent, there is a leak", []).build()

        assert emergency.urgency_level.level == Urgency.CRITICAL
        assert emergency.urgency_level.score == 1.0
        assert two_words.urgency_level.score == 0.6
        assert two_words.urgency_level.level == Urgency.CRITICAL

    def test_short_term_memory(self):
        history = [
            turn("I love the design", intent="greeting", topics=["design"]),
            turn("Thanks!", role="bot", topics=["design", "kitchen"]),
        ]

        context = ContextBuilder("conv_1").with_short_term_memory(history).build()

        memory = context.short_term_memory
        assert memory.recent_topics == ["design", "kitchen"]
        assert memory.recent_intents == ["greeting"]
        assert memory.conversation_tone == ConversationTone.POSITIVE

    def test_long_term_memory(self):
        history = [turn("We want to redo the kitchen for about $25,000 within 3 months")]

        memory = ContextBuilder("conv_1").with_long_term_memory(history).build().long_term_memory

        assert memory.project_details["type"] == "kitchen"
        assert memory.budget_range == "$25,000"
        assert memory.timeline_preference == "3 months"

    def test_turn_index_counts_user_turns(self):
        history = [turn("hi"), turn("hello", role="bot"), turn("quote?")]

        context = ContextBuilder("conv_1").with_turn_index(history).build()

        assert context.turn_index == 2

    def test_engagement_bounded(self):
        history = [turn("x" * 300, minutes=i) for i in range(12)]

        context = ContextBuilder("conv_1").with_engagement(history).build()

        assert 0.0 < context.engagement_level <= 1.0

    def test_camel_case_preferences(self):
        context = ContextBuilder("conv_1").with_user_profile({
            "user_id": "user_1",
            "preferences": {"responseLength": "short", "communicationStyle": "formal"},
        }).build()

        assert context.user_profile.preferences == {"response_length": "short", "communication_style": "formal"}

    def test_declared_preferences_override_learned(self):
        context = ContextBuilder("conv_1").with_user_profile(
            {"preferences": {"response_length": "short"}},
            learned_preferences={"response_length": "detailed", "information_density": "low"},
        ).build()

        assert context.user_profile.preferences == {"response_length": "short", "information_density": "low"}


class TestContextManager:
    """Building from storage."""

    async def test_restores_flow_state(self):
        storage = ContextStorage()
        await storage.save_flow_state("conv_1", "quote_collection", "budget_range", {"project_type": "Other"})

        context = await ContextManager(storage).build_context("conv_1", "3", [], {"user_id": "user_1"})

        assert context.active_flow == "quote_collection"
        assert context.current_flow_step == "budget_range"
        assert context.flow_status == FlowStatus.ACTIVE
        assert context.flow_data == {"project_type": "Other"}

    async def test_learned_preferences_applied(self):
        storage = ContextStorage()
        storage.user_preferences["user_1"] = {"communication_style": "casual"}

        context = await ContextManager(storage).build_context("conv_1", "hi", [], {"user_id": "user_1"})

        assert context.user_profile.preferences["communication_style"] == "casual"

    def test_fallback_context(self):
        context = ContextManager.build_fallback_context({"conversation_id": "conv_9", "user_name": "Ana"})

        assert context.is_fallback is True
        assert context.conversation_id == "conv_9"
        assert context.user_profile.user_name == "Ana"
        assert context.urgency_level.level == Urgency.NORMAL


class TestContextValidator:
    """Consistency checks on built contexts."""

    def test_active_flow_without_step_is_error(self, make_context):
        errors = ContextValidator.validate_context(make_context(active_flow="quote_collection"))

        assert ContextValidator.has_errors(errors)

    def test_unknown_preference_is_warning(self, make_context):
        errors = ContextValidator.validate_context(make_context(preferences={"response_length": "epic"}))

        assert errors
        assert not ContextValidator.has_errors(errors)


class TestContextStorage:
    """In-memory persistence and analytics."""

    async def test_persist_and_fetch(self):
        storage = ContextStorage()
        await storage.persist_turn("conv_1", "user_1", "hi", "Hello!", 12.5, 0.9, {"topics": ["greeting"]})

        history = await storage.fetch_history("conv_1")

        assert [t.role for t in history] == ["user", "bot"]
        assert history[1].metadata["topics"] == ["greeting"]
        assert await storage.fetch_history("conv_1", limit=1) == history[-1:]

    async def test_clearing_flow_state(self):
        storage = ContextStorage()
        await storage.save_flow_state("conv_1", "quote_collection", "budget_range")

        await storage.save_flow_state("conv_1", None, None)

        assert storage.get_flow_state("conv_1") is None

    async def test_analytics_snapshot(self):
        storage = ContextStorage()
        await storage.persist_turn("conv_1", "user_1", "hi", "Hello!", 12.5, 0.9)
        for _ in range(3):
            await storage.update_analytics(InteractionRecord(
                conversation_id="conv_1", user_id="user_1", topics=["kitchen"], sentiment="positive"
            ))

        snapshot = await storage.fetch_analytics("user_1", "conv_1")

        assert snapshot.recent_bot_responses == ["Hello!"]
        assert snapshot.trending_topics == ["kitchen"]
        assert snapshot.user_sentiment_trend == "positive"
        assert snapshot.average_response_length == 300
        assert snapshot.action_success_rates["contact_support"] == 0.9

    async def test_interaction_filter(self):
        storage = ContextStorage()
        await storage.update_analytics(InteractionRecord(conversation_id="a"))
        await storage.update_analytics(InteractionRecord(conversation_id="b"))

        records = await storage.fetch_interactions("a")

        assert len(records) == 1
        assert records[0].timestamp is not None

    def test_intent_adjustment_bounded(self):
        storage = ContextStorage()
        for _ in range(20):
            storage.apply_intent_adjustment(IntentAdjustment(intent="greeting", delta=0.05, reason="test"))

        assert storage.intent_adjustments["greeting"] == pytest.approx(0.3)
