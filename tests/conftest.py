"""
Shared fixtures for the conversation pipeline tests.

Everything runs against the in-memory ContextStorage, so no fixture needs
network or database access.
"""

from datetime import datetime

import pytest

from core.conversation.context import (
    ContextStorage,
    ConversationContext,
    UserProfile,
    ShortTermMemory,
    LongTermMemory,
    UrgencyLevel,
)
from core.conversation.pipeline import TurnOrchestrator, LearningDispatcher

# Monday, inside business hours
BUSINESS_HOURS_NOW = datetime(2026, 1, 5, 10, 0)
AFTER_HOURS_NOW = datetime(2026, 1, 5, 21, 30)


@pytest.fixture
def storage():
    return ContextStorage()


@pytest.fixture
async def dispatcher():
    dispatcher = LearningDispatcher(maxsize=10)
    yield dispatcher
    await dispatcher.stop(drain=False)


@pytest.fixture
def orchestrator(storage, dispatcher):
    return TurnOrchestrator(storage, dispatcher=dispatcher, clock=lambda: BUSINESS_HOURS_NOW)


@pytest.fixture
def make_context():
    """Build a ConversationContext with only the fields a test cares about"""

    def factory(conversation_id="conv_1", preferences=None, user_role="user",
                recent_topics=None, primary_interests=None, urgency=None, **kwargs):
        return ConversationContext(
            conversation_id=conversation_id,
            user_profile=UserProfile(
                user_id="user_1",
                user_name="Sam",
                user_role=user_role,
                preferences=dict(preferences or {}),
            ),
            short_term_memory=ShortTermMemory(recent_topics=list(recent_topics or [])),
            long_term_memory=LongTermMemory(primary_interests=list(primary_interests or [])),
            urgency_level=urgency or UrgencyLevel(),
            **kwargs
        )

    return factory
