"""
Core conversation handling system.

This package provides the conversational response pipeline:
- Context management and in-memory persistence
- Intent understanding and entity extraction
- Guided conversation flows
- Intent based response generation
- Response optimization
- Learning from interaction telemetry
- The turn pipeline and its integration adapter
"""

from .learning import LearningEngine
from .context import (
    ContextManager,
    ConversationContext,
    ContextStorage,
)
from .understanding import (
    IntentDetector,
    IntentType,
    EntityExtractor,
    EntityType,
)
from .orchestration import (
    ConversationFlowController,
    FlowStateMachine,
)
from .handlers import (
    BaseResponseGenerator,
    IntentResponseGenerator,
    generate_basic_response,
)
from .optimization import ResponseOptimizer
from .pipeline import (
    TurnOrchestrator,
    TurnResult,
    MiddlewarePipeline,
)
from .integration import ConversationSystemAdapter

__all__ = [
    # Learning
    'LearningEngine',

    # Context
    'ContextManager',
    'ConversationContext',
    'ContextStorage',

    # Understanding
    'IntentDetector',
    'IntentType',
    'EntityExtractor',
    'EntityType',

    # Orchestration
    'ConversationFlowController',
    'FlowStateMachine',

    # Handlers
    'BaseResponseGenerator',
    'IntentResponseGenerator',
    'generate_basic_response',

    # Optimization
    'ResponseOptimizer',

    # Pipeline
    'TurnOrchestrator',
    'TurnResult',
    'MiddlewarePipeline',

    # Integration
    'ConversationSystemAdapter',
]
