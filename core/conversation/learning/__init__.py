"""Learning from interaction telemetry and feedback"""

from .records import (
    InteractionRecord,
    ExplicitFeedback,
    FeedbackRecord,
    LearningResult,
)
from .ports import (
    ModelUpdatePort,
    InMemoryModelUpdatePort,
    IntentAdjustment,
    ConfidenceAdjustment,
    UserPreferenceUpdate,
    FlowOptimization,
)
from .engine import LearningEngine

__all__ = [
    'InteractionRecord',
    'ExplicitFeedback',
    'FeedbackRecord',
    'LearningResult',
    'ModelUpdatePort',
    'InMemoryModelUpdatePort',
    'IntentAdjustment',
    'ConfidenceAdjustment',
    'UserPreferenceUpdate',
    'FlowOptimization',
    'LearningEngine',
]
