"""Conversation processing pipeline components"""

from .stages import (
    StageError,
    ContextFetchError,
    IntentRecognitionError,
    FlowManagementError,
    ResponseGenerationError,
    OptimizationError,
    PersistenceError,
    LearningError,
    StageResult,
    run_stage,
)
from .dispatch import LearningDispatcher
from .suggestions import (
    generate_quick_replies,
    generate_smart_suggestions,
    FALLBACK_QUICK_REPLIES,
    FALLBACK_SUGGESTION,
)
from .processor import TurnOrchestrator, TurnResult
from .middleware import (
    Middleware,
    LoggingMiddleware,
    ValidationMiddleware,
    RateLimitingMiddleware,
    MetricsMiddleware,
    ErrorHandlingMiddleware,
    MiddlewarePipeline
)
from .validators import InputValidator, OutputValidator

__all__ = [
    'StageError',
    'ContextFetchError',
    'IntentRecognitionError',
    'FlowManagementError',
    'ResponseGenerationError',
    'OptimizationError',
    'PersistenceError',
    'LearningError',
    'StageResult',
    'run_stage',
    'LearningDispatcher',
    'generate_quick_replies',
    'generate_smart_suggestions',
    'FALLBACK_QUICK_REPLIES',
    'FALLBACK_SUGGESTION',
    'TurnOrchestrator',
    'TurnResult',
    'Middleware',
    'LoggingMiddleware',
    'ValidationMiddleware',
    'RateLimitingMiddleware',
    'MetricsMiddleware',
    'ErrorHandlingMiddleware',
    'MiddlewarePipeline',
    'InputValidator',
    'OutputValidator',
]
