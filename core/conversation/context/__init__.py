"""Context management components"""

from .manager import (
    ContextManager,
    ContextBuilder,
    ConversationContext,
    ConversationTurn,
    UserProfile,
    ShortTermMemory,
    LongTermMemory,
    UrgencyLevel,
)
from .storage import ContextStorage, StorageConfig, AnalyticsSnapshot
from .validators import ContextValidator, ValidationError

__all__ = [
    'ContextManager',
    'ContextBuilder',
    'ConversationContext',
    'ConversationTurn',
    'UserProfile',
    'ShortTermMemory',
    'LongTermMemory',
    'UrgencyLevel',
    'ContextStorage',
    'StorageConfig',
    'AnalyticsSnapshot',
    'ContextValidator',
    'ValidationError',
]
