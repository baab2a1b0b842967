"""Integration components for the conversation system"""

from .adapter import ConversationSystemAdapter

__all__ = [
    'ConversationSystemAdapter',
]
