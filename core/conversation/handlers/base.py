"""
Base response generator interface.

This module defines the draft response produced by response generation and
the abstract base class every response generator implements.
"""

from abc import ABC, abstractmethod
from copy import deepcopy
from typing import Dict, Any, List
from dataclasses import dataclass, field
import logging

from core.conversation.context import ConversationContext
from core.conversation.understanding import IntentAnalysis

logger = logging.getLogger(__name__)


@dataclass
class DraftResponse:
    """
    A generated response on its way through optimization.

    response_metadata["optimization_strategies"] only ever grows while a
    turn is processed.
    """
    response: str
    confidence: float
    topics: List[str] = field(default_factory=list)
    suggested_actions: List[str] = field(default_factory=list)
    response_metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def strategies(self) -> List[str]:
        return self.response_metadata.setdefault("optimization_strategies", [])

    def add_strategy(self, label: str) -> None:
        if label not in self.strategies:
            self.strategies.append(label)

    def copy(self) -> 'DraftResponse':
        return deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "response": self.response,
            "confidence": self.confidence,
            "topics": list(self.topics),
            "suggested_actions": list(self.suggested_actions),
            "response_metadata": deepcopy(self.response_metadata),
        }


class BaseResponseGenerator(ABC):
    """
    Abstract base class for response generators.

    A generator turns an intent analysis and a conversation context into a
    draft response. Generators may raise; callers provide the fallback.
    """

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    async def generate_response(self, analysis: IntentAnalysis,
                                context: ConversationContext,
                                message: str) -> DraftResponse:
        """
        Generate a draft response.

        Args:
            analysis: Intent analysis for the message
            context: Current conversation context
            message: User's message

        Returns:
            Draft response
        """
        pass

    def log_generation(self, analysis: IntentAnalysis, draft: DraftResponse):
        """Log generation for debugging"""
        self.logger.info(
            f"Generated response for {analysis.intent_name or 'unrecognized'} intent",
            extra={
                "intent_confidence": analysis.intent_confidence,
                "response_confidence": draft.confidence,
                "topics": draft.topics,
            }
        )
