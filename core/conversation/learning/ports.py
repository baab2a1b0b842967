"""
Model update port.

The learning engine hands concrete adjustment records to a port instead of
mutating models itself. Storage implementations decide how those records
feed later turns.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Any, List


@dataclass
class IntentAdjustment:
    """Net score shift for one intent"""
    intent: str
    delta: float
    reason: str


@dataclass
class ConfidenceAdjustment:
    """Confidence shift for a response pattern"""
    pattern: str
    adjustment: float
    reason: str = ""
    confidence_modifier: float = 1.0


@dataclass
class UserPreferenceUpdate:
    """Preferences learned for one user"""
    user_id: str
    preferences: Dict[str, Any] = field(default_factory=dict)


@dataclass
class FlowOptimization:
    """A guided flow that underperforms"""
    flow: str
    success_rate: float
    average_satisfaction: float


class ModelUpdatePort(ABC):
    """Receives adjustment records from the learning engine"""

    @abstractmethod
    def apply_intent_adjustment(self, adjustment: IntentAdjustment) -> None:
        pass

    @abstractmethod
    def apply_response_optimization(self, optimization: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    def apply_confidence_adjustment(self, adjustment: ConfidenceAdjustment) -> None:
        pass

    @abstractmethod
    def apply_user_preferences(self, update: UserPreferenceUpdate) -> None:
        pass

    @abstractmethod
    def apply_flow_optimization(self, optimization: FlowOptimization) -> None:
        pass


class InMemoryModelUpdatePort(ModelUpdatePort):
    """Port that accepts every record and keeps it in memory"""

    def __init__(self):
        self.applied: List[Any] = []

    def apply_intent_adjustment(self, adjustment: IntentAdjustment) -> None:
        self.applied.append(adjustment)

    def apply_response_optimization(self, optimization: Dict[str, Any]) -> None:
        self.applied.append(optimization)

    def apply_confidence_adjustment(self, adjustment: ConfidenceAdjustment) -> None:
        self.applied.append(adjustment)

    def apply_user_preferences(self, update: UserPreferenceUpdate) -> None:
        self.applied.append(update)

    def apply_flow_optimization(self, optimization: FlowOptimization) -> None:
        self.applied.append(optimization)
