"""
Interaction and feedback records consumed by the learning engine.

Records are append-only telemetry. Values outside their documented ranges
are treated as absent rather than clamped.
"""

from dataclasses import dataclass, field, asdict, fields
from datetime import datetime
from typing import Dict, Any, List, Optional

SATISFACTION_RANGE = (0.0, 5.0)
RATING_RANGE = (1.0, 5.0)


def _in_range(value: Optional[float], bounds) -> Optional[float]:
    """Return value if it is a number inside bounds, else None"""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    low, high = bounds
    if number < low or number > high:
        return None
    return number


@dataclass
class InteractionRecord:
    """One row of turn telemetry"""
    conversation_id: Optional[str] = None
    user_id: Optional[str] = None
    intent_recognized: Optional[str] = None
    actual_intent: Optional[str] = None
    intent_confidence: Optional[float] = None
    confidence_score: Optional[float] = None
    user_satisfaction: Optional[float] = None
    response_time: Optional[float] = None
    response_length: Optional[int] = None
    response_type: Optional[str] = None
    engagement_score: Optional[float] = None
    context_relevance: Optional[float] = None
    personalization_score: Optional[float] = None
    personalized: bool = False
    response_relevance_score: Optional[float] = None
    communication_style: Optional[str] = None
    information_density: Optional[str] = None
    sentiment: Optional[str] = None
    active_flow: Optional[str] = None
    topics: List[str] = field(default_factory=list)
    outcome: Optional[str] = None
    conversation_status: Optional[str] = None
    timestamp: Optional[datetime] = None

    def __post_init__(self):
        self.user_satisfaction = _in_range(self.user_satisfaction, SATISFACTION_RANGE)

    @property
    def is_successful(self) -> bool:
        """Outcome-level success used by outcome analysis"""
        satisfied = self.user_satisfaction is not None and self.user_satisfaction > 3
        return self.outcome == "successful" or satisfied

    @property
    def is_failed(self) -> bool:
        """Outcome-level failure used by outcome analysis"""
        dissatisfied = self.user_satisfaction is not None and self.user_satisfaction <= 2
        return self.outcome == "failed" or dissatisfied

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'InteractionRecord':
        """Create from a loosely shaped dictionary, ignoring unknown keys"""
        known = {f.name for f in fields(cls)}
        values = {key: value for key, value in data.items() if key in known}
        if values.get("topics") is None:
            values["topics"] = []
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat() if self.timestamp else None
        return data


@dataclass
class ExplicitFeedback:
    """A rating left by the user on a response"""
    rating: Optional[float] = None
    category: Optional[str] = None
    comment: Optional[str] = None
    response_pattern: Optional[str] = None

    def __post_init__(self):
        self.rating = _in_range(self.rating, RATING_RANGE)


@dataclass
class FeedbackRecord:
    """Explicit ratings plus implicit engagement signals"""
    explicit_feedback: List[ExplicitFeedback] = field(default_factory=list)
    implicit_feedback: Optional[Dict[str, Any]] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FeedbackRecord':
        """Create from dictionary"""
        explicit = []
        for item in data.get("explicit_feedback") or []:
            if isinstance(item, ExplicitFeedback):
                explicit.append(item)
            else:
                explicit.append(ExplicitFeedback(
                    rating=item.get("rating"),
                    category=item.get("category"),
                    comment=item.get("comment"),
                    response_pattern=item.get("response_pattern"),
                ))
        return cls(
            explicit_feedback=explicit,
            implicit_feedback=data.get("implicit_feedback"),
        )


@dataclass
class LearningResult:
    """Insights derived from one batch of interactions"""
    patterns_learned: Dict[str, Any] = field(default_factory=dict)
    improvements_identified: List[Dict[str, Any]] = field(default_factory=list)
    confidence_adjustments: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    response_optimizations: List[Dict[str, Any]] = field(default_factory=list)
    user_preferences_updated: bool = False
    user_preferences: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    success_metrics: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return asdict(self)
