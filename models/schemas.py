"""Data models for the site assistant chatbot"""
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from enum import Enum


class Sentiment(str, Enum):
    """Detected message sentiment"""
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class Complexity(str, Enum):
    """Message complexity bands"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    UNKNOWN = "unknown"


class Urgency(str, Enum):
    """Coarse triage signal"""
    NORMAL = "normal"
    HIGH = "high"
    CRITICAL = "critical"


class ConversationTone(str, Enum):
    """Tone derived from the most recent turns"""
    NEUTRAL = "neutral"
    POSITIVE = "positive"
    NEGATIVE = "negative"
    URGENT = "urgent"


class FlowStatus(str, Enum):
    """Guided flow state machine states"""
    INACTIVE = "inactive"
    ACTIVE = "active"
    COMPLETED = "completed"


class ChatRequest(BaseModel):
    """Inbound chat turn"""
    message: str
    conversation_id: Optional[str] = None
    user_id: Optional[str] = None
    user_context: Dict[str, Any] = Field(default_factory=dict)
    requested_flow: Optional[str] = None


class InteractionRecordModel(BaseModel):
    """One row of turn telemetry supplied to the learning endpoint"""
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
    topics: List[str] = Field(default_factory=list)
    outcome: Optional[str] = None
    conversation_status: Optional[str] = None


class ExplicitFeedbackModel(BaseModel):
    """A user-provided rating"""
    rating: Optional[float] = None
    category: Optional[str] = None
    comment: Optional[str] = None
    response_pattern: Optional[str] = None


class FeedbackModel(BaseModel):
    """Explicit and implicit feedback for one conversation"""
    explicit_feedback: List[ExplicitFeedbackModel] = Field(default_factory=list)
    implicit_feedback: Optional[Dict[str, Any]] = None


class LearnRequest(BaseModel):
    """Batch of interactions to learn from"""
    conversation_id: str
    # None means: learn from the stored log for the conversation
    interactions: Optional[List[InteractionRecordModel]] = None
    feedback: Optional[FeedbackModel] = None
    apply: bool = True
