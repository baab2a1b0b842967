"""Intent understanding components"""

from .intent_detector import (
    IntentDetector,
    IntentType,
    IntentPattern,
    IntentMatch,
    IntentAnalysis,
)
from .entity_extractor import EntityExtractor, EntityType, ExtractedEntity

__all__ = [
    'IntentDetector',
    'IntentType',
    'IntentPattern',
    'IntentMatch',
    'IntentAnalysis',
    'EntityExtractor',
    'EntityType',
    'ExtractedEntity',
]
