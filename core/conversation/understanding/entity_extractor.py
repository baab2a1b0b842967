"""
Entity extraction module.

This module extracts project entities (project type, material, urgency,
budget, timeline) from user messages.
"""

import re
import logging
from typing import Dict, Any, List, Optional
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class EntityType(str, Enum):
    """Types of entities that can be extracted"""
    PROJECT_TYPE = "projectType"
    MATERIAL = "material"
    URGENCY = "urgency"
    BUDGET = "budget"
    TIMELINE = "timeline"


@dataclass
class ExtractedEntity:
    """Represents an extracted entity"""
    entity_type: EntityType
    value: Any
    confidence: float = 1.0
    source: str = "direct"


class EntityExtractor:
    """
    Extracts entities from user messages.

    Keyword entities take the first vocabulary word found; pattern entities
    take the first regex match.
    """

    PROJECT_TYPES: List[str] = [
        "kitchen", "bathroom", "bedroom", "garage", "basement", "roof",
        "deck", "patio", "driveway", "fence", "pool",
    ]
    MATERIALS: List[str] = [
        "wood", "concrete", "steel", "brick", "stone", "vinyl", "aluminum", "composite",
    ]
    URGENCY_WORDS: List[str] = [
        "urgent", "asap", "emergency", "immediate", "soon", "quickly",
    ]

    BUDGET_PATTERN = re.compile(r"\$[\d,]+|\d+k\b|\d+ thousand|\d+ million", re.IGNORECASE)
    TIMELINE_PATTERN = re.compile(
        r"\d+\s*-\s*\d+\s*(?:day|week|month|year)s?|\d+\s*(?:day|week|month|year)s?",
        re.IGNORECASE
    )

    def extract(self, message: str) -> Dict[EntityType, ExtractedEntity]:
        """
        Extract all entities from a message.

        Args:
            message: User's message

        Returns:
            Mapping of entity type to extracted entity
        """
        entities: Dict[EntityType, ExtractedEntity] = {}
        lowered = message.lower()

        keyword_sources = [
            (EntityType.PROJECT_TYPE, self.PROJECT_TYPES),
            (EntityType.MATERIAL, self.MATERIALS),
            (EntityType.URGENCY, self.URGENCY_WORDS),
        ]
        for entity_type, vocabulary in keyword_sources:
            value = self._first_keyword(lowered, vocabulary)
            if value:
                entities[entity_type] = ExtractedEntity(entity_type, value)

        budget = self.BUDGET_PATTERN.search(message)
        if budget:
            entities[EntityType.BUDGET] = ExtractedEntity(EntityType.BUDGET, budget.group(0))

        timeline = self.TIMELINE_PATTERN.search(message)
        if timeline:
            entities[EntityType.TIMELINE] = ExtractedEntity(EntityType.TIMELINE, timeline.group(0))

        return entities

    def extract_values(self, message: str) -> Dict[str, Any]:
        """Plain name -> value mapping used in intent analysis"""
        return {entity_type.value: entity.value for entity_type, entity in self.extract(message).items()}

    @staticmethod
    def _first_keyword(lowered: str, vocabulary: List[str]) -> Optional[str]:
        for word in vocabulary:
            if re.search(r"\b" + re.escape(word), lowered):
                return word
        return None
