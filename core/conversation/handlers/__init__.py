"""Response generators"""

from .base import BaseResponseGenerator, DraftResponse
from .generator import IntentResponseGenerator
from .basic import generate_basic_response, BasicRule, BASIC_RULES

__all__ = [
    'BaseResponseGenerator',
    'DraftResponse',
    'IntentResponseGenerator',
    'generate_basic_response',
    'BasicRule',
    'BASIC_RULES',
]
