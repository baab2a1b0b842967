"""Response optimization"""

from . import rules
from . import transforms
from .rules import Strategy
from .optimizer import ResponseOptimizer

__all__ = [
    'rules',
    'transforms',
    'Strategy',
    'ResponseOptimizer',
]
