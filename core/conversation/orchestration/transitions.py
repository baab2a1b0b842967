"""
Flow trigger rules.

This module maps message keywords onto the guided flow (and its first step)
that a turn should enter.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple
import logging

from core.conversation.orchestration.flows import FLOWS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FlowTrigger:
    """A keyword rule that starts a flow at its first step"""
    flow: str
    first_step: str
    keywords: Tuple[str, ...]

    def matches(self, message: str) -> bool:
        lowered = message.lower()
        return any(keyword in lowered for keyword in self.keywords)


# Checked in order; the first matching rule wins
FLOW_TRIGGER_RULES: List[FlowTrigger] = [
    FlowTrigger("emergency_assessment", "urgency_level", ("emergency", "urgent")),
    FlowTrigger("quote_collection", "project_type", ("quote", "estimate")),
]


def determine_flow(message: str) -> Optional[FlowTrigger]:
    """
    Find the flow a message triggers.

    Args:
        message: User's message

    Returns:
        The first matching trigger, or None
    """
    for rule in FLOW_TRIGGER_RULES:
        if rule.matches(message):
            return rule
    return None


def requested_flow_trigger(flow_id: Optional[str]) -> Optional[FlowTrigger]:
    """Trigger for a flow the caller asked for explicitly, e.g. from a UI button"""
    if not flow_id:
        return None
    flow = FLOWS.get(flow_id)
    if flow is None:
        logger.warning(f"Unknown flow requested: {flow_id}")
        return None
    return FlowTrigger(flow.flow_id, flow.first_step.id, ())
