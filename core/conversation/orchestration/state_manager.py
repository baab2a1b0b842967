"""
State management for guided flows.

This module provides the small state machine behind every guided flow:
Inactive -> Active -> Completed. It ensures only valid transitions happen
and keeps a short history for logging and metrics.
"""

from typing import Dict, Set, Optional, Any, List, Tuple
from datetime import datetime
import logging

from models.schemas import FlowStatus

logger = logging.getLogger(__name__)


class FlowStateMachine:
    """
    Tracks the status of one guided flow.

    A flow may be abandoned while active, returning it to Inactive. A
    completed flow goes back to Inactive when another flow starts.
    """

    VALID_TRANSITIONS: Dict[FlowStatus, Set[FlowStatus]] = {
        FlowStatus.INACTIVE: {
            FlowStatus.ACTIVE,
        },
        FlowStatus.ACTIVE: {
            FlowStatus.COMPLETED,
            FlowStatus.INACTIVE,  # Abandoned or handed over to another flow
        },
        FlowStatus.COMPLETED: {
            FlowStatus.INACTIVE,
        },
    }

    def __init__(self, flow_id: Optional[str] = None,
                 status: FlowStatus = FlowStatus.INACTIVE):
        self.flow_id = flow_id
        self.current_state: FlowStatus = status
        self.state_history: List[Tuple[FlowStatus, datetime]] = []
        self.state_entered_at: datetime = datetime.utcnow()

    def can_transition_to(self, target_state: FlowStatus) -> bool:
        """Check if transition to target state is valid from current state"""
        valid_targets = self.VALID_TRANSITIONS.get(self.current_state, set())
        return target_state in valid_targets

    def transition_to(self, target_state: FlowStatus,
                      reason: Optional[str] = None,
                      metadata: Optional[Dict[str, Any]] = None) -> bool:
        """
        Attempt to transition to a new state.

        Args:
            target_state: The state to transition to
            reason: Optional reason for the transition
            metadata: Optional metadata about the transition

        Returns:
            bool: True if transition was successful, False otherwise
        """
        if not self.can_transition_to(target_state):
            logger.warning(
                f"Invalid flow transition attempted: {self.current_state.value} -> {target_state.value}",
                extra={"flow_id": self.flow_id}
            )
            return False

        self.state_history.append((self.current_state, self.state_entered_at))

        old_state = self.current_state
        self.current_state = target_state
        self.state_entered_at = datetime.utcnow()

        logger.info(
            f"Flow transition: {old_state.value} -> {target_state.value}",
            extra={
                "flow_id": self.flow_id,
                "reason": reason,
                "metadata": metadata,
            }
        )
        return True

    @property
    def is_active(self) -> bool:
        return self.current_state == FlowStatus.ACTIVE

    @property
    def is_completed(self) -> bool:
        return self.current_state == FlowStatus.COMPLETED

    def get_state_history(self) -> List[Dict[str, Any]]:
        """Get formatted state history"""
        history = [
            {"state": state.value, "entered_at": entered_at.isoformat()}
            for state, entered_at in self.state_history
        ]
        history.append({
            "state": self.current_state.value,
            "entered_at": self.state_entered_at.isoformat(),
            "current": True
        })
        return history
