"""Guided flow orchestration components"""

from .flows import FLOWS, FlowDefinition, FlowStep, FlowBranch, StepType
from .state_manager import FlowStateMachine
from .transitions import FlowTrigger, FLOW_TRIGGER_RULES, determine_flow, requested_flow_trigger
from .flow_controller import ConversationFlowController, FlowOutcome

__all__ = [
    'FLOWS',
    'FlowDefinition',
    'FlowStep',
    'FlowBranch',
    'StepType',
    'FlowStateMachine',
    'FlowTrigger',
    'FLOW_TRIGGER_RULES',
    'determine_flow',
    'requested_flow_trigger',
    'ConversationFlowController',
    'FlowOutcome',
]
