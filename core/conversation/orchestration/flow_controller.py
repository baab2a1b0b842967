"""
Conversation flow controller for guided multi-step flows.

This module validates an answer against the current step of the active flow,
records it, advances to the next input step and renders the response,
including any message steps (summary, safety, dispatch) passed on the way.
"""

from dataclasses import dataclass, field
from typing import Dict, Any, Optional, List
import logging

from config import settings
from models.schemas import FlowStatus
from core.conversation.context import ConversationContext
from .flows import (
    FLOWS,
    FlowDefinition,
    FlowStep,
    StepType,
    STEP_ACKNOWLEDGMENTS,
    DEFAULT_ACKNOWLEDGMENT,
    COMPLETION_RESPONSES,
    DEFAULT_COMPLETION_RESPONSE,
    SAFETY_MESSAGE,
    DISPATCH_MESSAGE,
    CONFIRMATION_MESSAGE,
    FLOW_ACTIONS,
    COMPLETED_FLOW_ACTIONS,
    FLOW_INTROS,
)
from .state_manager import FlowStateMachine

logger = logging.getLogger(__name__)


@dataclass
class FlowOutcome:
    """Result of handling one message inside a guided flow"""
    flow_active: bool = False
    current_step: Optional[str] = None
    response: Optional[str] = None
    progress: Optional[str] = None
    flow_completed: bool = False
    suggested_actions: List[str] = field(default_factory=list)
    flow_data: Dict[str, Any] = field(default_factory=dict)
    flow_id: Optional[str] = None

    @classmethod
    def inactive(cls) -> 'FlowOutcome':
        """Outcome used when flow management is unavailable"""
        return cls()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "flow_active": self.flow_active,
            "current_step": self.current_step,
            "response": self.response,
            "progress": self.progress,
            "flow_completed": self.flow_completed,
            "suggested_actions": list(self.suggested_actions),
        }


class ConversationFlowController:
    """
    Drives guided flows one message at a time.

    The controller holds no per-conversation state; everything it needs comes
    from the context and everything it changes goes back in the outcome.
    """

    def __init__(self, flows: Optional[Dict[str, FlowDefinition]] = None):
        self.flows = flows or FLOWS

    async def manage_flow(self, conversation_id: str, step: Optional[str],
                          message: str, context: ConversationContext) -> FlowOutcome:
        """
        Handle a message for the context's active flow.

        Args:
            conversation_id: Conversation identifier
            step: Current step id
            message: User's message
            context: Conversation context with active_flow set

        Returns:
            FlowOutcome describing the response and the next step
        """
        flow = self.flows.get(context.active_flow or "")
        if flow is None:
            raise ValueError(f"Unknown flow: {context.active_flow}")

        machine = FlowStateMachine(flow.flow_id, context.flow_status)
        flow_data = dict(context.flow_data)
        name = context.user_profile.user_name

        if not machine.is_active:
            machine.transition_to(FlowStatus.ACTIVE, reason="flow triggered",
                                  metadata={"conversation_id": conversation_id})
            entry = flow.get_step(step) or flow.first_step
            intro = FLOW_INTROS.get(flow.flow_id, "").format(name=name)
            return self._advance(flow, entry.id, [intro], flow_data, machine, context)

        current = flow.get_step(step)
        if current is None or not current.takes_input:
            logger.warning(
                f"Flow {flow.flow_id} has no input step {step}, completing",
                extra={"conversation_id": conversation_id}
            )
            return self._complete(flow, [], flow_data, machine, context)

        if not current.is_valid(message):
            return FlowOutcome(
                flow_active=True,
                current_step=current.id,
                response=self._reprompt(current, name),
                progress=flow.progress(current.id),
                suggested_actions=list(FLOW_ACTIONS.get(flow.flow_id, [])),
                flow_data=flow_data,
                flow_id=flow.flow_id,
            )

        answer = self._normalize_answer(current, message)
        flow_data[current.id] = answer
        acknowledgment = self._acknowledge(current, answer, name)

        branch = self._select_branch(current, answer, context)
        if branch is not None and branch.flow and branch.flow != flow.flow_id:
            return self._hand_over(flow, branch.flow, branch.target, acknowledgment,
                                   machine, context, conversation_id)

        next_step = branch.target if branch is not None else current.next_step
        logger.info(
            f"Flow {flow.flow_id}: {current.id} -> {next_step}",
            extra={"conversation_id": conversation_id}
        )
        return self._advance(flow, next_step, [acknowledgment], flow_data, machine, context)

    def _advance(self, flow: FlowDefinition, step_id: Optional[str], parts: List[str],
                 flow_data: Dict[str, Any], machine: FlowStateMachine,
                 context: ConversationContext) -> FlowOutcome:
        """Render message steps until the next input step or the end of the flow"""
        name = context.user_profile.user_name
        step = flow.get_step(step_id)

        while step is not None and not step.takes_input:
            if step.step_type == StepType.COMPLETION:
                return self._complete(flow, parts, flow_data, machine, context)
            if step.step_type == StepType.DISPATCH:
                parts.append(DISPATCH_MESSAGE.format(phone=settings.SUPPORT_PHONE, name=name))
                return self._complete(flow, parts, flow_data, machine, context, closing=False)
            if step.step_type == StepType.SUMMARY:
                parts.append(self._summary(flow_data))
            elif step.step_type == StepType.SAFETY_MESSAGE:
                parts.append(SAFETY_MESSAGE)
            elif step.step_type == StepType.CONFIRMATION:
                parts.append(CONFIRMATION_MESSAGE.format(
                    name=name,
                    consultation_type=flow_data.get("consultation_type", "Standard consultation"),
                    preferred_timing=flow_data.get("preferred_timing", "To be scheduled"),
                    contact_details=flow_data.get("contact_details", "Provided"),
                ))
            step = flow.get_step(step.next_step)

        if step is None:
            return self._complete(flow, parts, flow_data, machine, context)

        parts.append(step.render_question())
        return FlowOutcome(
            flow_active=True,
            current_step=step.id,
            response="\n\n".join(part for part in parts if part),
            progress=flow.progress(step.id),
            suggested_actions=list(FLOW_ACTIONS.get(flow.flow_id, [])),
            flow_data=flow_data,
            flow_id=flow.flow_id,
        )

    def _complete(self, flow: FlowDefinition, parts: List[str], flow_data: Dict[str, Any],
                  machine: FlowStateMachine, context: ConversationContext,
                  closing: bool = True) -> FlowOutcome:
        machine.transition_to(FlowStatus.COMPLETED, reason="flow finished")
        if closing:
            template = COMPLETION_RESPONSES.get(flow.flow_id, DEFAULT_COMPLETION_RESPONSE)
            parts.append(template.format(name=context.user_profile.user_name))

        total = flow.counted_steps
        return FlowOutcome(
            flow_active=False,
            current_step=None,
            response="\n\n".join(part for part in parts if part),
            progress=f"Step {total} of {total}",
            flow_completed=True,
            suggested_actions=list(COMPLETED_FLOW_ACTIONS.get(flow.flow_id, [])),
            flow_data=flow_data,
            flow_id=flow.flow_id,
        )

    def _hand_over(self, flow: FlowDefinition, target_flow: str, target_step: str,
                   acknowledgment: str, machine: FlowStateMachine,
                   context: ConversationContext, conversation_id: str) -> FlowOutcome:
        """Leave the current flow and start another one at the given step"""
        machine.transition_to(FlowStatus.INACTIVE, reason=f"handed over to {target_flow}")
        new_flow = self.flows[target_flow]
        new_machine = FlowStateMachine(new_flow.flow_id)
        new_machine.transition_to(FlowStatus.ACTIVE, reason=f"handed over from {flow.flow_id}",
                                  metadata={"conversation_id": conversation_id})
        intro = FLOW_INTROS.get(new_flow.flow_id, "").format(name=context.user_profile.user_name)
        return self._advance(new_flow, target_step, [acknowledgment, intro], {}, new_machine, context)

    @staticmethod
    def _select_branch(step: FlowStep, answer: str, context: ConversationContext):
        lowered = answer.lower()
        for branch in step.branches:
            if branch.keywords and any(keyword in lowered for keyword in branch.keywords):
                return branch
            if branch.known_field and getattr(context.long_term_memory, branch.known_field, None):
                return branch
        return None

    @staticmethod
    def _normalize_answer(step: FlowStep, message: str) -> str:
        """Map a numbered choice onto its option text"""
        answer = message.strip()
        if step.step_type == StepType.SELECTION and answer.isdigit():
            index = int(answer) - 1
            if 0 <= index < len(step.options):
                return step.options[index]
        return answer

    @staticmethod
    def _acknowledge(step: FlowStep, answer: str, name: str) -> str:
        if step.step_type == StepType.SELECTION:
            template = STEP_ACKNOWLEDGMENTS.get(step.id, DEFAULT_ACKNOWLEDGMENT)
            return f"Thank you, {name}! " + template.format(answer=answer.lower())
        return f"Perfect, {name}! I've noted that information."

    @staticmethod
    def _reprompt(step: FlowStep, name: str) -> str:
        if step.step_type == StepType.SELECTION:
            numbered = "\n".join(f"{i + 1}. {option}" for i, option in enumerate(step.options))
            return (
                f"I'd like to help you with that, {name}. Please choose one of the following options:\n\n"
                f"{numbered}\n\nYou can respond with the number or type your choice."
            )
        if step.step_type == StepType.PHONE:
            return (
                f"Please provide a valid phone number where our emergency team can reach you, {name}.\n\n"
                f"Example: (555) 123-4567 or 555-123-4567"
            )
        if step.step_type == StepType.CONTACT_FORM:
            return (
                f"Please provide both your email address and phone number so we can schedule "
                f"your consultation, {name}.\n\nExample: jane@example.com, (555) 123-4567"
            )
        return (
            f"I'd like to get a bit more detail, {name}. {step.question}\n\n"
            f"Please provide some additional information to help me assist you better."
        )

    @staticmethod
    def _summary(flow_data: Dict[str, Any]) -> str:
        if not flow_data:
            return ""
        lines = [f"• **{key.replace('_', ' ').title()}**: {value}" for key, value in flow_data.items()]
        return "**Here's a summary of what you shared:**\n" + "\n".join(lines)
