"""
Guided flow tests: triggers, the state machine and the flow controller.
"""

import pytest

from models.schemas import FlowStatus
from core.conversation.orchestration import (
    FLOWS,
    ConversationFlowController,
    FlowStateMachine,
    determine_flow,
    requested_flow_trigger,
)


class TestTriggers:
    """Keyword and explicit flow triggers."""

    @pytest.mark.parametrize("message, flow, step", [
        ("This is an EMERGENCY", "emergency_assessment", "urgency_level"),
        ("urgent quote please", "emergency_assessment", "urgency_level"),
        ("Can I get an estimate?", "quote_collection", "project_type"),
    ])
    def test_keyword_triggers(self, message, flow, step):
        trigger = determine_flow(message)

        assert (trigger.flow, trigger.first_step) == (flow, step)

    def test_no_trigger(self):
        assert determine_flow("What are your hours?") is None

    def test_requested_flow(self):
        trigger = requested_flow_trigger("project_planning")

        assert trigger.first_step == "project_goals"
        assert requested_flow_trigger("unknown_flow") is None
        assert requested_flow_trigger(None) is None


class TestStateMachine:
    """Inactive -> Active -> Completed."""

    def test_valid_path(self):
        machine = FlowStateMachine("quote_collection")

        assert machine.transition_to(FlowStatus.ACTIVE)
        assert machine.transition_to(FlowStatus.COMPLETED)
        assert machine.current_state == FlowStatus.COMPLETED

    def test_history_records_previous_states(self):
        machine = FlowStateMachine("quote_collection")
        machine.transition_to(FlowStatus.ACTIVE)
        machine.transition_to(FlowStatus.COMPLETED)

        history = machine.get_state_history()

        assert [h["state"] for h in history] == ["inactive", "active", "completed"]
        assert history[-1]["current"] is True
        assert machine.is_completed

    def test_cannot_complete_inactive_flow(self):
        machine = FlowStateMachine("quote_collection")

        assert machine.transition_to(FlowStatus.COMPLETED) is False
        assert machine.current_state == FlowStatus.INACTIVE


class TestFlowController:
    """One message at a time through a flow."""

    def setup_method(self):
        self.controller = ConversationFlowController()

    async def test_start_asks_entry_question(self, make_context):
        context = make_context(active_flow="quote_collection", current_flow_step="project_type")

        outcome = await self.controller.manage_flow("conv_1", "project_type", "I want a quote", context)

        assert outcome.flow_active is True
        assert outcome.current_step == "project_type"
        assert "What type of construction project" in outcome.response
        assert outcome.progress == "Step 1 of 7"

    async def test_numbered_answer_advances(self, make_context):
        context = make_context(active_flow="quote_collection", current_flow_step="project_type",
                               flow_status=FlowStatus.ACTIVE)

        outcome = await self.controller.manage_flow("conv_1", "project_type", "1", context)

        assert outcome.current_step == "location_details"
        assert outcome.flow_data["project_type"] == "Kitchen Renovation"
        assert "kitchen renovation" in outcome.response

    async def test_known_budget_skips_question(self, make_context):
        context = make_context(active_flow="quote_collection", current_flow_step="project_scope",
                               flow_status=FlowStatus.ACTIVE)
        context.long_term_memory.budget_range = "$20,000"

        outcome = await self.controller.manage_flow(
            "conv_1", "project_scope", "Full gut of the upstairs bathroom", context
        )

        assert outcome.current_step == "timeline_preference"

    async def test_emergency_answer_hands_over(self, make_context):
        context = make_context(active_flow="quote_collection", current_flow_step="project_type",
                               flow_status=FlowStatus.ACTIVE)

        outcome = await self.controller.manage_flow("conv_1", "project_type", "Emergency repair", context)

        assert outcome.flow_id == "emergency_assessment"
        assert outcome.current_step == "urgency_level"

    async def test_completion(self, make_context):
        context = make_context(active_flow="quote_collection", current_flow_step="contact_preferences",
                               flow_status=FlowStatus.ACTIVE, flow_data={"project_type": "Bathroom Remodel"})

        outcome = await self.controller.manage_flow("conv_1", "contact_preferences", "2", context)

        assert outcome.flow_active is False
        assert outcome.flow_completed is True
        assert outcome.progress == "Step 7 of 7"
        assert "Bathroom Remodel" in outcome.response
        assert "Next Steps" in outcome.response

    async def test_phone_validation(self, make_context):
        context = make_context(active_flow="emergency_assessment", current_flow_step="contact_immediate",
                               flow_status=FlowStatus.ACTIVE)

        rejected = await self.controller.manage_flow("conv_1", "contact_immediate", "call me", context)
        accepted = await self.controller.manage_flow("conv_1", "contact_immediate", "(555) 987-6543", context)

        assert rejected.current_step == "contact_immediate"
        assert accepted.flow_completed is True
        assert "EMERGENCY DISPATCH INITIATED" in accepted.response

    async def test_unknown_flow_raises(self, make_context):
        context = make_context(active_flow="not_a_flow")

        with pytest.raises(ValueError):
            await self.controller.manage_flow("conv_1", None, "hi", context)

    def test_every_flow_ends_with_completion(self):
        for flow in FLOWS.values():
            assert flow.steps[-1].id == "completion"
