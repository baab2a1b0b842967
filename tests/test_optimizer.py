"""
Unit tests for the response optimizer.

The optimizer is a pure function of draft, context, analytics and clock, so
these tests need no storage and no event loop.
"""

import pytest

from config import settings
from models.schemas import Urgency, ConversationTone
from core.conversation.context import AnalyticsSnapshot, UrgencyLevel
from core.conversation.handlers import DraftResponse
from core.conversation.optimization import ResponseOptimizer, rules, transforms
from core.conversation.optimization.rules import Strategy

from tests.conftest import BUSINESS_HOURS_NOW, AFTER_HOURS_NOW

DOMAIN_TOPICS = ["construction", "building", "renovation", "contractor", "project"]


def optimize(draft, context, analytics=None, now=BUSINESS_HOURS_NOW):
    return ResponseOptimizer().optimize(draft, context, analytics or AnalyticsSnapshot(), now=now)


class TestConfidence:
    """Confidence calibration and clamping."""

    @pytest.mark.parametrize("raw, expected", [(1.7, 1.0), (-0.2, 0.1), (0.55, 0.55)])
    def test_clamp(self, raw, expected):
        assert ResponseOptimizer.clamp_confidence(raw) == expected

    def test_low_domain_relevance_subtracts(self, make_context):
        """No construction vocabulary in topics or interests costs 0.15."""
        result = optimize(DraftResponse("Sure thing.", 0.5), make_context())

        assert result.confidence == pytest.approx(0.35)
        assert Strategy.CONFIDENCE_CALIBRATION.value in result.strategies

    def test_subtraction_clamped_at_floor(self, make_context):
        result = optimize(DraftResponse("Sure thing.", 0.2), make_context())

        assert result.confidence == rules.CONFIDENCE_FLOOR

    def test_relevant_context_leaves_confidence(self, make_context):
        context = make_context(primary_interests=DOMAIN_TOPICS)

        result = optimize(DraftResponse("Sure thing.", 0.8), context)

        assert result.confidence == 0.8
        assert Strategy.CONFIDENCE_CALIBRATION.value not in result.strategies

    def test_successful_history_raises_confidence(self, make_context):
        context = make_context(primary_interests=DOMAIN_TOPICS)
        context.user_profile.previous_interactions = [{"outcome": "successful"}] * 6

        result = optimize(DraftResponse("Sure thing.", 0.8), context)

        assert result.confidence == pytest.approx(0.85)

    def test_success_rate_defaults_to_half(self):
        assert ResponseOptimizer.interaction_success_rate([]) == 0.5
        assert ResponseOptimizer.interaction_success_rate([{"rating": 5}, {"rating": 2}]) == 0.5


class TestContent:
    """Content stage transforms."""

    def test_short_preference_truncates(self, make_context):
        """A 250 character reply for a user who likes it short."""
        context = make_context(preferences={"response_length": "short"})

        result = optimize(DraftResponse("a" * 250, 0.5), context)

        assert len(result.response) <= rules.SHORT_RESPONSE_LIMIT + 3
        assert result.response.endswith("...")
        assert Strategy.LENGTH_REDUCTION.value in result.strategies

    def test_detailed_preference_expands(self, make_context):
        context = make_context(preferences={"response_length": "detailed"})
        context.long_term_memory.project_details["type"] = "kitchen"

        result = optimize(DraftResponse("We can help.", 0.9), context)

        assert "kitchen project" in result.response
        assert Strategy.DETAIL_ENHANCEMENT.value in result.strategies

    def test_negative_tone_adds_empathy(self, make_context):
        context = make_context()
        context.short_term_memory.conversation_tone = ConversationTone.NEGATIVE

        result = optimize(DraftResponse("Great question! Here is what we offer.", 0.9), context)

        assert result.response.startswith("I understand your concern")
        assert Strategy.EMPATHY_ENHANCEMENT.value in result.strategies

    def test_novice_gets_simplified_language(self, make_context):
        result = optimize(DraftResponse("We check the load-bearing walls first.", 0.9), make_context())

        assert "weight-supporting" in result.response
        assert Strategy.TECHNICAL_SIMPLIFICATION.value in result.strategies

    def test_expert_gets_technical_detail(self, make_context):
        analytics = AnalyticsSnapshot(user_technical_term_usage=0.5)

        result = optimize(DraftResponse("We can help with that.", 0.9), make_context(), analytics)

        assert result.response.endswith(rules.GENERIC_TECHNICAL_NOTE)
        assert Strategy.TECHNICAL_ENHANCEMENT.value in result.strategies

    def test_critical_urgency_leads_with_actions(self, make_context):
        context = make_context(urgency=UrgencyLevel(Urgency.CRITICAL, 0.6))

        result = optimize(DraftResponse("Stay calm.\nCall us right away.", 0.9), context)

        assert result.response.startswith(rules.PRIORITY_HEADER)
        assert "Stay calm." in result.response
        assert Strategy.URGENCY_PRIORITIZATION.value in result.strategies

    def test_repeated_reply_is_rephrased(self, make_context):
        analytics = AnalyticsSnapshot(recent_bot_responses=["We can help with that project."])

        result = optimize(DraftResponse("We can help with that project.", 0.9), make_context(), analytics)

        assert result.response != "We can help with that project."
        assert Strategy.REPETITION_AVOIDANCE.value in result.strategies

    @pytest.mark.parametrize("text, expected", [
        ("We can help.", "To put it another way: we can help."),
        ("I can help.", "To put it another way: I can help."),
        ("I'm on it.", "To put it another way: I'm on it."),
        ("HVAC work is included.", "To put it another way: HVAC work is included."),
        ("It depends.", "To put it another way: it depends."),
    ])
    def test_rephrase_keeps_pronoun_and_acronym_case(self, text, expected):
        assert transforms.rephrase(text, []) == expected


class TestTopicsAndActions:
    """Topic and suggested action optimization."""

    def test_actions_ordered_by_success_rate(self, make_context):
        context = make_context(preferences={"max_suggestions": 2})
        analytics = AnalyticsSnapshot(action_success_rates={"get_quote": 0.8, "contact_support": 0.9})
        draft = DraftResponse("Hi", 0.9, suggested_actions=["view_portfolio", "get_quote", "contact_support"])

        result = optimize(draft, context, analytics)

        assert result.suggested_actions == ["contact_support", "get_quote"]

    def test_urgent_context_adds_topic_and_action(self, make_context):
        context = make_context(urgency=UrgencyLevel(Urgency.HIGH, 0.3))

        result = optimize(DraftResponse("Hi", 0.9, topics=["general"]), context)

        assert rules.URGENT_TOPIC in result.topics
        assert rules.URGENT_ACTION in result.suggested_actions

    def test_actions_are_deduplicated(self, make_context):
        context = make_context(urgency=UrgencyLevel(Urgency.HIGH, 0.3))
        draft = DraftResponse("Hi", 0.9, suggested_actions=["emergency_service"])

        result = optimize(draft, context)

        assert result.suggested_actions.count("emergency_service") == 1

    def test_interests_filter_contextual_topics_only(self, make_context):
        """Added topics must match an interest; the draft's own topics always stay."""
        context = make_context(primary_interests=["kitchen"], urgency=UrgencyLevel(Urgency.HIGH, 0.3))
        context.long_term_memory.project_details["type"] = "kitchen_remodel"
        draft = DraftResponse("Hi", 0.9, topics=["general", "pricing"])

        result = optimize(draft, context)

        assert result.topics == ["general", "pricing", "kitchen_remodel"]
        assert rules.URGENT_TOPIC not in result.topics

    def test_no_interests_keeps_contextual_topics(self, make_context):
        context = make_context(urgency=UrgencyLevel(Urgency.HIGH, 0.3))

        result = optimize(DraftResponse("Hi", 0.9, topics=["general"]), context)

        assert result.topics == ["general", rules.URGENT_TOPIC]


class TestContextual:
    """Business hours, role and conversation length adjustments."""

    def test_after_hours_note(self, make_context):
        result = optimize(DraftResponse("Hi", 0.9), make_context(), now=AFTER_HOURS_NOW)

        assert result.response.endswith(rules.AFTER_HOURS_NOTE.format(phone=settings.SUPPORT_PHONE))
        assert Strategy.AFTER_HOURS_ADJUSTMENT.value in result.strategies

    def test_after_hours_note_uses_configured_phone(self, make_context, monkeypatch):
        monkeypatch.setattr(settings, "SUPPORT_PHONE", "(555) 987-0000")

        result = optimize(DraftResponse("Hi", 0.9), make_context(), now=AFTER_HOURS_NOW)

        assert "call (555) 987-0000 for emergencies" in result.response
        assert "123-4567" not in result.response

    def test_business_hours_no_note(self, make_context):
        result = optimize(DraftResponse("Hi", 0.9), make_context())

        assert Strategy.AFTER_HOURS_ADJUSTMENT.value not in result.strategies

    def test_admin_actions_first(self, make_context):
        draft = DraftResponse("Hi", 0.9, suggested_actions=["get_quote"])

        result = optimize(draft, make_context(user_role="Administrator"))

        assert result.suggested_actions[:2] == rules.ADMIN_ACTIONS
        assert "get_quote" in result.suggested_actions
        assert Strategy.ADMIN_ENHANCEMENT.value in result.strategies

    def test_long_conversation(self, make_context):
        result = optimize(DraftResponse("Hi", 0.9), make_context(turn_index=11))

        assert Strategy.LONG_CONVERSATION_OPTIMIZATION.value in result.strategies

    def test_many_recent_topics_add_summary(self, make_context):
        context = make_context(recent_topics=["kitchen_remodel", "permits", "budget", "timeline"])

        result = optimize(DraftResponse("Hi", 0.9), context)

        assert "Topics we've discussed so far: kitchen remodel, permits, budget, timeline." in result.response
        assert Strategy.MULTI_TOPIC_OPTIMIZATION.value in result.strategies

    def test_three_recent_topics_no_summary(self, make_context):
        context = make_context(recent_topics=["kitchen_remodel", "permits", "budget"])

        result = optimize(DraftResponse("Hi", 0.9), context)

        assert "Topics we've discussed" not in result.response
        assert Strategy.MULTI_TOPIC_OPTIMIZATION.value not in result.strategies


class TestLearnedPatterns:
    """Successful phrases, structures, failure phrases and trends."""

    def test_structure_adds_call_to_action(self, make_context):
        analytics = AnalyticsSnapshot(successful_response_patterns={
            "successful_structures": ["greeting + information + action"],
        })

        result = optimize(DraftResponse("We build decks.", 0.9), make_context(), analytics)

        assert result.response.endswith(rules.STRUCTURE_CLOSING)
        assert Strategy.STRUCTURAL_OPTIMIZATION.value in result.strategies

    def test_unchanged_text_records_no_label(self, make_context):
        analytics = AnalyticsSnapshot(successful_response_patterns={
            "successful_phrases": ["Let me help"],
        })

        result = optimize(DraftResponse("Let me help with that.", 0.9), make_context(), analytics)

        assert Strategy.SUCCESSFUL_PHRASE_INTEGRATION.value not in result.strategies

    def test_failure_phrases_removed(self, make_context):
        analytics = AnalyticsSnapshot(failure_patterns=["I'm not sure"])

        result = optimize(DraftResponse("I'm not sure. We can check.", 0.9), make_context(), analytics)

        assert "not sure" not in result.response
        assert Strategy.FAILURE_AVOIDANCE.value in result.strategies

    def test_trending_topic_matching_response_topic(self, make_context):
        analytics = AnalyticsSnapshot(trending_topics=["kitchen"])
        draft = DraftResponse("We remodel kitchens.", 0.9, topics=["kitchen_remodel"])

        result = optimize(draft, make_context(), analytics)

        assert "kitchen" in result.response.splitlines()[-1]
        assert Strategy.TRENDING_TOPIC_INTEGRATION.value in result.strategies


class TestPersonalization:
    """Communication style and information density."""

    def test_formal_style(self, make_context):
        context = make_context(preferences={"communication_style": "formal"})

        result = optimize(DraftResponse("I'm glad we'll talk.", 0.9), context)

        assert result.response.startswith("I am glad we will talk.")
        assert Strategy.FORMAL_TONE.value in result.strategies

    def test_low_density_condenses(self, make_context):
        context = make_context(preferences={"information_density": "low"})

        result = optimize(DraftResponse("One. Two. Three. Four.", 0.9), context)

        assert result.response == "One. Two."
        assert Strategy.INFORMATION_CONDENSATION.value in result.strategies


class TestFinalization:
    """Final length limit and low confidence mitigation."""

    def test_long_response_truncated(self, make_context):
        result = optimize(DraftResponse("b" * 1200, 0.9), make_context(primary_interests=DOMAIN_TOPICS))

        assert result.response == "b" * rules.FINAL_TRUNCATE_AT + rules.TRUNCATION_PROMPT
        assert Strategy.FINAL_LENGTH_ADJUSTMENT.value in result.strategies

    def test_detailed_preference_not_truncated(self, make_context):
        context = make_context(preferences={"response_length": "detailed"})

        result = optimize(DraftResponse("b" * 1200, 0.9), context)

        assert Strategy.FINAL_LENGTH_ADJUSTMENT.value not in result.strategies

    def test_low_confidence_offers_specialist(self, make_context):
        draft = DraftResponse("Maybe.", 0.25, suggested_actions=["get_quote"])

        result = optimize(draft, make_context())

        assert result.confidence < rules.LOW_CONFIDENCE_THRESHOLD
        assert result.response.endswith(rules.SPECIALIST_NOTE)
        assert result.suggested_actions[0] == rules.SPECIALIST_ACTION

    def test_metadata_stamped(self, make_context):
        result = optimize(DraftResponse("Hi", 0.9), make_context())

        metadata = result.response_metadata
        assert metadata["optimization_complete"] is True
        assert metadata["optimization_timestamp"] == BUSINESS_HOURS_NOW.isoformat()
        assert metadata["total_optimizations"] == len(result.strategies)


class TestPipelineProperties:
    """Properties that hold across every stage."""

    def test_draft_not_mutated(self, make_context):
        draft = DraftResponse("a" * 250, 0.5, topics=["general"])
        context = make_context(preferences={"response_length": "short"})

        optimize(draft, context)

        assert draft.response == "a" * 250
        assert draft.confidence == 0.5
        assert "optimization_strategies" not in draft.response_metadata

    def test_existing_strategies_kept_in_order(self, make_context):
        draft = DraftResponse("Hi", 0.5, response_metadata={"optimization_strategies": ["custom"]})

        result = optimize(draft, make_context(), now=AFTER_HOURS_NOW)

        assert result.strategies[0] == "custom"
        assert len(result.strategies) > 1

    def test_second_pass_adds_nothing(self, make_context):
        """Optimizing an optimized response fires no stage again."""
        context = make_context(
            preferences={"response_length": "short", "communication_style": "formal"},
            user_role="Administrator",
            recent_topics=["kitchen", "roofing", "permits", "budget"],
        )
        context.short_term_memory.conversation_tone = ConversationTone.NEGATIVE
        analytics = AnalyticsSnapshot(failure_patterns=["unfortunately"])
        draft = DraftResponse("Unfortunately I'm busy. " + "c" * 240, 0.25)

        first = optimize(draft, context, analytics, now=AFTER_HOURS_NOW)
        second = optimize(first, context, analytics, now=AFTER_HOURS_NOW)

        assert second.strategies == first.strategies
        assert second.response == first.response
        assert second.confidence == first.confidence

    def test_recorded_label_skips_its_transform(self, make_context):
        draft = DraftResponse("Hi", 0.9, response_metadata={
            "optimization_strategies": [Strategy.AFTER_HOURS_ADJUSTMENT.value],
        })

        result = optimize(draft, make_context(), now=AFTER_HOURS_NOW)

        assert "office is currently closed" not in result.response
        assert result.strategies.count(Strategy.AFTER_HOURS_ADJUSTMENT.value) == 1

    def test_error_returns_draft_unchanged(self):
        draft = DraftResponse("Hi", 0.9)

        result = ResponseOptimizer().optimize(draft, None)

        assert result is draft
