"""
Unit tests for the learning engine and its analyzers.

Pure aggregation over in-memory records, so no storage or event loop is
needed except where the storage is used as the update port.
"""

import pytest

from core.conversation.context import ContextStorage
from core.conversation.learning import (
    LearningEngine,
    InMemoryModelUpdatePort,
    InteractionRecord,
    ExplicitFeedback,
    IntentAdjustment,
    UserPreferenceUpdate,
    FlowOptimization,
)
from core.conversation.learning.analyzers import (
    PatternAnalyzer,
    FeedbackAnalyzer,
    OutcomeAnalyzer,
    PreferenceLearner,
    SuccessMetricsCalculator,
    basic_aggregate,
)
from core.conversation.learning.records import FeedbackRecord
from core.conversation.handlers import DraftResponse
from core.conversation.optimization import ResponseOptimizer

from tests.conftest import BUSINESS_HOURS_NOW


def satisfied(user_id="u1", count=5, **fields):
    return [
        InteractionRecord(user_id=user_id, user_satisfaction=5, **fields)
        for _ in range(count)
    ]


class TestRecords:
    """Range handling on telemetry records."""

    def test_out_of_range_satisfaction_is_absent(self):
        assert InteractionRecord(user_satisfaction=7).user_satisfaction is None
        assert InteractionRecord(user_satisfaction=-1).user_satisfaction is None
        assert InteractionRecord(user_satisfaction=4).user_satisfaction == 4.0

    def test_range_bounds_are_inclusive(self):
        """Satisfaction lies in [0, 5]; ratings in [1, 5]."""
        assert InteractionRecord(user_satisfaction=0).user_satisfaction == 0.0
        assert InteractionRecord(user_satisfaction=5.01).user_satisfaction is None
        assert InteractionRecord(user_satisfaction=0.5).user_satisfaction == 0.5
        assert InteractionRecord(user_satisfaction=5).user_satisfaction == 5.0
        assert ExplicitFeedback(rating=1).rating == 1.0
        assert ExplicitFeedback(rating=0.5).rating is None

    def test_out_of_range_rating_is_absent(self):
        assert ExplicitFeedback(rating=0).rating is None
        assert ExplicitFeedback(rating=6).rating is None

    def test_from_dict_ignores_unknown_keys(self):
        record = InteractionRecord.from_dict({"intent_recognized": "greeting", "browser": "firefox"})

        assert record.intent_recognized == "greeting"
        assert record.topics == []

    def test_success_and_failure(self):
        assert InteractionRecord(outcome="successful").is_successful
        assert InteractionRecord(user_satisfaction=4).is_successful
        assert InteractionRecord(user_satisfaction=2).is_failed
        assert not InteractionRecord(user_satisfaction=3).is_failed


class TestLearn:
    """End to end learn() behavior."""

    def setup_method(self):
        self.port = InMemoryModelUpdatePort()
        self.engine = LearningEngine(update_port=self.port)

    def test_empty_batch(self):
        result = self.engine.learn("conv_1", [])

        assert result["learning_completed"] is True
        metrics = result["insights_generated"]["success_metrics"]
        assert set(metrics.values()) == {0.0}
        assert set(result["improvements_applied"].values()) == {0}
        assert self.port.applied == []

    def test_accuracy_and_satisfaction(self):
        """Two quote interactions, one misrecognized."""
        interactions = [
            {"intent_recognized": "quote", "actual_intent": "quote", "user_satisfaction": 5},
            {"intent_recognized": "quote", "actual_intent": "support", "user_satisfaction": 2},
        ]

        result = self.engine.learn("conv_1", interactions)

        metrics = result["insights_generated"]["success_metrics"]
        assert metrics["intent_recognition_accuracy"] == 0.5
        assert metrics["overall_satisfaction"] == 3.5

    def test_unsupported_item_returns_fallback(self):
        interactions = [{"intent_recognized": "quote", "user_satisfaction": 4}, 42]

        result = self.engine.learn("conv_1", interactions)

        assert result["learning_completed"] is False
        assert "Unsupported interaction record" in result["error"]
        fallback = result["fallback_learning"]
        assert fallback["interaction_count"] == 1
        assert fallback["most_common_intent"] == "quote"

    def test_apply_false_leaves_port_untouched(self):
        result = self.engine.learn("conv_1", satisfied(intent_recognized="greeting"), apply=False)

        assert result["learning_completed"] is True
        assert set(result["improvements_applied"].values()) == {0}
        assert self.port.applied == []

    def test_applied_counts(self):
        interactions = (
            satisfied(intent_recognized="project_quote", communication_style="formal")
            + [InteractionRecord(user_id="u2", intent_recognized="greeting", user_satisfaction=1,
                                 active_flow="quote_collection")]
        )
        feedback = {"explicit_feedback": [{"rating": 4, "response_pattern": "greeting_template"}]}

        result = self.engine.learn("conv_1", interactions, feedback)

        applied = result["improvements_applied"]
        assert applied["intent_recognition_updates"] == 2
        assert applied["confidence_threshold_adjustments"] == 1
        assert applied["user_preference_updates"] == 1
        assert applied["flow_optimization_updates"] == 1
        assert applied["response_pattern_updates"] == len(
            result["insights_generated"]["response_optimizations"]
        )

        intent_updates = {a.intent: a.delta for a in self.port.applied if isinstance(a, IntentAdjustment)}
        assert intent_updates == {"project_quote": 0.1, "greeting": -0.02}
        flows = [a for a in self.port.applied if isinstance(a, FlowOptimization)]
        assert flows[0].flow == "quote_collection"

    def test_storage_as_update_port(self):
        storage = ContextStorage()
        engine = LearningEngine(update_port=storage)

        engine.learn("conv_1", satisfied(intent_recognized="greeting", communication_style="casual"))

        assert storage.intent_adjustments["greeting"] == pytest.approx(0.1)
        assert storage.get_learned_preferences("u1")["communication_style"] == "casual"

    async def test_outcomes_feed_analytics_snapshot(self, make_context):
        """Failed quotes and a good consultation reshape the next snapshot."""
        storage = ContextStorage()
        engine = LearningEngine(update_port=storage)
        failed = [
            InteractionRecord(user_id="u1", intent_recognized="project_quote", user_satisfaction=1)
            for _ in range(6)
        ]
        consulted = [InteractionRecord(user_id="u1", intent_recognized="project_consultation",
                                       user_satisfaction=5)]
        feedback = {"explicit_feedback": [{"rating": 1, "category": "relevance"}]}

        engine.learn("conv_1", failed + consulted, feedback)
        analytics = await storage.fetch_analytics("u1", "conv_1")

        assert "Feel free to reach out anytime." in analytics.failure_patterns
        assert analytics.action_success_rates["get_quote"] == pytest.approx(0.75)
        assert analytics.action_success_rates["schedule_consultation"] == pytest.approx(0.75)
        assert analytics.action_success_rates["contact_support"] == pytest.approx(0.9)

        draft = DraftResponse("Thanks for chatting! Feel free to reach out anytime.", 0.9)
        optimized = ResponseOptimizer().optimize(draft, make_context(), analytics,
                                                 now=BUSINESS_HOURS_NOW)
        assert "reach out anytime" not in optimized.response

    def test_repeated_failures_do_not_duplicate_phrases(self):
        storage = ContextStorage()
        optimization = {
            "type": "failure_pattern_avoidance",
            "patterns": {"common_intents": ["support_request"], "common_factors": ["generic_response"]},
        }

        storage.apply_response_optimization(optimization)
        storage.apply_response_optimization(optimization)

        assert storage.failure_phrases.count("Feel free to reach out anytime.") == 1
        assert storage.action_success_rates["contact_support"] == pytest.approx(0.8)


class TestPatternAnalyzer:
    """Successful/failed partition and effectiveness grouping."""

    def test_neutral_satisfaction_in_neither_list(self):
        patterns = PatternAnalyzer().analyze([
            InteractionRecord(intent_recognized="greeting", user_satisfaction=3),
        ])

        assert patterns["successful_intents"] == []
        assert patterns["failed_intents"] == []

    def test_effectiveness_by_response_type(self):
        patterns = PatternAnalyzer().analyze([
            InteractionRecord(response_type="greeting_template", user_satisfaction=5, engagement_score=5),
            InteractionRecord(user_satisfaction=3, engagement_score=1),
        ])

        effectiveness = patterns["response_effectiveness"]
        assert effectiveness["greeting_template"]["improvement_potential"] == 0.0
        assert effectiveness["general"]["improvement_potential"] == pytest.approx(0.6)


class TestFeedbackAnalyzer:
    """Explicit ratings and implicit engagement signals."""

    def test_low_rating_becomes_improvement(self):
        feedback = FeedbackRecord(explicit_feedback=[
            ExplicitFeedback(rating=1, category="clarity", comment="confusing", response_pattern="faq"),
        ])

        improvements, adjustments = FeedbackAnalyzer().analyze(feedback)

        assert improvements[0]["priority"] == "high"
        assert improvements[0]["area"] == "clarity"
        assert adjustments["faq"]["adjustment"] == pytest.approx(-0.2)
        assert adjustments["faq"]["confidence_modifier"] == 0.2

    def test_implicit_signals(self):
        feedback = FeedbackRecord(implicit_feedback={
            "abandonment_rate": 0.4,
            "follow_up_question_rate": 0.6,
            "average_session_duration": 20,
        })

        improvements, _ = FeedbackAnalyzer().analyze(feedback)

        assert [i["area"] for i in improvements] == [
            "conversation_retention", "response_clarity", "session_depth",
        ]


class TestOutcomeAnalyzer:
    """Replication, avoidance and timing entries."""

    def test_failure_avoidance_has_mitigations(self):
        optimizations = OutcomeAnalyzer().analyze([
            InteractionRecord(intent_recognized="greeting", user_satisfaction=1,
                              response_time=6000, confidence_score=0.3),
        ])

        by_type = {o["type"]: o for o in optimizations}
        avoidance = by_type["failure_pattern_avoidance"]
        assert avoidance["priority"] == "high"
        assert avoidance["mitigation_strategies"]
        assert "response_timing_optimization" in by_type
        assert "success_pattern_replication" not in by_type


class TestPreferenceLearner:
    """Confidence threshold on learned preferences."""

    def test_enough_samples_reported(self):
        updated, preferences = PreferenceLearner().learn(satisfied(communication_style="formal"))

        assert updated is True
        assert preferences["u1"]["communication_style"] == {"value": "formal", "confidence": 1.0}

    def test_few_samples_not_reported(self):
        """Three of five samples gives 0.6, under the reporting threshold."""
        updated, preferences = PreferenceLearner().learn(
            satisfied(count=3, communication_style="formal", topics=["kitchen"])
        )

        assert updated is False
        assert "communication_style" not in preferences["u1"]
        assert preferences["u1"]["topic_preferences"] == [{"topic": "kitchen", "count": 3}]

    def test_update_record_carries_values_only(self):
        port = InMemoryModelUpdatePort()
        LearningEngine(update_port=port).learn("conv_1", satisfied(information_density="high"))

        updates = [a for a in port.applied if isinstance(a, UserPreferenceUpdate)]
        assert updates[0].user_id == "u1"
        assert updates[0].preferences == {"information_density": "high"}


class TestSuccessMetrics:
    """Batch metrics and the minimal fallback aggregate."""

    def setup_method(self):
        self.calculator = SuccessMetricsCalculator()

    def test_learning_effectiveness_compares_first_and_last_five(self):
        interactions = (
            [InteractionRecord(user_satisfaction=2) for _ in range(5)]
            + [InteractionRecord(user_satisfaction=3)]
            + [InteractionRecord(user_satisfaction=5) for _ in range(5)]
        )

        metrics = self.calculator.calculate(interactions)

        assert metrics["learning_effectiveness"] == pytest.approx(0.6)

    def test_learning_effectiveness_needs_more_than_ten(self):
        interactions = (
            [InteractionRecord(user_satisfaction=1) for _ in range(5)]
            + [InteractionRecord(user_satisfaction=5) for _ in range(5)]
        )

        metrics = self.calculator.calculate(interactions)

        assert metrics["learning_effectiveness"] == 0.0

    def test_completion_rate_counts_completed_or_successful(self):
        interactions = [
            InteractionRecord(conversation_status="completed"),
            InteractionRecord(outcome="successful"),
            InteractionRecord(outcome="failed"),
            InteractionRecord(),
        ]

        metrics = self.calculator.calculate(interactions)

        assert metrics["conversation_completion_rate"] == 0.5

    def test_basic_aggregate_tie_goes_to_first_intent(self):
        interactions = [
            InteractionRecord(intent_recognized=intent)
            for intent in ["support_request", "project_quote", "project_quote", "support_request"]
        ]

        aggregate = basic_aggregate(interactions)

        assert aggregate["most_common_intent"] == "support_request"
        assert aggregate["interaction_count"] == 4
