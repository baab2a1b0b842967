"""
Learning engine.

Mines batches of interaction telemetry and feedback into pattern insights,
confidence adjustments, user preference estimates and success metrics, then
hands concrete adjustment records to a ModelUpdatePort.
"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, Any, List, Optional, Union

from core.conversation.learning.records import (
    InteractionRecord,
    FeedbackRecord,
    LearningResult,
)
from core.conversation.learning.analyzers import (
    PatternAnalyzer,
    FeedbackAnalyzer,
    OutcomeAnalyzer,
    PreferenceLearner,
    SuccessMetricsCalculator,
    basic_aggregate,
)
from core.conversation.learning.ports import (
    ModelUpdatePort,
    InMemoryModelUpdatePort,
    IntentAdjustment,
    ConfidenceAdjustment,
    UserPreferenceUpdate,
    FlowOptimization,
)

logger = logging.getLogger(__name__)

INTENT_LEARNING_STEP = 0.02
FLOW_SUCCESS_FLOOR = 0.5

InteractionInput = Union[InteractionRecord, Dict[str, Any]]
FeedbackInput = Union[FeedbackRecord, Dict[str, Any], None]


class LearningEngine:
    """
    Deterministic learning over interaction batches.

    Nothing here trains a model: learning is aggregation plus heuristic
    adjustment. The engine never raises to its caller.
    """

    def __init__(self, update_port: Optional[ModelUpdatePort] = None):
        self.update_port = update_port or InMemoryModelUpdatePort()
        self.pattern_analyzer = PatternAnalyzer()
        self.feedback_analyzer = FeedbackAnalyzer()
        self.outcome_analyzer = OutcomeAnalyzer()
        self.preference_learner = PreferenceLearner()
        self.metrics_calculator = SuccessMetricsCalculator()

    def learn(self, conversation_id: str,
              interactions: List[InteractionInput],
              feedback: FeedbackInput = None,
              apply: bool = True) -> Dict[str, Any]:
        """
        Run every sub-analysis over a batch and optionally apply the results.

        Args:
            conversation_id: Conversation the batch belongs to
            interactions: Interaction records or their dictionary form
            feedback: Optional feedback record or dictionary
            apply: Whether to push adjustment records to the update port

        Returns:
            Learning summary, or a fallback payload with learning_completed=False
        """
        try:
            records = self._coerce_interactions(interactions)
            feedback_record = self._coerce_feedback(feedback)
            result = self.analyze(records, feedback_record)
            applied = self.apply_learning_results(result) if apply else self._empty_counts()

            logger.info(
                f"Learning completed for {conversation_id}: {len(records)} interactions",
                extra={
                    "conversation_id": conversation_id,
                    "preferences_updated": result.user_preferences_updated,
                }
            )

            return {
                "learning_completed": True,
                "insights_generated": result.to_dict(),
                "improvements_applied": applied,
                "learning_timestamp": datetime.utcnow().isoformat(),
                "conversation_id": conversation_id,
            }

        except Exception as e:
            logger.error(
                f"Learning engine error for {conversation_id}: {str(e)}",
                extra={"conversation_id": conversation_id, "error_type": type(e).__name__},
                exc_info=True
            )
            return {
                "learning_completed": False,
                "error": str(e),
                "fallback_learning": basic_aggregate(self._salvage_interactions(interactions)),
                "conversation_id": conversation_id,
            }

    def analyze(self, interactions: List[InteractionRecord],
                feedback: Optional[FeedbackRecord] = None) -> LearningResult:
        """Pure analysis step, no side effects"""
        result = LearningResult()
        result.patterns_learned = self.pattern_analyzer.analyze(interactions)

        if feedback is not None:
            improvements, adjustments = self.feedback_analyzer.analyze(feedback)
            result.improvements_identified = improvements
            result.confidence_adjustments = adjustments

        result.response_optimizations = self.outcome_analyzer.analyze(interactions)

        updated, preferences = self.preference_learner.learn(interactions)
        result.user_preferences_updated = updated
        result.user_preferences = preferences

        result.success_metrics = self.metrics_calculator.calculate(interactions)
        return result

    def apply_learning_results(self, result: LearningResult) -> Dict[str, int]:
        """
        Push concrete adjustment records to the update port.

        Returns:
            Counts of records applied per category. A port failure stops the
            pass and the counts gathered so far are returned.
        """
        counts = self._empty_counts()
        port = self.update_port

        try:
            for adjustment in self._intent_adjustments(result.patterns_learned):
                port.apply_intent_adjustment(adjustment)
                counts["intent_recognition_updates"] += 1

            for optimization in result.response_optimizations:
                port.apply_response_optimization(optimization)
                counts["response_pattern_updates"] += 1

            for pattern, data in result.confidence_adjustments.items():
                port.apply_confidence_adjustment(ConfidenceAdjustment(
                    pattern=pattern,
                    adjustment=data["adjustment"],
                    reason=data.get("reason") or "",
                    confidence_modifier=data.get("confidence_modifier", 1.0),
                ))
                counts["confidence_threshold_adjustments"] += 1

            if result.user_preferences_updated:
                for user_id, preferences in result.user_preferences.items():
                    learned = {
                        name: estimate["value"]
                        for name, estimate in preferences.items()
                        if name != "topic_preferences"
                    }
                    if not learned:
                        continue
                    port.apply_user_preferences(UserPreferenceUpdate(user_id=user_id, preferences=learned))
                    counts["user_preference_updates"] += 1

            for flow in result.patterns_learned.get("conversation_flows", []):
                if flow["success_rate"] < FLOW_SUCCESS_FLOOR:
                    port.apply_flow_optimization(FlowOptimization(
                        flow=flow["flow_pattern"],
                        success_rate=flow["success_rate"],
                        average_satisfaction=flow["average_satisfaction"],
                    ))
                    counts["flow_optimization_updates"] += 1

        except Exception as e:
            logger.error(f"Error applying learning results: {str(e)}", exc_info=True)

        return counts

    @staticmethod
    def _intent_adjustments(patterns: Dict[str, Any]) -> List[IntentAdjustment]:
        """Net one adjustment per intent from successful and failed patterns"""
        deltas: Dict[str, float] = defaultdict(float)
        for entry in patterns.get("successful_intents", []):
            deltas[entry["intent"]] += INTENT_LEARNING_STEP
        for entry in patterns.get("failed_intents", []):
            deltas[entry["intent"]] -= INTENT_LEARNING_STEP

        return [
            IntentAdjustment(intent=intent, delta=round(delta, 4), reason="satisfaction_pattern")
            for intent, delta in deltas.items()
            if delta != 0
        ]

    @staticmethod
    def _empty_counts() -> Dict[str, int]:
        return {
            "intent_recognition_updates": 0,
            "response_pattern_updates": 0,
            "confidence_threshold_adjustments": 0,
            "user_preference_updates": 0,
            "flow_optimization_updates": 0,
        }

    @staticmethod
    def _coerce_interactions(interactions: List[InteractionInput]) -> List[InteractionRecord]:
        if interactions is None:
            return []
        records = []
        for item in interactions:
            if isinstance(item, InteractionRecord):
                records.append(item)
            elif isinstance(item, dict):
                records.append(InteractionRecord.from_dict(item))
            else:
                raise TypeError(f"Unsupported interaction record: {type(item).__name__}")
        return records

    @staticmethod
    def _coerce_feedback(feedback: FeedbackInput) -> Optional[FeedbackRecord]:
        if feedback is None or isinstance(feedback, FeedbackRecord):
            return feedback
        if isinstance(feedback, dict):
            return FeedbackRecord.from_dict(feedback)
        raise TypeError(f"Unsupported feedback record: {type(feedback).__name__}")

    @staticmethod
    def _salvage_interactions(interactions: List[InteractionInput]) -> List[InteractionRecord]:
        """Best-effort conversion used by the fallback aggregate"""
        records = []
        for item in interactions or []:
            if isinstance(item, InteractionRecord):
                records.append(item)
            elif isinstance(item, dict):
                try:
                    records.append(InteractionRecord.from_dict(item))
                except (TypeError, ValueError):
                    logger.debug("Skipping malformed interaction in fallback aggregate")
        return records
