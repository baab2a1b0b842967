"""
Sub-analyses run by the learning engine.

Each analyzer is independent of the others and insensitive to the order in
which it runs. All of them are synchronous and side-effect free.
"""

import logging
from collections import Counter, defaultdict
from statistics import mean, median
from typing import Dict, Any, List, Optional, Tuple

from core.conversation.learning.records import InteractionRecord, FeedbackRecord, ExplicitFeedback

logger = logging.getLogger(__name__)

FAST_RESPONSE_MS = 2000
SLOW_RESPONSE_MS = 5000
PREFERENCE_CONFIDENCE_THRESHOLD = 0.7
PREFERENCE_SAMPLE_SIZE = 5

# Factor -> mitigation used for failure pattern avoidance
MITIGATION_STRATEGIES: Dict[str, str] = {
    "slow_response": "Cache frequent answers to cut response time",
    "too_verbose": "Condense responses to the key points",
    "too_brief": "Add supporting detail and a clear next step",
    "low_confidence": "Offer clarification or a specialist handoff when confidence is low",
    "irrelevant_context": "Weight recent topics more heavily when building context",
    "generic_response": "Personalize responses using the user profile",
}

FEEDBACK_ACTIONS: Dict[str, str] = {
    "accuracy": "Review intent patterns and answer templates for accuracy",
    "clarity": "Simplify wording and structure of the response",
    "relevance": "Tighten context matching for this topic",
    "speed": "Reduce response latency for this path",
    "tone": "Adjust tone to match the user's sentiment",
}


def _mean_or_zero(values: List[float]) -> float:
    return mean(values) if values else 0.0


def _present(values) -> List[float]:
    return [v for v in values if v is not None]


def identify_success_factors(interaction: InteractionRecord) -> List[str]:
    """Heuristic reasons an interaction went well"""
    factors = []
    if interaction.response_time is not None and interaction.response_time < FAST_RESPONSE_MS:
        factors.append("fast_response")
    if interaction.response_length is not None and 100 < interaction.response_length < 500:
        factors.append("optimal_length")
    if interaction.confidence_score is not None and interaction.confidence_score > 0.8:
        factors.append("high_confidence")
    if interaction.context_relevance is not None and interaction.context_relevance > 0.7:
        factors.append("relevant_context")
    if interaction.personalization_score is not None and interaction.personalization_score > 0.6:
        factors.append("personalized_response")
    return factors


def identify_failure_factors(interaction: InteractionRecord) -> List[str]:
    """Heuristic reasons an interaction went badly"""
    factors = []
    if interaction.response_time is not None and interaction.response_time > SLOW_RESPONSE_MS:
        factors.append("slow_response")
    if interaction.response_length is not None:
        if interaction.response_length > 800:
            factors.append("too_verbose")
        if interaction.response_length < 50:
            factors.append("too_brief")
    if interaction.confidence_score is not None and interaction.confidence_score < 0.5:
        factors.append("low_confidence")
    if interaction.context_relevance is not None and interaction.context_relevance < 0.4:
        factors.append("irrelevant_context")
    if not interaction.personalized:
        factors.append("generic_response")
    return factors


def improvement_potential(avg_satisfaction: float, avg_engagement: float) -> float:
    """Normalized gap to a perfect 5/5 on both axes"""
    return ((5 - avg_satisfaction) + (5 - avg_engagement)) / 10


class PatternAnalyzer:
    """Partitions interactions into successful and failed intent patterns"""

    def analyze(self, interactions: List[InteractionRecord]) -> Dict[str, Any]:
        patterns = {
            "successful_intents": [],
            "failed_intents": [],
            "response_effectiveness": {},
            "conversation_flows": [],
            "user_behavior_patterns": [],
        }

        for interaction in interactions:
            if not interaction.intent_recognized or interaction.user_satisfaction is None:
                continue
            if interaction.user_satisfaction > 3:
                patterns["successful_intents"].append({
                    "intent": interaction.intent_recognized,
                    "confidence": interaction.intent_confidence,
                    "success_factors": identify_success_factors(interaction),
                })
            elif interaction.user_satisfaction <= 2:
                patterns["failed_intents"].append({
                    "intent": interaction.intent_recognized,
                    "confidence": interaction.intent_confidence,
                    "failure_factors": identify_failure_factors(interaction),
                })

        groups: Dict[str, List[InteractionRecord]] = defaultdict(list)
        for interaction in interactions:
            groups[interaction.response_type or "general"].append(interaction)

        for response_type, members in groups.items():
            avg_satisfaction = _mean_or_zero(_present(m.user_satisfaction for m in members))
            avg_engagement = _mean_or_zero(_present(m.engagement_score for m in members))
            patterns["response_effectiveness"][response_type] = {
                "average_satisfaction": avg_satisfaction,
                "average_engagement": avg_engagement,
                "total_responses": len(members),
                "improvement_potential": improvement_potential(avg_satisfaction, avg_engagement),
            }

        patterns["conversation_flows"] = self._flow_patterns(interactions)
        patterns["user_behavior_patterns"] = self._behavior_patterns(interactions)
        return patterns

    def _flow_patterns(self, interactions: List[InteractionRecord]) -> List[Dict[str, Any]]:
        flows: Dict[str, List[InteractionRecord]] = defaultdict(list)
        for interaction in interactions:
            if interaction.active_flow:
                flows[interaction.active_flow].append(interaction)

        results = []
        for flow, members in flows.items():
            intents = Counter(m.intent_recognized for m in members if m.intent_recognized)
            results.append({
                "flow_pattern": flow,
                "success_rate": sum(1 for m in members if m.is_successful) / len(members),
                "average_satisfaction": _mean_or_zero(_present(m.user_satisfaction for m in members)),
                "common_contexts": [intent for intent, _ in intents.most_common(3)],
            })
        return results

    def _behavior_patterns(self, interactions: List[InteractionRecord]) -> List[Dict[str, Any]]:
        by_user: Dict[str, List[InteractionRecord]] = defaultdict(list)
        for interaction in interactions:
            by_user[interaction.user_id or "anonymous"].append(interaction)

        results = []
        for user_id, members in by_user.items():
            intents = Counter(m.intent_recognized for m in members if m.intent_recognized)
            results.append({
                "user_id": user_id,
                "interaction_count": len(members),
                "average_engagement": _mean_or_zero(_present(m.engagement_score for m in members)),
                "dominant_intent": intents.most_common(1)[0][0] if intents else None,
            })
        return results


class FeedbackAnalyzer:
    """Turns explicit and implicit feedback into improvements and adjustments"""

    def analyze(self, feedback: FeedbackRecord) -> Tuple[List[Dict[str, Any]], Dict[str, Dict[str, Any]]]:
        improvements: List[Dict[str, Any]] = []
        adjustments: Dict[str, Dict[str, Any]] = {}

        for item in feedback.explicit_feedback:
            if item.rating is None:
                continue
            if item.rating < 3:
                improvements.append({
                    "type": "response_quality",
                    "area": item.category,
                    "issue": item.comment,
                    "priority": self.feedback_priority(item),
                    "suggested_action": FEEDBACK_ACTIONS.get(
                        item.category or "", "Review response quality for this category"
                    ),
                })
            if item.response_pattern:
                adjustments[item.response_pattern] = {
                    "adjustment": round((item.rating - 3) * 0.1, 4),
                    "reason": item.comment,
                    "confidence_modifier": round(item.rating / 5, 2),
                }

        if feedback.implicit_feedback:
            improvements.extend(self.analyze_implicit(feedback.implicit_feedback))

        return improvements, adjustments

    @staticmethod
    def feedback_priority(item: ExplicitFeedback) -> str:
        if item.rating is None:
            return "low"
        if item.rating <= 1:
            return "high"
        if item.rating <= 2:
            return "medium"
        return "low"

    @staticmethod
    def analyze_implicit(implicit: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Engagement signals such as abandonment and follow-up rates"""
        improvements = []

        abandonment = implicit.get("abandonment_rate")
        if abandonment is not None and abandonment > 0.3:
            improvements.append({
                "type": "engagement",
                "area": "conversation_retention",
                "issue": f"Abandonment rate at {abandonment:.0%}",
                "priority": "high",
                "suggested_action": "Shorten early responses and surface quick replies sooner",
            })

        follow_ups = implicit.get("follow_up_question_rate")
        if follow_ups is not None and follow_ups > 0.5:
            improvements.append({
                "type": "engagement",
                "area": "response_clarity",
                "issue": f"Follow-up question rate at {follow_ups:.0%}",
                "priority": "medium",
                "suggested_action": "Answer the underlying question more completely",
            })

        duration = implicit.get("average_session_duration")
        if duration is not None and duration < 30:
            improvements.append({
                "type": "engagement",
                "area": "session_depth",
                "issue": f"Average session lasts {duration}s",
                "priority": "low",
                "suggested_action": "Offer a guided flow to keep users engaged",
            })

        return improvements


class OutcomeAnalyzer:
    """Derives replication, avoidance and timing optimizations from outcomes"""

    def analyze(self, interactions: List[InteractionRecord]) -> List[Dict[str, Any]]:
        optimizations = []

        successful = [i for i in interactions if i.is_successful]
        if successful:
            patterns = self._extract_patterns(successful, identify_success_factors)
            optimizations.append({
                "type": "success_pattern_replication",
                "patterns": patterns,
                "application_scope": "similar_contexts",
                "expected_improvement": round(0.2 * len(successful) / len(interactions), 3),
            })

        failed = [i for i in interactions if i.is_failed]
        if failed:
            patterns = self._extract_patterns(failed, identify_failure_factors)
            optimizations.append({
                "type": "failure_pattern_avoidance",
                "patterns": patterns,
                "mitigation_strategies": [
                    MITIGATION_STRATEGIES[factor]
                    for factor in patterns["common_factors"]
                    if factor in MITIGATION_STRATEGIES
                ],
                "priority": "high",
            })

        timing = self.analyze_timing(interactions)
        if timing["optimization_opportunities"]:
            optimizations.append({
                "type": "response_timing_optimization",
                "opportunities": timing["optimization_opportunities"],
                "expected_satisfaction_gain": timing["potential_improvement"],
            })

        return optimizations

    @staticmethod
    def _extract_patterns(interactions: List[InteractionRecord], factor_fn) -> Dict[str, Any]:
        intents = Counter(i.intent_recognized for i in interactions if i.intent_recognized)
        factors = Counter(f for i in interactions for f in factor_fn(i))
        return {
            "common_intents": [intent for intent, _ in intents.most_common(3)],
            "common_factors": [factor for factor, _ in factors.most_common(3)],
            "average_response_length": _mean_or_zero(_present(i.response_length for i in interactions)),
            "sample_size": len(interactions),
        }

    @staticmethod
    def analyze_timing(interactions: List[InteractionRecord]) -> Dict[str, Any]:
        """Flag slow tails in the response time distribution"""
        times = _present(i.response_time for i in interactions)
        result = {"optimization_opportunities": [], "potential_improvement": 0.0}
        if not times:
            return result

        slow = [t for t in times if t > SLOW_RESPONSE_MS]
        if slow:
            result["optimization_opportunities"].append({
                "type": "slow_tail",
                "threshold_ms": SLOW_RESPONSE_MS,
                "affected_interactions": len(slow),
                "median_ms": median(times),
                "worst_ms": max(slow),
            })
            result["potential_improvement"] = round(0.5 * len(slow) / len(times), 3)

        average = mean(times)
        if average > FAST_RESPONSE_MS:
            result["optimization_opportunities"].append({
                "type": "high_average_latency",
                "threshold_ms": FAST_RESPONSE_MS,
                "average_ms": average,
            })

        return result


class PreferenceLearner:
    """Estimates per-user communication preferences"""

    def learn(self, interactions: List[InteractionRecord]) -> Tuple[bool, Dict[str, Dict[str, Any]]]:
        """
        Learn preferences for every user in the batch.

        Returns:
            (updated, preferences) where preferences maps user id to the
            estimates that were reported for that user
        """
        by_user: Dict[str, List[InteractionRecord]] = defaultdict(list)
        for interaction in interactions:
            by_user[interaction.user_id or "anonymous"].append(interaction)

        updated = False
        preferences: Dict[str, Dict[str, Any]] = {}

        for user_id, members in by_user.items():
            user_prefs: Dict[str, Any] = {}
            estimates = {
                "communication_style": self._infer(members, lambda m: m.communication_style),
                "information_density": self._infer(members, lambda m: m.information_density),
                "response_length": self._infer(members, self._length_bucket),
            }
            for name, estimate in estimates.items():
                if estimate["confidence"] > PREFERENCE_CONFIDENCE_THRESHOLD:
                    user_prefs[name] = estimate
                    updated = True

            topics = self._topic_preferences(members)
            if topics:
                user_prefs["topic_preferences"] = topics

            if user_prefs:
                preferences[user_id] = user_prefs

        return updated, preferences

    @staticmethod
    def _length_bucket(interaction: InteractionRecord) -> Optional[str]:
        if interaction.response_length is None:
            return None
        if interaction.response_length < 150:
            return "short"
        if interaction.response_length > 500:
            return "detailed"
        return "medium"

    @staticmethod
    def _infer(interactions: List[InteractionRecord], label_fn) -> Dict[str, Any]:
        """Dominant label among satisfied interactions, scaled by sample size"""
        labels = [label_fn(i) for i in interactions if i.is_successful]
        labels = [label for label in labels if label]
        if not labels:
            return {"value": None, "confidence": 0.0}

        value, count = Counter(labels).most_common(1)[0]
        share = count / len(labels)
        sample_factor = min(1.0, len(labels) / PREFERENCE_SAMPLE_SIZE)
        return {"value": value, "confidence": round(share * sample_factor, 4)}

    @staticmethod
    def _topic_preferences(interactions: List[InteractionRecord]) -> List[Dict[str, Any]]:
        counts = Counter(topic for i in interactions for topic in i.topics)
        return [{"topic": topic, "count": count} for topic, count in counts.most_common(5)]


class SuccessMetricsCalculator:
    """Aggregate success metrics for a batch"""

    def calculate(self, interactions: List[InteractionRecord]) -> Dict[str, float]:
        metrics = {
            "overall_satisfaction": 0.0,
            "intent_recognition_accuracy": 0.0,
            "response_relevance": 0.0,
            "conversation_completion_rate": 0.0,
            "user_engagement_score": 0.0,
            "learning_effectiveness": 0.0,
        }
        if not interactions:
            return metrics

        metrics["overall_satisfaction"] = _mean_or_zero(
            _present(i.user_satisfaction for i in interactions)
        )

        accuracy = [
            1.0 if i.intent_recognized == i.actual_intent else 0.0
            for i in interactions
            if i.intent_recognized and i.actual_intent
        ]
        metrics["intent_recognition_accuracy"] = _mean_or_zero(accuracy)

        metrics["response_relevance"] = _mean_or_zero(
            _present(i.response_relevance_score for i in interactions)
        )

        completed = [
            i for i in interactions
            if i.conversation_status == "completed" or i.outcome == "successful"
        ]
        metrics["conversation_completion_rate"] = len(completed) / len(interactions)

        metrics["user_engagement_score"] = _mean_or_zero(
            _present(i.engagement_score for i in interactions)
        )

        if len(interactions) > 10:
            recent = _mean_or_zero(_present(i.user_satisfaction for i in interactions[-5:]))
            earlier = _mean_or_zero(_present(i.user_satisfaction for i in interactions[:5]))
            metrics["learning_effectiveness"] = (recent - earlier) / 5

        return metrics


def basic_aggregate(interactions: List[InteractionRecord]) -> Dict[str, Any]:
    """Minimal statistics used when full learning fails"""
    intents = Counter(i.intent_recognized for i in interactions if i.intent_recognized)
    return {
        "interaction_count": len(interactions),
        "average_satisfaction": _mean_or_zero(_present(i.user_satisfaction for i in interactions)),
        "most_common_intent": intents.most_common(1)[0][0] if intents else None,
        "average_response_time": _mean_or_zero(_present(i.response_time for i in interactions)),
    }
