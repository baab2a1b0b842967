"""
Response optimization.

The optimizer turns a draft response into a finalized one through a fixed
sequence of heuristic passes. Every transform that fires records its label in
response_metadata["optimization_strategies"]; a transform whose label is
already present is skipped. A response that has already been finalized
passes through with only its confidence clamped, so optimizing an optimized
response adds no strategies.
"""

import logging
from datetime import datetime
from typing import Dict, Any, List, Optional

from config import settings
from models.schemas import Urgency, ConversationTone, Complexity
from core.conversation.context import ConversationContext, AnalyticsSnapshot
from core.conversation.handlers import DraftResponse
from core.conversation.optimization import rules, transforms
from core.conversation.optimization.rules import Strategy

logger = logging.getLogger(__name__)

SUCCESSFUL_OUTCOMES = {"positive", "successful"}


class ResponseOptimizer:
    """
    Pure transform pipeline over draft responses.

    No I/O happens here. Given the same draft, context, analytics and clock
    the result is the same, and any internal error returns the draft as it
    was passed in.
    """

    def optimize(self, draft: DraftResponse, context: ConversationContext,
                 analytics: Optional[AnalyticsSnapshot] = None,
                 now: Optional[datetime] = None) -> DraftResponse:
        """
        Optimize a draft response.

        Args:
            draft: Draft response from generation
            context: Current conversation context
            analytics: Analytics snapshot for the user
            now: Local time used for the business-hours check

        Returns:
            Optimized response, or the unchanged draft on failure
        """
        try:
            analytics = analytics or AnalyticsSnapshot()
            now = now or datetime.now()
            result = draft.copy()

            if result.response_metadata.get("optimization_complete"):
                result.confidence = self.clamp_confidence(result.confidence)
                return result

            self._optimize_content(result, context, analytics)
            self._optimize_confidence(result, context)
            self._optimize_topics(result, draft.topics, context)
            self._optimize_actions(result, context, analytics)
            self._apply_contextual(result, context, now)
            self._apply_learning_patterns(result, analytics)
            self._apply_personalization(result, context)
            self._finalize(result, context, now)

            logger.debug(
                f"Optimized response for {context.conversation_id}",
                extra={"strategies": list(result.strategies)}
            )
            return result

        except Exception as e:
            logger.error(
                f"Response optimization failed: {str(e)}",
                extra={"conversation_id": getattr(context, "conversation_id", None)},
                exc_info=True
            )
            return draft

    @staticmethod
    def _fires(result: DraftResponse, strategy: Strategy) -> bool:
        return strategy.value not in result.strategies

    # 1. Content

    def _optimize_content(self, result: DraftResponse, context: ConversationContext,
                          analytics: AnalyticsSnapshot):
        preferences = context.user_profile.preferences
        preferred_length = preferences.get("response_length", "medium")
        average_length = analytics.average_response_length or rules.DEFAULT_AVERAGE_RESPONSE_LENGTH
        project_type = context.long_term_memory.project_details.get("type")

        if preferred_length == "short" and len(result.response) > rules.SHORT_RESPONSE_LIMIT:
            if self._fires(result, Strategy.LENGTH_REDUCTION):
                result.response = transforms.summarize(result.response)
                result.add_strategy(Strategy.LENGTH_REDUCTION.value)
        elif preferred_length == "detailed" and len(result.response) < average_length:
            if self._fires(result, Strategy.DETAIL_ENHANCEMENT):
                result.response = transforms.expand(result.response, project_type)
                result.add_strategy(Strategy.DETAIL_ENHANCEMENT.value)

        tone = context.short_term_memory.conversation_tone
        if tone == ConversationTone.NEGATIVE and "understand" not in result.response:
            if self._fires(result, Strategy.EMPATHY_ENHANCEMENT):
                result.response = transforms.substitute(result.response, rules.EMPATHY_SUBSTITUTIONS)
                result.add_strategy(Strategy.EMPATHY_ENHANCEMENT.value)
        elif tone == ConversationTone.POSITIVE and analytics.user_sentiment_trend == "positive":
            if self._fires(result, Strategy.POSITIVE_REINFORCEMENT):
                result.response = transforms.substitute(result.response, rules.POSITIVE_SUBSTITUTIONS)
                result.add_strategy(Strategy.POSITIVE_REINFORCEMENT.value)

        expertise = self.determine_expertise(context, analytics)
        has_technical = transforms.contains_technical_terms(result.response)
        if expertise == "novice" and has_technical:
            if self._fires(result, Strategy.TECHNICAL_SIMPLIFICATION):
                result.response = transforms.simplify_technical_language(result.response)
                result.add_strategy(Strategy.TECHNICAL_SIMPLIFICATION.value)
        elif expertise == "expert" and not has_technical:
            if self._fires(result, Strategy.TECHNICAL_ENHANCEMENT):
                result.response = transforms.add_technical_detail(result.response, project_type)
                result.add_strategy(Strategy.TECHNICAL_ENHANCEMENT.value)

        if context.urgency_level.level == Urgency.CRITICAL:
            if self._fires(result, Strategy.URGENCY_PRIORITIZATION):
                result.response = transforms.prioritize_action_items(result.response)
                result.add_strategy(Strategy.URGENCY_PRIORITIZATION.value)

        recent = analytics.recent_bot_responses or []
        if transforms.has_recent_similarity(result.response, recent):
            if self._fires(result, Strategy.REPETITION_AVOIDANCE):
                result.response = transforms.rephrase(result.response, recent)
                result.add_strategy(Strategy.REPETITION_AVOIDANCE.value)

    @staticmethod
    def determine_expertise(context: ConversationContext, analytics: AnalyticsSnapshot) -> str:
        usage = analytics.user_technical_term_usage or 0.0
        complexity = context.short_term_memory.complexity
        if usage > 0.3 or complexity == Complexity.HIGH:
            return "expert"
        if usage > 0.1 or complexity == Complexity.MEDIUM:
            return "intermediate"
        return "novice"

    # 2. Confidence

    def _optimize_confidence(self, result: DraftResponse, context: ConversationContext):
        if self._fires(result, Strategy.CONFIDENCE_CALIBRATION):
            adjusted = result.confidence
            interactions = context.user_profile.previous_interactions
            if len(interactions) > 5 and self.interaction_success_rate(interactions) > 0.8:
                adjusted += 0.05
            if context.turn_index > 5 and context.engagement_level > 0.7:
                adjusted += 0.03
            if "clarification_needed" in context.short_term_memory.recent_intents:
                adjusted -= 0.1
            if self.domain_relevance(context) < 0.5:
                adjusted -= 0.15

            if round(adjusted, 4) != round(result.confidence, 4):
                result.add_strategy(Strategy.CONFIDENCE_CALIBRATION.value)
            result.confidence = adjusted

        result.confidence = self.clamp_confidence(result.confidence)

    @staticmethod
    def clamp_confidence(confidence: float) -> float:
        return round(max(rules.CONFIDENCE_FLOOR, min(rules.CONFIDENCE_CEILING, confidence)), 4)

    @staticmethod
    def interaction_success_rate(interactions: List[Dict[str, Any]]) -> float:
        if not interactions:
            return 0.5
        successful = [
            i for i in interactions
            if i.get("outcome") in SUCCESSFUL_OUTCOMES or (i.get("rating") or 0) > 3
        ]
        return len(successful) / len(interactions)

    @staticmethod
    def domain_relevance(context: ConversationContext) -> float:
        """Fraction of the domain vocabulary found in recent topics and interests"""
        content = " ".join(
            context.short_term_memory.recent_topics + context.long_term_memory.primary_interests
        ).lower()
        matches = [keyword for keyword in rules.DOMAIN_KEYWORDS if keyword in content]
        return len(matches) / len(rules.DOMAIN_KEYWORDS)

    # 3. Topics

    @staticmethod
    def _optimize_topics(result: DraftResponse, original_topics: List[str], context: ConversationContext):
        topics = list(result.topics)
        for topic in ResponseOptimizer.contextual_topics(context):
            if topic not in topics:
                topics.append(topic)

        interests = context.long_term_memory.primary_interests
        if interests:
            topics = [
                topic for topic in topics
                if topic in original_topics or any(topic in i or i in topic for i in interests)
            ]
        result.topics = topics

    @staticmethod
    def contextual_topics(context: ConversationContext) -> List[str]:
        topics = []
        if context.urgency_level.level in (Urgency.HIGH, Urgency.CRITICAL):
            topics.append(rules.URGENT_TOPIC)
        project_type = context.long_term_memory.project_details.get("type")
        if project_type:
            topics.append(project_type)
        return topics

    # 4. Suggested actions

    @staticmethod
    def _optimize_actions(result: DraftResponse, context: ConversationContext, analytics: AnalyticsSnapshot):
        rates = analytics.action_success_rates or {}
        # sorted() is stable, so ties keep their original order
        prioritized = sorted(result.suggested_actions, key=lambda action: rates.get(action, 0), reverse=True)

        combined = prioritized + ResponseOptimizer.contextual_actions(context)
        unique = list(dict.fromkeys(combined))

        max_actions = context.user_profile.preferences.get("max_suggestions") or rules.DEFAULT_MAX_SUGGESTIONS
        result.suggested_actions = unique[:max_actions]

    @staticmethod
    def contextual_actions(context: ConversationContext) -> List[str]:
        actions = []
        if context.urgency_level.level != Urgency.NORMAL:
            actions.append(rules.URGENT_ACTION)
        if context.long_term_memory.project_details.get("type"):
            actions.append(rules.PROJECT_ACTION)
        if context.engagement_level > 0.7:
            actions.append(rules.ENGAGED_ACTION)
        return actions

    # 5. Contextual pass

    def _apply_contextual(self, result: DraftResponse, context: ConversationContext, now: datetime):
        opens, closes = rules.BUSINESS_HOURS
        if (now.hour < opens or now.hour > closes) and self._fires(result, Strategy.AFTER_HOURS_ADJUSTMENT):
            result.response += rules.AFTER_HOURS_NOTE.format(phone=settings.SUPPORT_PHONE)
            result.add_strategy(Strategy.AFTER_HOURS_ADJUSTMENT.value)

        if context.user_profile.user_role == "Administrator" and self._fires(result, Strategy.ADMIN_ENHANCEMENT):
            result.response += rules.ADMIN_NOTE
            result.suggested_actions = rules.ADMIN_ACTIONS + [
                action for action in result.suggested_actions if action not in rules.ADMIN_ACTIONS
            ]
            result.add_strategy(Strategy.ADMIN_ENHANCEMENT.value)

        if context.turn_index > 10 and self._fires(result, Strategy.LONG_CONVERSATION_OPTIMIZATION):
            result.response += rules.LONG_CONVERSATION_NOTE
            result.add_strategy(Strategy.LONG_CONVERSATION_OPTIMIZATION.value)

        recent_topics = context.short_term_memory.recent_topics
        if len(recent_topics) > 3 and self._fires(result, Strategy.MULTI_TOPIC_OPTIMIZATION):
            result.response += transforms.topic_summary_note(recent_topics)
            result.add_strategy(Strategy.MULTI_TOPIC_OPTIMIZATION.value)

    # 6. Learned patterns

    def _apply_learning_patterns(self, result: DraftResponse, analytics: AnalyticsSnapshot):
        patterns = analytics.successful_response_patterns or {}

        phrases = patterns.get("successful_phrases")
        if phrases and self._fires(result, Strategy.SUCCESSFUL_PHRASE_INTEGRATION):
            self._apply_text(result, Strategy.SUCCESSFUL_PHRASE_INTEGRATION,
                             transforms.incorporate_successful_phrases(result.response, phrases))

        structures = patterns.get("successful_structures")
        if structures and self._fires(result, Strategy.STRUCTURAL_OPTIMIZATION):
            self._apply_text(result, Strategy.STRUCTURAL_OPTIMIZATION,
                             transforms.apply_successful_structure(result.response, structures))

        if analytics.failure_patterns and self._fires(result, Strategy.FAILURE_AVOIDANCE):
            self._apply_text(result, Strategy.FAILURE_AVOIDANCE,
                             transforms.avoid_failure_patterns(result.response, analytics.failure_patterns))

        relevant = [
            trend for trend in analytics.trending_topics or []
            if any(trend in topic or topic in trend for topic in result.topics)
        ]
        if relevant and self._fires(result, Strategy.TRENDING_TOPIC_INTEGRATION):
            result.response = transforms.incorporate_trending_topics(result.response, relevant)
            result.add_strategy(Strategy.TRENDING_TOPIC_INTEGRATION.value)

    @staticmethod
    def _apply_text(result: DraftResponse, strategy: Strategy, text: str):
        if text and text != result.response:
            result.response = text
            result.add_strategy(strategy.value)

    # 7. Personalization

    def _apply_personalization(self, result: DraftResponse, context: ConversationContext):
        preferences = context.user_profile.preferences
        style = preferences.get("communication_style", "balanced")

        if style == "formal" and self._fires(result, Strategy.FORMAL_TONE):
            result.response = transforms.substitute(result.response, rules.FORMAL_SUBSTITUTIONS)
            result.add_strategy(Strategy.FORMAL_TONE.value)
        elif style == "casual" and self._fires(result, Strategy.CASUAL_TONE):
            result.response = transforms.substitute(result.response, rules.CASUAL_SUBSTITUTIONS)
            result.add_strategy(Strategy.CASUAL_TONE.value)
        elif style == "technical" and self._fires(result, Strategy.TECHNICAL_EMPHASIS):
            result.response += rules.TECHNICAL_EMPHASIS_NOTE
            result.add_strategy(Strategy.TECHNICAL_EMPHASIS.value)

        density = preferences.get("information_density", "medium")
        project_type = context.long_term_memory.project_details.get("type")
        if density == "high" and self._fires(result, Strategy.HIGH_DETAIL):
            result.response = transforms.add_additional_details(result.response, project_type)
            result.add_strategy(Strategy.HIGH_DETAIL.value)
        elif density == "low" and self._fires(result, Strategy.INFORMATION_CONDENSATION):
            result.response = transforms.condense(result.response)
            result.add_strategy(Strategy.INFORMATION_CONDENSATION.value)

    # 8. Finalization

    def _finalize(self, result: DraftResponse, context: ConversationContext, now: datetime):
        preferred_length = context.user_profile.preferences.get("response_length")
        if (len(result.response) > rules.FINAL_LENGTH_LIMIT and preferred_length != "detailed"
                and self._fires(result, Strategy.FINAL_LENGTH_ADJUSTMENT)):
            result.response = result.response[:rules.FINAL_TRUNCATE_AT] + rules.TRUNCATION_PROMPT
            result.add_strategy(Strategy.FINAL_LENGTH_ADJUSTMENT.value)

        if result.confidence < rules.LOW_CONFIDENCE_THRESHOLD and self._fires(result, Strategy.LOW_CONFIDENCE_MITIGATION):
            result.response += rules.SPECIALIST_NOTE
            result.suggested_actions = [rules.SPECIALIST_ACTION] + [
                action for action in result.suggested_actions if action != rules.SPECIALIST_ACTION
            ]
            result.add_strategy(Strategy.LOW_CONFIDENCE_MITIGATION.value)

        metadata = result.response_metadata
        metadata["optimized"] = True
        metadata["optimization_complete"] = True
        metadata["optimization_timestamp"] = now.isoformat()
        metadata["total_optimizations"] = len(result.strategies)
