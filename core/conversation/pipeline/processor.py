"""
Main conversation processing pipeline.

This module orchestrates one conversational turn through the stages of
context retrieval, intent recognition, context enhancement, flow management,
response generation and optimization, then hands learning and analytics to
the background dispatcher.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Any, Optional, List, Callable

from config import settings
from models.schemas import FlowStatus
from core.conversation.context import (
    ContextManager,
    ContextStorage,
    ConversationContext,
    ConversationTurn,
    AnalyticsSnapshot,
    UserProfile,
    ContextValidator,
)
from core.conversation.understanding import IntentDetector, IntentAnalysis
from core.conversation.orchestration import (
    ConversationFlowController,
    FlowOutcome,
    determine_flow,
    requested_flow_trigger,
)
from core.conversation.handlers import (
    BaseResponseGenerator,
    DraftResponse,
    IntentResponseGenerator,
    generate_basic_response,
)
from core.conversation.learning import LearningEngine, InteractionRecord
from core.conversation.optimization import ResponseOptimizer
from .stages import (
    run_stage,
    ContextFetchError,
    IntentRecognitionError,
    FlowManagementError,
    ResponseGenerationError,
    OptimizationError,
    PersistenceError,
    LearningError,
)
from .dispatch import LearningDispatcher
from .suggestions import (
    generate_quick_replies,
    generate_smart_suggestions,
    FALLBACK_QUICK_REPLIES,
    FALLBACK_SUGGESTION,
)

logger = logging.getLogger(__name__)

FLOW_RESPONSE_CONFIDENCE = 0.9
FALLBACK_GENERATION_CONFIDENCE = 0.7


@dataclass
class TurnResult:
    """User facing result of one turn"""
    success: bool
    response: str
    confidence: float
    topics: List[str]
    suggested_actions: List[str]
    metadata: Dict[str, Any]
    conversation_flow: Optional[Dict[str, Any]] = None
    quick_replies: List[str] = field(default_factory=list)
    smart_suggestions: List[Dict[str, Any]] = field(default_factory=list)
    context: Optional[ConversationContext] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "response": self.response,
            "confidence": self.confidence,
            "topics": list(self.topics),
            "suggestedActions": list(self.suggested_actions),
            "metadata": dict(self.metadata),
            "conversationFlow": self.conversation_flow,
            "quickReplies": list(self.quick_replies),
            "smartSuggestions": list(self.smart_suggestions),
        }


class TurnOrchestrator:
    """
    Runs one conversational turn end to end.

    Every stage is guarded by run_stage and degrades to its own fallback, so
    a failing collaborator never aborts the turn:
    1. History and context retrieval
    2. Intent recognition
    3. Context enhancement and flow triggers
    4. Flow management
    5. Response generation
    6. Response optimization
    7. Learning dispatch (background)
    8. Persistence and analytics
    """

    def __init__(self,
                 storage: ContextStorage,
                 context_manager: Optional[ContextManager] = None,
                 intent_detector: Optional[IntentDetector] = None,
                 flow_controller: Optional[ConversationFlowController] = None,
                 response_generator: Optional[BaseResponseGenerator] = None,
                 optimizer: Optional[ResponseOptimizer] = None,
                 learning_engine: Optional[LearningEngine] = None,
                 dispatcher: Optional[LearningDispatcher] = None,
                 basic_responder: Callable[..., DraftResponse] = generate_basic_response,
                 clock: Callable[[], datetime] = datetime.now):
        self.storage = storage
        self.context_manager = context_manager or ContextManager(storage)
        self.intent_detector = intent_detector or IntentDetector(storage.intent_adjustments)
        self.flow_controller = flow_controller or ConversationFlowController()
        self.response_generator = response_generator or IntentResponseGenerator(storage.confidence_adjustments)
        self.optimizer = optimizer or ResponseOptimizer()
        self.learning_engine = learning_engine or LearningEngine(update_port=storage)
        self.dispatcher = dispatcher or LearningDispatcher(settings.LEARNING_QUEUE_MAXSIZE)
        self.basic_responder = basic_responder
        self.clock = clock

        self.metrics = {
            "total_turns": 0,
            "successful": 0,
            "fallback_responses": 0,
            "failed": 0,
            "stage_failures": {},
            "avg_processing_time": 0
        }

    async def handle_turn(self, user_message: str, conversation_id: str,
                          user_id: Optional[str] = None,
                          user_context: Optional[Dict[str, Any]] = None) -> TurnResult:
        """
        Process a user message through the turn pipeline.

        Args:
            user_message: User's message
            conversation_id: Conversation identifier
            user_id: Optional user identifier
            user_context: Caller supplied user fields (name, role, preferences, requested_flow)

        Returns:
            TurnResult with the optimized response and its metadata
        """
        start_time = time.time()
        user_context = dict(user_context or {})
        if user_id:
            user_context.setdefault("user_id", user_id)
        user_context.setdefault("conversation_id", conversation_id)
        degraded: List[str] = []

        def fallback_context() -> ConversationContext:
            return self.context_manager.build_fallback_context(user_context)

        try:
            # Stage 1: History and context retrieval
            history_result = await run_stage(
                "history_fetch", ContextFetchError,
                lambda: self.storage.fetch_history(conversation_id, settings.HISTORY_FETCH_LIMIT),
                fallback=list, conversation_id=conversation_id
            )
            history: List[ConversationTurn] = history_result.value
            if history_result.ok:
                context_result = await run_stage(
                    "context_build", ContextFetchError,
                    lambda: self.context_manager.build_context(conversation_id, user_message, history, user_context),
                    fallback=fallback_context, conversation_id=conversation_id
                )
                self._note(context_result, degraded)
                context = context_result.value
            else:
                self._note(history_result, degraded)
                context = fallback_context()

            # Stage 2: Intent recognition
            intent_result = await run_stage(
                "intent_recognition", IntentRecognitionError,
                lambda: self.intent_detector.classify_intent(user_message, history, user_context),
                fallback=IntentAnalysis.unknown, conversation_id=conversation_id
            )
            self._note(intent_result, degraded)
            analysis: IntentAnalysis = intent_result.value

            # Stage 3: Context enhancement
            enhance_result = await run_stage(
                "context_enhancement", ContextFetchError,
                lambda: self._enhance_context(context, analysis, user_message, user_context),
                fallback=fallback_context, conversation_id=conversation_id
            )
            self._note(enhance_result, degraded)
            context = enhance_result.value

            # Stage 4: Flow management
            flow_outcome: Optional[FlowOutcome] = None
            if context.active_flow:
                flow_result = await run_stage(
                    "flow_management", FlowManagementError,
                    lambda: self.flow_controller.manage_flow(
                        conversation_id, context.current_flow_step, user_message, context
                    ),
                    fallback=FlowOutcome.inactive, conversation_id=conversation_id
                )
                self._note(flow_result, degraded)
                flow_outcome = flow_result.value
                if flow_result.ok:
                    await self._save_flow_state(conversation_id, context, flow_outcome)

            # Stage 5: Response generation
            generation_result = await run_stage(
                "response_generation", ResponseGenerationError,
                lambda: self._generate_response(analysis, context, user_message, flow_outcome),
                fallback=lambda: self._fallback_draft(user_message, context), conversation_id=conversation_id
            )
            self._note(generation_result, degraded)
            draft: DraftResponse = generation_result.value

            # Stage 6: Response optimization
            analytics_result = await run_stage(
                "analytics_fetch", ContextFetchError,
                lambda: self.storage.fetch_analytics(user_id, conversation_id),
                fallback=AnalyticsSnapshot, conversation_id=conversation_id
            )
            self._note(analytics_result, degraded)

            optimized = draft
            if settings.OPTIMIZATION_ENABLED:
                optimization_result = await run_stage(
                    "response_optimization", OptimizationError,
                    lambda: self._optimize(draft, context, analytics_result.value),
                    fallback=draft, conversation_id=conversation_id
                )
                self._note(optimization_result, degraded)
                optimized = optimization_result.value

            processing_time = (time.time() - start_time) * 1000

            # Persistence
            await self._persist_turn(conversation_id, user_context, user_message, analysis, optimized, processing_time)

            # Learning and analytics, not awaited
            record = self._interaction_record(conversation_id, user_context, analysis, context,
                                              optimized, processing_time)
            learning_enabled = self._dispatch_background(conversation_id, record)

            result = TurnResult(
                success=True,
                response=optimized.response,
                confidence=optimized.confidence,
                topics=optimized.topics,
                suggested_actions=optimized.suggested_actions,
                metadata={
                    **optimized.response_metadata,
                    "processing_time": processing_time,
                    "intent_recognized": analysis.intent_name or "unknown",
                    "intent_confidence": analysis.intent_confidence,
                    "context_enhanced": enhance_result.ok,
                    "optimized": bool(optimized.response_metadata.get("optimization_complete")),
                    "learning_enabled": learning_enabled,
                    "conversation_turn": context.turn_index + 1,
                    "degraded_stages": degraded,
                },
                conversation_flow=self._flow_summary(flow_outcome),
                quick_replies=generate_quick_replies(analysis.intent_name, context),
                smart_suggestions=generate_smart_suggestions(optimized.response, context),
                context=context,
            )

            self._update_metrics("successful", processing_time, degraded)
            logger.info(
                f"Turn processed for {conversation_id}",
                extra={
                    "intent": analysis.intent_name,
                    "active_flow": context.active_flow,
                    "processing_time_ms": processing_time,
                    "degraded_stages": degraded,
                }
            )
            return result

        except Exception as e:
            logger.error(
                f"Error processing turn: {str(e)}",
                extra={"conversation_id": conversation_id, "error_type": type(e).__name__},
                exc_info=True
            )
            processing_time = (time.time() - start_time) * 1000
            result = self.generate_fallback_response(user_message, conversation_id, user_id, user_context)
            self._update_metrics("fallback_responses" if result.success else "failed", processing_time, degraded)
            return result

    async def _enhance_context(self, context: ConversationContext, analysis: IntentAnalysis,
                               message: str, user_context: Dict[str, Any]) -> ConversationContext:
        """Merge the intent analysis into the context and apply flow triggers"""
        context.current_intent = analysis.intent_name
        context.intent_confidence = analysis.intent_confidence
        context.entities = dict(analysis.entities)
        context.sentiment = analysis.sentiment
        context.short_term_memory.complexity = analysis.complexity

        project_type = analysis.entities.get("projectType")
        if project_type and not context.long_term_memory.project_details.get("type"):
            context.long_term_memory.project_details["type"] = project_type

        trigger = requested_flow_trigger(user_context.get("requested_flow")) or determine_flow(message)
        if trigger is not None:
            resuming = trigger.flow == context.active_flow and context.flow_status == FlowStatus.ACTIVE
            if not resuming:
                context.active_flow = trigger.flow
                context.current_flow_step = trigger.first_step
                context.flow_status = FlowStatus.INACTIVE
                context.flow_data = {}

        issues = ContextValidator.validate_context(context)
        if issues:
            logger.warning(
                f"Context validation issues: {issues}",
                extra={"conversation_id": context.conversation_id}
            )
        if ContextValidator.has_errors(issues):
            raise ValueError(f"Inconsistent context for {context.conversation_id}")

        return context

    async def _save_flow_state(self, conversation_id: str, context: ConversationContext, outcome: FlowOutcome):
        """Carry the flow outcome into the context and store it for the next turn"""
        if outcome.flow_active:
            context.active_flow = outcome.flow_id or context.active_flow
            context.current_flow_step = outcome.current_step
            context.flow_data = dict(outcome.flow_data)
            context.flow_status = FlowStatus.ACTIVE
        else:
            context.flow_status = FlowStatus.COMPLETED if outcome.flow_completed else FlowStatus.INACTIVE

        await run_stage(
            "flow_state_save", PersistenceError,
            lambda: self.storage.save_flow_state(
                conversation_id,
                context.active_flow if outcome.flow_active else None,
                outcome.current_step,
                outcome.flow_data,
            ),
            conversation_id=conversation_id
        )

    async def _generate_response(self, analysis: IntentAnalysis, context: ConversationContext,
                                 message: str, flow_outcome: Optional[FlowOutcome]) -> DraftResponse:
        if flow_outcome and flow_outcome.response and (flow_outcome.flow_active or flow_outcome.flow_completed):
            return DraftResponse(
                response=flow_outcome.response,
                confidence=FLOW_RESPONSE_CONFIDENCE,
                topics=["conversation_flow"],
                suggested_actions=list(flow_outcome.suggested_actions),
                response_metadata={
                    "source": "conversation_flow",
                    "flow_step": flow_outcome.current_step,
                    "flow_progress": flow_outcome.progress,
                },
            )

        return await self.response_generator.generate_response(analysis, context, message)

    def _fallback_draft(self, message: str, context: ConversationContext) -> DraftResponse:
        """Rule based reply used when response generation fails"""
        basic = self.basic_responder(message, [], context.user_profile)
        return DraftResponse(
            response=basic.response,
            confidence=FALLBACK_GENERATION_CONFIDENCE,
            topics=["general"],
            suggested_actions=list(basic.suggested_actions),
            response_metadata={"source": "fallback_generation", "error_occurred": True},
        )

    async def _optimize(self, draft: DraftResponse, context: ConversationContext,
                        analytics: AnalyticsSnapshot) -> DraftResponse:
        return self.optimizer.optimize(draft, context, analytics, now=self.clock())

    async def _persist_turn(self, conversation_id: str, user_context: Dict[str, Any], message: str,
                            analysis: IntentAnalysis, optimized: DraftResponse, processing_time: float):
        """Save both messages; a failed save is logged and not retried"""
        async def persist():
            await self.storage.persist_turn(
                conversation_id,
                user_context.get("user_id") or "anonymous",
                message,
                optimized.response,
                processing_time,
                optimized.confidence,
                metadata={
                    "intent": analysis.intent_name,
                    "topics": optimized.topics,
                    "sentiment": analysis.sentiment.value,
                    "response_pattern": optimized.response_metadata.get("response_pattern"),
                },
            )

        result = await run_stage("persistence", PersistenceError, persist, conversation_id=conversation_id)
        if not result.ok:
            logger.error(f"Failed to save turn for {conversation_id}", exc_info=result.error)

    @staticmethod
    def _interaction_record(conversation_id: str, user_context: Dict[str, Any],
                            analysis: IntentAnalysis, context: ConversationContext,
                            optimized: DraftResponse, processing_time: float) -> InteractionRecord:
        metadata = optimized.response_metadata
        return InteractionRecord(
            conversation_id=conversation_id,
            user_id=user_context.get("user_id"),
            intent_recognized=analysis.intent_name,
            intent_confidence=analysis.intent_confidence,
            confidence_score=optimized.confidence,
            response_time=processing_time,
            response_length=len(optimized.response),
            response_type=metadata.get("response_pattern") or metadata.get("source"),
            engagement_score=context.engagement_level,
            communication_style=context.user_profile.preferences.get("communication_style"),
            information_density=context.user_profile.preferences.get("information_density"),
            sentiment=analysis.sentiment.value,
            active_flow=context.active_flow,
            topics=list(optimized.topics),
            conversation_status="active",
        )

    def _dispatch_background(self, conversation_id: str, record: InteractionRecord) -> bool:
        """
        Queue the analytics update and the learning run.

        Returns:
            Whether learning was scheduled for this turn
        """
        async def update_analytics():
            result = await run_stage(
                "analytics_update", PersistenceError,
                lambda: self.storage.update_analytics(record), conversation_id=conversation_id
            )
            if not result.ok:
                logger.error(f"Analytics update failed for {conversation_id}", exc_info=result.error)

        self.dispatcher.submit(
            update_analytics, delay=settings.ANALYTICS_DISPATCH_DELAY_MS / 1000, name="analytics_update"
        )

        if not settings.LEARNING_ENABLED:
            return False

        async def learn():
            interactions = await self.storage.fetch_interactions(conversation_id, settings.LEARNING_HISTORY_WINDOW)
            outcome = self.learning_engine.learn(conversation_id, interactions)
            if not outcome.get("learning_completed"):
                raise LearningError("learning", RuntimeError(outcome.get("error")))

        return self.dispatcher.submit(
            learn, delay=settings.LEARNING_DISPATCH_DELAY_MS / 1000, name="learning"
        )

    @staticmethod
    def _flow_summary(outcome: Optional[FlowOutcome]) -> Optional[Dict[str, Any]]:
        if outcome is None:
            return None
        return {
            "active": outcome.flow_active,
            "currentStep": outcome.current_step,
            "progress": outcome.progress,
            "completed": outcome.flow_completed,
        }

    def generate_fallback_response(self, message: str, conversation_id: str,
                                   user_id: Optional[str] = None,
                                   user_context: Optional[Dict[str, Any]] = None) -> TurnResult:
        """
        Hard fallback used when the pipeline itself fails.

        Only the basic responder is used. If that fails too, a fixed apology
        with the support number is returned.
        """
        user_context = user_context or {}
        try:
            profile = UserProfile(
                user_id=user_id or "anonymous",
                user_name=user_context.get("user_name") or "there",
                user_role=user_context.get("user_role") or "user",
            )
            basic = self.basic_responder(message, [], profile)
            return TurnResult(
                success=True,
                response=basic.response,
                confidence=basic.confidence or 0.5,
                topics=basic.topics or ["general"],
                suggested_actions=basic.suggested_actions or ["contact_support"],
                metadata={
                    "fallback_used": True,
                    "processing_time": 0,
                    "intent_recognized": "unknown",
                    "intent_confidence": 0,
                    "context_enhanced": False,
                    "optimized": False,
                    "learning_enabled": False,
                },
                conversation_flow=None,
                quick_replies=list(FALLBACK_QUICK_REPLIES),
                smart_suggestions=[FALLBACK_SUGGESTION.to_dict()],
            )

        except Exception as e:
            logger.error(
                f"Fallback response generation failed: {str(e)}",
                extra={"conversation_id": conversation_id},
                exc_info=True
            )
            return TurnResult(
                success=False,
                response=(
                    "I apologize, but I'm experiencing technical difficulties. Please contact our "
                    f"support team at {settings.SUPPORT_PHONE} for immediate assistance."
                ),
                confidence=0.1,
                topics=["error"],
                suggested_actions=["contact_support"],
                metadata={"error_occurred": True, "fallback_failed": True},
            )

    @staticmethod
    def _note(result, degraded: List[str]):
        if not result.ok:
            degraded.append(result.error.stage)

    def _update_metrics(self, outcome: str, processing_time: float, degraded: List[str]):
        """Update processing metrics"""
        self.metrics["total_turns"] += 1
        self.metrics[outcome] += 1
        for stage in degraded:
            failures = self.metrics["stage_failures"]
            failures[stage] = failures.get(stage, 0) + 1

        current_avg = self.metrics["avg_processing_time"]
        total = self.metrics["total_turns"]
        self.metrics["avg_processing_time"] = (current_avg * (total - 1) + processing_time) / total

    def get_metrics(self) -> Dict[str, Any]:
        """Get processing metrics"""
        metrics = dict(self.metrics)
        metrics["stage_failures"] = dict(self.metrics["stage_failures"])
        metrics["dispatcher"] = dict(self.dispatcher.stats)
        return metrics
