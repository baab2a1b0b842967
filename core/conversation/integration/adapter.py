"""
Integration adapter for the conversation system.

This module wires the storage, collaborators, optimizer, learning engine and
dispatcher into a TurnOrchestrator and exposes the entry points used by the
API layer.
"""

import logging
import uuid
from typing import Dict, Any, Optional, List

from config import settings
from core.conversation.context import ContextStorage, ContextManager
from core.conversation.understanding import IntentDetector
from core.conversation.orchestration import ConversationFlowController
from core.conversation.handlers import IntentResponseGenerator
from core.conversation.optimization import ResponseOptimizer
from core.conversation.learning import LearningEngine
from core.conversation.pipeline import (
    TurnOrchestrator,
    LearningDispatcher,
    MiddlewarePipeline,
    LoggingMiddleware,
    ValidationMiddleware,
    OutputValidator,
    RateLimitingMiddleware,
    MetricsMiddleware,
    ErrorHandlingMiddleware
)

logger = logging.getLogger(__name__)


class ConversationSystemAdapter:
    """
    Single owner of the conversation system's components.

    The API layer talks only to this adapter; everything behind it is built
    once and shared across requests.
    """

    def __init__(self, storage: Optional[ContextStorage] = None,
                 use_middleware: bool = True, enable_metrics: bool = True):
        """
        Initialize the adapter.

        Args:
            storage: Store to use; a fresh in-memory store by default
            use_middleware: Whether to run turns through the middleware pipeline
            enable_metrics: Whether to collect request metrics
        """
        self.storage = storage or ContextStorage()
        self.enable_metrics = enable_metrics
        self.metrics_middleware: Optional[MetricsMiddleware] = None

        self.learning_engine = LearningEngine(update_port=self.storage)
        self.dispatcher = LearningDispatcher(settings.LEARNING_QUEUE_MAXSIZE)
        self.orchestrator = TurnOrchestrator(
            storage=self.storage,
            context_manager=ContextManager(self.storage),
            intent_detector=IntentDetector(intent_adjustments=self.storage.intent_adjustments),
            flow_controller=ConversationFlowController(),
            response_generator=IntentResponseGenerator(confidence_adjustments=self.storage.confidence_adjustments),
            optimizer=ResponseOptimizer(),
            learning_engine=self.learning_engine,
            dispatcher=self.dispatcher,
        )

        self.middleware_pipeline = self._setup_middleware() if use_middleware else None

    def _setup_middleware(self) -> MiddlewarePipeline:
        """Set up middleware pipeline"""
        pipeline = MiddlewarePipeline()

        # Outermost first
        pipeline.add(ErrorHandlingMiddleware())
        pipeline.add(ValidationMiddleware())
        pipeline.add(RateLimitingMiddleware())
        pipeline.add(LoggingMiddleware())

        if self.enable_metrics:
            self.metrics_middleware = MetricsMiddleware()
            pipeline.add(self.metrics_middleware)

        return pipeline

    async def start(self):
        self.dispatcher.start()
        logger.info("Conversation system started")

    async def shutdown(self):
        await self.dispatcher.stop(drain=True)
        logger.info("Conversation system stopped")

    async def process_chat_message(self,
                                   message: str,
                                   conversation_id: Optional[str] = None,
                                   user_id: Optional[str] = None,
                                   user_context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Process a chat message.

        Args:
            message: User's message
            conversation_id: Optional conversation id (generated when missing)
            user_id: Optional user id
            user_context: User name, role, preferences and requested flow

        Returns:
            Serialized turn result, with conversation_id added
        """
        if not conversation_id:
            conversation_id = str(uuid.uuid4())

        request_data = {
            "message": message,
            "conversation_id": conversation_id,
            "user_id": user_id,
            "user_context": dict(user_context or {}),
        }

        if self.middleware_pipeline:
            handler = self.middleware_pipeline.build(self._process_turn)
            result = await handler(request_data)
        else:
            result = await self._process_turn(request_data)

        result["conversation_id"] = conversation_id
        return result

    async def _process_turn(self, data: Dict[str, Any]) -> Dict[str, Any]:
        result = await self.orchestrator.handle_turn(
            data["message"],
            data["conversation_id"],
            data.get("user_id"),
            data.get("user_context"),
        )
        payload = result.to_dict()

        is_valid, errors = OutputValidator.validate_turn_result(payload)
        if not is_valid:
            logger.warning(
                f"Turn result failed output checks: {errors}",
                extra={"conversation_id": data["conversation_id"]}
            )
        return payload

    async def run_learning(self, conversation_id: str,
                           interactions: Optional[List[Dict[str, Any]]] = None,
                           feedback: Optional[Dict[str, Any]] = None,
                           apply: bool = True) -> Dict[str, Any]:
        """
        Run the learning engine on demand.

        When no interactions are given, the stored log for the conversation
        is used.
        """
        if interactions is None:
            interactions = await self.storage.fetch_interactions(
                conversation_id, settings.LEARNING_HISTORY_WINDOW
            )
        return self.learning_engine.learn(conversation_id, interactions, feedback, apply=apply)

    def get_metrics(self) -> Dict[str, Any]:
        """Orchestrator, request and learning metrics"""
        metrics = {
            "orchestrator": self.orchestrator.get_metrics(),
            "learning_state": self.storage.get_learning_state(),
        }
        if self.metrics_middleware:
            metrics["requests"] = self.metrics_middleware.get_metrics()
        return metrics
