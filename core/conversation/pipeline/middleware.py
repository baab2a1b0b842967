"""
Middleware components for the conversation pipeline.

Middleware wraps the turn handler for cross-cutting concerns: logging,
validation, rate limiting, metrics and error handling. Handlers take and
return plain dictionaries and are awaited.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Dict, Any, Callable, Awaitable, List
from datetime import datetime

from config import settings
from .validators import InputValidator

logger = logging.getLogger(__name__)

Handler = Callable[[Dict[str, Any]], Awaitable[Dict[str, Any]]]


class Middleware(ABC):
    """Abstract base class for pipeline middleware"""

    @abstractmethod
    async def process(self, data: Dict[str, Any], next_handler: Handler) -> Dict[str, Any]:
        """
        Process data and call next handler in chain.

        Args:
            data: Request data (message, conversation_id, user_id, user_context)
            next_handler: Next middleware or final handler

        Returns:
            Serialized turn result
        """
        pass


class LoggingMiddleware(Middleware):
    """Logs each turn before and after processing"""

    def __init__(self, log_level: int = logging.INFO):
        self.log_level = log_level

    async def process(self, data: Dict[str, Any], next_handler: Handler) -> Dict[str, Any]:
        logger.log(
            self.log_level,
            "Processing message",
            extra={
                "conversation_id": data.get("conversation_id"),
                "message_preview": (data.get("message") or "")[:50],
            }
        )

        start_time = time.time()
        result = await next_handler(data)
        processing_time = (time.time() - start_time) * 1000

        metadata = result.get("metadata") or {}
        logger.log(
            self.log_level,
            "Message processed",
            extra={
                "conversation_id": data.get("conversation_id"),
                "success": result.get("success"),
                "intent": metadata.get("intent_recognized"),
                "processing_time_ms": processing_time,
                "fallback_used": metadata.get("fallback_used", False),
            }
        )
        return result


class ValidationMiddleware(Middleware):
    """Rejects malformed requests and sanitizes the message"""

    async def process(self, data: Dict[str, Any], next_handler: Handler) -> Dict[str, Any]:
        is_valid, errors = InputValidator.validate_request(data)
        if not is_valid:
            return {
                "success": False,
                "error": "Validation failed",
                "validation_errors": errors,
                "response": "I couldn't process your message. Please check your input and try again."
            }

        data = dict(data)
        data["message"] = InputValidator.sanitize_message(data["message"])
        return await next_handler(data)


class RateLimitingMiddleware(Middleware):
    """Sliding window rate limit per conversation"""

    def __init__(self, max_requests: int = settings.RATE_LIMIT_REQUESTS,
                 window_seconds: int = settings.RATE_LIMIT_WINDOW_SECONDS):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.request_counts: Dict[str, List[datetime]] = {}

    async def process(self, data: Dict[str, Any], next_handler: Handler) -> Dict[str, Any]:
        conversation_id = data.get("conversation_id") or "unknown"
        now = datetime.now()
        cutoff_time = now.timestamp() - self.window_seconds

        recent = [
            ts for ts in self.request_counts.get(conversation_id, [])
            if ts.timestamp() > cutoff_time
        ]
        self.request_counts[conversation_id] = recent

        if len(recent) >= self.max_requests:
            logger.warning(f"Rate limit exceeded for {conversation_id}")
            return {
                "success": False,
                "error": "Rate limit exceeded",
                "response": "You're sending messages too quickly. Please wait a moment and try again.",
                "retry_after": self.window_seconds
            }

        recent.append(now)
        return await next_handler(data)


class MetricsMiddleware(Middleware):
    """Collects request level metrics"""

    def __init__(self):
        self.reset_metrics()

    async def process(self, data: Dict[str, Any], next_handler: Handler) -> Dict[str, Any]:
        self.metrics["total_requests"] += 1

        start_time = time.time()
        result = await next_handler(data)
        processing_time = (time.time() - start_time) * 1000

        if result.get("success"):
            self.metrics["successful_requests"] += 1
            intent = (result.get("metadata") or {}).get("intent_recognized", "unknown")
            self.metrics["intent_counts"][intent] = self.metrics["intent_counts"].get(intent, 0) + 1
        else:
            self.metrics["failed_requests"] += 1
            error_type = result.get("error", "unknown")
            self.metrics["error_types"][error_type] = self.metrics["error_types"].get(error_type, 0) + 1

        total = self.metrics["total_requests"]
        current_avg = self.metrics["avg_processing_time"]
        self.metrics["avg_processing_time"] = (current_avg * (total - 1) + processing_time) / total

        return result

    def get_metrics(self) -> Dict[str, Any]:
        """Get collected metrics"""
        metrics = dict(self.metrics)
        metrics["intent_counts"] = dict(self.metrics["intent_counts"])
        metrics["error_types"] = dict(self.metrics["error_types"])
        return metrics

    def reset_metrics(self):
        self.metrics = {
            "total_requests": 0,
            "successful_requests": 0,
            "failed_requests": 0,
            "intent_counts": {},
            "avg_processing_time": 0,
            "error_types": {}
        }


class ErrorHandlingMiddleware(Middleware):
    """Turns an escaped exception into an error payload with the support number"""

    async def process(self, data: Dict[str, Any], next_handler: Handler) -> Dict[str, Any]:
        try:
            return await next_handler(data)
        except Exception as e:
            logger.error(
                f"Pipeline error: {str(e)}",
                extra={
                    "conversation_id": data.get("conversation_id"),
                    "error_type": type(e).__name__
                },
                exc_info=True
            )
            return {
                "success": False,
                "error": type(e).__name__,
                "response": (
                    "I apologize, but I'm experiencing technical difficulties. Please contact our "
                    f"support team at {settings.SUPPORT_PHONE} for immediate assistance."
                ),
                "metadata": {
                    "conversation_id": data.get("conversation_id"),
                    "timestamp": datetime.now().isoformat()
                }
            }


class MiddlewarePipeline:
    """Manages a pipeline of middleware"""

    def __init__(self):
        self.middleware: List[Middleware] = []

    def add(self, middleware: Middleware) -> 'MiddlewarePipeline':
        """Add middleware to pipeline"""
        self.middleware.append(middleware)
        return self

    def build(self, final_handler: Handler) -> Handler:
        """Build the middleware chain; the first added runs outermost"""
        def create_handler(middleware: Middleware, next_handler: Handler) -> Handler:
            async def handler(data: Dict[str, Any]) -> Dict[str, Any]:
                return await middleware.process(data, next_handler)
            return handler

        handler = final_handler
        for mw in reversed(self.middleware):
            handler = create_handler(mw, handler)

        return handler

    def clear(self):
        """Clear all middleware"""
        self.middleware.clear()
