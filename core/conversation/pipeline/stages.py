"""
Stage errors and the guarded stage combinator.

Each turn stage runs through run_stage: the collaborator call is awaited,
any exception is wrapped in the stage's error type and logged, and the
caller gets a StageResult holding either the value or the fallback.
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StageError(Exception):
    """Failure inside a single pipeline stage"""

    def __init__(self, stage: str, cause: Optional[BaseException] = None):
        self.stage = stage
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Stage '{stage}' failed{detail}")


class ContextFetchError(StageError):
    pass


class IntentRecognitionError(StageError):
    pass


class FlowManagementError(StageError):
    pass


class ResponseGenerationError(StageError):
    pass


class OptimizationError(StageError):
    pass


class PersistenceError(StageError):
    pass


class LearningError(StageError):
    pass


@dataclass
class StageResult(Generic[T]):
    """Outcome of a guarded stage: a value or the error that replaced it"""
    value: Optional[T] = None
    error: Optional[StageError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def run_stage(stage_name: str,
                    error_cls: Type[StageError],
                    coro_factory: Callable[[], Awaitable[T]],
                    fallback: Any = None,
                    conversation_id: Optional[str] = None) -> StageResult[T]:
    """
    Run one stage and capture its failure.

    Args:
        stage_name: Name used in logs and on the error
        error_cls: StageError subclass to wrap failures in
        coro_factory: Zero-arg callable returning the awaitable to run
        fallback: Value (or zero-arg callable) substituted on failure
        conversation_id: Conversation the stage belongs to, for logging

    Returns:
        StageResult holding the stage value, or the fallback and the error
    """
    try:
        return StageResult(value=await coro_factory())
    except Exception as e:
        error = error_cls(stage_name, e)
        logger.warning(
            f"Stage {stage_name} failed, using fallback: {str(e)}",
            extra={
                "conversation_id": conversation_id,
                "stage": stage_name,
                "error_type": type(e).__name__
            }
        )
        value = fallback() if callable(fallback) else fallback
        return StageResult(value=value, error=error)
