"""
Tests for the smaller pipeline pieces: stage guards, the background
dispatcher, suggestions, validators and middleware.
"""

import asyncio

import pytest

from models.schemas import Urgency
from core.conversation.context import UrgencyLevel
from core.conversation.pipeline import (
    run_stage,
    ContextFetchError,
    LearningDispatcher,
    generate_quick_replies,
    generate_smart_suggestions,
    InputValidator,
    OutputValidator,
    MiddlewarePipeline,
    ValidationMiddleware,
    RateLimitingMiddleware,
    MetricsMiddleware,
    ErrorHandlingMiddleware,
)


async def echo_handler(data):
    return {"success": True, "response": data["message"]}


async def failing_handler(data):
    raise RuntimeError("handler blew up")


class TestRunStage:
    """The guarded stage combinator."""

    async def test_success(self):
        async def fetch():
            return ["turn"]

        result = await run_stage("history_fetch", ContextFetchError, fetch, fallback=list)

        assert result.ok
        assert result.value == ["turn"]

    async def test_failure_uses_fallback(self):
        async def fetch():
            raise ConnectionError("down")

        result = await run_stage("history_fetch", ContextFetchError, fetch, fallback=list)

        assert not result.ok
        assert result.value == []
        assert isinstance(result.error, ContextFetchError)
        assert result.error.stage == "history_fetch"
        assert isinstance(result.error.cause, ConnectionError)

    async def test_failing_fallback_propagates(self):
        async def fetch():
            raise ConnectionError("down")

        def broken_fallback():
            raise RuntimeError("no fallback")

        with pytest.raises(RuntimeError):
            await run_stage("history_fetch", ContextFetchError, fetch, fallback=broken_fallback)


class TestLearningDispatcher:
    """Bounded, single worker, at most once."""

    async def test_jobs_run_in_order(self):
        dispatcher = LearningDispatcher(maxsize=5)
        seen = []

        async def job(n):
            seen.append(n)

        for n in range(3):
            dispatcher.submit(lambda n=n: job(n), name=f"job_{n}")
        await dispatcher.drain()

        assert seen == [0, 1, 2]
        assert dispatcher.stats["completed"] == 3
        await dispatcher.stop()

    async def test_failed_job_counted_not_retried(self):
        dispatcher = LearningDispatcher(maxsize=5)
        calls = []

        async def job():
            calls.append(1)
            raise ValueError("bad batch")

        dispatcher.submit(job)
        await dispatcher.drain()

        assert calls == [1]
        assert dispatcher.stats["failed"] == 1
        assert dispatcher.running
        await dispatcher.stop()

    async def test_full_queue_drops(self):
        dispatcher = LearningDispatcher(maxsize=1)
        gate = asyncio.Event()

        async def blocked():
            await gate.wait()

        dispatcher.submit(blocked)
        await asyncio.sleep(0)  # worker takes the first job
        assert dispatcher.submit(blocked) is True
        assert dispatcher.submit(blocked) is False
        assert dispatcher.stats["dropped"] == 1

        gate.set()
        await dispatcher.stop()
        assert not dispatcher.running


class TestSuggestions:
    """Quick replies and smart suggestions."""

    def test_three_intent_replies_not_topped_up(self, make_context):
        replies = generate_quick_replies("project_quote", make_context())

        assert replies == ["Schedule site visit", "Upload project photos", "Discuss timeline"]

    def test_unknown_intent_gets_generic_replies(self, make_context):
        replies = generate_quick_replies("materials_inquiry", make_context())

        assert replies == ["Get quote", "Schedule consultation", "View services"]

    def test_urgent_replies_capped_at_four(self, make_context):
        context = make_context(urgency=UrgencyLevel(Urgency.HIGH, 0.3))

        replies = generate_quick_replies("project_quote", context)

        assert replies == ["Emergency help", "Immediate assistance", "Schedule site visit", "Upload project photos"]

    def test_urgent_replies_first(self, make_context):
        context = make_context(urgency=UrgencyLevel(Urgency.CRITICAL, 0.6))

        replies = generate_quick_replies(None, context)

        assert replies[:2] == ["Emergency help", "Immediate assistance"]
        assert len(replies) == 4

    def test_smart_suggestions(self, make_context):
        context = make_context(user_role="Administrator", primary_interests=["residential"])

        suggestions = generate_smart_suggestions("Happy to prepare a quote or book a consultation.", context)

        assert [s["action"] for s in suggestions] == ["get_quote", "schedule_consultation", "admin_dashboard"]
        assert suggestions[0] == {"text": "Get detailed project estimate", "action": "get_quote", "priority": "high"}


class TestValidators:
    """Inbound request and outbound result checks."""

    @pytest.mark.parametrize("message", ["", "   ", "x" * 1001, "<script>alert(1)</script>", 42])
    def test_invalid_messages(self, message):
        is_valid, error = InputValidator.validate_message(message)

        assert not is_valid
        assert error

    def test_conversation_id_characters(self):
        assert InputValidator.validate_conversation_id("conv_1-a")[0]
        assert not InputValidator.validate_conversation_id("conv 1")[0]

    def test_sanitize(self):
        assert InputValidator.sanitize_message("  hi\x07 there  ") == "hi there"

    def test_output_contract(self):
        is_valid, errors = OutputValidator.validate_turn_result({
            "success": True,
            "response": "Hi",
            "confidence": 1.4,
            "topics": [],
            "suggestedActions": [],
            "quickReplies": ["a", "b", "c", "d", "e"],
        })

        assert not is_valid
        assert "Missing required field: metadata" in errors
        assert "Confidence must be between 0 and 1" in errors
        assert any("quick replies" in e for e in errors)


class TestMiddleware:
    """Middleware composition."""

    async def test_validation_rejects(self):
        handler = MiddlewarePipeline().add(ValidationMiddleware()).build(echo_handler)

        result = await handler({"message": "", "conversation_id": "conv_1"})

        assert result["success"] is False
        assert result["validation_errors"]

    async def test_validation_sanitizes(self):
        handler = MiddlewarePipeline().add(ValidationMiddleware()).build(echo_handler)

        result = await handler({"message": "  hello\x07  ", "conversation_id": "conv_1"})

        assert result["response"] == "hello"

    async def test_rate_limit(self):
        handler = MiddlewarePipeline().add(RateLimitingMiddleware(max_requests=2, window_seconds=60)).build(
            echo_handler
        )
        data = {"message": "hi", "conversation_id": "conv_1"}

        results = [await handler(data) for _ in range(3)]

        assert [r["success"] for r in results] == [True, True, False]
        assert results[-1]["error"] == "Rate limit exceeded"

    async def test_error_handling_and_metrics(self):
        metrics = MetricsMiddleware()
        handler = MiddlewarePipeline().add(metrics).add(ErrorHandlingMiddleware()).build(failing_handler)

        result = await handler({"message": "hi", "conversation_id": "conv_1"})

        assert result["success"] is False
        assert metrics.get_metrics()["failed_requests"] == 1
        assert metrics.get_metrics()["error_types"] == {"RuntimeError": 1}
