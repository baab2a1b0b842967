"""
Intent detection, entity extraction and response generation tests.
"""

import pytest

from models.schemas import Sentiment, Complexity
from core.conversation.context import ConversationTurn
from core.conversation.understanding import IntentDetector, IntentAnalysis, EntityExtractor
from core.conversation.handlers import IntentResponseGenerator, generate_basic_response


class TestIntentDetector:
    """Table driven scoring."""

    def setup_method(self):
        self.detector = IntentDetector()

    async def test_quote_intent(self):
        analysis = await self.detector.classify_intent("How much would a kitchen remodel cost?")

        assert analysis.intent_name == "project_quote"
        assert analysis.intent_confidence == 1.0
        assert len(analysis.alternative_intents) <= 2

    async def test_no_match(self):
        analysis = await self.detector.classify_intent("zzz")

        assert analysis.primary_intent is None
        assert analysis.intent_name is None
        assert analysis.intent_confidence == 0.0

    async def test_learned_adjustment_applies(self):
        plain = await IntentDetector().classify_intent("hello")
        adjusted = await IntentDetector({"greeting": 0.1}).classify_intent("hello")

        assert adjusted.intent_confidence == pytest.approx(plain.intent_confidence + 0.1)

    async def test_recent_topic_boost(self):
        history = [ConversationTurn("conv_1", "user_1", "payments?", metadata={"topics": ["payment_inquiry"]})]

        plain = await self.detector.classify_intent("Can I pay by invoice?")
        boosted = await self.detector.classify_intent("Can I pay by invoice?", history)

        assert boosted.intent_name == "payment_inquiry"
        assert boosted.intent_confidence > plain.intent_confidence

    def test_unknown_analysis(self):
        analysis = IntentAnalysis.unknown()

        assert analysis.intent_name is None
        assert analysis.sentiment == Sentiment.NEUTRAL

    @pytest.mark.parametrize("message, sentiment", [
        ("This is great", Sentiment.POSITIVE),
        ("That was terrible", Sentiment.NEGATIVE),
        ("Tell me more", Sentiment.NEUTRAL),
    ])
    def test_sentiment(self, message, sentiment):
        assert IntentDetector.analyze_sentiment(message) == sentiment

    def test_complexity(self):
        assert IntentDetector.assess_complexity("short one") == Complexity.LOW
        assert IntentDetector.assess_complexity(" ".join(["word"] * 10)) == Complexity.MEDIUM
        assert IntentDetector.assess_complexity(" ".join(["word"] * 16)) == Complexity.HIGH


class TestEntityExtractor:
    def test_extract_values(self):
        values = EntityExtractor().extract_values("Urgent deck repair in concrete with a $5000 budget over 2 weeks")

        assert values == {
            "projectType": "deck",
            "material": "concrete",
            "urgency": "urgent",
            "budget": "$5000",
            "timeline": "2 weeks",
        }


class TestResponseGeneration:
    """Intent templates and the basic responder."""

    async def test_template_metadata(self, make_context):
        analysis = await IntentDetector().classify_intent("hello")

        draft = await IntentResponseGenerator().generate_response(analysis, make_context(), "hello")

        assert "Sam" in draft.response
        assert draft.response_metadata["response_pattern"] == "greeting_template"
        assert draft.response_metadata["source"] == "intent_template"

    async def test_learned_confidence_adjustment(self, make_context):
        analysis = await IntentDetector().classify_intent("hello")
        plain = await IntentResponseGenerator().generate_response(analysis, make_context(), "hello")

        adjusted = await IntentResponseGenerator({"greeting_template": -0.2}).generate_response(
            analysis, make_context(), "hello"
        )

        assert adjusted.confidence == pytest.approx(plain.confidence - 0.2)

    async def test_unknown_intent_uses_contextual_fallback(self, make_context):
        draft = await IntentResponseGenerator().generate_response(IntentAnalysis.unknown(), make_context(), "zzz")

        assert draft.response_metadata["response_pattern"] == "contextual_fallback"

    def test_basic_rules_first_match_wins(self):
        draft = generate_basic_response("Are you licensed? Also need a quote")

        assert "quote" in draft.topics

    def test_basic_default(self):
        draft = generate_basic_response("zzz")

        assert draft.response
        assert draft.suggested_actions
