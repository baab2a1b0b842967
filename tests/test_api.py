"""
HTTP tests for the chat, learning and metrics endpoints.
"""

import uuid

import pytest
from fastapi.testclient import TestClient

from main import app


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


def new_conversation_id():
    return f"conv_{uuid.uuid4().hex[:8]}"


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestChatEndpoint:
    """POST /api/chat"""

    def test_chat_turn(self, client):
        conversation_id = new_conversation_id()

        response = client.post("/api/chat", json={
            "message": "Hello there",
            "conversation_id": conversation_id,
            "user_id": "user_1",
            "user_context": {"user_name": "Sam"},
        })

        assert response.status_code == 200
        data = response.json()
        assert data["conversation_id"] == conversation_id
        assert data["success"] is True
        assert data["response"]
        assert 0.1 <= data["confidence"] <= 1.0
        assert len(data["quickReplies"]) <= 4

    def test_generated_conversation_id(self, client):
        response = client.post("/api/chat", json={"message": "What services do you offer?"})

        assert response.status_code == 200
        assert response.json()["conversation_id"]

    def test_requested_flow(self, client):
        response = client.post("/api/chat", json={
            "message": "hi",
            "conversation_id": new_conversation_id(),
            "requested_flow": "project_planning",
        })

        assert response.status_code == 200
        assert response.json()["conversationFlow"]["currentStep"] == "project_goals"

    def test_empty_message_rejected(self, client):
        response = client.post("/api/chat", json={"message": "", "conversation_id": new_conversation_id()})

        assert response.status_code == 400

    def test_missing_message_is_unprocessable(self, client):
        response = client.post("/api/chat", json={"conversation_id": new_conversation_id()})

        assert response.status_code == 422


class TestLearnEndpoint:
    """POST /api/learn"""

    def test_learn_from_batch(self, client):
        response = client.post("/api/learn", json={
            "conversation_id": new_conversation_id(),
            "interactions": [
                {"intent_recognized": "quote", "actual_intent": "quote", "user_satisfaction": 5},
                {"intent_recognized": "quote", "actual_intent": "support", "user_satisfaction": 2},
            ],
            "apply": False,
        })

        assert response.status_code == 200
        data = response.json()
        assert data["learning_completed"] is True
        metrics = data["insights_generated"]["success_metrics"]
        assert metrics["intent_recognition_accuracy"] == 0.5
        assert metrics["overall_satisfaction"] == 3.5

    def test_learn_from_stored_log(self, client):
        conversation_id = new_conversation_id()
        client.post("/api/chat", json={"message": "Hello there", "conversation_id": conversation_id})

        response = client.post("/api/learn", json={"conversation_id": conversation_id, "apply": False})

        assert response.status_code == 200
        assert response.json()["learning_completed"] is True


class TestMetricsEndpoint:
    def test_metrics(self, client):
        client.post("/api/chat", json={"message": "Hello there", "conversation_id": new_conversation_id()})

        response = client.get("/api/chat/metrics")

        assert response.status_code == 200
        metrics = response.json()["metrics"]
        assert metrics["orchestrator"]["total_turns"] >= 1
        assert metrics["requests"]["total_requests"] >= 1
        assert "learning_state" in metrics
