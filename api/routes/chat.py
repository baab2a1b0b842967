"""
Chat and learning endpoints backed by the conversation system adapter.
"""

from fastapi import APIRouter, HTTPException
import logging
import uuid

from models.schemas import ChatRequest, LearnRequest
from core.conversation import ConversationSystemAdapter

logger = logging.getLogger(__name__)

router = APIRouter()

# Shared conversation system; started and stopped by the app lifespan
conversation_adapter = ConversationSystemAdapter(use_middleware=True, enable_metrics=True)


@router.post("/chat")
async def chat_endpoint(request: ChatRequest):
    """
    Process one chat turn.

    The response carries the optimized reply, its confidence, topics,
    suggested actions, flow progress, quick replies and smart suggestions.
    """
    conversation_id = request.conversation_id or str(uuid.uuid4())
    user_context = dict(request.user_context)
    if request.requested_flow:
        user_context["requested_flow"] = request.requested_flow

    logger.info(
        "Chat request received",
        extra={
            "conversation_id": conversation_id,
            "user_id": request.user_id,
            "message_length": len(request.message)
        }
    )

    try:
        response_data = await conversation_adapter.process_chat_message(
            message=request.message,
            conversation_id=conversation_id,
            user_id=request.user_id,
            user_context=user_context
        )
    except Exception as e:
        logger.error(
            f"Error processing chat request: {str(e)}",
            extra={"conversation_id": conversation_id},
            exc_info=True
        )
        raise HTTPException(status_code=500, detail="Failed to process chat message")

    if response_data.get("validation_errors"):
        raise HTTPException(status_code=400, detail=response_data["validation_errors"])

    if response_data.get("error") == "Rate limit exceeded":
        raise HTTPException(status_code=429, detail=response_data["response"])

    return response_data


@router.post("/learn")
async def learn_endpoint(request: LearnRequest):
    """
    Run the learning engine over a batch of interactions.

    Without an explicit batch, the stored interaction log of the
    conversation is used.
    """
    interactions = None
    if request.interactions is not None:
        interactions = [item.model_dump() for item in request.interactions]
    feedback = request.feedback.model_dump() if request.feedback else None

    try:
        return await conversation_adapter.run_learning(
            request.conversation_id, interactions, feedback, apply=request.apply
        )
    except Exception as e:
        logger.error(f"Error running learning: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to run learning")


@router.get("/chat/metrics")
async def get_chat_metrics():
    """Get orchestrator, request and learning metrics"""
    try:
        return {
            "status": "ok",
            "metrics": conversation_adapter.get_metrics()
        }
    except Exception as e:
        logger.error(f"Error retrieving metrics: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to retrieve metrics")
