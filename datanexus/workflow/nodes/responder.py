"""Nodes building the final response of a turn"""
import logging
from typing import Dict, Any, Optional

from ...models import ActivityPhase, AnalyzeResponse
from ...services.redis_publisher import publish_activity
from ...utils.chart_rules import suggest_visualization
from ...utils.query_heuristics import classify_intent
from ..state import ChatState

logger = logging.getLogger(__name__)


async def request_clarification(state: ChatState) -> Dict[str, Any]:
    """Ask the user the AI's clarification question"""
    conversation_id = state.get("conversation_id")
    ai_response = state["ai_response"]

    logger.info(f"[{conversation_id}] Clarification needed: {ai_response.clarificationQuestion}")

    await publish_activity(
        conversation_id,
        ActivityPhase.UNDERSTANDING_INTENT,
        "I need clarification...",
        status="completed"
    )

    return {
        "response": AnalyzeResponse.clarification(
            conversation_id,
            ai_response.clarificationQuestion,
            ai_response.suggestedOptions,
            intent=ai_response.intent,
        )
    }


async def answer_directly(state: ChatState) -> Dict[str, Any]:
    """Return the AI's text answer without touching any data source"""
    ai_response = state["ai_response"]
    return {
        "response": AnalyzeResponse.direct_answer(
            state.get("conversation_id"),
            ai_response.content,
            intent=ai_response.intent,
        )
    }


def visualization_for(state: ChatState) -> Optional[str]:
    """Visualization hint from the first successful result"""
    for result in state.get("query_results") or []:
        if result.succeeded:
            return suggest_visualization(classify_intent(state["user_message"]), result.data)
    return None


async def build_response(state: ChatState) -> Dict[str, Any]:
    """
    Aggregate executed results into the final response.

    Args:
        state: Current workflow state

    Returns:
        Updated state with response
    """
    conversation_id = state.get("conversation_id")
    ai_response = state["ai_response"]

    logger.info(f"[{conversation_id}] ===== RESPONDER START =====")

    await publish_activity(conversation_id, ActivityPhase.PREPARING_RESPONSE)

    visualization = visualization_for(state)
    response = AnalyzeResponse.query_result(
        conversation_id,
        ai_response.content,
        state.get("query_results") or [],
        suggested_visualization=visualization,
        intent=ai_response.intent,
    )

    logger.info(f"[{conversation_id}] Suggested visualization: {visualization}")
    logger.info(f"[{conversation_id}] ===== RESPONDER END =====")

    return {"response": response}
