"""LangGraph workflow for one chat turn"""
import logging
from typing import Literal
from langgraph.graph import StateGraph, END

from .state import ChatState
from .nodes import (
    schema_loader,
    planner,
    executor,
    responder
)

logger = logging.getLogger(__name__)


def check_for_errors(state: ChatState) -> Literal["continue", "error"]:
    """
    Check if any node has set an error in state.

    Args:
        state: Current workflow state

    Returns:
        "error" if error exists, "continue" otherwise
    """
    if state.get("error"):
        return "error"
    return "continue"


def route_after_planning(state: ChatState) -> Literal["clarify", "answer", "execute", "error"]:
    """
    Routing logic on the planned AI response type.

    A READY_TO_EXECUTE plan without any data request is answered directly.

    Args:
        state: Current workflow state

    Returns:
        Next node to execute
    """
    if state.get("error"):
        return "error"

    ai_response = state.get("ai_response")
    if ai_response is None:
        logger.error("No AI response in state")
        return "error"

    if ai_response.type == "CLARIFICATION_NEEDED":
        return "clarify"
    if ai_response.type == "DIRECT_ANSWER":
        return "answer"
    if ai_response.type == "READY_TO_EXECUTE":
        return "execute" if ai_response.dataRequests else "answer"
    raise ValueError(f"Unhandled AI response type: {ai_response.type}")


def create_chat_workflow() -> StateGraph:
    """
    Create and compile the LangGraph workflow for a chat turn.

    The workflow:
    1. Load schemas → cached snapshot or live extraction per connection
    2. Plan → AI provider, or heuristic SQL synthesis
    3. Clarify or answer directly, or
    4. Execute data requests in step order → build the result response

    Returns:
        Compiled workflow graph
    """
    workflow = StateGraph(ChatState)

    workflow.add_node("load_schemas", schema_loader.load_schemas)
    workflow.add_node("plan", planner.plan_requests)
    workflow.add_node("clarify", responder.request_clarification)
    workflow.add_node("answer", responder.answer_directly)
    workflow.add_node("execute", executor.execute_requests)
    workflow.add_node("respond", responder.build_response)

    workflow.set_entry_point("load_schemas")

    workflow.add_conditional_edges(
        "load_schemas",
        check_for_errors,
        {
            "continue": "plan",
            "error": END
        }
    )

    workflow.add_conditional_edges(
        "plan",
        route_after_planning,
        {
            "clarify": "clarify",
            "answer": "answer",
            "execute": "execute",
            "error": END
        }
    )

    workflow.add_edge("execute", "respond")
    workflow.add_edge("clarify", END)
    workflow.add_edge("answer", END)
    workflow.add_edge("respond", END)

    compiled = workflow.compile()

    logger.info("Chat workflow compiled successfully")

    return compiled


# Global workflow instance (created once)
_workflow = None


def get_workflow() -> StateGraph:
    """Get global workflow instance"""
    global _workflow
    if _workflow is None:
        _workflow = create_chat_workflow()
    return _workflow
