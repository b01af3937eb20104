"""Workflow state definition for the chat turn graph"""
import asyncio
from typing import TypedDict, Optional, List

from ..datasources.requests import DataRequest
from ..models import AnalyzeResponse, ConnectionRecord, QueryResult, SourceSchema
from ..providers.response_parser import AIResponse


class ChatState(TypedDict, total=False):
    """
    State of one user turn.

    Each node receives the current state and returns the keys it updates.
    """

    # ========================================================================
    # Input (Set at workflow start)
    # ========================================================================
    conversation_id: Optional[str]
    user_id: Optional[str]
    user_message: str
    connection_ids: List[str]
    ai_provider: Optional[str]
    cancel_event: Optional[asyncio.Event]

    # ========================================================================
    # Intermediate Results (Updated by nodes)
    # ========================================================================
    connections: List[ConnectionRecord]
    schemas: List[SourceSchema]
    planner: Optional[str]
    ai_response: Optional[AIResponse]
    data_requests: List[DataRequest]
    query_results: List[QueryResult]

    # ========================================================================
    # Control Flow
    # ========================================================================
    error: Optional[str]
    error_code: Optional[str]
    error_suggestion: Optional[str]

    # ========================================================================
    # Output (Final result)
    # ========================================================================
    response: Optional[AnalyzeResponse]


def create_initial_state(
    user_message: str,
    connection_ids: Optional[List[str]] = None,
    conversation_id: Optional[str] = None,
    user_id: Optional[str] = None,
    ai_provider: Optional[str] = None,
    cancel_event: Optional[asyncio.Event] = None
) -> ChatState:
    """
    Create initial workflow state.

    Args:
        user_message: User's natural language message
        connection_ids: Connections the turn may use
        conversation_id: Conversation the turn belongs to
        user_id: Requesting user, used for connection ownership checks
        ai_provider: Provider name, or "heuristic"
        cancel_event: Set by the caller to abort the AI stream

    Returns:
        Initial workflow state
    """
    return ChatState(
        conversation_id=conversation_id,
        user_id=user_id,
        user_message=user_message,
        connection_ids=list(connection_ids or []),
        ai_provider=ai_provider,
        cancel_event=cancel_event,
        connections=[],
        schemas=[],
        planner=None,
        ai_response=None,
        data_requests=[],
        query_results=[],
        error=None,
        error_code=None,
        error_suggestion=None,
        response=None,
    )
