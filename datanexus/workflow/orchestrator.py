"""Runs one user turn through the chat workflow"""
import asyncio
import logging
from typing import Optional
from uuid import uuid4

from ..models import ActivityPhase, AnalyzeRequest, AnalyzeResponse
from ..services.conversation_state import ConversationStateManager, get_conversation_manager
from ..services.redis_publisher import get_publisher
from .chat_workflow import get_workflow
from .state import create_initial_state

logger = logging.getLogger(__name__)

INTERNAL_ERROR_SUGGESTION = "Please try again or contact support if the problem persists."


def assistant_text(response: AnalyzeResponse) -> Optional[str]:
    """Text recorded in the conversation history for a response"""
    if response.responseType == "CLARIFICATION":
        return response.clarificationQuestion
    if response.error is not None:
        return response.error.message
    return response.summary


class ChatOrchestrator:
    """
    Entry point for user turns.

    Turns of one conversation run one at a time; different conversations run
    concurrently.
    """

    def __init__(self, conversation_manager: Optional[ConversationStateManager] = None, workflow=None):
        self.conversation_manager = conversation_manager or get_conversation_manager()
        self.workflow = workflow

    async def analyze(
        self,
        request: AnalyzeRequest,
        cancel_event: Optional[asyncio.Event] = None
    ) -> AnalyzeResponse:
        """
        Process one user message end to end.

        Args:
            request: The user's turn
            cancel_event: Set by the caller to abort the AI stream

        Returns:
            Final response; failures are returned as ERROR responses
        """
        conversation_id = request.conversationId or str(uuid4())

        async with self.conversation_manager.lock(conversation_id):
            response = await self._run(request, conversation_id, cancel_event)
            self.conversation_manager.add_user_message(conversation_id, request.userMessage)
            reply = assistant_text(response)
            if reply:
                self.conversation_manager.add_assistant_message(conversation_id, reply)

        publisher = await get_publisher()
        if response.success:
            await publisher.publish_activity(
                conversation_id, ActivityPhase.COMPLETED, "Analysis complete!", status="completed"
            )
        else:
            await publisher.publish_activity(
                conversation_id, ActivityPhase.ERROR, response.error.message, status="error"
            )
        await publisher.publish_response(conversation_id, response)

        return response

    async def _run(
        self,
        request: AnalyzeRequest,
        conversation_id: str,
        cancel_event: Optional[asyncio.Event]
    ) -> AnalyzeResponse:
        logger.info(f"[{conversation_id}] Processing message over {len(request.connectionIds)} connections")

        try:
            publisher = await get_publisher()
            await publisher.publish_activity(
                conversation_id,
                ActivityPhase.UNDERSTANDING_INTENT,
                "Processing your request..."
            )

            initial_state = create_initial_state(
                user_message=request.userMessage,
                connection_ids=request.connectionIds,
                conversation_id=conversation_id,
                user_id=request.userId,
                ai_provider=request.aiProvider,
                cancel_event=cancel_event,
            )

            workflow = self.workflow or get_workflow()
            final_state = await workflow.ainvoke(initial_state)

            if final_state.get("error"):
                logger.error(f"[{conversation_id}] Workflow failed: {final_state['error']}")
                return AnalyzeResponse.failure(
                    conversation_id,
                    final_state.get("error_code") or "WORKFLOW_ERROR",
                    final_state["error"],
                    final_state.get("error_suggestion"),
                )

            response = final_state.get("response")
            if response is None:
                raise RuntimeError("Workflow completed but no response was generated")

            logger.info(f"[{conversation_id}] Workflow completed with {response.responseType}")
            return response

        except Exception as e:
            logger.exception(f"[{conversation_id}] Error processing message: {e}")
            return AnalyzeResponse.failure(
                conversation_id,
                "INTERNAL_ERROR",
                f"An unexpected error occurred while processing your request: {e}",
                INTERNAL_ERROR_SUGGESTION,
            )


_orchestrator: Optional[ChatOrchestrator] = None


def get_orchestrator() -> ChatOrchestrator:
    """Get or create the global orchestrator"""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = ChatOrchestrator()
    return _orchestrator
