"""Planning node: AI provider or heuristic fallback"""
import logging
from typing import Dict, Any

from ...models import ActivityPhase
from ...providers.base import AIProvider, AIRequest
from ...providers.factory import get_provider_factory
from ...providers.response_parser import AIResponse, summarize_requests
from ...services.conversation_state import get_conversation_manager
from ...services.query_generator import get_query_generator
from ...services.redis_publisher import publish_activity
from ..state import ChatState

logger = logging.getLogger(__name__)

HEURISTIC_PLANNER = "heuristic"
NO_MATCH_ANSWER = "I could not find tables matching your question in the selected data sources."


def use_heuristics(requested: str) -> bool:
    """True when the turn asked for heuristics or no AI provider is configured"""
    if (requested or "").lower() == HEURISTIC_PLANNER:
        return True
    return not get_provider_factory().has_configured_provider()


async def plan_requests(state: ChatState) -> Dict[str, Any]:
    """
    Decide what to do with the user's message.

    Args:
        state: Current workflow state

    Returns:
        Updated state with ai_response, data_requests and planner
    """
    conversation_id = state.get("conversation_id")

    logger.info(f"[{conversation_id}] ===== PLANNER START =====")

    if use_heuristics(state.get("ai_provider")):
        result = await plan_with_heuristics(state)
    else:
        provider = get_provider_factory().get_provider(state.get("ai_provider"))
        result = await plan_with_ai(state, provider)

    ai_response = result["ai_response"]
    if conversation_id:
        get_conversation_manager().update_state(conversation_id, ai_response)

    logger.info(
        f"[{conversation_id}] Planned {ai_response.type} via {result['planner']}: "
        f"{summarize_requests(ai_response)}"
    )
    logger.info(f"[{conversation_id}] ===== PLANNER END =====")

    return {**result, "data_requests": list(ai_response.dataRequests)}


async def plan_with_ai(state: ChatState, provider: AIProvider) -> Dict[str, Any]:
    """Stream the provider's answer, forwarding each chunk as an activity"""
    conversation_id = state.get("conversation_id")

    history = []
    if conversation_id:
        history = list(get_conversation_manager().get_or_create(conversation_id).conversation_history)

    await publish_activity(conversation_id, ActivityPhase.AI_THINKING, "AI is analyzing your question...")

    request = AIRequest(
        user_message=state["user_message"],
        available_schemas=state.get("schemas") or [],
        conversation_history=history,
        user_id=state.get("user_id"),
        conversation_id=conversation_id,
        first_message=not history,
    )

    async def forward_chunk(text: str):
        await publish_activity(conversation_id, ActivityPhase.AI_THINKING, text)

    logger.info(f"[{conversation_id}] Calling {provider.name} with {len(request.available_schemas)} schemas")
    ai_response = await provider.stream_chat(
        request,
        on_chunk=forward_chunk,
        cancel_event=state.get("cancel_event")
    )
    if ai_response.is_error:
        logger.warning(f"[{conversation_id}] {provider.name} returned an error: {ai_response.error}")

    return {"ai_response": ai_response, "planner": provider.name}


async def plan_with_heuristics(state: ChatState) -> Dict[str, Any]:
    """Synthesize SQL requests from keyword heuristics"""
    conversation_id = state.get("conversation_id")

    await publish_activity(conversation_id, ActivityPhase.GENERATING_QUERIES)

    generator = get_query_generator()
    generation = generator.generate_for_sources(state["user_message"], state.get("schemas") or [])
    requests = generator.to_requests(generation)

    if not requests:
        reasons = [query.validation_error for query in generation.queries if query.validation_error]
        logger.info(f"[{conversation_id}] Heuristics produced no executable query")
        ai_response = AIResponse.direct_answer(" ".join(reasons) or NO_MATCH_ANSWER, intent=generation.intent)
    else:
        ai_response = AIResponse(
            type="READY_TO_EXECUTE",
            content=f"Running {len(requests)} {generation.intent} queries",
            intent=generation.intent,
            dataRequests=requests,
        )

    return {"ai_response": ai_response, "planner": HEURISTIC_PLANNER}
