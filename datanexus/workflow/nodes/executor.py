"""Data request execution node"""
import asyncio
import logging
from typing import Dict, Any

from ...models import ActivityPhase
from ...services.execution_service import get_execution_service
from ...services.redis_publisher import publish_activity
from ..state import ChatState

logger = logging.getLogger(__name__)


async def execute_requests(state: ChatState) -> Dict[str, Any]:
    """
    Run the planned data requests in step order.

    Per-request failures are carried in the individual results.

    Args:
        state: Current workflow state

    Returns:
        Updated state with query_results
    """
    conversation_id = state.get("conversation_id")
    requests = state.get("data_requests") or []

    logger.info(f"[{conversation_id}] ===== EXECUTOR START =====")

    await publish_activity(
        conversation_id,
        ActivityPhase.EXECUTING_QUERIES,
        "Executing queries across your data sources..."
    )

    results = await asyncio.to_thread(
        get_execution_service().execute_all,
        requests,
        state.get("connection_ids") or [],
        state.get("user_id"),
    )

    failed = sum(1 for result in results if not result.succeeded)
    logger.info(f"[{conversation_id}] Executed {len(results)} requests, {failed} failed")
    logger.info(f"[{conversation_id}] ===== EXECUTOR END =====")

    return {"query_results": results}
