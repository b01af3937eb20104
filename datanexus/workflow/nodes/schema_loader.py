"""Schema loading node"""
import asyncio
import logging
from typing import Dict, Any, List

from ...models import ActivityPhase, ConnectionRecord, SourceSchema
from ...services.redis_publisher import publish_activity
from ...services.repositories import get_connection_repository
from ...services.schema_cache import get_schema_cache
from ..state import ChatState

logger = logging.getLogger(__name__)

NO_SCHEMAS_MESSAGE = "Could not extract schemas from any of the specified connections."
NO_SCHEMAS_SUGGESTION = "Please verify your database connections are active and accessible."


def owned_connections(state: ChatState) -> List[ConnectionRecord]:
    """Stored connections of the turn that belong to the requesting user"""
    conversation_id = state.get("conversation_id")
    user_id = state.get("user_id")
    connection_ids = state.get("connection_ids") or []

    found = get_connection_repository().find_by_ids(connection_ids)
    missing = set(connection_ids) - {connection.id for connection in found}
    for connection_id in sorted(missing):
        logger.warning(f"[{conversation_id}] Connection {connection_id} not found")

    connections = []
    for connection in found:
        if user_id and connection.user_id and connection.user_id != user_id:
            logger.warning(f"[{conversation_id}] Connection {connection.id} does not belong to user {user_id}")
            continue
        connections.append(connection)
    return connections


async def load_schemas(state: ChatState) -> Dict[str, Any]:
    """
    Collect a schema snapshot for every connection of the turn.

    Cached snapshots are used when present; on a miss the schema is extracted
    live and cached. Connections whose extraction fails are skipped.

    Args:
        state: Current workflow state

    Returns:
        Updated state with connections and schemas, or a NO_SCHEMAS error
    """
    conversation_id = state.get("conversation_id")

    logger.info(f"[{conversation_id}] ===== SCHEMA LOADER START =====")

    await publish_activity(
        conversation_id,
        ActivityPhase.MAPPING_DATA_SOURCES,
        "Extracting schemas from your data sources..."
    )

    connections = owned_connections(state)
    cache = get_schema_cache()
    schemas: List[SourceSchema] = []

    for connection in connections:
        schema = cache.get_cached_schema(connection.id)
        if schema is not None:
            logger.debug(f"[{conversation_id}] Using cached schema for connection {connection.id}")
            schemas.append(schema)
            continue

        logger.info(f"[{conversation_id}] Cache miss for connection {connection.id}, extracting live schema")
        await publish_activity(
            conversation_id,
            ActivityPhase.ANALYZING_SCHEMAS,
            f"Analyzing schema of {connection.name}..."
        )
        schema = await asyncio.to_thread(cache.cache_schema, connection)
        if schema is not None:
            schemas.append(schema)

    if not schemas:
        logger.error(f"[{conversation_id}] No schemas available for connections {state.get('connection_ids')}")
        logger.info(f"[{conversation_id}] ===== SCHEMA LOADER END (ERROR) =====")
        return {
            "connections": connections,
            "schemas": [],
            "error": NO_SCHEMAS_MESSAGE,
            "error_code": "NO_SCHEMAS",
            "error_suggestion": NO_SCHEMAS_SUGGESTION,
        }

    logger.info(f"[{conversation_id}] Loaded {len(schemas)} of {len(connections)} schemas")
    logger.info(f"[{conversation_id}] ===== SCHEMA LOADER END =====")

    return {
        "connections": connections,
        "schemas": schemas,
    }
