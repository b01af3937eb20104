"""Redis pub/sub publisher for conversation activity updates"""
import logging
from typing import Optional, Dict, Any
import redis.asyncio as aioredis

from ..config import settings
from ..models import ActivityMessage, ActivityPhase, AnalyzeResponse
from ..utils.json_encoder import json_dumps

logger = logging.getLogger(__name__)


def activity_channel(conversation_id: str) -> str:
    return f"conversation_activity_{conversation_id}"


class RedisPublisher:
    """Redis publisher for activity and final response messages"""

    def __init__(self, redis_url: Optional[str] = None):
        self.redis_url = redis_url or settings.REDIS_URL
        self._client: Optional[aioredis.Redis] = None

    async def get_client(self) -> aioredis.Redis:
        """Get or create Redis client"""
        if self._client is None:
            self._client = aioredis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True
            )
        return self._client

    async def close(self):
        """Close Redis connection"""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def ping(self) -> bool:
        try:
            client = await self.get_client()
            return bool(await client.ping())
        except Exception as e:
            logger.error(f"Redis ping failed: {e}")
            return False

    async def _publish(self, conversation_id: str, payload: Dict[str, Any]):
        try:
            client = await self.get_client()
            channel = activity_channel(conversation_id)
            await client.publish(channel, json_dumps(payload))
            logger.debug(f"Published {payload.get('type')} to {channel}")
        except Exception as e:
            logger.error(f"Failed to publish activity: {e}")
            # Activity updates are best-effort

    async def publish_activity(
        self,
        conversation_id: Optional[str],
        phase: ActivityPhase,
        message: Optional[str] = None,
        status: str = "in_progress"
    ):
        """
        Publish one activity update.

        Args:
            conversation_id: Conversation to publish to; nothing is sent without one
            phase: Activity phase
            message: Human-readable text, defaults to the phase description
            status: in_progress, completed or error
        """
        if not conversation_id:
            return
        activity = ActivityMessage(
            phase=phase,
            status=status,
            message=message or phase.description,
            conversationId=conversation_id,
        )
        payload = {"type": "ACTIVITY", **activity.model_dump(mode="json")}
        await self._publish(conversation_id, payload)

    async def publish_response(self, conversation_id: Optional[str], response: AnalyzeResponse):
        """
        Publish the final response of a turn.

        Args:
            conversation_id: Conversation to publish to
            response: Final response envelope
        """
        if not conversation_id:
            return
        await self._publish(conversation_id, {"type": "RESPONSE", "response": response})


# Global publisher instance
_publisher: Optional[RedisPublisher] = None


async def get_publisher() -> RedisPublisher:
    """Get global Redis publisher instance"""
    global _publisher
    if _publisher is None:
        _publisher = RedisPublisher()
    return _publisher


async def publish_activity(
    conversation_id: Optional[str],
    phase: ActivityPhase,
    message: Optional[str] = None,
    status: str = "in_progress"
):
    """
    Convenience function to publish activity.

    Args:
        conversation_id: Conversation ID
        phase: Activity phase
        message: Activity message
        status: Activity status
    """
    publisher = await get_publisher()
    await publisher.publish_activity(
        conversation_id=conversation_id,
        phase=phase,
        message=message,
        status=status
    )
