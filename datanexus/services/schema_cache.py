"""In-process cache of extracted source schemas"""
import logging
import threading
from typing import Dict, Optional

from ..datasources.registry import DataSourceRegistry, get_registry
from ..models import ConnectionRecord, SourceSchema
from .schema_training import SchemaTrainingClient, get_training_client

logger = logging.getLogger(__name__)


class SchemaCache:
    """
    Holds one immutable schema snapshot (with sample rows) per connection.

    Snapshots are replaced, never mutated.
    """

    def __init__(
        self,
        registry: Optional[DataSourceRegistry] = None,
        training_client: Optional[SchemaTrainingClient] = None
    ):
        self.registry = registry or get_registry()
        self.training_client = training_client or get_training_client()
        self._schemas: Dict[str, SourceSchema] = {}
        self._lock = threading.Lock()

    def cache_schema(self, connection: ConnectionRecord) -> Optional[SourceSchema]:
        """
        Extract and store a connection's schema.

        Args:
            connection: Stored connection record

        Returns:
            The cached snapshot, or None if extraction failed
        """
        logger.info(f"Caching schema and sample data for connection {connection.id}")
        try:
            schema = self.registry.get_data_source(connection).extract_schema()
        except Exception as e:
            logger.error(f"Failed to cache schema for connection {connection.id}: {e}")
            return None

        with self._lock:
            self._schemas[connection.id] = schema

        logger.info(f"Cached schema for connection {connection.id} with {len(schema.sample_data)} sampled tables")

        if self.training_client.enabled:
            self.training_client.push_schema(schema)

        return schema

    def get_cached_schema(self, connection_id: str) -> Optional[SourceSchema]:
        with self._lock:
            return self._schemas.get(connection_id)

    def refresh(self, connection: ConnectionRecord) -> Optional[SourceSchema]:
        """Drop the cached snapshot and extract again"""
        logger.info(f"Refreshing schema cache for connection {connection.id}")
        self.invalidate(connection.id)
        self.registry.clear_cache(connection.id)
        return self.cache_schema(connection)

    def invalidate(self, connection_id: str):
        with self._lock:
            self._schemas.pop(connection_id, None)


_cache: Optional[SchemaCache] = None


def get_schema_cache() -> SchemaCache:
    """Get or create the global schema cache"""
    global _cache
    if _cache is None:
        _cache = SchemaCache()
    return _cache
