"""Resolves connection records to data source implementations"""
import logging
import threading
from typing import Callable, Dict, List, Optional

from ..models import ConnectionRecord
from ..services.repositories import ConnectionRepository, get_connection_repository
from .base import DataSource
from .elasticsearch_source import ElasticsearchDataSource
from .mcp_source import MCPDataSource
from .mongo_source import MongoDataSource
from .sql_source import SqlDataSource
from .types import DatabaseType

logger = logging.getLogger(__name__)

SourceFactory = Callable[[ConnectionRecord], DataSource]


class UnsupportedSourceTypeError(ValueError):
    """Raised for unknown connection types and types without an implementation"""


def _default_factories() -> Dict[DatabaseType, SourceFactory]:
    factories: Dict[DatabaseType, SourceFactory] = {
        DatabaseType.MCP: MCPDataSource,
        DatabaseType.MONGODB: MongoDataSource,
        DatabaseType.ELASTICSEARCH: ElasticsearchDataSource,
    }
    for db_type in DatabaseType:
        if db_type.is_sql and db_type.implemented:
            factories[db_type] = SqlDataSource
    return factories


class DataSourceRegistry:
    """
    Single seam between connection records and source-specific protocols.

    One DataSource instance is cached per connection id.
    """

    def __init__(
        self,
        connection_repository: Optional[ConnectionRepository] = None,
        factories: Optional[Dict[DatabaseType, SourceFactory]] = None
    ):
        self.connection_repository = connection_repository or get_connection_repository()
        self.factories = factories if factories is not None else _default_factories()
        self._sources: Dict[str, DataSource] = {}
        self._lock = threading.Lock()

    def create(self, connection: ConnectionRecord) -> DataSource:
        """
        Build a fresh data source for a connection.

        Raises:
            UnsupportedSourceTypeError: Unknown or unimplemented connection type
        """
        db_type = DatabaseType.from_id(connection.type)
        if db_type is None:
            supported = [t.id for t in DatabaseType.all_types()]
            raise UnsupportedSourceTypeError(
                f"Unknown database type: {connection.type}. Supported types: {supported}"
            )
        factory = self.factories.get(db_type)
        if factory is None or not db_type.implemented:
            raise UnsupportedSourceTypeError(
                f"Database type '{db_type.display_name}' is registered but not yet implemented."
            )
        return factory(connection)

    def get_data_source(self, connection: ConnectionRecord) -> DataSource:
        """Cached data source for a connection record"""
        with self._lock:
            source = self._sources.get(connection.id)
            if source is None:
                logger.info(f"Creating {connection.type} data source for connection {connection.id}")
                source = self.create(connection)
                self._sources[connection.id] = source
            return source

    def resolve(self, connection_id: str, user_id: Optional[str] = None) -> Optional[DataSource]:
        """
        Look up a connection by id and return its data source.

        Args:
            connection_id: Stored connection id
            user_id: When given, connections owned by another user are not resolved

        Returns:
            Data source, or None if the connection does not exist
        """
        connection = self.connection_repository.find_by_id(connection_id)
        if connection is None:
            return None
        if user_id and connection.user_id and connection.user_id != user_id:
            logger.warning(f"Connection {connection_id} does not belong to user {user_id}")
            return None
        return self.get_data_source(connection)

    def register(self, source: DataSource):
        """Put a ready-made source in the cache"""
        with self._lock:
            self._sources[source.id] = source

    def clear_cache(self, connection_id: str):
        with self._lock:
            self._sources.pop(connection_id, None)

    def clear_all_cache(self):
        with self._lock:
            self._sources.clear()

    def supported_types(self) -> List[str]:
        return [db_type.id for db_type in self.factories if db_type.implemented]


_registry: Optional[DataSourceRegistry] = None


def get_registry() -> DataSourceRegistry:
    """Get or create the global registry"""
    global _registry
    if _registry is None:
        _registry = DataSourceRegistry()
    return _registry
