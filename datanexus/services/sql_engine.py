"""SQLAlchemy engine construction for relational connections"""
import logging
import threading
from typing import Dict, Any, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, URL

from ..config import settings
from ..datasources.types import POSTGRES_FAMILY, MYSQL_FAMILY
from ..models import ConnectionRecord

logger = logging.getLogger(__name__)

DRIVERS = {
    "postgresql": "postgresql+psycopg2",
    "supabase": "postgresql+psycopg2",
    "mysql": "mysql+pymysql",
    "starrocks": "mysql+pymysql",
    "sqlite": "sqlite",
    "clickhouse": "clickhouse+http",
    "snowflake": "snowflake",
    "trino": "trino",
}


def build_database_url(connection: ConnectionRecord) -> URL:
    """
    Build the SQLAlchemy URL for a relational connection.
    
    Args:
        connection: Stored connection record
        
    Returns:
        SQLAlchemy URL
        
    Raises:
        ValueError: If the type has no relational driver
    """
    db_type = connection.type.lower()
    driver = DRIVERS.get(db_type)
    if driver is None:
        raise ValueError(f"No SQL driver configured for type '{connection.type}'")
    
    if db_type == "sqlite":
        path = connection.other_details.get("file_path") or connection.database
        return URL.create(driver, database=path)
    
    query: Dict[str, Any] = {}
    database = connection.database or None
    host = connection.host or None
    
    if db_type == "supabase":
        query["sslmode"] = "require"
    elif db_type == "snowflake":
        # Snowflake addresses the account rather than a host
        host = connection.other_details.get("account", connection.host)
        if connection.other_details.get("warehouse"):
            query["warehouse"] = connection.other_details["warehouse"]
    elif db_type == "trino":
        catalog = connection.other_details.get("catalog", connection.database)
        schema = connection.other_details.get("schema", "default")
        database = f"{catalog}/{schema}" if catalog else None
    
    return URL.create(
        driver,
        username=connection.username or None,
        password=connection.password or None,
        host=host,
        port=connection.port,
        database=database,
        query=query,
    )


def _connect_args(db_type: str) -> Dict[str, Any]:
    if db_type in POSTGRES_FAMILY or db_type in MYSQL_FAMILY:
        return {"connect_timeout": settings.CONNECT_TIMEOUT_SECONDS}
    if db_type == "sqlite":
        return {"timeout": settings.CONNECT_TIMEOUT_SECONDS}
    return {}


class SqlEngineFactory:
    """Creates and caches one engine per connection id"""
    
    def __init__(self):
        self._engines: Dict[str, Engine] = {}
        self._lock = threading.Lock()
    
    def get_engine(self, connection: ConnectionRecord) -> Engine:
        """
        Get or create the engine for a connection.
        
        Args:
            connection: Stored connection record
            
        Returns:
            SQLAlchemy engine
        """
        with self._lock:
            engine = self._engines.get(connection.id)
            if engine is None:
                url = build_database_url(connection)
                engine = create_engine(
                    url,
                    pool_pre_ping=True,
                    connect_args=_connect_args(connection.type.lower())
                )
                self._engines[connection.id] = engine
                logger.info(f"Created engine for connection {connection.id} ({connection.type})")
            return engine
    
    def dispose(self, connection_id: Optional[str] = None):
        """Dispose one cached engine, or all of them"""
        with self._lock:
            ids = [connection_id] if connection_id else list(self._engines)
            for key in ids:
                engine = self._engines.pop(key, None)
                if engine is not None:
                    engine.dispose()
    
    def test_connection(self, connection: ConnectionRecord) -> bool:
        """
        Test a relational connection.
        
        Returns:
            True if connection successful, False otherwise
        """
        try:
            with self.get_engine(connection).connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.error(f"Connection test failed for {connection.id}: {e}")
            return False


# Global factory instance
_factory: Optional[SqlEngineFactory] = None


def get_engine_factory() -> SqlEngineFactory:
    """Get global engine factory instance"""
    global _factory
    if _factory is None:
        _factory = SqlEngineFactory()
    return _factory
