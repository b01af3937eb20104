"""Best-effort push of table schemas to an external model-context service"""
import logging
from typing import Any, Dict, Optional
import requests

from ..config import settings
from ..models import ColumnSchema, DatabaseSchema, SourceSchema, TableSchema

logger = logging.getLogger(__name__)


def describe_column(column: ColumnSchema) -> str:
    parts = []
    if column.primary_key:
        parts.append("Primary key")
    parts.append("nullable" if column.nullable else "not null")
    return ", ".join(parts)


def build_table_payload(connection_id: str, schema: DatabaseSchema, table: TableSchema) -> Dict[str, Any]:
    """
    Training payload for one table.

    Returns:
        {connectionId, tableName, description, columns: [{name, type, description}]}
    """
    return {
        "connectionId": connection_id,
        "tableName": table.table_name,
        "description": (
            f"Table {table.table_name} in {schema.connection_name} ({schema.database_type}) "
            f"with {len(table.columns)} columns"
        ),
        "columns": [
            {
                "name": column.name,
                "type": column.data_type,
                "description": describe_column(column),
            }
            for column in table.columns
        ],
    }


class SchemaTrainingClient:
    """Posts one request per table; failures are logged and swallowed"""

    def __init__(
        self,
        url: Optional[str] = None,
        enabled: Optional[bool] = None,
        timeout: Optional[int] = None,
        session: Optional[requests.Session] = None
    ):
        self.url = url or settings.SCHEMA_TRAINING_URL
        self.enabled = enabled if enabled is not None else settings.SCHEMA_TRAINING_ENABLED
        self.timeout = timeout if timeout is not None else settings.SCHEMA_TRAINING_TIMEOUT_SECONDS
        self.session = session or requests.Session()

    def push_schema(self, source_schema: SourceSchema) -> int:
        """
        Push every table of a relational snapshot.

        Args:
            source_schema: Extracted snapshot; non-relational payloads are ignored

        Returns:
            Number of tables the service accepted
        """
        schema = source_schema.schema_data
        if not isinstance(schema, DatabaseSchema):
            return 0

        accepted = 0
        for table in schema.tables:
            payload = build_table_payload(source_schema.source_id, schema, table)
            try:
                response = self.session.post(self.url, json=payload, timeout=self.timeout)
                if 200 <= response.status_code < 300:
                    accepted += 1
                else:
                    logger.warning(
                        f"Schema training rejected table {table.table_name}: "
                        f"HTTP {response.status_code}: {response.text[:200]}"
                    )
            except requests.RequestException as e:
                logger.warning(f"Schema training push failed for table {table.table_name}: {e}")

        logger.info(f"Pushed {accepted}/{len(schema.tables)} tables of {source_schema.source_name} for training")
        return accepted


_client: Optional[SchemaTrainingClient] = None


def get_training_client() -> SchemaTrainingClient:
    """Get or create the global schema training client"""
    global _client
    if _client is None:
        _client = SchemaTrainingClient()
    return _client
