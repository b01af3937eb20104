"""Schema extraction for relational and MCP sources"""
import logging
from typing import Callable, Dict, Any, List, Optional

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine

from ..config import settings
from ..datasources.base import SchemaExtractionError
from ..datasources.types import DatabaseType, POSTGRES_FAMILY, MYSQL_FAMILY
from ..models import (
    ColumnSchema,
    ConnectionRecord,
    DatabaseSchema,
    DataSourceType,
    MCPCapabilities,
    SourceSchema,
    TableSchema,
)
from ..utils.json_encoder import convert_rows
from ..utils.query_heuristics import quote_identifier
from ..utils.validators import validate_query_safety
from .mcp_client import MCPClient
from .sql_engine import SqlEngineFactory, get_engine_factory

logger = logging.getLogger(__name__)

SYSTEM_TABLE_PREFIXES = ("pg_", "sql_", "sqlite_", "information_schema")
MYSQL_SYSTEM_PREFIXES = ("mysql.", "sys.", "performance_schema.")
MYSQL_SYSTEM_SCHEMAS = {"mysql", "sys", "performance_schema", "information_schema"}


def is_system_table(table_name: str, database_type: str) -> bool:
    """
    Check whether a table belongs to the engine's catalog.

    Args:
        table_name: Table name, optionally schema-qualified
        database_type: Database type id

    Returns:
        True for catalog/system tables
    """
    lower = table_name.lower()
    if lower.startswith(SYSTEM_TABLE_PREFIXES):
        return True
    if database_type.lower() in MYSQL_FAMILY:
        return lower.startswith(MYSQL_SYSTEM_PREFIXES)
    return False


def default_schema_name(database_type: str) -> Optional[str]:
    """Schema to enumerate for an engine family; None means the connection default"""
    if database_type.lower() in POSTGRES_FAMILY:
        return "public"
    return None


def schema_to_description(schema: DatabaseSchema) -> str:
    """
    Render a relational schema as plain text, one line per table.

    Args:
        schema: Relational schema

    Returns:
        Description text
    """
    lines = [f"Database: {schema.connection_name} ({schema.database_type})"]
    for table in schema.tables:
        columns = []
        for column in table.columns:
            flags = []
            if column.primary_key:
                flags.append("PK")
            if not column.nullable:
                flags.append("NOT NULL")
            suffix = f" [{', '.join(flags)}]" if flags else ""
            columns.append(f"{column.name} {column.data_type}{suffix}")
        lines.append(f"Table {table.table_name}: {', '.join(columns)}")
    return "\n".join(lines)


class SchemaExtractor:
    """Introspects a connection into a uniform SourceSchema"""

    def __init__(
        self,
        engine_factory: Optional[SqlEngineFactory] = None,
        mcp_client_factory: Optional[Callable[[ConnectionRecord], MCPClient]] = None,
        sample_row_limit: Optional[int] = None
    ):
        self.engine_factory = engine_factory or get_engine_factory()
        self.mcp_client_factory = mcp_client_factory or MCPClient.from_connection
        self.sample_row_limit = (
            sample_row_limit if sample_row_limit is not None else settings.SAMPLE_ROW_LIMIT
        )

    def extract(self, connection: ConnectionRecord, include_samples: bool = False) -> SourceSchema:
        """
        Extract the schema of one connection.

        Args:
            connection: Stored connection record
            include_samples: Also fetch bounded sample rows per table

        Returns:
            Schema snapshot

        Raises:
            SchemaExtractionError: On connectivity failure or unsupported type
        """
        db_type = DatabaseType.from_id(connection.type)
        if db_type is DatabaseType.MCP:
            return self.extract_mcp_capabilities(connection)
        if db_type is not None and db_type.is_sql and db_type.implemented:
            return self.extract_database_schema(connection, include_samples=include_samples)
        raise SchemaExtractionError(
            connection.name, f"Schema extraction is not supported for type '{connection.type}'"
        )

    def extract_database_schema(
        self,
        connection: ConnectionRecord,
        include_samples: bool = False
    ) -> SourceSchema:
        """
        Enumerate tables, primary keys and columns of a relational source.

        Args:
            connection: Relational connection record
            include_samples: Also fetch bounded sample rows per table

        Returns:
            Schema snapshot with a DatabaseSchema payload
        """
        database_type = connection.type.lower()
        schema_name = default_schema_name(database_type)

        try:
            engine = self.engine_factory.get_engine(connection)
            inspector = inspect(engine)
            if database_type in MYSQL_FAMILY and (connection.database or "").lower() in MYSQL_SYSTEM_SCHEMAS:
                table_names: List[str] = []
            else:
                table_names = inspector.get_table_names(schema=schema_name)

            tables = []
            for table_name in table_names:
                if is_system_table(table_name, database_type):
                    continue
                tables.append(self._introspect_table(inspector, table_name, schema_name))
        except SchemaExtractionError:
            raise
        except Exception as e:
            logger.error(f"Schema extraction failed for connection {connection.id}: {e}")
            raise SchemaExtractionError(connection.name, str(e)) from e

        logger.info(f"Extracted {len(tables)} tables from {connection.name} ({database_type})")

        payload = DatabaseSchema(
            connection_id=connection.id,
            connection_name=connection.name,
            database_type=database_type,
            tables=tables,
        )
        sample_data = self.fetch_sample_rows(engine, payload) if include_samples else {}

        return SourceSchema(
            source_id=connection.id,
            source_name=connection.name,
            source_type=DataSourceType.DATABASE,
            schema_data=payload,
            sample_data=sample_data,
        )

    def _introspect_table(self, inspector, table_name: str, schema_name: Optional[str]) -> TableSchema:
        pk_constraint = inspector.get_pk_constraint(table_name, schema=schema_name) or {}
        primary_keys = list(pk_constraint.get("constrained_columns") or [])

        columns = []
        for column in inspector.get_columns(table_name, schema=schema_name):
            columns.append(ColumnSchema(
                name=column["name"],
                data_type=str(column["type"]),
                nullable=bool(column.get("nullable", True)),
                primary_key=column["name"] in primary_keys,
            ))

        return TableSchema(table_name=table_name, columns=columns, primary_keys=primary_keys)

    def fetch_sample_rows(self, engine: Engine, schema: DatabaseSchema) -> Dict[str, List[Dict[str, Any]]]:
        """
        Fetch up to sample_row_limit rows per table.

        Tables that fail to sample are skipped with a warning.
        """
        samples: Dict[str, List[Dict[str, Any]]] = {}
        for table in schema.tables:
            quoted = quote_identifier(table.table_name, schema.database_type)
            sql = f"SELECT * FROM {quoted} LIMIT {self.sample_row_limit}"
            validation = validate_query_safety(sql)
            if not validation.is_valid:
                logger.warning(f"Skipping sample of table {table.table_name}: {validation.reason}")
                continue
            try:
                with engine.connect() as conn:
                    result = conn.execute(text(sql))
                    rows = [dict(row._mapping) for row in result.fetchmany(self.sample_row_limit)]
                    conn.rollback()
                samples[table.table_name] = convert_rows(rows)
            except Exception as e:
                logger.warning(f"Failed to sample table {table.table_name}: {e}")
        return samples

    def extract_mcp_capabilities(self, connection: ConnectionRecord) -> SourceSchema:
        """
        Discover tools and resources of an MCP server.

        Args:
            connection: MCP connection record

        Returns:
            Schema snapshot with an MCPCapabilities payload
        """
        client = self.mcp_client_factory(connection)
        try:
            tools = client.list_tools()
            resources = client.list_resources()
        except Exception as e:
            logger.error(f"MCP capability discovery failed for connection {connection.id}: {e}")
            raise SchemaExtractionError(connection.name, str(e)) from e

        logger.info(f"Discovered {len(tools)} tools and {len(resources)} resources on {connection.name}")

        return SourceSchema(
            source_id=connection.id,
            source_name=connection.name,
            source_type=DataSourceType.MCP_SERVER,
            schema_data=MCPCapabilities(tools=tools, resources=resources),
        )
