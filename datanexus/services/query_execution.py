"""Safety-gated, read-only SQL execution"""
import re
import time
import logging
from typing import Optional

from sqlalchemy import text
from sqlalchemy.engine import Connection

from ..config import settings
from ..datasources.types import POSTGRES_FAMILY, MYSQL_FAMILY
from ..models import ConnectionRecord, ExecutionResult
from ..utils.json_encoder import convert_rows
from ..utils.validators import validate_query_safety
from .sql_engine import SqlEngineFactory, get_engine_factory

logger = logging.getLogger(__name__)

_PASSWORD_PATTERN = re.compile(r"password=\S+", re.IGNORECASE)
_URL_PATTERN = re.compile(r"\b(?:jdbc:)?[a-z][a-z0-9+.\-]*://\S+", re.IGNORECASE)


def sanitize_error_message(message: Optional[str]) -> str:
    """
    Strip credentials and connection URLs from a database error.

    Args:
        message: Raw driver error text

    Returns:
        Message safe to show to a user
    """
    if not message:
        return "Unknown database error"
    cleaned = _PASSWORD_PATTERN.sub("password=***", message)
    return _URL_PATTERN.sub("[connection-url]", cleaned)


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


class QueryExecutionService:
    """Runs validated SELECT statements inside a rolled-back transaction"""

    def __init__(
        self,
        engine_factory: Optional[SqlEngineFactory] = None,
        timeout_seconds: Optional[int] = None,
        max_rows: Optional[int] = None
    ):
        self.engine_factory = engine_factory or get_engine_factory()
        self.timeout_seconds = timeout_seconds if timeout_seconds is not None else settings.QUERY_TIMEOUT_SECONDS
        self.max_rows = max_rows if max_rows is not None else settings.MAX_RESULT_ROWS

    def execute(self, connection: ConnectionRecord, sql: str) -> ExecutionResult:
        """
        Validate then execute a query.

        The validator runs before any connection is opened. The transaction is
        read-only where the engine supports it and is always rolled back.

        Args:
            connection: Relational connection record
            sql: SQL text

        Returns:
            Execution result; validation and database errors are reported in it
        """
        start = time.perf_counter()

        validation = validate_query_safety(sql)
        if not validation.is_valid:
            return ExecutionResult.failure(validation.reason, _elapsed_ms(start))

        statement = sql.strip()
        if statement.endswith(";"):
            statement = statement[:-1]

        logger.info(f"Executing query on {connection.name}: {statement[:200]}")

        try:
            engine = self.engine_factory.get_engine(connection)
            with engine.connect() as conn:
                trans = conn.begin()
                try:
                    self._apply_session_guards(conn, connection.type.lower())
                    result = conn.execute(text(statement))
                    columns = list(result.keys())
                    rows = [dict(row._mapping) for row in result.fetchmany(self.max_rows + 1)]
                finally:
                    trans.rollback()
        except Exception as e:
            logger.error(f"Query failed on {connection.name}: {e}")
            return ExecutionResult.failure(
                sanitize_error_message(str(getattr(e, "orig", None) or e)),
                _elapsed_ms(start)
            )

        truncated = len(rows) > self.max_rows
        if truncated:
            rows = rows[:self.max_rows]
            logger.warning(f"Results truncated to {self.max_rows} rows")

        elapsed = _elapsed_ms(start)
        logger.info(f"Query on {connection.name} returned {len(rows)} rows in {elapsed}ms")

        return ExecutionResult.ok(
            data=convert_rows(rows),
            columns=columns,
            execution_time_ms=elapsed,
            metadata={"truncated": truncated}
        )

    def _apply_session_guards(self, conn: Connection, database_type: str):
        """Read-only mode and statement timeout for engines that support them"""
        timeout_ms = self.timeout_seconds * 1000
        if database_type in POSTGRES_FAMILY:
            conn.execute(text("SET TRANSACTION READ ONLY"))
            conn.execute(text(f"SET LOCAL statement_timeout = {timeout_ms}"))
        elif database_type in MYSQL_FAMILY:
            conn.execute(text(f"SET SESSION MAX_EXECUTION_TIME = {timeout_ms}"))
        elif database_type == "sqlite":
            conn.exec_driver_sql("PRAGMA query_only = ON")
