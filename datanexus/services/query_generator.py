"""Heuristic query generation over relational schemas"""
import logging
from typing import Dict, List, Optional

from ..config import settings
from ..datasources.requests import SqlQuery
from ..models import DatabaseSchema, GeneratedQuery, QueryGenerationResult, SourceSchema
from ..utils import query_heuristics
from ..utils.validators import validate_query_safety

logger = logging.getLogger(__name__)


class QueryGenerator:
    """Rule-based fallback for turning a message into read-only SQL"""

    def __init__(self, limit: Optional[int] = None):
        self.limit = limit if limit is not None else settings.DEFAULT_QUERY_LIMIT

    def generate(self, user_message: str, schemas: Dict[str, DatabaseSchema]) -> QueryGenerationResult:
        """
        Generate one query per connection.

        Args:
            user_message: User's natural language message
            schemas: Relational schema per connection id

        Returns:
            Classified intent and one generated query per connection
        """
        intent = query_heuristics.classify_intent(user_message)
        logger.info(f"Classified intent as {intent}")

        queries = [
            self._build_for_schema(user_message, intent, connection_id, schema)
            for connection_id, schema in schemas.items()
        ]
        return QueryGenerationResult(intent=intent, queries=queries)

    def generate_for_sources(self, user_message: str, sources: List[SourceSchema]) -> QueryGenerationResult:
        """Same as generate, for extracted snapshots; non-relational sources are skipped"""
        schemas = {
            source.source_id: source.schema_data
            for source in sources
            if isinstance(source.schema_data, DatabaseSchema)
        }
        return self.generate(user_message, schemas)

    def _build_for_schema(
        self,
        user_message: str,
        intent: str,
        connection_id: str,
        schema: DatabaseSchema
    ) -> GeneratedQuery:
        tables = query_heuristics.find_relevant_tables(user_message, schema.tables)
        if not tables:
            return GeneratedQuery(
                connection_id=connection_id,
                connection_name=schema.connection_name,
                intent=intent,
                explanation=f"No tables available in '{schema.connection_name}'",
                is_valid=False,
                validation_error=(
                    f"No relevant tables found in database '{schema.connection_name}' for your query."
                ),
            )

        table = tables[0]
        columns = query_heuristics.find_relevant_columns(user_message, table)
        sql = query_heuristics.build_sql(
            intent, table, columns, user_message, schema.database_type, self.limit
        )
        explanation = f"Querying table '{table.table_name}' with {intent} operation"

        validation = validate_query_safety(sql)
        if not validation.is_valid:
            logger.warning(f"Generated query rejected for {schema.connection_name}: {validation.reason}")
            return GeneratedQuery(
                connection_id=connection_id,
                connection_name=schema.connection_name,
                table_name=table.table_name,
                intent=intent,
                explanation=explanation,
                is_valid=False,
                validation_error=validation.reason,
            )

        return GeneratedQuery(
            connection_id=connection_id,
            connection_name=schema.connection_name,
            table_name=table.table_name,
            sql=sql,
            intent=intent,
            explanation=explanation,
            is_valid=True,
        )

    @staticmethod
    def to_requests(result: QueryGenerationResult) -> List[SqlQuery]:
        """Valid generated queries as executable requests"""
        return [
            SqlQuery(sql=query.sql, sourceId=query.connection_id, explanation=query.explanation)
            for query in result.queries
            if query.is_valid and query.sql
        ]


_generator: Optional[QueryGenerator] = None


def get_query_generator() -> QueryGenerator:
    """Get or create the global query generator"""
    global _generator
    if _generator is None:
        _generator = QueryGenerator()
    return _generator
