"""Relational data source backed by SQLAlchemy"""
import logging
from typing import Optional

from ..models import ConnectionRecord, DataSourceType, ExecutionResult, SourceSchema
from ..services.query_execution import QueryExecutionService
from ..services.schema_extractor import SchemaExtractor
from ..services.sql_engine import SqlEngineFactory, get_engine_factory
from .base import DataSource
from .requests import DataRequest, SqlQuery

logger = logging.getLogger(__name__)


class SqlDataSource(DataSource):
    """PostgreSQL, MySQL, SQLite and other SQLAlchemy-reachable engines"""
    
    source_type = DataSourceType.DATABASE
    accepted_requests = (SqlQuery,)
    
    def __init__(
        self,
        connection: ConnectionRecord,
        engine_factory: Optional[SqlEngineFactory] = None,
        schema_extractor: Optional[SchemaExtractor] = None,
        execution_service: Optional[QueryExecutionService] = None
    ):
        super().__init__(connection)
        self.engine_factory = engine_factory or get_engine_factory()
        self.schema_extractor = schema_extractor or SchemaExtractor(engine_factory=self.engine_factory)
        self.execution_service = execution_service or QueryExecutionService(engine_factory=self.engine_factory)
    
    def extract_schema(self) -> SourceSchema:
        return self.schema_extractor.extract_database_schema(self.connection, include_samples=True)
    
    def _execute(self, request: DataRequest) -> ExecutionResult:
        return self.execution_service.execute(self.connection, request.sql)
    
    def is_available(self) -> bool:
        return self.engine_factory.test_connection(self.connection)
