"""MCP tool/resource server data source"""
import time
import logging
from typing import Optional, Callable

from ..models import ConnectionRecord, DataSourceType, ExecutionResult, SourceSchema
from ..services.mcp_client import MCPClient, MCPClientError
from ..services.schema_extractor import SchemaExtractor
from .base import DataSource
from .requests import DataRequest, MCPResourceRead, MCPToolCall

logger = logging.getLogger(__name__)


class MCPDataSource(DataSource):
    """Executes tool calls and resource reads over JSON-RPC"""
    
    source_type = DataSourceType.MCP_SERVER
    accepted_requests = (MCPToolCall, MCPResourceRead)
    
    def __init__(
        self,
        connection: ConnectionRecord,
        client_factory: Optional[Callable[[ConnectionRecord], MCPClient]] = None
    ):
        super().__init__(connection)
        factory = client_factory or MCPClient.from_connection
        self.client = factory(connection)
        self.schema_extractor = SchemaExtractor(mcp_client_factory=lambda _: self.client)
    
    def extract_schema(self) -> SourceSchema:
        return self.schema_extractor.extract_mcp_capabilities(self.connection)
    
    def _execute(self, request: DataRequest) -> ExecutionResult:
        start = time.perf_counter()
        try:
            if isinstance(request, MCPToolCall):
                logger.info(f"Calling MCP tool {request.toolName} on {self.name}")
                rows = [self.client.call_tool(request.toolName, request.arguments)]
            else:
                logger.info(f"Reading MCP resource {request.uri} on {self.name}")
                rows = self.client.read_resource(request.uri)
        except MCPClientError as e:
            logger.error(f"MCP request failed on {self.name}: {e}")
            return ExecutionResult.failure(str(e), int((time.perf_counter() - start) * 1000))
        
        return ExecutionResult.ok(
            data=rows,
            execution_time_ms=int((time.perf_counter() - start) * 1000),
            metadata={"source": "mcp"}
        )
    
    def is_available(self) -> bool:
        return self.client.ping()
