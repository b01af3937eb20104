"""Pydantic models for schemas, execution results and response envelopes"""
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any, List, Union, Literal
from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Connection Models
# ============================================================================

class DataSourceType(str, Enum):
    """Family of backend a data source talks to"""
    DATABASE = "DATABASE"
    MCP_SERVER = "MCP_SERVER"
    REST_API = "REST_API"
    GRAPHQL_API = "GRAPHQL_API"
    MONGODB = "MONGODB"
    REDIS = "REDIS"
    ELASTICSEARCH = "ELASTICSEARCH"
    BIGQUERY = "BIGQUERY"


class ConnectionRecord(BaseModel):
    """Stored connection details for one data source"""
    id: str
    name: str
    type: str = Field(..., description="Database type id, e.g. 'postgresql', 'mcp'")
    host: str = ""
    port: Optional[int] = None
    database: str = ""
    username: str = ""
    password: str = ""
    other_details: Dict[str, Any] = Field(default_factory=dict)
    user_id: Optional[str] = None


# ============================================================================
# Schema Models
# ============================================================================

class ColumnSchema(BaseModel):
    """Column as reported by live introspection"""
    model_config = ConfigDict(frozen=True)

    name: str
    data_type: str
    nullable: bool = True
    primary_key: bool = False


class TableSchema(BaseModel):
    """Table with its columns and primary key set"""
    model_config = ConfigDict(frozen=True)

    table_name: str
    columns: List[ColumnSchema] = Field(default_factory=list)
    primary_keys: List[str] = Field(default_factory=list)


class DatabaseSchema(BaseModel):
    """Relational schema payload"""
    model_config = ConfigDict(frozen=True)

    kind: Literal["database"] = "database"
    connection_id: str
    connection_name: str
    database_type: str
    tables: List[TableSchema] = Field(default_factory=list)


class MCPTool(BaseModel):
    """Tool advertised by an MCP server"""
    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    input_schema: Dict[str, Any] = Field(default_factory=dict)


class MCPResource(BaseModel):
    """Resource advertised by an MCP server"""
    model_config = ConfigDict(frozen=True)

    uri: str
    name: str = ""
    description: str = ""
    mime_type: Optional[str] = None


class MCPCapabilities(BaseModel):
    """Protocol capability payload for MCP servers"""
    model_config = ConfigDict(frozen=True)

    kind: Literal["mcp"] = "mcp"
    tools: List[MCPTool] = Field(default_factory=list)
    resources: List[MCPResource] = Field(default_factory=list)


class CollectionSchema(BaseModel):
    """Document collection or search index descriptor"""
    model_config = ConfigDict(frozen=True)

    name: str
    field_types: Dict[str, str] = Field(default_factory=dict)
    indexes: List[str] = Field(default_factory=list)
    document_count: int = 0


class DocumentStoreSchema(BaseModel):
    """Schema payload for document stores and search engines"""
    model_config = ConfigDict(frozen=True)

    kind: Literal["documents"] = "documents"
    database_type: str
    database_name: str = ""
    collections: List[CollectionSchema] = Field(default_factory=list)


SchemaPayload = Union[DatabaseSchema, MCPCapabilities, DocumentStoreSchema]


class SourceSchema(BaseModel):
    """Unified, engine-agnostic snapshot of one source's queryable structure"""
    model_config = ConfigDict(frozen=True)

    source_id: str
    source_name: str
    source_type: DataSourceType
    schema_data: SchemaPayload = Field(..., discriminator="kind")
    sample_data: Dict[str, List[Dict[str, Any]]] = Field(default_factory=dict)
    extracted_at: datetime = Field(default_factory=datetime.utcnow)


# ============================================================================
# Execution Models
# ============================================================================

class QueryValidationResult(BaseModel):
    """Outcome of the read-only safety check"""
    model_config = ConfigDict(frozen=True)

    is_valid: bool
    reason: Optional[str] = None


class ExecutionResult(BaseModel):
    """Result of one request against one data source"""
    model_config = ConfigDict(frozen=True)

    success: bool
    data: List[Dict[str, Any]] = Field(default_factory=list)
    columns: List[str] = Field(default_factory=list)
    row_count: int = 0
    execution_time_ms: int = 0
    error_message: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def ok(
        cls,
        data: List[Dict[str, Any]],
        columns: Optional[List[str]] = None,
        execution_time_ms: int = 0,
        metadata: Optional[Dict[str, Any]] = None
    ) -> "ExecutionResult":
        if columns is None:
            columns = list(data[0].keys()) if data else []
        return cls(
            success=True,
            data=data,
            columns=columns,
            row_count=len(data),
            execution_time_ms=execution_time_ms,
            metadata=metadata or {}
        )

    @classmethod
    def failure(cls, error_message: str, execution_time_ms: int = 0) -> "ExecutionResult":
        return cls(
            success=False,
            error_message=error_message or "Unknown error",
            execution_time_ms=execution_time_ms
        )


class GeneratedQuery(BaseModel):
    """One heuristically synthesized query for one connection"""
    connection_id: str
    connection_name: str
    table_name: Optional[str] = None
    sql: Optional[str] = None
    intent: str
    explanation: str
    is_valid: bool
    validation_error: Optional[str] = None


class QueryGenerationResult(BaseModel):
    """Heuristic generation output across all connections"""
    intent: str
    queries: List[GeneratedQuery] = Field(default_factory=list)


# ============================================================================
# Request / Response Envelopes
# ============================================================================

class AnalyzeRequest(BaseModel):
    """One user turn"""
    userMessage: str = Field(..., description="User's natural language message")
    connectionIds: List[str] = Field(default_factory=list)
    conversationId: Optional[str] = None
    aiProvider: Optional[str] = Field(None, description="Provider name, or 'heuristic'")
    userId: Optional[str] = None


class QueryResult(BaseModel):
    """Per-request entry of the aggregated result envelope"""
    connectionId: Optional[str] = None
    connectionName: Optional[str] = None
    query: Optional[str] = None
    data: List[Dict[str, Any]] = Field(default_factory=list)
    columns: List[str] = Field(default_factory=list)
    rowCount: int = 0
    explanation: Optional[str] = None
    errorMessage: Optional[str] = None
    executionTimeMs: int = 0
    step: Optional[int] = None

    @property
    def succeeded(self) -> bool:
        return self.errorMessage is None


class ErrorDetail(BaseModel):
    """Terminal error description"""
    code: str
    message: str
    suggestion: Optional[str] = None


ResponseType = Literal[
    "QUERY_RESULT",
    "ANALYSIS",
    "UI_DASHBOARD",
    "CLARIFICATION",
    "DIRECT_ANSWER",
    "ERROR",
]


class AnalyzeResponse(BaseModel):
    """Final response for one user turn"""
    responseType: ResponseType
    success: bool
    conversationId: Optional[str] = None
    summary: Optional[str] = None
    intent: Optional[str] = None
    queryResults: List[QueryResult] = Field(default_factory=list)
    suggestedVisualization: Optional[str] = None
    clarificationQuestion: Optional[str] = None
    suggestedOptions: List[str] = Field(default_factory=list)
    error: Optional[ErrorDetail] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    @classmethod
    def query_result(
        cls,
        conversation_id: Optional[str],
        summary: Optional[str],
        query_results: List[QueryResult],
        suggested_visualization: Optional[str] = None,
        intent: Optional[str] = None
    ) -> "AnalyzeResponse":
        return cls(
            responseType="QUERY_RESULT",
            success=True,
            conversationId=conversation_id,
            summary=summary,
            intent=intent,
            queryResults=query_results,
            suggestedVisualization=suggested_visualization
        )

    @classmethod
    def direct_answer(cls, conversation_id: Optional[str], content: Optional[str],
                      intent: Optional[str] = None) -> "AnalyzeResponse":
        return cls(
            responseType="DIRECT_ANSWER",
            success=True,
            conversationId=conversation_id,
            summary=content,
            intent=intent
        )

    @classmethod
    def clarification(
        cls,
        conversation_id: Optional[str],
        question: Optional[str],
        options: List[str],
        intent: Optional[str] = None
    ) -> "AnalyzeResponse":
        return cls(
            responseType="CLARIFICATION",
            success=True,
            conversationId=conversation_id,
            clarificationQuestion=question,
            suggestedOptions=options,
            intent=intent
        )

    @classmethod
    def failure(
        cls,
        conversation_id: Optional[str],
        code: str,
        message: str,
        suggestion: Optional[str] = None
    ) -> "AnalyzeResponse":
        return cls(
            responseType="ERROR",
            success=False,
            conversationId=conversation_id,
            error=ErrorDetail(code=code, message=message, suggestion=suggestion)
        )


# ============================================================================
# Activity Models
# ============================================================================

class ActivityPhase(str, Enum):
    """Progress phases pushed to the client during one turn"""
    UNDERSTANDING_INTENT = "understanding_intent"
    MAPPING_DATA_SOURCES = "mapping_data_sources"
    ANALYZING_SCHEMAS = "analyzing_schemas"
    GENERATING_QUERIES = "generating_queries"
    EXECUTING_QUERIES = "executing_queries"
    AI_THINKING = "ai_thinking"
    ANALYZING_DATA = "analyzing_data"
    GENERATING_DASHBOARD = "generating_dashboard"
    PREPARING_RESPONSE = "preparing_response"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def description(self) -> str:
        return ACTIVITY_DESCRIPTIONS[self]


ACTIVITY_DESCRIPTIONS = {
    ActivityPhase.UNDERSTANDING_INTENT: "Understanding user intent",
    ActivityPhase.MAPPING_DATA_SOURCES: "Mapping intent to data sources",
    ActivityPhase.ANALYZING_SCHEMAS: "Analyzing schemas",
    ActivityPhase.GENERATING_QUERIES: "Generating safe SELECT queries",
    ActivityPhase.EXECUTING_QUERIES: "Executing queries",
    ActivityPhase.AI_THINKING: "AI is thinking...",
    ActivityPhase.ANALYZING_DATA: "AI is analyzing query results",
    ActivityPhase.GENERATING_DASHBOARD: "Generating visual dashboard",
    ActivityPhase.PREPARING_RESPONSE: "Preparing response",
    ActivityPhase.COMPLETED: "Final answer",
    ActivityPhase.ERROR: "Error occurred",
}


class ActivityMessage(BaseModel):
    """One progress update for a conversation"""
    phase: ActivityPhase
    status: Literal["in_progress", "completed", "error"] = "in_progress"
    message: str
    conversationId: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class HealthCheckResponse(BaseModel):
    """Health check response"""
    status: Literal["healthy", "degraded", "unhealthy"]
    service: str
    timestamp: datetime
    providers: List[str] = Field(default_factory=list)
    dependencies: Dict[str, str] = Field(default_factory=dict)
