"""Data request variants

Every request an AI provider or the heuristic generator can emit is one of a
closed set of variants, discriminated on ``requestType``. Dispatch over the set
is exhaustive: an unhandled variant raises ``TypeError`` instead of being
silently skipped.
"""
import json
from typing import Annotated, Optional, Dict, Any, Union, Literal
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator


class DataRequestBase(BaseModel):
    """Fields shared by every request variant, including the chaining fields"""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    explanation: Optional[str] = None
    sourceId: Optional[str] = None
    step: Optional[int] = None
    dependsOn: Optional[int] = None
    outputAs: Optional[str] = None
    outputField: Optional[str] = None

    @field_validator("sourceId", mode="before")
    @classmethod
    def _coerce_source_id(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        return str(value)

    @model_validator(mode="after")
    def _check_dependency_order(self):
        if self.dependsOn is not None and self.step is not None and self.dependsOn >= self.step:
            raise ValueError(
                f"dependsOn ({self.dependsOn}) must reference an earlier step than {self.step}"
            )
        return self


def _json_text(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return value


class SqlQuery(DataRequestBase):
    requestType: Literal["SQL_QUERY"] = "SQL_QUERY"
    sql: str


class MCPToolCall(DataRequestBase):
    requestType: Literal["MCP_TOOL_CALL"] = "MCP_TOOL_CALL"
    toolName: str
    arguments: Dict[str, Any] = Field(default_factory=dict)


class MCPResourceRead(DataRequestBase):
    requestType: Literal["MCP_RESOURCE_READ"] = "MCP_RESOURCE_READ"
    uri: str


class MongoQuery(DataRequestBase):
    """Query against one MongoDB collection; JSON fields are carried as text"""
    requestType: Literal["MONGO_QUERY"] = "MONGO_QUERY"
    collection: str
    operation: Literal["find", "count", "aggregate"] = "find"
    filter: Optional[str] = None
    pipeline: Optional[str] = None
    limit: int = 100
    skip: int = 0
    sort: Optional[str] = None
    projection: Optional[str] = None

    @field_validator("filter", "pipeline", "sort", "projection", mode="before")
    @classmethod
    def _encode_json_fields(cls, value: Any) -> Any:
        return _json_text(value)


class ElasticsearchQuery(DataRequestBase):
    """Search against one index using the query DSL as JSON text"""
    requestType: Literal["ELASTICSEARCH_QUERY"] = "ELASTICSEARCH_QUERY"
    index: str
    query: Optional[str] = None
    size: int = 100
    from_: int = Field(0, alias="from")
    sort: Optional[str] = None

    @field_validator("query", "sort", mode="before")
    @classmethod
    def _encode_json_fields(cls, value: Any) -> Any:
        return _json_text(value)


DataRequest = Annotated[
    Union[SqlQuery, MCPToolCall, MCPResourceRead, MongoQuery, ElasticsearchQuery],
    Field(discriminator="requestType"),
]

REQUEST_TYPES = ("SQL_QUERY", "MCP_TOOL_CALL", "MCP_RESOURCE_READ", "MONGO_QUERY", "ELASTICSEARCH_QUERY")

_request_adapter = TypeAdapter(DataRequest)


def parse_data_request(payload: Dict[str, Any]) -> DataRequest:
    """
    Decode one request entry by its requestType.

    Args:
        payload: Raw request object from AI output

    Returns:
        Concrete request variant

    Raises:
        pydantic.ValidationError: Unknown requestType or invalid fields
    """
    return _request_adapter.validate_python(payload)


def describe(request: DataRequest) -> str:
    """Human-readable description of a request"""
    if request.explanation:
        return request.explanation
    if isinstance(request, SqlQuery):
        return f"SQL Query: {request.sql}"
    if isinstance(request, MCPToolCall):
        return f"MCP Tool: {request.toolName}"
    if isinstance(request, MCPResourceRead):
        return f"MCP Resource: {request.uri}"
    if isinstance(request, MongoQuery):
        return f"MongoDB {request.operation} on collection '{request.collection}'"
    if isinstance(request, ElasticsearchQuery):
        return f"Elasticsearch query on index '{request.index}'"
    raise TypeError(f"Unhandled request variant: {type(request).__name__}")


def query_text(request: DataRequest) -> str:
    """The query-like text of a request, as shown in result envelopes"""
    if isinstance(request, SqlQuery):
        return request.sql
    if isinstance(request, MCPToolCall):
        return f"{request.toolName}({json.dumps(request.arguments)})"
    if isinstance(request, MCPResourceRead):
        return request.uri
    if isinstance(request, MongoQuery):
        body = request.pipeline if request.operation == "aggregate" else request.filter
        return f"db.{request.collection}.{request.operation}({body or '{}'})"
    if isinstance(request, ElasticsearchQuery):
        return f"{request.index}/_search {request.query or '{}'}"
    raise TypeError(f"Unhandled request variant: {type(request).__name__}")

