"""Elasticsearch data source over the REST API"""
import json
import time
import logging
from typing import Any, Dict, List, Optional

import httpx

from ..config import settings
from ..models import (
    CollectionSchema,
    ConnectionRecord,
    DataSourceType,
    DocumentStoreSchema,
    ExecutionResult,
    SourceSchema,
)
from ..utils.json_encoder import convert_row
from .base import DataSource, SchemaExtractionError
from .requests import DataRequest, ElasticsearchQuery

logger = logging.getLogger(__name__)


def build_base_url(connection: ConnectionRecord) -> str:
    """http(s)://host:port, scheme taken from other_details when given"""
    details = connection.other_details
    scheme = details.get("scheme") or ("https" if details.get("useHttps") else "http")
    port = connection.port or 9200
    return f"{scheme}://{connection.host or 'localhost'}:{port}"


def flatten_mapping(properties: Dict[str, Any], prefix: str = "") -> Dict[str, str]:
    """
    Flatten an index mapping into dotted field names.

    Args:
        properties: ``mappings.properties`` object
        prefix: Parent path for nested objects

    Returns:
        Field name to Elasticsearch type
    """
    fields: Dict[str, str] = {}
    for name, spec in (properties or {}).items():
        path = f"{prefix}{name}"
        if "properties" in spec:
            fields.update(flatten_mapping(spec["properties"], f"{path}."))
        else:
            fields[path] = spec.get("type", "object")
    return fields


def hit_to_row(hit: Dict[str, Any]) -> Dict[str, Any]:
    row = {"_id": hit.get("_id"), "_index": hit.get("_index"), "_score": hit.get("_score")}
    row.update(hit.get("_source") or {})
    return row


class ElasticsearchDataSource(DataSource):
    """Runs query-DSL searches against indices of one cluster"""

    source_type = DataSourceType.ELASTICSEARCH
    accepted_requests = (ElasticsearchQuery,)

    def __init__(
        self,
        connection: ConnectionRecord,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None
    ):
        super().__init__(connection)
        self.base_url = build_base_url(connection)
        self.timeout = timeout if timeout is not None else settings.SEARCH_TIMEOUT_SECONDS
        self.transport = transport
        self.auth = (connection.username, connection.password) if connection.username else None

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url,
            timeout=self.timeout,
            auth=self.auth,
            transport=self.transport,
        )

    def _get(self, client: httpx.Client, path: str) -> Any:
        response = client.get(path)
        response.raise_for_status()
        return response.json()

    def extract_schema(self) -> SourceSchema:
        logger.info(f"Extracting schema for Elasticsearch: {self.name}")
        try:
            with self._client() as client:
                indices = [
                    entry["index"]
                    for entry in self._get(client, "/_cat/indices?format=json")
                    if not entry.get("index", "").startswith(".")
                ]
                collections: List[CollectionSchema] = []
                for index in indices:
                    collections.append(self._describe_index(client, index))
        except httpx.HTTPError as e:
            logger.error(f"Failed to extract Elasticsearch schema: {e}")
            raise SchemaExtractionError(self.name, str(e)) from e

        return SourceSchema(
            source_id=self.id,
            source_name=self.name,
            source_type=DataSourceType.ELASTICSEARCH,
            schema_data=DocumentStoreSchema(
                database_type="elasticsearch",
                database_name=self.connection.database,
                collections=collections,
            ),
        )

    def _describe_index(self, client: httpx.Client, index: str) -> CollectionSchema:
        field_types: Dict[str, str] = {}
        document_count = 0
        try:
            mapping = self._get(client, f"/{index}/_mapping")
            properties = mapping.get(index, {}).get("mappings", {}).get("properties", {})
            field_types = flatten_mapping(properties)
            document_count = int(self._get(client, f"/{index}/_count").get("count", 0))
        except httpx.HTTPError as e:
            logger.warning(f"Failed to read mapping for index {index}: {e}")
        return CollectionSchema(name=index, field_types=field_types, document_count=document_count)

    def _execute(self, request: DataRequest) -> ExecutionResult:
        start = time.perf_counter()
        try:
            body = self._search_body(request)
            with self._client() as client:
                response = client.post(f"/{request.index}/_search", json=body)
                response.raise_for_status()
                hits = response.json().get("hits", {}).get("hits", [])
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Elasticsearch query failed on {request.index}: {e}")
            return ExecutionResult.failure(
                f"Query execution failed: {e}", int((time.perf_counter() - start) * 1000)
            )

        rows = [convert_row(hit_to_row(hit)) for hit in hits]
        return ExecutionResult.ok(
            data=rows,
            execution_time_ms=int((time.perf_counter() - start) * 1000),
        )

    def _search_body(self, request: ElasticsearchQuery) -> Dict[str, Any]:
        body: Dict[str, Any] = {"size": request.size, "from": request.from_}
        query = json.loads(request.query) if request.query else {"match_all": {}}
        # Accept both a bare query clause and a full search body
        if "query" in query:
            body.update(query)
        else:
            body["query"] = query
        if request.sort:
            body["sort"] = json.loads(request.sort)
        return body

    def is_available(self) -> bool:
        try:
            with self._client() as client:
                response = client.get("/")
                return response.status_code == 200
        except httpx.HTTPError as e:
            logger.error(f"Elasticsearch connection test failed: {e}")
            return False
