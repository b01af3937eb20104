"""MongoDB data source backed by pymongo"""
import json
import time
import logging
import threading
from typing import Any, Dict, List, Optional, Callable
from urllib.parse import quote_plus

from pymongo import MongoClient

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
from .requests import DataRequest, MongoQuery

logger = logging.getLogger(__name__)


def build_connection_string(connection: ConnectionRecord) -> str:
    """
    Build a mongodb:// URI from a connection record.

    Credentials are URL-encoded; ``authSource`` comes from other_details.
    """
    uri = "mongodb://"
    if connection.username:
        uri += quote_plus(connection.username)
        if connection.password:
            uri += ":" + quote_plus(connection.password)
        uri += "@"
    uri += connection.host or "localhost"
    if connection.port:
        uri += f":{connection.port}"
    uri += f"/{connection.database}"
    auth_source = connection.other_details.get("authSource")
    if auth_source:
        uri += f"?authSource={auth_source}"
    return uri


def describe_value_type(value: Any) -> str:
    """Type label for a sampled document value"""
    if value is None:
        return "null"
    return type(value).__name__


def _parse_json(text: Optional[str], default: Any, label: str) -> Any:
    if not text:
        return default
    try:
        return json.loads(text)
    except ValueError as e:
        raise ValueError(f"Invalid {label} JSON: {e}") from e


class MongoDataSource(DataSource):
    """Executes find/count/aggregate against one database"""

    source_type = DataSourceType.MONGODB
    accepted_requests = (MongoQuery,)

    def __init__(
        self,
        connection: ConnectionRecord,
        client_factory: Optional[Callable[[str], MongoClient]] = None
    ):
        super().__init__(connection)
        self._client_factory = client_factory or (
            lambda uri: MongoClient(uri, serverSelectionTimeoutMS=settings.CONNECT_TIMEOUT_SECONDS * 1000)
        )
        self._client: Optional[MongoClient] = None
        self._lock = threading.Lock()

    def get_client(self) -> MongoClient:
        """Get or create the MongoDB client"""
        with self._lock:
            if self._client is None:
                logger.info(f"Connecting to MongoDB: {self.connection.host}")
                self._client = self._client_factory(build_connection_string(self.connection))
            return self._client

    @property
    def database(self):
        return self.get_client()[self.connection.database]

    def close(self):
        """Close MongoDB client"""
        with self._lock:
            if self._client is not None:
                self._client.close()
                self._client = None

    def extract_schema(self) -> SourceSchema:
        logger.info(f"Extracting schema for MongoDB: {self.name}")
        try:
            database = self.database
            collection_names = database.list_collection_names()
        except Exception as e:
            logger.error(f"Failed to extract MongoDB schema: {e}")
            raise SchemaExtractionError(self.name, str(e)) from e

        collections: List[CollectionSchema] = []
        samples: Dict[str, List[Dict[str, Any]]] = {}
        for name in collection_names:
            try:
                collection = database[name]
                sample = collection.find_one()
                indexes: List[str] = []
                for index in collection.list_indexes():
                    indexes.extend(index.get("key", {}).keys())
                collections.append(CollectionSchema(
                    name=name,
                    field_types={key: describe_value_type(value) for key, value in (sample or {}).items()},
                    indexes=indexes,
                    document_count=collection.estimated_document_count(),
                ))
                if sample:
                    samples[name] = [convert_row(sample)]
            except Exception as e:
                logger.warning(f"Failed to extract schema for collection {name}: {e}")

        return SourceSchema(
            source_id=self.id,
            source_name=self.name,
            source_type=DataSourceType.MONGODB,
            schema_data=DocumentStoreSchema(
                database_type="mongodb",
                database_name=self.connection.database,
                collections=collections,
            ),
            sample_data=samples,
        )

    def _execute(self, request: DataRequest) -> ExecutionResult:
        start = time.perf_counter()
        try:
            rows = self._run(request)
        except Exception as e:
            logger.error(f"MongoDB query execution failed: {e}")
            return ExecutionResult.failure(
                f"Query execution failed: {e}", int((time.perf_counter() - start) * 1000)
            )
        return ExecutionResult.ok(
            data=[convert_row(row) for row in rows],
            execution_time_ms=int((time.perf_counter() - start) * 1000),
        )

    def _run(self, query: MongoQuery) -> List[Dict[str, Any]]:
        collection = self.database[query.collection]
        filter_doc = _parse_json(query.filter, {}, "filter")

        if query.operation == "count":
            return [{"count": collection.count_documents(filter_doc)}]

        if query.operation == "aggregate":
            # Older callers put the pipeline in filter
            pipeline = _parse_json(query.pipeline or query.filter, [], "pipeline")
            if not isinstance(pipeline, list):
                raise ValueError("Aggregation pipeline must be a JSON array")
            return list(collection.aggregate(pipeline))

        projection = _parse_json(query.projection, None, "projection")
        cursor = collection.find(filter_doc, projection)
        sort = _parse_json(query.sort, None, "sort")
        if sort:
            cursor = cursor.sort(list(sort.items()))
        if query.skip:
            cursor = cursor.skip(query.skip)
        return list(cursor.limit(query.limit or 100))

    def is_available(self) -> bool:
        try:
            self.get_client().admin.command("ping")
            return True
        except Exception as e:
            logger.error(f"MongoDB connection test failed: {e}")
            return False
