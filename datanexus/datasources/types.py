"""Catalogue of supported connection types"""
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from ..models import DataSourceType


@dataclass(frozen=True)
class DatabaseTypeInfo:
    """Static facts about one connection type"""
    id: str
    display_name: str
    default_port: Optional[int]
    source_type: DataSourceType
    is_sql: bool = False
    implemented: bool = True


class DatabaseType(Enum):
    """Connection types a connection record may declare"""
    POSTGRESQL = DatabaseTypeInfo("postgresql", "PostgreSQL", 5432, DataSourceType.DATABASE, is_sql=True)
    MYSQL = DatabaseTypeInfo("mysql", "MySQL", 3306, DataSourceType.DATABASE, is_sql=True)
    SQLITE = DatabaseTypeInfo("sqlite", "SQLite", None, DataSourceType.DATABASE, is_sql=True)
    SUPABASE = DatabaseTypeInfo("supabase", "Supabase", 5432, DataSourceType.DATABASE, is_sql=True)
    STARROCKS = DatabaseTypeInfo("starrocks", "StarRocks", 9030, DataSourceType.DATABASE, is_sql=True)
    CLICKHOUSE = DatabaseTypeInfo("clickhouse", "ClickHouse", 8123, DataSourceType.DATABASE, is_sql=True)
    SNOWFLAKE = DatabaseTypeInfo("snowflake", "Snowflake", 443, DataSourceType.DATABASE, is_sql=True)
    TRINO = DatabaseTypeInfo("trino", "Trino", 8080, DataSourceType.DATABASE, is_sql=True)
    MONGODB = DatabaseTypeInfo("mongodb", "MongoDB", 27017, DataSourceType.MONGODB)
    ELASTICSEARCH = DatabaseTypeInfo("elasticsearch", "Elasticsearch", 9200, DataSourceType.ELASTICSEARCH)
    MCP = DatabaseTypeInfo("mcp", "MCP Server", None, DataSourceType.MCP_SERVER)
    REDIS = DatabaseTypeInfo("redis", "Redis", 6379, DataSourceType.REDIS, implemented=False)
    BIGQUERY = DatabaseTypeInfo("bigquery", "BigQuery", None, DataSourceType.BIGQUERY, is_sql=True, implemented=False)

    @property
    def id(self) -> str:
        return self.value.id

    @property
    def display_name(self) -> str:
        return self.value.display_name

    @property
    def default_port(self) -> Optional[int]:
        return self.value.default_port

    @property
    def source_type(self) -> DataSourceType:
        return self.value.source_type

    @property
    def is_sql(self) -> bool:
        return self.value.is_sql

    @property
    def implemented(self) -> bool:
        return self.value.implemented

    @classmethod
    def from_id(cls, type_id: Optional[str]) -> Optional["DatabaseType"]:
        """Look up a type by its id, ignoring case"""
        if not type_id:
            return None
        wanted = type_id.strip().lower()
        for member in cls:
            if member.id == wanted:
                return member
        return None

    @classmethod
    def all_types(cls) -> List["DatabaseType"]:
        return list(cls)


# Engine families sharing catalog conventions
POSTGRES_FAMILY = {"postgresql", "supabase"}
MYSQL_FAMILY = {"mysql", "starrocks"}
