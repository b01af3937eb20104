"""Rule-based intent classification and SQL synthesis

Pure functions over a message and a table schema. Nothing here touches a
connection; the query generator service composes them and validates the output.
"""
import re
import logging
from typing import List, Optional, Tuple

from ..models import ColumnSchema, TableSchema

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 100
TABLE_ALIAS = "t"

# Checked in order; first intent with a matching keyword wins
INTENT_KEYWORDS: List[Tuple[str, List[str]]] = [
    ("COUNT", ["count", "how many", "total number", "number of"]),
    ("AVERAGE", ["average", "avg", "mean"]),
    ("SUM", ["sum", "total", "combined"]),
    ("MAX", ["max", "maximum", "highest", "largest", "most", "top"]),
    ("MIN", ["min", "minimum", "lowest", "smallest", "least"]),
    ("GROUP", ["group by", "grouped", "per", "each", "breakdown", "by category"]),
    ("LIST", ["list", "show", "display", "get", "fetch", "find", "retrieve"]),
    ("COMPARE", ["compare", "difference", "versus", "vs"]),
    ("TREND", ["trend", "over time", "timeline", "history", "growth"]),
]
DEFAULT_INTENT = "LIST"

NUMERIC_TYPE_MARKERS = ("INT", "DECIMAL", "NUMERIC", "FLOAT", "DOUBLE", "REAL", "MONEY", "SERIAL")
DATE_TYPE_MARKERS = ("DATE", "TIME", "TIMESTAMP")
STRING_TYPE_MARKERS = ("CHAR", "VARCHAR", "TEXT", "STRING")

_SIMPLE_IDENTIFIER = re.compile(r"[a-zA-Z_][a-zA-Z0-9_]*")


# Inflected forms count as the keyword: counts, averages, totaled, grouping
_KEYWORD_SUFFIX = r"(?:s|es|d|ed|ing)?"


def _contains_keyword(text: str, keyword: str) -> bool:
    return re.search(rf"\b{re.escape(keyword)}{_KEYWORD_SUFFIX}\b", text) is not None


def classify_intent(message: str) -> str:
    """
    Classify a message into one intent by keyword priority.

    Args:
        message: User's natural language message

    Returns:
        Intent name, LIST when nothing matches
    """
    lower = (message or "").lower()
    for intent, keywords in INTENT_KEYWORDS:
        if any(_contains_keyword(lower, keyword) for keyword in keywords):
            return intent
    return DEFAULT_INTENT


def is_numeric_type(data_type: str) -> bool:
    upper = (data_type or "").upper()
    return any(marker in upper for marker in NUMERIC_TYPE_MARKERS)


def is_date_type(data_type: str) -> bool:
    upper = (data_type or "").upper()
    return any(marker in upper for marker in DATE_TYPE_MARKERS)


def is_string_type(data_type: str) -> bool:
    upper = (data_type or "").upper()
    return any(marker in upper for marker in STRING_TYPE_MARKERS)


def name_mentioned(name: str, message_lower: str) -> bool:
    """True if the name, or the name with underscores as spaces, appears in the message"""
    lower = name.lower()
    return lower in message_lower or lower.replace("_", " ") in message_lower


def table_mentioned(table_name: str, message_lower: str) -> bool:
    lower = table_name.lower()
    singular = lower[:-1] if lower.endswith("s") else lower
    return (
        lower in message_lower
        or (bool(singular) and singular in message_lower)
        or lower.replace("_", " ") in message_lower
    )


def column_score(table: TableSchema, message_lower: str) -> int:
    """Number of the table's columns mentioned in the message"""
    return sum(1 for column in table.columns if name_mentioned(column.name, message_lower))


def find_relevant_tables(message: str, tables: List[TableSchema]) -> List[TableSchema]:
    """
    Pick the tables a message refers to.

    Tables whose name (plain, singular or with spaces) appears in the message
    win. Otherwise the table with the most mentioned columns is used, falling
    back to the first table.

    Args:
        message: User's message
        tables: Candidate tables

    Returns:
        Matched tables, empty only when there are no tables at all
    """
    lower = (message or "").lower()
    matched = [table for table in tables if table_mentioned(table.table_name, lower)]
    if matched or not tables:
        return matched

    best_score = 0
    best_match = None
    for table in tables:
        score = column_score(table, lower)
        if score > best_score:
            best_score = score
            best_match = table
    return [best_match if best_match is not None else tables[0]]


def find_relevant_columns(message: str, table: TableSchema) -> List[ColumnSchema]:
    """
    Columns mentioned in the message, always led by a primary key.

    Returns all columns when none is mentioned.
    """
    lower = (message or "").lower()
    relevant = [column for column in table.columns if name_mentioned(column.name, lower)]
    if not relevant:
        return list(table.columns)

    if not any(column.primary_key for column in relevant):
        primary = next((column for column in table.columns if column.primary_key), None)
        if primary is not None:
            relevant.insert(0, primary)
    return relevant


def find_numeric_column(columns: List[ColumnSchema]) -> Optional[ColumnSchema]:
    return next((column for column in columns if is_numeric_type(column.data_type)), None)


def find_date_column(columns: List[ColumnSchema]) -> Optional[ColumnSchema]:
    return next((column for column in columns if is_date_type(column.data_type)), None)


def find_groupable_column(columns: List[ColumnSchema], message: str) -> Optional[ColumnSchema]:
    """
    Column to group by.

    Prefers a mentioned non-key, non-numeric, non-date column; otherwise the
    first non-key string column.
    """
    lower = (message or "").lower()
    for column in columns:
        if (
            not column.primary_key
            and not is_numeric_type(column.data_type)
            and not is_date_type(column.data_type)
            and name_mentioned(column.name, lower)
        ):
            return column
    return next(
        (column for column in columns if not column.primary_key and is_string_type(column.data_type)),
        None
    )


def quote_identifier(name: str, database_type: str) -> str:
    """Quote an identifier only when it is not a plain word"""
    if _SIMPLE_IDENTIFIER.fullmatch(name):
        return name
    if (database_type or "").lower() in ("mysql", "starrocks"):
        return f"`{name}`"
    escaped = name.replace('"', '""')
    return f'"{escaped}"'


class _SqlBuilder:
    """Renders one intent's SQL for a single table"""

    def __init__(self, table: TableSchema, database_type: str, limit: int):
        self.table = quote_identifier(table.table_name, database_type)
        self.database_type = database_type
        self.limit = limit

    def col(self, column: ColumnSchema) -> str:
        return f"{TABLE_ALIAS}.{quote_identifier(column.name, self.database_type)}"

    @property
    def source(self) -> str:
        return f"{self.table} {TABLE_ALIAS}"

    def total_count(self) -> str:
        return f"SELECT COUNT(*) AS total_count FROM {self.source}"

    def count(self, columns: List[ColumnSchema], message: str) -> str:
        group = find_groupable_column(columns, message)
        if group is None:
            return self.total_count()
        g = self.col(group)
        return (
            f"SELECT {g}, COUNT(*) AS count FROM {self.source} "
            f"GROUP BY {g} ORDER BY count DESC LIMIT {self.limit}"
        )

    def aggregate(self, function: str, columns: List[ColumnSchema]) -> str:
        numeric = find_numeric_column(columns)
        if numeric is None:
            return self.total_count()
        return f"SELECT {function}({self.col(numeric)}) AS {function.lower()}_{numeric.name} FROM {self.source}"

    def group(self, columns: List[ColumnSchema], message: str) -> str:
        group = find_groupable_column(columns, message)
        if group is None:
            return self.listing(columns)
        numeric = find_numeric_column(columns)
        g = self.col(group)
        if numeric is not None:
            n = self.col(numeric)
            select, order = f"SUM({n}) AS total, AVG({n}) AS average", "total"
        else:
            select, order = "COUNT(*) AS count", "count"
        return (
            f"SELECT {g}, {select} FROM {self.source} "
            f"GROUP BY {g} ORDER BY {order} DESC LIMIT {self.limit}"
        )

    def trend(self, columns: List[ColumnSchema]) -> str:
        date_column = find_date_column(columns)
        if date_column is None:
            return self.listing(columns)
        numeric = find_numeric_column(columns)
        d = self.col(date_column)
        value = f"SUM({self.col(numeric)}) AS total" if numeric is not None else "COUNT(*) AS count"
        return (
            f"SELECT {d}, {value} FROM {self.source} "
            f"GROUP BY {d} ORDER BY {d} ASC LIMIT {self.limit}"
        )

    def listing(self, columns: List[ColumnSchema]) -> str:
        select = ", ".join(self.col(column) for column in columns) or "*"
        return f"SELECT {select} FROM {self.source} LIMIT {self.limit}"


AGGREGATE_FUNCTIONS = {"AVERAGE": "AVG", "SUM": "SUM", "MAX": "MAX", "MIN": "MIN"}


def build_sql(
    intent: str,
    table: TableSchema,
    columns: List[ColumnSchema],
    message: str,
    database_type: str,
    limit: int = DEFAULT_LIMIT
) -> str:
    """
    Synthesize a bounded read-only query for one intent.

    Args:
        intent: Classified intent
        table: Target table
        columns: Relevant columns of the table
        message: User's message (used to pick a grouping column)
        database_type: Database type id, drives identifier quoting
        limit: Row cap for listing and grouped queries

    Returns:
        SQL text
    """
    builder = _SqlBuilder(table, database_type, limit)
    if intent == "COUNT":
        return builder.count(columns, message)
    if intent in AGGREGATE_FUNCTIONS:
        return builder.aggregate(AGGREGATE_FUNCTIONS[intent], columns)
    if intent == "GROUP":
        return builder.group(columns, message)
    if intent == "TREND":
        return builder.trend(columns)
    return builder.listing(columns)
