"""Step ordering and $variable substitution for chained data requests

Example flow::

    Step 1: SELECT id FROM users WHERE username = 'johndoe'
            outputAs="$user_id", outputField="id"  -> binds 5
    Step 2 (dependsOn=1): SELECT * FROM activities WHERE user_id = $user_id
            -> SELECT * FROM activities WHERE user_id = 5
"""
import re
import json
import logging
from typing import Any, Dict, List, Optional

from ..datasources.requests import (
    DataRequest,
    ElasticsearchQuery,
    MCPResourceRead,
    MCPToolCall,
    MongoQuery,
    SqlQuery,
)

logger = logging.getLogger(__name__)

VARIABLE_PATTERN = re.compile(r"\$[a-zA-Z_][a-zA-Z0-9_]*")
NUMERIC_PATTERN = re.compile(r"-?\d+(\.\d+)?")
MULTI_VALUE_SEPARATOR = ", "


def variable_name(output_as: str) -> str:
    """Normalize an outputAs name to its ``$name`` token form"""
    name = output_as.strip()
    return name if name.startswith("$") else f"${name}"


def order(requests: List[DataRequest]) -> List[DataRequest]:
    """
    Order requests by step; requests without a step keep their relative
    order and run after all stepped requests.
    """
    if not any(request.step is not None for request in requests):
        return list(requests)
    return sorted(requests, key=lambda r: r.step if r.step is not None else float("inf"))


def group_by_step(requests: List[DataRequest]) -> List[List[DataRequest]]:
    """Ordered requests split into execution steps"""
    steps: List[List[DataRequest]] = []
    current_step: Any = object()
    for request in order(requests):
        if request.step is None or request.step != current_step:
            steps.append([])
            current_step = request.step
        steps[-1].append(request)
    return steps


def has_dependency(request: DataRequest) -> bool:
    return request.dependsOn is not None


def _is_numeric(value: str) -> bool:
    return NUMERIC_PATTERN.fullmatch(value) is not None


def _sql_literal(value: str) -> str:
    if _is_numeric(value):
        return value
    return "'" + value.replace("'", "''") + "'"


def format_sql_value(value: str) -> str:
    """
    Render a bound value as a SQL literal.

    Numeric text is left bare, anything else is single-quoted with embedded
    quotes doubled. Multi-row values are rendered item by item.
    """
    if _is_numeric(value):
        return value
    if MULTI_VALUE_SEPARATOR in value:
        return MULTI_VALUE_SEPARATOR.join(
            _sql_literal(item) for item in value.split(MULTI_VALUE_SEPARATOR)
        )
    return _sql_literal(value)


def _replace(text: Optional[str], variables: Dict[str, str], render) -> Optional[str]:
    if not text or not variables:
        return text

    def _sub(match):
        value = variables.get(match.group())
        if value is None:
            return match.group()
        return render(value)

    return VARIABLE_PATTERN.sub(_sub, text)


def substitute(sql: Optional[str], variables: Dict[str, str]) -> Optional[str]:
    """
    Replace bound ``$name`` tokens in SQL text.

    Args:
        sql: SQL containing $variable placeholders
        variables: Variable name (with $) to bound value

    Returns:
        SQL with every bound token replaced; unbound tokens are left as they are
    """
    return _replace(sql, variables, format_sql_value)


def substitute_raw(text: Optional[str], variables: Dict[str, str]) -> Optional[str]:
    """Replace bound tokens with the bare value, for non-SQL request fields"""
    return _replace(text, variables, lambda value: value)


def _substitute_arguments(value: Any, variables: Dict[str, str]) -> Any:
    if isinstance(value, str):
        return substitute_raw(value, variables)
    if isinstance(value, dict):
        return {key: _substitute_arguments(item, variables) for key, item in value.items()}
    if isinstance(value, list):
        return [_substitute_arguments(item, variables) for item in value]
    return value


def apply_variables(request: DataRequest, variables: Dict[str, str]) -> DataRequest:
    """
    Return a copy of the request with bound variables substituted in its
    query-bearing fields.
    """
    if not variables:
        return request
    if isinstance(request, SqlQuery):
        return request.model_copy(update={"sql": substitute(request.sql, variables)})
    if isinstance(request, MCPToolCall):
        return request.model_copy(update={"arguments": _substitute_arguments(request.arguments, variables)})
    if isinstance(request, MCPResourceRead):
        return request.model_copy(update={"uri": substitute_raw(request.uri, variables)})
    if isinstance(request, MongoQuery):
        return request.model_copy(update={
            "filter": substitute_raw(request.filter, variables),
            "pipeline": substitute_raw(request.pipeline, variables),
        })
    if isinstance(request, ElasticsearchQuery):
        return request.model_copy(update={"query": substitute_raw(request.query, variables)})
    raise TypeError(f"Unhandled request variant: {type(request).__name__}")


def unbound_variables(request: DataRequest, variables: Dict[str, str]) -> List[str]:
    """Tokens in a SQL request that have no bound value"""
    if not isinstance(request, SqlQuery):
        return []
    return [token for token in VARIABLE_PATTERN.findall(request.sql) if token not in variables]


def _field_value(row: Dict[str, Any], field: str) -> Any:
    if field in row:
        return row[field]
    lower = field.lower()
    for key, value in row.items():
        if key.lower() == lower:
            return value
    return None


def _as_text(value: Any) -> str:
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return str(value)


def extract_output_value(rows: Optional[List[Dict[str, Any]]], output_field: Optional[str]) -> Optional[str]:
    """
    Extract a step's output variable from its result rows.

    Args:
        rows: Result rows of the earlier step
        output_field: Column/field to read, matched case-insensitively

    Returns:
        The single value as text, multiple values joined with ", ", or None
        when there is nothing to extract
    """
    if not rows or not output_field:
        return None

    values = [_field_value(row, output_field) for row in rows]
    values = [value for value in values if value is not None]
    if not values:
        logger.warning(f"Output field '{output_field}' not found in result columns: {list(rows[0].keys())}")
        return None

    return MULTI_VALUE_SEPARATOR.join(_as_text(value) for value in values)
