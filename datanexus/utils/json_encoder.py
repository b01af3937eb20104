"""JSON conversion for database values and outbound payloads"""
import json
from datetime import datetime, date, time
from decimal import Decimal
from typing import Any, Dict, List
from uuid import UUID

from pydantic import BaseModel

BINARY_PLACEHOLDER = "[binary data]"


def convert_value(value: Any) -> Any:
    """
    Convert a single driver value to a JSON-friendly scalar.
    
    Args:
        value: Value as returned by a database driver
        
    Returns:
        JSON-serializable representation
    """
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray, memoryview)):
        return BINARY_PLACEHOLDER
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, dict):
        return {str(key): convert_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [convert_value(item) for item in value]
    return str(value)


def convert_row(row: Dict[str, Any]) -> Dict[str, Any]:
    """Convert every value of a row, keeping column order"""
    return {key: convert_value(value) for key, value in row.items()}


def convert_rows(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [convert_row(row) for row in rows]


class CustomJSONEncoder(json.JSONEncoder):
    """
    JSON encoder that handles:
    - Decimal objects (from database queries)
    - datetime/date/time objects
    - pydantic models
    - binary payloads
    """
    
    def default(self, obj: Any) -> Any:
        if isinstance(obj, BaseModel):
            return obj.model_dump(mode="json", by_alias=True)
        return convert_value(obj)


def json_dumps(obj: Any, **kwargs) -> str:
    """
    JSON dumps with custom encoder for handling Decimal and other special types.
    
    Args:
        obj: Object to serialize
        **kwargs: Additional arguments to pass to json.dumps
        
    Returns:
        JSON string
    """
    return json.dumps(obj, cls=CustomJSONEncoder, **kwargs)
