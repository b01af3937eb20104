"""Read-only SQL safety validation"""
import re
import logging
from typing import List
import sqlparse

from ..models import QueryValidationResult

logger = logging.getLogger(__name__)

FORBIDDEN_KEYWORDS: List[str] = [
    "INSERT",
    "UPDATE",
    "DELETE",
    "DROP",
    "ALTER",
    "CREATE",
    "TRUNCATE",
    "GRANT",
    "REVOKE",
    "EXEC(?:UTE)?",
    "CALL",
    "MERGE",
    "REPLACE",
]

# Whole-word, case-insensitive; also matches inside literals and subqueries
FORBIDDEN_PATTERNS = [
    re.compile(rf"\b({keyword})\b", re.IGNORECASE) for keyword in FORBIDDEN_KEYWORDS
]


def _reject(reason: str) -> QueryValidationResult:
    logger.warning(f"Query rejected: {reason}")
    return QueryValidationResult(is_valid=False, reason=reason)


def find_forbidden_keyword(sql: str) -> str:
    """
    Find the first forbidden keyword in the text.
    
    Args:
        sql: SQL text
        
    Returns:
        The offending keyword upper-cased, or empty string when none matched
    """
    for pattern in FORBIDDEN_PATTERNS:
        match = pattern.search(sql)
        if match:
            return match.group(1).upper()
    return ""


def validate_query_safety(sql: str) -> QueryValidationResult:
    """
    Validate that a query is a single read-only SELECT.
    
    Checks, in order: empty input, forbidden keywords anywhere in the text,
    then the parsed statement type. When the parser cannot classify the
    statement, the trimmed text must start with SELECT or WITH.
    
    Args:
        sql: SQL query string
        
    Returns:
        Validation result with the rejection reason when invalid
    """
    if sql is None or not sql.strip():
        return _reject("Query cannot be empty")
    
    text = sql.strip()
    if text.endswith(";"):
        text = text[:-1].rstrip()
    
    keyword = find_forbidden_keyword(text)
    if keyword:
        return _reject(
            f"Forbidden SQL operation detected: {keyword}. "
            f"Only SELECT queries are allowed for security reasons."
        )
    
    statements = [stmt for stmt in sqlparse.parse(text) if str(stmt).strip()]
    if len(statements) > 1:
        return _reject("Multiple statements are not allowed")
    
    statement_type = statements[0].get_type() if statements else "UNKNOWN"
    if statement_type == "SELECT":
        return QueryValidationResult(is_valid=True)
    
    if statement_type != "UNKNOWN":
        return _reject(f"Only SELECT statements are allowed. Received: {statement_type}")
    
    # Parser could not classify the construct; fall back to a prefix check
    upper = sqlparse.format(text, strip_comments=True).strip().upper()
    if upper.startswith("SELECT") or upper.startswith("WITH"):
        return QueryValidationResult(is_valid=True)
    
    return _reject("Query must start with SELECT or WITH (CTE)")
