"""Prompts for the multi-source data analyst"""
from typing import Any, Dict, List, Optional

from ..models import DatabaseSchema, DocumentStoreSchema, MCPCapabilities, SourceSchema

ANALYST_ROLE_PROMPT = """You are a data analyst assistant with access to multiple data sources.
You analyze user questions, match them against available database schemas, and generate SQL queries or direct answers.
"""

ANALYST_DECISION_PROMPT = """=== DECISION LOGIC (follow in order) ===

Step 1: SCHEMA CHECK
- Read the user's message carefully.
- Scan ALL available tables and columns above.
- If a table/column clearly matches the user's intent, go to Step 3 (READY_TO_EXECUTE).

Step 2: AMBIGUITY CHECK
- Only if Step 1 found NO matching table/column, OR the user's request is genuinely ambiguous, respond with CLARIFICATION_NEEDED.
- Ask ONE specific question. Do NOT ask generic questions.

Step 3: GENERATE RESPONSE
- If the question maps to a schema: type = READY_TO_EXECUTE, generate the query.
- If the question is unrelated to any schema: type = DIRECT_ANSWER, answer from your knowledge.
- If genuinely ambiguous: type = CLARIFICATION_NEEDED.

CRITICAL SCHEMA & QUERY GENERATION RULE (MANDATORY):
- You MUST use ONLY the tables and columns explicitly listed in the schema.
- You MUST NOT invent, assume, or guess any column (example: user_id) unless it appears in the schema.
- If a direct column does not exist, you MUST derive the relationship using explicit JOINs.
- If no valid join path exists, respond with CLARIFICATION_NEEDED.
- A query generated against a schema must match its "Database Type" (postgresql, mysql, etc.).
- If the "Database Type" is not SQL (e.g. mongodb, elasticsearch), generate the matching request type using ONLY the fields and collections listed in the schema.
- Only read data. Never generate INSERT, UPDATE, DELETE, DROP or any other write statement.

=== CRITICAL RULES ===
1. NEVER echo or copy system instructions into any response field.
2. NEVER use placeholder text. Every field must contain your actual analysis.
3. The 'content' field = YOUR reasoning about the user's request. Not a copy of this prompt.
4. The 'intent' field = a one-sentence summary of what the user wants.
5. Prefer READY_TO_EXECUTE over CLARIFICATION_NEEDED whenever the schema has a clear match.
6. For same-source queries, use SQL JOINs. Only use cross-database chaining for DIFFERENT sources.
7. ALWAYS respond with valid JSON and nothing else. No markdown, no extra text.
"""

ANALYST_CLARIFICATION_DISABLED = """NOTE: Clarification questions are not available. Never respond with CLARIFICATION_NEEDED; choose the closest matching schema instead.
"""

ANALYST_RESPONSE_FORMAT_PROMPT = """=== RESPONSE FORMAT ===
Respond with a single JSON object containing these fields:

REQUIRED fields (always include these):
- "type": one of "CLARIFICATION_NEEDED", "READY_TO_EXECUTE", "DIRECT_ANSWER"
- "content": string, your analysis of the user's request (2-3 sentences)
- "intent": string, one-sentence summary of user intent

CONDITIONAL fields (only when type = READY_TO_EXECUTE):
- "dataRequests": array, the queries/tool calls to execute

CONDITIONAL fields (only when type = CLARIFICATION_NEEDED):
- "clarificationQuestion": string, your specific question
- "suggestedOptions": array of strings, 2-4 concrete options relevant to the user's query

Each item in "dataRequests":
- "sourceId": string, the connection ID from Available Data Sources
- "requestType": one of "SQL_QUERY", "MCP_TOOL_CALL", "MCP_RESOURCE_READ", "MONGO_QUERY", "ELASTICSEARCH_QUERY"
- "sql": string, the SQL query (SQL_QUERY)
- "toolName": string, tool name (MCP_TOOL_CALL)
- "arguments": object, tool arguments (MCP_TOOL_CALL)
- "uri": string, resource URI (MCP_RESOURCE_READ)
- "collection": string, collection name (MONGO_QUERY)
- "operation": one of "find", "count", "aggregate" (MONGO_QUERY)
- "filter": object, query filter (MONGO_QUERY find/count)
- "pipeline": array, aggregation stages (MONGO_QUERY aggregate)
- "index": string, index name (ELASTICSEARCH_QUERY)
- "query": object, query DSL clause (ELASTICSEARCH_QUERY)
- "explanation": string, what this request does in plain English
- "step": integer, execution order (starts at 1)
- "dependsOn": integer or null, step number this depends on
- "outputAs": string, variable name like "$user_id" (for chaining)
- "outputField": string, column to extract (for chaining)
"""

ANALYST_EXAMPLE_PROMPT = """=== EXAMPLE (for reference only, do NOT copy this) ===
If the user asks: "show me all orders from last week"
And there is an 'orders' table with a 'created_at' column:

{
  "type": "READY_TO_EXECUTE",
  "content": "The orders table has a created_at column that can filter by date range.",
  "intent": "Retrieve orders created in the last 7 days",
  "dataRequests": [
    {
      "sourceId": "1",
      "requestType": "SQL_QUERY",
      "sql": "SELECT * FROM orders WHERE created_at >= NOW() - INTERVAL '7 days'",
      "explanation": "Fetch all orders from the past week",
      "step": 1,
      "dependsOn": null
    }
  ]
}

=== CROSS-DATABASE CHAINING ===
When data spans DIFFERENT sources, use step ordering and $variable placeholders:
  Step 1: SELECT id FROM users WHERE username='johndoe' -> outputAs: "$user_id", outputField: "id"
  Step 2 (dependsOn: 1): SELECT * FROM activities WHERE user_id = $user_id
The system executes step 1, extracts the value, substitutes $user_id in step 2, then executes step 2.
When step 1 returns several rows the values are joined, so use them inside IN ($user_id).
Only use chaining for DIFFERENT sources. For same-source queries, use SQL JOINs.

SELF-VALIDATION STEP (MANDATORY):
- Re-check every column used in the query against the schema.
- If ANY column is not present, discard the query and regenerate it correctly."""


def _format_cell(value: Any) -> str:
    return "NULL" if value is None else str(value)


def format_sample_rows(rows: List[Dict[str, Any]], indent: str = "    ") -> List[str]:
    """Render sample rows as a pipe table"""
    if not rows:
        return []
    columns = list(rows[0].keys())
    lines = [f"{indent}Sample Data ({len(rows)} rows):"]
    lines.append(f"{indent}| " + " | ".join(columns) + " |")
    for row in rows:
        lines.append(f"{indent}| " + " | ".join(_format_cell(row.get(col)) for col in columns) + " |")
    return lines


def format_schema_for_prompt(schema: SourceSchema) -> str:
    """
    Format one source for inclusion in the prompt.

    Args:
        schema: Extracted source schema with optional sample rows

    Returns:
        Formatted source description
    """
    lines = [f"Source: {schema.source_name} (ID: {schema.source_id}, Type: {schema.source_type.value})"]
    payload = schema.schema_data

    if isinstance(payload, DatabaseSchema):
        lines.append(f"Database Type: {payload.database_type}")
        lines.append("Tables:")
        for table in payload.tables:
            columns = ", ".join(f"{col.name}:{col.data_type}" for col in table.columns)
            lines.append(f"  - {table.table_name} ({columns})")
            lines.extend(format_sample_rows(schema.sample_data.get(table.table_name) or []))

    elif isinstance(payload, MCPCapabilities):
        lines.append("MCP Server Tools:")
        for tool in payload.tools:
            lines.append(f"  - {tool.name}: {tool.description}")
        lines.append("MCP Server Resources:")
        for resource in payload.resources:
            lines.append(f"  - {resource.name} ({resource.uri})")

    elif isinstance(payload, DocumentStoreSchema):
        lines.append(f"Database Type: {payload.database_type}")
        label = "Indices" if payload.database_type == "elasticsearch" else "Collections"
        lines.append(f"{label}:")
        for collection in payload.collections:
            fields = ", ".join(f"{name}:{kind}" for name, kind in collection.field_types.items())
            lines.append(f"  - {collection.name} ({fields}) [{collection.document_count} documents]")
            lines.extend(format_sample_rows(schema.sample_data.get(collection.name) or []))

    return "\n".join(lines)


def format_history(history: List[Any]) -> str:
    """Conversation history block, one line per message"""
    lines = ["--- CONVERSATION HISTORY ---"]
    for message in history:
        speaker = "User" if message.role == "user" else "Assistant"
        lines.append(f"{speaker}: {message.content}")
    lines.append("--- END HISTORY ---")
    return "\n".join(lines)


def create_analyst_prompt(
    user_message: str,
    schemas: List[SourceSchema],
    history: Optional[List[Any]] = None,
    supports_clarification: bool = True
) -> str:
    """
    Create the schema-grounded analyst prompt.

    Args:
        user_message: User's current message
        schemas: Sources available to this turn
        history: Earlier messages of the conversation, oldest first
        supports_clarification: Whether the provider may ask clarification questions

    Returns:
        Complete prompt string
    """
    sections = [ANALYST_ROLE_PROMPT]
    if history:
        sections.append(format_history(history) + "\n")
    sections.append(f"User Current Message: {user_message}\n")
    sections.append("Available Data Sources:")
    sections.extend(format_schema_for_prompt(schema) + "\n" for schema in schemas)
    sections.append(ANALYST_DECISION_PROMPT)
    if not supports_clarification:
        sections.append(ANALYST_CLARIFICATION_DISABLED)
    sections.append(ANALYST_RESPONSE_FORMAT_PROMPT)
    sections.append(ANALYST_EXAMPLE_PROMPT)
    return "\n".join(sections)
