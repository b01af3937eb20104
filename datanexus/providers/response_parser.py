"""Shared parsing of AI JSON output into AIResponse objects

Every provider accumulates its streamed text and hands it here. The response
``type`` and each data request's ``requestType`` are closed sets; anything
else is a parse error rather than a silently dropped field.
"""
import json
import logging
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, ValidationError, model_validator

from ..datasources.requests import DataRequest, REQUEST_TYPES, parse_data_request

logger = logging.getLogger(__name__)

AIResponseType = Literal["CLARIFICATION_NEEDED", "READY_TO_EXECUTE", "DIRECT_ANSWER"]
RESPONSE_TYPES = ("CLARIFICATION_NEEDED", "READY_TO_EXECUTE", "DIRECT_ANSWER")

ERROR_PREFIX = "I encountered an error while processing your request: "


class AIResponseParseError(ValueError):
    """Raised for malformed JSON or an unknown discriminator value"""


class AIResponse(BaseModel):
    """Structured AI output; only the fields of the active shape are kept"""
    type: AIResponseType
    content: Optional[str] = None
    intent: Optional[str] = None
    clarificationQuestion: Optional[str] = None
    suggestedOptions: List[str] = Field(default_factory=list)
    dataRequests: List[DataRequest] = Field(default_factory=list)
    error: Optional[str] = None

    @model_validator(mode="after")
    def _drop_inactive_fields(self):
        if self.type != "CLARIFICATION_NEEDED":
            self.clarificationQuestion = None
            self.suggestedOptions = []
        if self.type != "READY_TO_EXECUTE":
            self.dataRequests = []
        return self

    @classmethod
    def direct_answer(cls, content: str, intent: Optional[str] = None) -> "AIResponse":
        return cls(type="DIRECT_ANSWER", content=content, intent=intent)

    @classmethod
    def failure(cls, message: str) -> "AIResponse":
        """DIRECT_ANSWER carrying an explanatory error"""
        return cls(type="DIRECT_ANSWER", content=f"{ERROR_PREFIX}{message}", error=message)

    @property
    def is_error(self) -> bool:
        return self.error is not None


def extract_json_text(text: Optional[str]) -> str:
    """
    Strip markdown fences and surrounding prose from AI text.

    Args:
        text: Raw accumulated AI text

    Returns:
        The JSON object text, "{}" for blank input
    """
    if text is None or not text.strip():
        return "{}"

    cleaned = text.strip()

    if cleaned.startswith("```"):
        first_newline = cleaned.find("\n")
        if first_newline > 0:
            cleaned = cleaned[first_newline + 1:]
        if cleaned.endswith("```"):
            cleaned = cleaned[:-3]
        cleaned = cleaned.strip()

    if not cleaned.startswith("{"):
        start = cleaned.find("{")
        end = cleaned.rfind("}")
        if start >= 0 and end > start:
            cleaned = cleaned[start:end + 1]

    return cleaned


def _parse_requests(entries: Any) -> List[DataRequest]:
    if entries is None:
        return []
    if not isinstance(entries, list):
        raise AIResponseParseError("'dataRequests' must be an array")

    requests: List[DataRequest] = []
    for position, entry in enumerate(entries, start=1):
        if not isinstance(entry, dict):
            raise AIResponseParseError(f"Data request {position} is not an object")
        request_type = entry.get("requestType")
        if request_type not in REQUEST_TYPES:
            raise AIResponseParseError(
                f"Unknown requestType '{request_type}' in data request {position}. "
                f"Expected one of: {', '.join(REQUEST_TYPES)}"
            )
        try:
            requests.append(parse_data_request(entry))
        except ValidationError as e:
            raise AIResponseParseError(f"Invalid {request_type} data request {position}: {e}") from e
    return requests


def parse_ai_response(text: Optional[str]) -> AIResponse:
    """
    Parse accumulated AI text into an AIResponse.

    Args:
        text: Raw AI text, possibly fenced or wrapped in prose

    Returns:
        Parsed response

    Raises:
        AIResponseParseError: Malformed JSON, unknown type or unknown requestType
    """
    cleaned = extract_json_text(text)
    try:
        payload = json.loads(cleaned)
    except ValueError as e:
        raise AIResponseParseError(f"AI response is not valid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise AIResponseParseError("AI response must be a JSON object")

    response_type = str(payload.get("type") or "").strip()
    if response_type not in RESPONSE_TYPES:
        raise AIResponseParseError(
            f"Unknown response type '{response_type}'. Expected one of: {', '.join(RESPONSE_TYPES)}"
        )

    options = payload.get("suggestedOptions") or []
    return AIResponse(
        type=response_type,
        content=_as_optional_text(payload.get("content")),
        intent=_as_optional_text(payload.get("intent")),
        clarificationQuestion=_as_optional_text(payload.get("clarificationQuestion")),
        suggestedOptions=[str(option) for option in options] if isinstance(options, list) else [],
        dataRequests=_parse_requests(payload.get("dataRequests")) if response_type == "READY_TO_EXECUTE" else [],
    )


def _as_optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def parse_or_error(text: Optional[str], provider_name: str = "AI") -> AIResponse:
    """Parse AI text; a parse failure becomes a DIRECT_ANSWER carrying the error"""
    try:
        return parse_ai_response(text)
    except AIResponseParseError as e:
        logger.error(f"Failed to parse {provider_name} response: {e}")
        return AIResponse.failure(str(e))


def summarize_requests(response: AIResponse) -> Dict[str, int]:
    """Count of data requests per requestType"""
    counts: Dict[str, int] = {}
    for request in response.dataRequests:
        counts[request.requestType] = counts.get(request.requestType, 0) + 1
    return counts
