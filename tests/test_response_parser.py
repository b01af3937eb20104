"""
Unit tests for AI response parsing
"""

import json

import pytest

from datanexus.datasources.requests import MongoQuery, SqlQuery
from datanexus.providers.response_parser import (
    ERROR_PREFIX,
    AIResponse,
    AIResponseParseError,
    extract_json_text,
    parse_ai_response,
    parse_or_error,
    summarize_requests,
)


READY = {
    "type": "READY_TO_EXECUTE",
    "content": "Counting users",
    "intent": "count users",
    "dataRequests": [
        {"requestType": "SQL_QUERY", "sourceId": "1", "sql": "SELECT id FROM users", "step": 1, "outputAs": "$ids"},
        {"requestType": "MONGO_QUERY", "sourceId": "2", "collection": "events", "operation": "count",
         "filter": {"user_id": {"$in": "$ids"}}, "step": 2, "dependsOn": 1},
    ],
}


class TestExtractJsonText:
    """Test cases for extract_json_text"""

    def test_fenced(self):
        """Test that markdown fences are removed"""
        assert extract_json_text('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_surrounding_prose(self):
        """Test that text around the object is dropped"""
        assert extract_json_text('Sure! {"a": {"b": 2}} Hope this helps') == '{"a": {"b": 2}}'

    @pytest.mark.parametrize("text", [None, "", "   "])
    def test_blank(self, text):
        """Test that blank input becomes an empty object"""
        assert extract_json_text(text) == "{}"


class TestParseAIResponse:
    """Test cases for parse_ai_response"""

    def test_ready_to_execute(self):
        """Test decoding of chained data requests"""
        response = parse_ai_response(json.dumps(READY))

        assert response.type == "READY_TO_EXECUTE"
        assert isinstance(response.dataRequests[0], SqlQuery)
        assert isinstance(response.dataRequests[1], MongoQuery)
        assert response.dataRequests[1].dependsOn == 1
        assert summarize_requests(response) == {"SQL_QUERY": 1, "MONGO_QUERY": 1}

    def test_clarification(self):
        """Test that clarification fields are kept"""
        response = parse_ai_response(json.dumps({
            "type": "CLARIFICATION_NEEDED",
            "content": "",
            "clarificationQuestion": "Which region?",
            "suggestedOptions": ["EU", "US"],
        }))

        assert response.clarificationQuestion == "Which region?"
        assert response.suggestedOptions == ["EU", "US"]
        assert response.dataRequests == []

    def test_inactive_fields_dropped(self):
        """Test that a direct answer carries no requests or options"""
        response = parse_ai_response(json.dumps({
            "type": "DIRECT_ANSWER",
            "content": "Hello",
            "suggestedOptions": ["x"],
            "dataRequests": [{"requestType": "SQL_QUERY", "sql": "SELECT 1"}],
        }))

        assert response.content == "Hello"
        assert response.suggestedOptions == []
        assert response.dataRequests == []

    @pytest.mark.parametrize("text", [
        '{"type": "READY"}',
        '{"content": "no type"}',
        "[1, 2]",
        '{"type": "DIRECT_ANSWER", "content": ',
    ])
    def test_invalid_shapes(self, text):
        """Test that unknown types and malformed JSON raise"""
        with pytest.raises(AIResponseParseError):
            parse_ai_response(text)

    def test_unknown_request_type(self):
        """Test that an unknown requestType is a hard error"""
        payload = {"type": "READY_TO_EXECUTE", "dataRequests": [{"requestType": "GRAPHQL", "query": "{}"}]}

        with pytest.raises(AIResponseParseError) as exc:
            parse_ai_response(json.dumps(payload))

        assert "Unknown requestType 'GRAPHQL'" in str(exc.value)

    def test_invalid_request_fields(self):
        """Test that a variant missing required fields is a hard error"""
        payload = {"type": "READY_TO_EXECUTE", "dataRequests": [{"requestType": "SQL_QUERY"}]}

        with pytest.raises(AIResponseParseError):
            parse_ai_response(json.dumps(payload))


class TestParseOrError:
    """Test cases for parse_or_error"""

    def test_error_becomes_direct_answer(self):
        """Test that parse failures are surfaced as DIRECT_ANSWER errors"""
        response = parse_or_error("not json at all", "gemini")

        assert response.type == "DIRECT_ANSWER"
        assert response.is_error
        assert response.content.startswith(ERROR_PREFIX)

    def test_failure_factory(self):
        """Test the explanatory error response"""
        response = AIResponse.failure("quota exceeded")

        assert response.content == ERROR_PREFIX + "quota exceeded"
        assert response.error == "quota exceeded"


if __name__ == "__main__":
    pytest.main([__file__])
