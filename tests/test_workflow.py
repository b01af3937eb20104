"""
Unit tests for the chat workflow and orchestrator
"""

import asyncio

import pytest
from unittest.mock import AsyncMock, Mock, patch

from datanexus.datasources.registry import DataSourceRegistry
from datanexus.datasources.requests import SqlQuery
from datanexus.datasources.sql_source import SqlDataSource
from datanexus.models import ActivityPhase, AnalyzeRequest, QueryResult
from datanexus.providers.factory import AIProviderFactory
from datanexus.providers.response_parser import AIResponse
from datanexus.services.conversation_state import ConversationStateManager
from datanexus.services.execution_service import UnifiedExecutionService
from datanexus.services.repositories import InMemoryConnectionRepository, InMemoryMessageRepository
from datanexus.services.schema_cache import SchemaCache
from datanexus.services.sql_engine import SqlEngineFactory
from datanexus.workflow.chat_workflow import check_for_errors, create_chat_workflow, route_after_planning
from datanexus.workflow.nodes.responder import visualization_for
from datanexus.workflow.orchestrator import ChatOrchestrator, assistant_text

NODES = "datanexus.workflow.nodes"


def ai_provider(response):
    provider = Mock()
    provider.name = "scripted"
    provider.stream_chat = AsyncMock(return_value=response)
    factory = Mock()
    factory.has_configured_provider.return_value = True
    factory.get_provider.return_value = provider
    return provider, factory


class TestRouting:
    """Test cases for workflow routing functions"""

    def test_check_for_errors(self):
        """Test error detection"""
        assert check_for_errors({"error": "boom"}) == "error"
        assert check_for_errors({}) == "continue"

    def test_route_after_planning(self):
        """Test routing on the response type"""
        ready = AIResponse(type="READY_TO_EXECUTE", dataRequests=[SqlQuery(sql="SELECT 1")])

        assert route_after_planning({"ai_response": ready}) == "execute"
        assert route_after_planning({"ai_response": AIResponse(type="READY_TO_EXECUTE")}) == "answer"
        assert route_after_planning({"ai_response": AIResponse(type="DIRECT_ANSWER")}) == "answer"
        assert route_after_planning({"ai_response": AIResponse(type="CLARIFICATION_NEEDED")}) == "clarify"
        assert route_after_planning({}) == "error"
        assert route_after_planning({"error": "x", "ai_response": ready}) == "error"

    def test_unknown_type_is_rejected(self):
        """Test that an unknown response type is never routed silently"""
        with pytest.raises(ValueError):
            route_after_planning({"ai_response": Mock(type="SOMETHING_ELSE")})

    def test_visualization_from_first_successful_result(self):
        """Test that failed results are skipped when choosing a chart"""
        state = {
            "user_message": "show total amount by status",
            "query_results": [
                QueryResult(errorMessage="boom"),
                QueryResult(data=[{"status": "new", "total": 3}, {"status": "done", "total": 5}], rowCount=2),
            ],
        }

        assert visualization_for(state) is not None
        assert visualization_for({"user_message": "x", "query_results": [QueryResult(errorMessage="boom")]}) is None


class TestChatOrchestrator:
    """Test cases for ChatOrchestrator running the real workflow"""

    @pytest.fixture
    def env(self, sqlite_connection):
        repository = InMemoryConnectionRepository([sqlite_connection])
        registry = DataSourceRegistry(connection_repository=repository)
        registry.register(SqlDataSource(sqlite_connection, engine_factory=SqlEngineFactory()))
        cache = SchemaCache(registry=registry, training_client=Mock(enabled=False))
        manager = ConversationStateManager(message_repository=InMemoryMessageRepository())
        publisher = AsyncMock()

        env = Mock()
        env.manager = manager
        env.publisher = publisher
        env.factory = AIProviderFactory(providers=[])
        env.orchestrator = ChatOrchestrator(conversation_manager=manager, workflow=create_chat_workflow())

        with patch(f"{NODES}.schema_loader.get_connection_repository", return_value=repository), \
                patch(f"{NODES}.schema_loader.get_schema_cache", return_value=cache), \
                patch(f"{NODES}.planner.get_provider_factory", side_effect=lambda: env.factory), \
                patch(f"{NODES}.planner.get_conversation_manager", return_value=manager), \
                patch(f"{NODES}.executor.get_execution_service",
                      return_value=UnifiedExecutionService(registry=registry)), \
                patch(f"{NODES}.schema_loader.publish_activity", new=AsyncMock()), \
                patch(f"{NODES}.planner.publish_activity", new=AsyncMock()), \
                patch(f"{NODES}.executor.publish_activity", new=AsyncMock()), \
                patch(f"{NODES}.responder.publish_activity", new=AsyncMock()), \
                patch("datanexus.workflow.orchestrator.get_publisher", new=AsyncMock(return_value=publisher)):
            yield env

    @staticmethod
    def request(message="list users", **kwargs):
        fields = {"connectionIds": ["db1"], "conversationId": "c1", "userId": "u1"}
        fields.update(kwargs)
        return AnalyzeRequest(userMessage=message, **fields)

    @pytest.mark.asyncio
    async def test_heuristic_turn(self, env):
        """Test a heuristic plan executed against the database"""
        response = await env.orchestrator.analyze(self.request(aiProvider="heuristic"))

        assert response.responseType == "QUERY_RESULT"
        assert response.success
        assert response.queryResults[0].connectionId == "db1"
        assert response.queryResults[0].errorMessage is None
        assert response.queryResults[0].rowCount == 2
        env.publisher.publish_response.assert_awaited_once_with("c1", response)
        history = env.manager.get_or_create("c1").conversation_history
        assert [message.role for message in history] == ["user", "assistant"]

    @pytest.mark.asyncio
    async def test_no_provider_falls_back_to_heuristics(self, env):
        """Test that an unconfigured AI provider means heuristic planning"""
        response = await env.orchestrator.analyze(self.request(aiProvider="gemini"))

        assert response.responseType == "QUERY_RESULT"

    @pytest.mark.asyncio
    async def test_no_schemas(self, env):
        """Test the error for turns without usable connections"""
        response = await env.orchestrator.analyze(self.request(connectionIds=["missing"]))

        assert response.responseType == "ERROR"
        assert response.error.code == "NO_SCHEMAS"
        assert response.error.suggestion
        phases = [call.args[1] for call in env.publisher.publish_activity.await_args_list]
        assert ActivityPhase.ERROR in phases

    @pytest.mark.asyncio
    async def test_other_users_connection(self, env):
        """Test that connections of other users are not loaded"""
        response = await env.orchestrator.analyze(self.request(userId="intruder"))

        assert response.error.code == "NO_SCHEMAS"

    @pytest.mark.asyncio
    async def test_ai_plan_executed(self, env):
        """Test executing the AI's data requests"""
        provider, env.factory = ai_provider(AIResponse(
            type="READY_TO_EXECUTE",
            content="Listing users",
            intent="list",
            dataRequests=[SqlQuery(sql="SELECT username FROM users ORDER BY id", sourceId="db1")],
        ))
        cancel = asyncio.Event()

        response = await env.orchestrator.analyze(self.request(aiProvider="scripted"), cancel_event=cancel)

        assert response.summary == "Listing users"
        assert response.queryResults[0].data == [{"username": "johndoe"}, {"username": "ann"}]
        ai_request = provider.stream_chat.await_args.args[0]
        assert ai_request.first_message is True
        assert ai_request.available_schemas[0].source_id == "db1"
        assert provider.stream_chat.await_args.kwargs["cancel_event"] is cancel

    @pytest.mark.asyncio
    async def test_clarification_and_history(self, env):
        """Test that a clarification is returned and remembered for the next turn"""
        provider, env.factory = ai_provider(AIResponse(
            type="CLARIFICATION_NEEDED",
            clarificationQuestion="Which time period?",
            suggestedOptions=["2023", "2024"],
        ))

        first = await env.orchestrator.analyze(self.request("show sales"))
        await env.orchestrator.analyze(self.request("2024"))

        assert first.responseType == "CLARIFICATION"
        assert first.suggestedOptions == ["2023", "2024"]
        second_request = provider.stream_chat.await_args.args[0]
        assert second_request.first_message is False
        assert [m.content for m in second_request.conversation_history] == ["show sales", "Which time period?"]
        assert env.manager.get_or_create("c1").context["lastResponseType"] == "CLARIFICATION_NEEDED"

    @pytest.mark.asyncio
    async def test_direct_answer(self, env):
        """Test that a direct answer touches no data source"""
        _, env.factory = ai_provider(AIResponse.direct_answer("Hello!", intent="greeting"))

        response = await env.orchestrator.analyze(self.request("hi"))

        assert response.responseType == "DIRECT_ANSWER"
        assert response.summary == "Hello!"
        assert response.queryResults == []

    @pytest.mark.asyncio
    async def test_generated_conversation_id(self, env):
        """Test that a missing conversation id is generated"""
        response = await env.orchestrator.analyze(self.request(conversationId=None, aiProvider="heuristic"))

        assert response.conversationId
        env.publisher.publish_response.assert_awaited_once_with(response.conversationId, response)

    @pytest.mark.asyncio
    async def test_workflow_failure(self, env):
        """Test that unexpected workflow errors become INTERNAL_ERROR responses"""
        workflow = Mock()
        workflow.ainvoke = AsyncMock(side_effect=RuntimeError("graph exploded"))
        orchestrator = ChatOrchestrator(conversation_manager=env.manager, workflow=workflow)

        response = await orchestrator.analyze(self.request())

        assert response.responseType == "ERROR"
        assert response.error.code == "INTERNAL_ERROR"
        assert "graph exploded" in response.error.message
        assert assistant_text(response) == response.error.message


if __name__ == "__main__":
    pytest.main([__file__])
