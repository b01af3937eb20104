"""
Unit tests for the HTTP endpoints
"""

import asyncio

import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, Mock, patch

from datanexus.config import settings
from datanexus.main import app, lifespan, sweep_stale_conversations
from datanexus.models import AnalyzeResponse


class TestHealthEndpoint:
    """Test cases for GET /health"""

    def setup_method(self):
        self.client = TestClient(app)
        self.publisher = AsyncMock()
        self.factory = Mock()

    def get_health(self):
        with patch("datanexus.main.get_publisher", new=AsyncMock(return_value=self.publisher)), \
                patch("datanexus.main.get_provider_factory", return_value=self.factory):
            return self.client.get("/health")

    def test_healthy(self):
        """Test that all dependencies up means healthy"""
        self.publisher.ping.return_value = True
        self.factory.available_providers.return_value = ["claude"]

        response = self.get_health()

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["providers"] == ["claude"]
        assert body["dependencies"] == {"redis": "healthy", "ai_provider": "healthy"}

    def test_degraded_without_providers(self):
        """Test that missing AI providers degrade the service"""
        self.publisher.ping.return_value = True
        self.factory.available_providers.return_value = []

        body = self.get_health().json()

        assert body["status"] == "degraded"
        assert body["dependencies"]["ai_provider"] == "unhealthy"

    def test_degraded_without_redis(self):
        """Test that an unreachable Redis degrades the service"""
        self.publisher.ping.return_value = False
        self.factory.available_providers.return_value = ["gemini"]

        body = self.get_health().json()

        assert body["status"] == "degraded"
        assert body["dependencies"]["redis"] == "unhealthy"


class TestAnalyzeEndpoint:
    """Test cases for POST /analyze"""

    def test_analyze(self):
        """Test that the orchestrator's response is returned"""
        orchestrator = Mock()
        orchestrator.analyze = AsyncMock(return_value=AnalyzeResponse.direct_answer("c1", "Hello!"))
        client = TestClient(app)

        with patch("datanexus.main.get_orchestrator", return_value=orchestrator):
            response = client.post("/analyze", json={"userMessage": "hi", "conversationId": "c1"})

        assert response.status_code == 200
        assert response.json()["summary"] == "Hello!"
        request = orchestrator.analyze.await_args.args[0]
        assert request.userMessage == "hi"

    def test_invalid_body(self):
        """Test that a missing message is rejected"""
        client = TestClient(app)

        response = client.post("/analyze", json={"connectionIds": ["db1"]})

        assert response.status_code == 422

class TestConversationSweep:
    """Test cases for the idle conversation sweep"""

    @pytest.mark.asyncio
    async def test_sweep_runs_until_cancelled(self):
        """Test that the sweep keeps running after a failing pass"""
        manager = Mock()
        passes = []

        def cleanup_stale():
            passes.append(1)
            if len(passes) == 1:
                raise RuntimeError("store busy")
            return 0

        manager.cleanup_stale.side_effect = cleanup_stale

        task = asyncio.create_task(sweep_stale_conversations(manager, 0.001))
        await asyncio.sleep(0.05)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert manager.cleanup_stale.call_count >= 2

    @pytest.mark.asyncio
    async def test_lifespan_schedules_and_stops_sweep(self):
        """Test that the app lifespan owns the sweep task"""
        manager = Mock()
        manager.cleanup_stale.return_value = 0
        publisher = AsyncMock()

        with patch("datanexus.main.get_conversation_manager", return_value=manager), \
                patch("datanexus.main.get_publisher", new=AsyncMock(return_value=publisher)), \
                patch.object(settings, "CONVERSATION_SWEEP_INTERVAL_SECONDS", 0.001):
            async with lifespan(app):
                await asyncio.sleep(0.05)
                assert manager.cleanup_stale.called

        calls = manager.cleanup_stale.call_count
        await asyncio.sleep(0.02)
        assert manager.cleanup_stale.call_count == calls
        publisher.close.assert_awaited_once()



if __name__ == "__main__":
    pytest.main([__file__])
