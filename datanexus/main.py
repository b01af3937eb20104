"""Main FastAPI application for DataNexus"""
import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI

from .config import settings
from .models import AnalyzeRequest, AnalyzeResponse, HealthCheckResponse
from .providers.factory import get_provider_factory
from .services.conversation_state import ConversationStateManager, get_conversation_manager
from .services.redis_publisher import get_publisher
from .workflow.orchestrator import get_orchestrator

# Set up logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def sweep_stale_conversations(manager: ConversationStateManager, interval_seconds: float):
    """Evict idle conversation states every interval until cancelled"""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            manager.cleanup_stale()
        except Exception as e:
            logger.error(f"Conversation sweep failed: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run the conversation sweep; close the activity publisher on shutdown"""
    logger.info(f"Starting {settings.SERVICE_NAME}")
    sweeper = asyncio.create_task(
        sweep_stale_conversations(get_conversation_manager(), settings.CONVERSATION_SWEEP_INTERVAL_SECONDS)
    )
    yield
    logger.info("Shutting down services...")
    sweeper.cancel()
    try:
        await sweeper
    except asyncio.CancelledError:
        pass
    publisher = await get_publisher()
    await publisher.close()


# Create FastAPI app
app = FastAPI(
    lifespan=lifespan,
    title=settings.SERVICE_NAME,
    description="Conversational analytics over relational, document, search and MCP data sources",
    version="1.0.0"
)


@app.get("/health", response_model=HealthCheckResponse)
async def health_check():
    """
    Health check endpoint.

    Returns service health, configured AI providers and dependency status.
    """
    dependencies = {}

    publisher = await get_publisher()
    dependencies["redis"] = "healthy" if await publisher.ping() else "unhealthy"

    providers = get_provider_factory().available_providers()
    dependencies["ai_provider"] = "healthy" if providers else "unhealthy"

    # Heuristic planning keeps the service usable without AI providers
    status = "healthy" if all(v == "healthy" for v in dependencies.values()) else "degraded"

    return HealthCheckResponse(
        status=status,
        service=settings.SERVICE_NAME,
        timestamp=datetime.utcnow(),
        providers=providers,
        dependencies=dependencies
    )


@app.post("/analyze", response_model=AnalyzeResponse)
async def analyze(request: AnalyzeRequest):
    """
    Process one user message.

    Progress is published on the conversation's activity channel while the
    turn runs; the final response is both published and returned.
    """
    return await get_orchestrator().analyze(request)



if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "datanexus.main:app",
        host=settings.SERVICE_HOST,
        port=settings.SERVICE_PORT,
        reload=True
    )
