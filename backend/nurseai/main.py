from fastapi import FastAPI
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging

from nurseai.config import settings
from nurseai.database import init_db, dispose_db
from nurseai.rag.chat_client import close_shared_chat_client
from nurseai.services.app_config_service import runtime_config
from nurseai.services.scheduler import get_scheduler


# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    # Startup: schema, then late-bound configuration, then background jobs
    await init_db()
    await runtime_config.load()
    await runtime_config.start_auto_refresh()

    scheduler = get_scheduler()
    if settings.SCHEDULER_ENABLED:
        await scheduler.start()
        logger.info("Insight scheduler started")

    yield

    # Shutdown
    if scheduler.is_running:
        await scheduler.stop()
    await runtime_config.stop()
    await close_shared_chat_client()
    await dispose_db()


app = FastAPI(
    title=settings.APP_NAME,
    description="Embedding, semantic retrieval and insight generation over patient records",
    version="1.0.0",
    lifespan=lifespan,
)


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


@app.get("/ready")
async def readiness_check():
    if not runtime_config.is_ready:
        return JSONResponse(status_code=503, content={"status": "starting"})

    config = runtime_config.current
    return {
        "status": "ready",
        "embedding_model": config.embedding_model,
        "embedding_dimensions": config.embedding_dimensions,
        "insight_generation_enabled": config.insight_generation_enabled,
    }
