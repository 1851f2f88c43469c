import asyncio
import logging
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI

from weekmenu.api.routes import get_registry, router
from weekmenu.core.config import settings

logger = logging.getLogger(__name__)

async def sweep_alarms(interval_seconds: int):
    """Periodically expire weeks whose retention period has passed."""
    registry = get_registry()
    while True:
        try:
            registry.run_due_alarms()
        except Exception:
            logger.exception("Alarm sweep failed")
        await asyncio.sleep(interval_seconds)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.
    Initialize resources on startup, cleanup on shutdown.
    """
    # Startup
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Initializing Weekly Menu Service (store dir %s)", get_registry().store_dir)
    sweeper = asyncio.create_task(sweep_alarms(settings.ALARM_SWEEP_SECONDS))

    yield

    # Shutdown
    logger.info("Shutting down Weekly Menu Service...")
    sweeper.cancel()
    with suppress(asyncio.CancelledError):
        await sweeper

app = FastAPI(
    title="Weekly Menu Service",
    description="API for querying the weekly cafeteria menu by date, meal and dietary label",
    version="1.0.0",
    lifespan=lifespan
)

# Include API routes
app.include_router(router)

@app.get("/")
async def root():
    """Root endpoint with basic info"""
    return {
        "service": "Weekly Menu Service",
        "version": "1.0.0",
        "endpoints": {
            "query": "GET /menu/query/{location}/{date}?meal=lunch",
            "search": "GET /menu/search/{location}?q=soup&dietary=Vegan",
            "week": "GET /menu/{week_key}",
            "ingest": "POST /ingest",
            "health": "GET /health"
        }
    }
