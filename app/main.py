"""
Main FastAPI application.

Forest monitoring backend: news and satellite alert ingestion, AI photo
verification of planted trees, and the read endpoints the dashboard uses.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import get_settings
from app.core.database import create_tables, get_session_factory
from app.core.store import ForestStore
from app.api.v1 import alerts, functions, incidents, news, trees
from app.jobs.scheduler import get_scheduler, start_scheduler, stop_scheduler

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def seed_state_stats():
    """Give every state its forest_stats row and recorded cover figures."""
    db = get_session_factory()()
    try:
        created = ForestStore(db).seed_state_stats()
        logger.info(f"State statistics ready ({created} rows created)")
    except Exception as e:
        logger.error(f"Failed to seed state statistics: {e}")
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Runs on startup and shutdown.
    """
    # Startup
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level)
    logger.info("Starting Forest Watch Ingestion Service")
    logger.info(f"Log level: {settings.log_level}")
    logger.info(f"AI classification: {'enabled' if settings.ai_classification_enabled else 'keyword rules'}")

    try:
        create_tables()
    except Exception as e:
        logger.error(f"Failed to create tables: {e}")
        raise

    seed_state_stats()

    if settings.enable_scheduler:
        start_scheduler(settings)

    yield

    # Shutdown
    if settings.enable_scheduler:
        stop_scheduler()
    logger.info("Shutting down")


# Create FastAPI app
app = FastAPI(
    title="Forest Watch Ingestion Service",
    description="News and satellite alert ingestion with AI tree photo verification",
    version="0.1.0",
    lifespan=lifespan
)

# The dashboard is served from a different origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(functions.router, prefix="/api/v1")
app.include_router(news.router, prefix="/api/v1")
app.include_router(alerts.router, prefix="/api/v1")
app.include_router(trees.router, prefix="/api/v1")
app.include_router(incidents.router, prefix="/api/v1")


@app.get("/")
def root():
    """Root endpoint with service info."""
    return {
        "service": "Forest Watch Ingestion Service",
        "version": "0.1.0",
        "sources": ["newsdata", "gfw", "nasa_firms"],
        "scheduler_enabled": get_settings().enable_scheduler,
        "docs": "/docs"
    }


@app.get("/health")
def health_check():
    """
    Health check endpoint.

    Reports database connectivity and whether the ingestion scheduler is
    running in this process.
    """
    from app.core.database import get_engine
    from sqlalchemy import text

    health_status = {
        "status": "healthy",
        "database": "unknown",
        "scheduler": "running" if get_scheduler().running else "stopped",
    }

    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        health_status["database"] = "connected"
    except Exception as e:
        health_status["status"] = "degraded"
        health_status["database"] = f"error: {str(e)}"
        logger.warning(f"Database health check failed: {e}")

    return health_status
