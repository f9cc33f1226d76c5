"""
FastAPI server for health endpoints and monitoring.

Provides:
- Health check endpoint
- Catalog stats endpoint
- Latest run endpoint
- On-demand ingestion trigger
"""

from datetime import datetime, timezone
from typing import Optional
from contextlib import asynccontextmanager

from fastapi import FastAPI, BackgroundTasks
from pydantic import BaseModel

from .config import get_settings
from .logging_conf import get_logger, setup_logging
from .db import get_database
from .main import get_runner
from .scheduler import IngestionScheduler

logger = get_logger(__name__)


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    ingestion_running: bool
    version: str = "1.0.0"


class StatsResponse(BaseModel):
    total_sources: int
    total_articles: int
    total_runs: int
    successful_runs: int


class IngestResponse(BaseModel):
    status: str
    message: str


# Global scheduler instance
scheduler: Optional[IngestionScheduler] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    global scheduler

    settings = get_settings()

    setup_logging(
        level=settings.log_level,
        json_output=settings.log_json,
    )

    logger.info("server_starting")

    get_database()

    if settings.enable_scheduler:
        scheduler = IngestionScheduler()
        scheduler.start()
        logger.info("scheduler_enabled")

    yield

    if scheduler:
        scheduler.stop()
        scheduler = None

    logger.info("server_stopped")


app = FastAPI(
    title="News Ingest",
    description="Monitoring and control for the news ingestion pipeline",
    version="1.0.0",
    lifespan=lifespan,
)


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(
        status="ok",
        timestamp=datetime.now(timezone.utc).isoformat(),
        ingestion_running=get_runner().is_running,
    )


@app.get("/stats", response_model=StatsResponse)
async def get_stats():
    """Get catalog statistics."""
    db = get_database()
    session = db.get_session()

    try:
        return StatsResponse(**db.get_stats(session))
    finally:
        session.close()


@app.get("/runs/latest")
async def latest_run():
    """Most recent ingestion run, if any."""
    db = get_database()
    session = db.get_session()

    try:
        run = db.get_latest_run(session)
        if run is None:
            return {"run": None}
        return {
            "run": {
                "run_id": run.run_id,
                "status": run.status,
                "started_at": run.started_at.isoformat() if run.started_at else None,
                "completed_at": run.completed_at.isoformat() if run.completed_at else None,
                "sources_total": run.sources_total,
                "sources_failed": run.sources_failed,
                "articles_created": run.articles_created,
                "articles_updated": run.articles_updated,
                "entries_dropped": run.entries_dropped,
                "entries_failed": run.entries_failed,
                "error_message": run.error_message,
            }
        }
    finally:
        session.close()


@app.post("/ingest", response_model=IngestResponse)
async def trigger_ingestion(background_tasks: BackgroundTasks):
    """Trigger an ingestion cycle unless one is already running."""
    runner = get_runner()
    if runner.is_running:
        return IngestResponse(status="already_running", message="An ingestion run is in progress")

    async def run_in_background():
        report = await runner.run()
        if report is not None:
            logger.info("manual_run_completed", run_id=report.run_id, status=report.status)

    background_tasks.add_task(run_in_background)

    return IngestResponse(status="started", message="Ingestion started in background")


@app.get("/scheduler")
async def scheduler_status():
    """Get scheduler status."""
    if scheduler is None:
        return {"enabled": False, "next_run": None}

    next_run = scheduler.get_next_run()

    return {
        "enabled": True,
        "next_run": next_run.isoformat() if next_run else None,
    }


def run_server(
    host: str = "0.0.0.0",
    port: Optional[int] = None,
    with_scheduler: bool = False,
):
    """
    Run the FastAPI server.

    Args:
        host: Host to bind to
        port: Port to bind to (defaults to settings.port)
        with_scheduler: Whether to enable the scheduler
    """
    import os
    import uvicorn

    if with_scheduler:
        # Settings are cached; set the env var and drop the cache
        os.environ["ENABLE_SCHEDULER"] = "true"
        get_settings.cache_clear()

    port = port or get_settings().port

    logger.info("starting_server", host=host, port=port)

    uvicorn.run(
        app,
        host=host,
        port=port,
        log_level="info",
    )
