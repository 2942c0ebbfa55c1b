"""
Main FastAPI application for the news ingestion service.
"""
from contextlib import asynccontextmanager

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from newsroom import __version__
from newsroom.api.routes import router, set_refresh_job
from newsroom.config import get_settings
from newsroom.core.logging import configure_logging
from newsroom.jobs.refresh import NewsRefreshJob
from newsroom.models.database import Database

settings = get_settings()
configure_logging(settings.log_level, json=settings.log_json)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager - handles startup and shutdown."""
    settings = get_settings()

    logger.info("Initializing database", url=settings.database_url)
    database = Database(settings.database_url, echo=settings.debug)

    refresh_job = NewsRefreshJob(database, settings=settings)
    await refresh_job.initialize()
    set_refresh_job(refresh_job)

    scheduler = AsyncIOScheduler()
    if settings.auto_refresh_enabled:
        scheduler.add_job(
            run_auto_refresh,
            IntervalTrigger(minutes=settings.auto_refresh_minutes),
            args=[refresh_job],
            id="auto_refresh",
            name="Auto News Refresh",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        scheduler.start()
        logger.info(
            "Scheduler started",
            every_minutes=settings.auto_refresh_minutes,
            categories=settings.auto_refresh_categories,
        )

    yield

    logger.info("Shutting down")
    if scheduler.running:
        scheduler.shutdown(wait=False)
    set_refresh_job(None)
    await refresh_job.close()
    await database.dispose()


async def run_auto_refresh(job: NewsRefreshJob):
    """Scheduled entry point; failures are logged, the next tick retries."""
    try:
        await job.auto_refresh()
    except Exception as e:
        logger.error("Auto refresh failed", error=str(e))


app = FastAPI(
    title=settings.app_name,
    description="Multi-source news ingestion, deduplication and scoring.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router, prefix="/api/v1")


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "newsroom-ingest",
        "version": __version__,
    }


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "name": settings.app_name,
        "version": __version__,
        "docs": "/docs",
        "endpoints": {
            "ingest": "/api/v1/ingest",
            "purge_and_refresh": "/api/v1/maintenance/purge-and-refresh",
            "logs": "/api/v1/logs",
        },
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "newsroom.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
