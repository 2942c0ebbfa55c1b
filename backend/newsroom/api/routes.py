"""
FastAPI routes for ingestion and maintenance.
"""

from typing import Annotated, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator

from newsroom.core.categories import CATEGORIES
from newsroom.core.errors import PersistenceError
from newsroom.jobs.refresh import SUPERSEDED_MESSAGE, NewsRefreshJob
from newsroom.models.domain import FetchLogEntry, IngestResult, PurgeAndRefreshResult

logger = structlog.get_logger(__name__)
router = APIRouter()

_refresh_job: Optional[NewsRefreshJob] = None


def set_refresh_job(job: Optional[NewsRefreshJob]):
    global _refresh_job
    _refresh_job = job


def get_refresh_job() -> NewsRefreshJob:
    """Dependency returning the job built at startup."""
    if _refresh_job is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Ingestion is not initialized",
        )
    return _refresh_job


JobDep = Annotated[NewsRefreshJob, Depends(get_refresh_job)]


# ============================================================================
# Request models
# ============================================================================


class IngestRequest(BaseModel):
    category: str = "general"
    limit: Optional[int] = Field(default=None, ge=1, le=500)
    force_refresh: bool = False

    @field_validator("category")
    @classmethod
    def validate_category(cls, v: str) -> str:
        value = v.strip().lower()
        if value not in CATEGORIES:
            raise ValueError(f"Unknown category: {v}. Valid: {', '.join(CATEGORIES)}")
        return value


class PurgeAndRefreshRequest(BaseModel):
    max_age_hours: Optional[float] = Field(default=None, gt=0)
    wipe_all: bool = False


# ============================================================================
# Ingestion Routes
# ============================================================================


@router.post("/ingest", response_model=IngestResult)
async def ingest(request: IngestRequest, job: JobDep):
    """
    Ingest one category across every configured source.

    Sources are tried in priority order until the limit is stored or all
    sources have been called. Per-source outcomes are returned in ``logs``.
    """
    logger.info("Ingest requested", category=request.category, limit=request.limit)
    return await job.ingest(request.category, request.limit, request.force_refresh)


@router.post("/maintenance/purge-and-refresh", response_model=PurgeAndRefreshResult)
async def purge_and_refresh(job: JobDep, request: Optional[PurgeAndRefreshRequest] = None):
    """
    Purge stale articles and refill the store.

    Returns 500 when the purge step fails, 409 when a newer refresh
    superseded this one.
    """
    request = request or PurgeAndRefreshRequest()
    logger.info("Purge and refresh requested", max_age_hours=request.max_age_hours, wipe_all=request.wipe_all)

    result = await job.purge_and_refresh(request.max_age_hours, request.wipe_all)
    if not result.success:
        code = (
            status.HTTP_409_CONFLICT
            if result.error == SUPERSEDED_MESSAGE
            else status.HTTP_500_INTERNAL_SERVER_ERROR
        )
        return JSONResponse(status_code=code, content=result.model_dump(mode="json"))
    return result


@router.get("/logs", response_model=list[FetchLogEntry])
async def recent_logs(job: JobDep, limit: int = Query(default=50, ge=1, le=500)):
    """Most recent fetch log entries, newest first."""
    try:
        return await job.recent_logs(limit)
    except PersistenceError as e:
        logger.error("Log read failed", error=str(e))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
