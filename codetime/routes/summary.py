"""
CODETIME — Summary Router.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Query

from codetime.api_deps import get_engine
from codetime.engine import CodetimeEngine
from codetime.models import RegenerateResponse, SummaryResponse
from codetime.temporal import day_of, day_start, now_utc
from codetime.timing.models import Filters

router = APIRouter(tags=["summary"])
logger = logging.getLogger("uvicorn.error")


@router.get("/v1/users/{user}/summary", response_model=SummaryResponse)
async def get_summary(
    user: str,
    from_: datetime | None = Query(None, alias="from", description="Range start (ISO 8601)"),
    to: datetime | None = Query(None, description="Range end, exclusive (ISO 8601)"),
    project: str = Query("", max_length=255),
    language: str = Query("", max_length=255),
    editor: str = Query("", max_length=255),
    os: str = Query("", max_length=255),
    machine: str = Query("", max_length=255),
    engine: CodetimeEngine = Depends(get_engine),
) -> SummaryResponse:
    """Coding time of a user over ``[from, to)``; defaults to today so far.

    Filter parameters combine with OR.
    """
    to_time = to or now_utc()
    if from_ is None:
        tz = await engine.scheduler.zone_for(user)
        from_ = day_start(day_of(to_time, tz), tz)
    filters = None
    if any((project, language, editor, os, machine)):
        filters = Filters(project=project, language=language, editor=editor, os=os, machine=machine)
    summary = await engine.get_summary(user, from_, to_time, filters)
    return SummaryResponse.from_summary(summary)


@router.post(
    "/v1/users/{user}/summary/regenerate",
    status_code=202,
    response_model=RegenerateResponse,
)
async def regenerate_summaries(
    user: str,
    engine: CodetimeEngine = Depends(get_engine),
) -> RegenerateResponse:
    """Start rebuilding the user's persisted daily summaries."""
    engine.schedule_regeneration(user)
    logger.info("Scheduled summary regeneration for %s", user)
    return RegenerateResponse(user_id=user, status="scheduled")
