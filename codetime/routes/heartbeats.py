"""
CODETIME — Heartbeat Router.
"""

from typing import Any

from fastapi import APIRouter, Body, Depends, Header

from codetime.api_deps import get_engine
from codetime.engine import CodetimeEngine
from codetime.models import HeartbeatBatchResponse, HeartbeatRequest

router = APIRouter(tags=["heartbeats"])


@router.post("/v1/users/{user}/heartbeats", status_code=201, response_model=HeartbeatBatchResponse)
async def record_heartbeats(
    user: str,
    heartbeats: list[dict[str, Any]] = Body(...),
    user_agent: str | None = Header(None),
    engine: CodetimeEngine = Depends(get_engine),
) -> HeartbeatBatchResponse:
    """Record a batch of heartbeats. Invalid entries are rejected one by one."""
    result = await engine.ingest(user, heartbeats, user_agent=user_agent)
    return HeartbeatBatchResponse(
        accepted=result.accepted,
        inserted=result.inserted,
        rejected=result.rejected,
        errors=result.errors,
    )


@router.post("/v1/users/{user}/heartbeat", status_code=201, response_model=HeartbeatBatchResponse)
async def record_heartbeat(
    user: str,
    req: HeartbeatRequest,
    user_agent: str | None = Header(None),
    engine: CodetimeEngine = Depends(get_engine),
) -> HeartbeatBatchResponse:
    """Record a single heartbeat."""
    result = await engine.ingest(user, [req.model_dump()], user_agent=user_agent)
    return HeartbeatBatchResponse(
        accepted=result.accepted,
        inserted=result.inserted,
        rejected=result.rejected,
        errors=result.errors,
    )
