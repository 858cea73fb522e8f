"""
CODETIME — REST API.

FastAPI server exposing heartbeat ingestion and summaries. The
aggregation scheduler runs inside the app lifespan.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from codetime import __version__, config
from codetime.engine import CodetimeEngine
from codetime.exceptions import (
    InvalidHeartbeatError,
    InvalidRuleError,
    RegenerationError,
    StoreError,
    UserNotFound,
)
from codetime.models import HealthResponse
from codetime.routes import heartbeats as heartbeats_router
from codetime.routes import settings as settings_router
from codetime.routes import summary as summary_router

logger = logging.getLogger("uvicorn.error")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the engine, back-fill custom languages and start the scheduler."""
    db_path = config.DB_PATH  # Read at runtime, not import time
    logger.info("Starting lifespan with DB_PATH: %s", db_path)
    engine = CodetimeEngine(db_path)
    await engine.init_db()
    await engine.backfill_custom_languages()
    if config.RUN_SCHEDULER:
        engine.scheduler.start()

    app.state.engine = engine
    try:
        yield
    finally:
        await engine.close()
        app.state.engine = None


app = FastAPI(
    title="CODETIME — Coding Time API",
    description="Heartbeat ingestion and coding time summaries.",
    version=__version__,
    lifespan=lifespan,
)


# ─── Exception Handlers ──────────────────────────────────────────────


@app.exception_handler(InvalidRuleError)
@app.exception_handler(InvalidHeartbeatError)
async def invalid_input_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(UserNotFound)
async def not_found_handler(request: Request, exc: UserNotFound) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(RegenerationError)
async def regeneration_error_handler(request: Request, exc: RegenerationError) -> JSONResponse:
    logger.error("Regeneration failed: %s", exc)
    return JSONResponse(status_code=500, content={"detail": str(exc)})


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    logger.error("Database error: %s", exc)
    return JSONResponse(status_code=500, content={"detail": "Internal database error"})


# ─── Routes ──────────────────────────────────────────────────────────


@app.get("/health", tags=["health"], response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Simple status check for load balancers."""
    engine: CodetimeEngine = request.app.state.engine
    return HealthResponse(
        status="healthy",
        version=__version__,
        scheduler=engine.scheduler.state.value if engine.scheduler.running else "stopped",
    )


app.include_router(heartbeats_router.router)
app.include_router(summary_router.router)
app.include_router(settings_router.router)
