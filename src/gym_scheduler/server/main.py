"""
Gym scheduler FastAPI server main entrypoint.
Handles CORS, error handling, health checks and API routers.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import UTC, datetime

import psutil
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import SETTINGS
from ..db import close_db, init_db
from ..errors import SchedulerError
from ..logging_setup import setup_logging
from .routes.default_schedule import router as r_default_schedule
from .routes.schedule import router as r_schedule
from .routes.workout import router as r_workout


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    setup_logging()
    try:
        await init_db()
        logging.info("Database initialized")
        logging.info("FastAPI server startup completed")
    except Exception as e:
        logging.exception("FastAPI startup failed: %s", e)
        raise

    yield

    # Shutdown
    try:
        await close_db()
        logging.info("FastAPI server shutdown completed")
    except Exception as e:
        logging.exception("FastAPI shutdown failed: %s", e)


app = FastAPI(
    title="Gym Scheduler API",
    description="Class booking, capacity and lifting program API",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(SETTINGS.CORS_ORIGINS),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SchedulerError)
async def scheduler_exc_handler(request: Request, exc: SchedulerError) -> JSONResponse:
    """
    Expected failures: render the stable error code and message.
    """
    if exc.status_code >= 500:
        logging.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logging.info(
            "%s %s rejected (%s): %s", request.method, request.url.path, exc.code, exc.message
        )
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


@app.exception_handler(Exception)
async def global_exc_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Global exception handler: log and return a generic error response.
    """
    logging.exception("Unhandled error in %s: %s", request.url, exc)
    return JSONResponse(
        {"ok": False, "error": "internal_error", "message": "Internal server error"},
        status_code=500,
    )


@app.get("/healthz")
async def healthz() -> dict:
    """
    Health check endpoint with system status.
    """
    try:
        memory = psutil.virtual_memory()
        cpu_percent = psutil.cpu_percent(interval=0.1)

        is_healthy = memory.percent < 90 and cpu_percent < 95

        return {
            "ok": is_healthy,
            "status": "healthy" if is_healthy else "degraded",
            "timestamp": datetime.now(UTC).isoformat(),
            "system": {
                "memory_percent": round(memory.percent, 1),
                "memory_available_mb": round(memory.available / 1024 / 1024, 1),
                "cpu_percent": round(cpu_percent, 1),
            },
        }

    except Exception as e:
        logging.exception("Health check failed: %s", e)
        return {
            "ok": False,
            "status": "error",
            "timestamp": datetime.now(UTC).isoformat(),
            "error": str(e),
        }


@app.get("/")
async def root() -> dict:
    """
    Root endpoint with API information.
    """
    return {
        "ok": True,
        "name": "Gym Scheduler API",
        "version": __version__,
        "description": "Class booking and lifting program tracker",
    }


# Routers for API endpoints
app.include_router(r_schedule, prefix="/api/v1", tags=["schedule"])
app.include_router(r_workout, prefix="/api/v1", tags=["workout"])
app.include_router(r_default_schedule, prefix="/api/v1", tags=["default-schedules"])
