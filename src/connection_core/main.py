# src/connection_core/main.py
"""Main entry point for the Connection Core application."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from connection_core import __version__
from connection_core.api.v1 import communities_router, events_router, notifications_router
from connection_core.core.settings import settings
from connection_core.jobs.scheduler import JobScheduler
from connection_core.services.push import get_push_client

logger = logging.getLogger(__name__)

DESCRIPTION = "Community membership, events and notification delivery API"

# Initialize FastAPI app
app = FastAPI(
    title=settings.app_name,
    description=DESCRIPTION,
    version=__version__,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(communities_router, prefix="/api/v1")
app.include_router(events_router, prefix="/api/v1")
app.include_router(notifications_router, prefix="/api/v1")


@app.on_event("startup")
async def on_startup() -> None:
    if settings.scheduler_enabled:
        scheduler = JobScheduler(push_client=get_push_client())
        await scheduler.start()
        app.state.scheduler = scheduler
    else:
        logger.info("Job scheduler disabled")
        app.state.scheduler = None


@app.on_event("shutdown")
async def on_shutdown() -> None:
    scheduler: JobScheduler | None = getattr(app.state, "scheduler", None)
    if scheduler:
        await scheduler.stop()
    await get_push_client().close()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": __version__,
        "description": DESCRIPTION,
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("connection_core.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
