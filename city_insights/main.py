"""
FastAPI application entry point for the City Insights API.

This module configures logging and CORS, registers the insight router, and
starts the ASGI server when run directly. The application holds no state of
its own: every request runs the pure insight pipeline.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from city_insights.api.insights import router as insights_router
from city_insights.core.config import get_settings

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Lifespan context manager for FastAPI application startup and shutdown events.
    """
    logger.info(
        f"{settings.app_name} starting (rule pipeline {settings.rule_pipeline_version}, "
        f"fallback {settings.fallback_pipeline_version})"
    )
    yield
    logger.info(f"{settings.app_name} shutting down")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description=(
        "Explainable city scoring and rule-based city insights with "
        "graceful degradation for partial, suspicious, or unavailable data."
    ),
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(insights_router)  # Has its own /insights prefix


@app.get("/health")
async def health_check():
    """
    Health check endpoint for monitoring and load balancer probes.

    Returns:
        Dict with status 'healthy'
    """
    return {"status": "healthy"}


@app.get("/")
async def root():
    """
    Root endpoint providing API information.

    Returns:
        Dict with API name, version and pipeline versions
    """
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "pipelineVersion": settings.rule_pipeline_version,
        "fallbackPipelineVersion": settings.fallback_pipeline_version,
        "docs": "/docs",
        "openapi": "/openapi.json",
    }


# Run with uvicorn when executed directly
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "city_insights.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
