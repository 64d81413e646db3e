"""
Main FastAPI application for DevInsight.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from devinsight.config import settings
from devinsight.api.routes import router
from devinsight.utils.log_config import configure_logging


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan – startup and shutdown hooks."""
    configure_logging(settings)
    logger.info("🚀 Starting DevInsight API  env={}", settings.environment)
    if not settings.llm_enabled:
        logger.warning("🤖 No Anthropic API key configured - readiness uses heuristic fallback")

    yield

    logger.info("🛑 Shutting down DevInsight API")


app = FastAPI(
    title="DevInsight API",
    description="Repository quality and readiness analysis",
    version="1.0.0",
    lifespan=lifespan,
    debug=settings.debug,
    docs_url="/docs" if not settings.is_production else None,
    redoc_url="/redoc" if not settings.is_production else None,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.is_development else settings.effective_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes
app.include_router(router, prefix="/api/v1")


@app.get("/", tags=["meta"])
async def root() -> dict:
    return {"name": "DevInsight API", "version": "1.0.0", "status": "running",
            "environment": settings.environment}


@app.get("/health", tags=["meta"])
async def health_check() -> dict:
    return {"status": "healthy", "environment": settings.environment,
            "llm_enabled": settings.llm_enabled}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "devinsight.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
        workers=1 if settings.api_reload else settings.api_workers,
    )
