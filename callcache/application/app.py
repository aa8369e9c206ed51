#!/usr/bin/env python3
"""
FastAPI Application Factory

Exposes the cache admin surface for one CacheOrchestrator. The orchestrator
is built by the embedding application and passed in; nothing here creates
global cache state.

Author: System Architect
Date: 2026-03-02
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from callcache.application.api.routes.admin import router as admin_router
from callcache.core.config.settings import get_settings
from callcache.core.exceptions import CallCacheError, ConfigurationError, UnknownOperationError
from callcache.core.logging.logger import get_logger, setup_logging
from callcache.infrastructure.cache.orchestrator import CacheOrchestrator

logger = get_logger(__name__)


def create_app(orchestrator: CacheOrchestrator, manage_lifecycle: bool = True) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        orchestrator: Orchestrator served by the admin routes
        manage_lifecycle: Initialize and shut the orchestrator down with the app

    Returns:
        FastAPI: Configured application instance
    """
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(log_level=settings.logging.LOG_LEVEL, log_format=settings.logging.LOG_FORMAT)
        logger.info(
            "Starting cache admin service",
            environment=settings.app.ENVIRONMENT,
            version=settings.app.APP_VERSION,
        )
        if manage_lifecycle:
            await orchestrator.initialize()
        try:
            yield
        finally:
            if manage_lifecycle:
                await orchestrator.shutdown()
            logger.info("Cache admin service shutdown complete")

    app = FastAPI(
        title=settings.app.APP_NAME,
        version=settings.app.APP_VERSION,
        description="Multi-tier call cache admin API",
        lifespan=lifespan,
    )
    app.state.orchestrator = orchestrator
    app.include_router(admin_router)

    @app.exception_handler(CallCacheError)
    async def callcache_exception_handler(request: Request, exc: CallCacheError):
        """Handle engine exceptions."""
        logger.error(f"Cache engine exception: {exc.message}", error_type=type(exc).__name__)
        if isinstance(exc, UnknownOperationError):
            status_code = 404
        elif isinstance(exc, ConfigurationError):
            status_code = 503
        else:
            status_code = 500
        return JSONResponse(status_code=status_code, content=exc.to_dict())

    return app
