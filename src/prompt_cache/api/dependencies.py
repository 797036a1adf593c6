"""Dependency injection configuration for FastAPI app.

Uses FastAPI's app.state pattern for storing service instances.

Pattern:
    - Services stored in app.state during lifespan
    - Dependency functions retrieve from request.app.state
    - Clean separation, no global mutable state
"""

import logging
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, Request

from prompt_cache.config import settings
from prompt_cache.handlers import PromptCacheHandler
from prompt_cache.repositories import HttpPromptGenerator, build_repository
from prompt_cache.services import (
    AnalyticsService,
    CleanupScheduler,
    EvictionService,
    PromptCacheService,
    PromptResolver,
)

logger = logging.getLogger(__name__)


def get_cache_service(request: Request) -> PromptCacheService:
    """Dependency injection for PromptCacheService from app.state.

    Raises:
        RuntimeError: If service is not initialized
    """
    service = getattr(request.app.state, "cache_service", None)
    if service is None:
        raise RuntimeError("PromptCacheService not initialized. Check lifespan setup.")
    return service


def get_handler(request: Request) -> PromptCacheHandler:
    """Dependency injection for PromptCacheHandler from app.state.

    Raises:
        RuntimeError: If handler is not initialized
    """
    handler = getattr(request.app.state, "cache_handler", None)
    if handler is None:
        raise RuntimeError("PromptCacheHandler not initialized. Check lifespan setup.")
    return handler


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for FastAPI app.

    Initializes all layers. The repository, cache service, handler and
    scheduler are kept in app.state:
    1. Repository (data access), chosen by PROMPT_CACHE_BACKEND
    2. Services (lookup/write, eviction, analytics, optional resolver)
    3. Handler (HTTP endpoints)
    4. Cleanup scheduler, unless PROMPT_CACHE_CLEANUP_INTERVAL is 0

    Cleanup:
        Stops the scheduler, closes the generator client and removes
        everything from app.state on shutdown
    """
    repository = build_repository()

    cache_service = PromptCacheService.create(repository=repository)
    eviction_service = EvictionService(repository)
    analytics_service = AnalyticsService(repository)

    generator = HttpPromptGenerator.create() if settings.generator_url else None
    resolver = PromptResolver(cache_service, generator) if generator else None

    cache_handler = PromptCacheHandler(
        cache_service=cache_service,
        eviction_service=eviction_service,
        analytics_service=analytics_service,
        resolver=resolver,
    )

    scheduler = None
    if settings.cleanup_interval > 0:
        scheduler = CleanupScheduler(eviction_service, interval_seconds=settings.cleanup_interval)
        scheduler.start()

    # Store in app.state (FastAPI pattern)
    app.state.repository = repository
    app.state.cache_service = cache_service
    app.state.cache_handler = cache_handler
    app.state.cleanup_scheduler = scheduler

    logger.info(
        "Prompt cache initialized (backend=%s, tolerance=+-%d, generator=%s)",
        settings.cache_backend,
        cache_service.affinity_tolerance,
        generator.base_url if generator else "none",
    )
    if not cache_service.is_healthy():
        logger.warning("Prompt cache store is not reachable at startup")

    yield

    if scheduler is not None:
        await scheduler.stop()
    if generator is not None:
        await generator.close()

    del app.state.cache_handler
    del app.state.cache_service
    del app.state.repository
    del app.state.cleanup_scheduler
    logger.info("Prompt cache shut down")


# Type aliases for cleaner dependency injection
HandlerDep = Annotated[PromptCacheHandler, Depends(get_handler)]
ServiceDep = Annotated[PromptCacheService, Depends(get_cache_service)]
