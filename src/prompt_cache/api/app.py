import logging
from typing import Annotated, Any

from fastapi import FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware

from prompt_cache.api.dependencies import HandlerDep, lifespan
from prompt_cache.config import settings
from prompt_cache.dto import (
    CacheStatsResponse,
    CleanupRequest,
    CleanupResponse,
    HealthCheckResponse,
    InvalidateRequest,
    InvalidateResponse,
    InvalidationStatsResponse,
    PerformanceMetricsResponse,
    PromptLookupResponse,
    PromptStoreResponse,
    ResolvePromptRequest,
    ResolvePromptResponse,
    StorePromptRequest,
    TopEntriesResponse,
    UsageStatsResponse,
)
from prompt_cache.entities import LanguageCode

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

app = FastAPI(
    title="Prompt Cache API",
    description="Affinity-aware system prompt cache for character chat",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,  # type: ignore[arg-type]
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root() -> dict[str, Any]:
    """Root endpoint with API information."""
    return {
        "name": "Prompt Cache API",
        "version": "0.1.0",
        "description": "Affinity-aware system prompt cache for character chat",
        "endpoints": {
            "prompts": "/prompts",
            "stats": "/stats",
            "health": "/health",
            "docs": "/docs",
        },
    }


@app.get("/health", response_model=HealthCheckResponse)
async def health(handler: HandlerDep) -> HealthCheckResponse:
    """Health check endpoint."""
    return await handler.health_check()


@app.get("/prompts", response_model=PromptLookupResponse)
async def lookup_prompt(
    handler: HandlerDep,
    user_id: Annotated[str, Query(min_length=1)],
    character_id: Annotated[str, Query(min_length=1)],
    affinity_level: Annotated[int, Query(ge=0, le=100)],
    language_code: LanguageCode = LanguageCode.JA,
) -> PromptLookupResponse:
    """
    Serve a cached prompt for the current affinity level.

    Entries within the affinity tolerance window match; a hit counts as one use.
    """
    return await handler.lookup_prompt(user_id, character_id, affinity_level, language_code)


@app.put("/prompts", response_model=PromptStoreResponse)
async def store_prompt(request: StorePromptRequest, handler: HandlerDep) -> PromptStoreResponse:
    """
    Store a freshly generated prompt.

    An existing entry with the exact same user, character, level and
    language is overwritten ("folded") instead of duplicated.
    """
    return await handler.store_prompt(request)


@app.post("/prompts/resolve", response_model=ResolvePromptResponse)
async def resolve_prompt(request: ResolvePromptRequest, handler: HandlerDep) -> ResolvePromptResponse:
    """Serve from the cache or generate, store and return a new prompt."""
    return await handler.resolve_prompt(request)


@app.post("/prompts/invalidate", response_model=InvalidateResponse)
async def invalidate(request: InvalidateRequest, handler: HandlerDep) -> InvalidateResponse:
    """Delete all entries built from a superseded character version."""
    return await handler.invalidate(request)


@app.delete("/prompts/characters/{character_id}", response_model=InvalidateResponse)
async def invalidate_character(character_id: str, handler: HandlerDep) -> InvalidateResponse:
    """Delete all entries of a character regardless of version."""
    return await handler.invalidate_character(character_id)


@app.post("/prompts/cleanup", response_model=CleanupResponse)
async def cleanup(handler: HandlerDep, request: CleanupRequest | None = None) -> CleanupResponse:
    """Prune idle, expired and never-reused entries."""
    return await handler.cleanup(request or CleanupRequest())


@app.get("/stats", response_model=CacheStatsResponse)
async def get_stats(handler: HandlerDep) -> CacheStatsResponse:
    """Get store statistics."""
    return await handler.get_stats()


@app.get("/stats/usage", response_model=UsageStatsResponse)
async def usage_stats(
    handler: HandlerDep,
    days: Annotated[int, Query(ge=1)] = 30,
) -> UsageStatsResponse:
    """Per-character usage over a trailing window."""
    return await handler.usage_stats(days)


@app.get("/stats/top", response_model=TopEntriesResponse)
async def top_entries(
    handler: HandlerDep,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
) -> TopEntriesResponse:
    """Most used live entries."""
    return await handler.top_entries(limit)


@app.get("/stats/invalidations", response_model=InvalidationStatsResponse)
async def invalidation_stats(
    handler: HandlerDep,
    days: Annotated[int, Query(ge=1)] = 30,
) -> InvalidationStatsResponse:
    """Expired and low-usage counts over a trailing window."""
    return await handler.invalidation_stats(days)


@app.get("/stats/performance", response_model=PerformanceMetricsResponse)
async def performance_metrics(
    handler: HandlerDep,
    days: Annotated[int, Query(ge=1)] = 30,
) -> PerformanceMetricsResponse:
    """Hits, generation time, memory and efficiency of recently used entries."""
    return await handler.performance_metrics(days)

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "prompt_cache.api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
    )
