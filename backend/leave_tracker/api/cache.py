# ruff: noqa: B008
from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Query

from leave_tracker.api.deps import AdminDep, ServicesDep
from leave_tracker.schemas.cache import CacheClearResponse, CacheStatsResponse

cache_router = APIRouter(prefix="/cache", tags=["cache"])


@cache_router.get("/stats", response_model=CacheStatsResponse)
async def cache_stats(services: ServicesDep, _admin: AdminDep) -> CacheStatsResponse:
    """Cache hit/miss/eviction counters (admin only)."""
    return services.cache_stats()


@cache_router.delete("", response_model=CacheClearResponse)
async def clear_cache(
    services: ServicesDep,
    _admin: AdminDep,
    scope: Literal["all", "balances", "calendar"] = Query(default="all"),
) -> CacheClearResponse:
    """Drop cached balances, calendars or everything (admin only)."""
    return services.clear_cache(scope)
