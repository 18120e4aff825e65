import logging
from typing import Literal

from fastapi import APIRouter
from pydantic import BaseModel

from leave_tracker.api.deps import ServicesDep
from leave_tracker.exceptions import InfrastructureError
from leave_tracker.schemas.cache import CacheStatsResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: Literal["ok", "degraded"]
    version: str
    environment: str
    persistence: Literal["memory", "sql"]
    coverage_check: bool
    cache: CacheStatsResponse


@router.get("/health", response_model=HealthResponse)
async def health(services: ServicesDep) -> HealthResponse:
    """Liveness plus a persistence round trip; a failed ping reports degraded, not an error."""
    settings = services.settings
    status: Literal["ok", "degraded"] = "ok"
    try:
        await services.repository.ping()
    except InfrastructureError as exc:
        logger.warning("Health check: %s backend unreachable (%s)", settings.persistence_backend, exc.message)
        status = "degraded"

    return HealthResponse(
        status=status,
        version=settings.app_version,
        environment=settings.environment,
        persistence=settings.persistence_backend,
        coverage_check=settings.require_coverage_check,
        cache=services.cache_stats(),
    )
