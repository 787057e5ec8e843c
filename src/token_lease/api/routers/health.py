"""
token_lease.api.routers.health

Liveness endpoint.

Responsibilities:
- Report process health plus a summary of tracked tokens and the configured lifespan.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from token_lease import __version__
from token_lease.api.deps import lifecycle_dep, settings_dep
from token_lease.api.schemas import HealthResponse, iso_z
from token_lease.services.lifecycle import TokenLifecycleService
from token_lease.settings import Settings

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(
    settings: Settings = Depends(settings_dep),
    lifecycle: TokenLifecycleService = Depends(lifecycle_dep),
) -> HealthResponse:
    return HealthResponse(
        timestamp=iso_z(lifecycle.now()),
        stored_tokens=lifecycle.registry.size,
        token_lifespan_ms=settings.token_lifespan,
        token_lifespan_minutes=f"{settings.token_lifespan / 60_000:.1f}",
        version=__version__,
    )
