"""
token_lease.api.routers.rate_limit

GitHub API rate-limit status endpoint.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from token_lease.api.deps import lifecycle_dep
from token_lease.api.schemas import iso_z
from token_lease.services.lifecycle import TokenLifecycleService

router = APIRouter(tags=["rate-limit"])


@router.get("/rate-limit")
async def rate_limit(
    lifecycle: TokenLifecycleService = Depends(lifecycle_dep),
) -> dict[str, Any]:
    # Uses a throwaway token that is revoked before this returns; never tracked.
    info = await lifecycle.rate_limit()
    if info is None:
        return {"success": False, "message": "Rate limit status unavailable"}
    return {
        "success": True,
        "rateLimit": {
            "core": info.core,
            "integrationManifest": info.integration_manifest,
            "timestamp": iso_z(info.fetched_at),
        },
    }
