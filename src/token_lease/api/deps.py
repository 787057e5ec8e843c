"""
token_lease.api.deps

FastAPI dependency wiring for the API layer.

Responsibilities:
- Provide dependency functions for settings and the lifecycle service.
- Encapsulate app.state access patterns.
"""

from __future__ import annotations

from fastapi import Request

from token_lease.services.lifecycle import TokenLifecycleService
from token_lease.settings import Settings


def settings_dep(request: Request) -> Settings:
    # Settings are pinned on app.state by `create_app` so tests can inject their own.
    return request.app.state.settings  # type: ignore[attr-defined]


def lifecycle_dep(request: Request) -> TokenLifecycleService:
    # Created by the app lifespan in `token_lease.api.app.create_app`.
    return request.app.state.lifecycle  # type: ignore[attr-defined]
