"""
token_lease.api.app

FastAPI app factory for the token lease service.

Responsibilities:
- Build the FastAPI application and register routers/middleware.
- Create and dispose shared infrastructure (httpx client, registry, sweep task).
- Provide a single composition root where cross-cutting concerns live.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from token_lease import __version__
from token_lease.api.routers.dashboard import router as dashboard_router
from token_lease.api.routers.health import router as health_router
from token_lease.api.routers.rate_limit import router as rate_limit_router
from token_lease.api.routers.tokens import router as tokens_router
from token_lease.observability.logging import configure_logging, get_logger
from token_lease.observability.middleware import RequestContextMiddleware
from token_lease.provider_clients.github_app import GitHubAppClient, build_http_client
from token_lease.registry.credentials import CredentialRegistry, utc_now
from token_lease.services.lifecycle import TokenLifecycleService
from token_lease.settings import Settings, load_private_key

log = get_logger(__name__)


def create_app(
    *,
    settings: Settings,
    upstream_transport: httpx.AsyncBaseTransport | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> FastAPI:
    configure_logging(
        service_name=settings.service_name,
        level=settings.log_level,
        renderer="console" if settings.env == "dev" else "json",
    )
    # Fail fast: ConfigurationError escapes before anything is served.
    private_key = load_private_key(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        http = build_http_client(settings, transport=upstream_transport)
        gateway = GitHubAppClient(settings=settings, private_key=private_key, http=http, clock=clock)
        lifecycle = TokenLifecycleService(
            registry=CredentialRegistry(clock=clock),
            gateway=gateway,
            lifespan=settings.lifespan,
            sweep_interval=settings.sweep_interval,
            clock=clock,
        )
        app.state.lifecycle = lifecycle
        lifecycle.start()
        log.info(
            "startup",
            app_id=settings.app_id,
            installation_id=settings.installation_id,
            mode="fresh-tokens-only",
            token_lifespan_ms=settings.token_lifespan,
            cleanup_interval_ms=settings.cache_check_interval,
        )
        try:
            yield
        finally:
            await lifecycle.stop()
            await http.aclose()
            log.info("shutdown")

    app = FastAPI(
        title="Token Lease Server",
        version=__version__,
        docs_url="/docs",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(health_router, tags=["health"])
    app.include_router(tokens_router)
    app.include_router(rate_limit_router)
    app.include_router(dashboard_router)

    return app


# --- Module Notes -----------------------------------------------------------
# This file is intentionally small: app composition stays here; lifecycle logic stays
# in `services.lifecycle`.
