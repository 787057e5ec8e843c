"""
token_lease.provider_clients.github_app

HTTP client boundary for the GitHub App installation-token API.

Responsibilities:
- Mint the app assertion (RS256 JWT) and exchange it for an installation token.
- Revoke installation tokens (best-effort, never raises).
- Report API rate-limit status using a throwaway token.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import httpx

from token_lease.auth.jwt import AppJwtConfig, issue_app_jwt
from token_lease.errors import UpstreamExchangeError
from token_lease.observability.logging import get_logger
from token_lease.settings import Settings

log = get_logger(__name__)

DEFAULT_HEADERS = {
    "Accept": "application/vnd.github.v3+json",
    "User-Agent": "token-lease-server",
}


@dataclass(frozen=True, slots=True)
class InstallationToken:
    secret: str = field(repr=False)
    provider_expires_at: datetime | None = None
    permissions: dict[str, Any] = field(default_factory=dict)
    repository_selection: str | None = None


@dataclass(frozen=True, slots=True)
class RateLimitInfo:
    core: dict[str, Any]
    integration_manifest: dict[str, Any] | None
    fetched_at: datetime


def build_http_client(
    settings: Settings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    # One pooled client per process; closed by the app lifespan.
    return httpx.AsyncClient(
        base_url=settings.github_api_url,
        headers=DEFAULT_HEADERS,
        timeout=settings.http_timeout_seconds,
        transport=transport,
    )


class GitHubAppClient:
    """
    Owns no local state beyond read-only identity material; every call is a fresh
    round-trip to the provider.
    """

    def __init__(
        self,
        *,
        settings: Settings,
        private_key: str,
        http: httpx.AsyncClient,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._settings = settings
        self._http = http
        self._clock = clock or (lambda: datetime.now(tz=UTC))
        self._jwt_cfg = AppJwtConfig(app_id=str(settings.app_id), private_key=private_key)

    def mint_assertion(self) -> str:
        return issue_app_jwt(cfg=self._jwt_cfg, now=self._clock())

    async def exchange_for_credential(
        self, scope: Sequence[str] | None = None
    ) -> InstallationToken:
        body: dict[str, Any] = {}
        if scope:
            body["repositories"] = list(scope)
            log.debug("exchange.scoped", repositories=list(scope))

        try:
            r = await self._http.post(
                f"/app/installations/{self._settings.installation_id}/access_tokens",
                headers={"Authorization": f"Bearer {self.mint_assertion()}"},
                json=body,
            )
        except httpx.HTTPError as e:
            log.error("exchange.transport_error", error=str(e))
            raise UpstreamExchangeError(f"Token exchange request failed: {e}") from e

        if r.is_error:
            payload = _safe_json(r)
            log.error("exchange.rejected", status_code=r.status_code, body=payload)
            raise UpstreamExchangeError(
                f"Token exchange rejected with status {r.status_code}",
                status_code=r.status_code,
                body=payload,
            )

        data = _safe_json(r)
        if not isinstance(data, dict) or not data.get("token"):
            raise UpstreamExchangeError(
                "Token exchange response did not include a token",
                status_code=r.status_code,
                body=data,
            )

        return InstallationToken(
            secret=str(data["token"]),
            provider_expires_at=_parse_timestamp(data.get("expires_at")),
            permissions=dict(data.get("permissions") or {}),
            repository_selection=data.get("repository_selection"),
        )

    async def revoke(self, secret: str) -> bool:
        try:
            r = await self._http.delete(
                "/installation/token",
                headers={"Authorization": f"token {secret}"},
            )
        except httpx.HTTPError as e:
            log.warning("revoke.failed", error=str(e))
            return False

        if r.is_error:
            log.warning("revoke.failed", status_code=r.status_code, body=_safe_json(r))
            return False

        log.info("token.revoked")
        return True

    async def rate_limit_snapshot(self) -> RateLimitInfo | None:
        try:
            token = await self.exchange_for_credential()
        except UpstreamExchangeError as e:
            log.error("rate_limit.failed", error=e.message)
            return None

        try:
            r = await self._http.get(
                "/rate_limit",
                headers={"Authorization": f"token {token.secret}"},
            )
            r.raise_for_status()
            resources = r.json()["resources"]
            return RateLimitInfo(
                core=dict(resources["core"]),
                integration_manifest=resources.get("integration_manifest")
                or resources.get("integration"),
                fetched_at=self._clock(),
            )
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            log.error("rate_limit.failed", error=str(e))
            return None
        finally:
            # The throwaway token must not outlive this call.
            await self.revoke(token.secret)


def _safe_json(r: httpx.Response) -> Any:
    try:
        return r.json()
    except ValueError:
        return r.text


def _parse_timestamp(raw: Any) -> datetime | None:
    if not isinstance(raw, str) or not raw:
        return None
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None


# --- Module Notes -----------------------------------------------------------
# Endpoints used:
# - POST   /app/installations/{id}/access_tokens  (Bearer <app JWT>)
# - DELETE /installation/token                    (token <installation token>)
# - GET    /rate_limit                            (token <installation token>)
