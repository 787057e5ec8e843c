"""
tests.conftest

Shared fixtures: RSA key material, settings, a controllable clock, a fake provider
gateway (service-level tests), and a GitHub API stub (HTTP-level tests).
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from token_lease.errors import UpstreamExchangeError
from token_lease.provider_clients.github_app import InstallationToken, RateLimitInfo
from token_lease.settings import Settings

T0 = datetime(2025, 6, 1, 12, 0, 0, tzinfo=UTC)


@dataclass(frozen=True)
class KeyPair:
    private_pem: str
    public_pem: str


@pytest.fixture(scope="session")
def key_pair() -> KeyPair:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    public_pem = (
        key.public_key()
        .public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        .decode()
    )
    return KeyPair(private_pem=private_pem, public_pem=public_pem)


@pytest.fixture
def private_key_file(tmp_path: Path, key_pair: KeyPair) -> Path:
    path = tmp_path / "app.pem"
    path.write_text(key_pair.private_pem, encoding="utf-8")
    return path


@pytest.fixture
def settings(private_key_file: Path) -> Settings:
    return Settings(
        _env_file=None,
        env="test",
        app_id="12345",
        installation_id="67890",
        private_key_path=str(private_key_file),
        token_lifespan=300_000,
        cache_check_interval=60_000,
    )


class FakeClock:
    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


class FakeGateway:
    """In-process stand-in for `GitHubAppClient`."""

    def __init__(self) -> None:
        self.exchange_scopes: list[Sequence[str] | None] = []
        self.revoked: list[str] = []
        self.revoke_ok = True
        self.fail_exchange = False
        self.provider_expires_at: datetime | None = None

    async def exchange_for_credential(
        self, scope: Sequence[str] | None = None
    ) -> InstallationToken:
        if self.fail_exchange:
            raise UpstreamExchangeError(
                "Token exchange rejected with status 404",
                status_code=404,
                body={"message": "Not Found"},
            )
        self.exchange_scopes.append(scope)
        return InstallationToken(
            secret=f"ghs_fake_{len(self.exchange_scopes)}",
            provider_expires_at=self.provider_expires_at,
        )

    async def revoke(self, secret: str) -> bool:
        self.revoked.append(secret)
        return self.revoke_ok

    async def rate_limit_snapshot(self) -> RateLimitInfo | None:
        return None


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


class GitHubStub:
    """`httpx.MockTransport` handler emulating the GitHub App token endpoints."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.issued = 0
        self.exchange_status = 201
        self.revoke_status = 204
        self.rate_limit_status = 200

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if request.method == "POST" and path.endswith("/access_tokens"):
            if self.exchange_status >= 400:
                return httpx.Response(self.exchange_status, json={"message": "Not Found"})
            self.issued += 1
            return httpx.Response(
                self.exchange_status,
                json={
                    "token": f"ghs_stub_{self.issued}",
                    "expires_at": "2099-01-01T00:00:00Z",
                    "permissions": {"contents": "read"},
                    "repository_selection": "all",
                },
            )
        if request.method == "DELETE" and path == "/installation/token":
            return httpx.Response(self.revoke_status)
        if request.method == "GET" and path == "/rate_limit":
            if self.rate_limit_status >= 400:
                return httpx.Response(self.rate_limit_status, json={"message": "boom"})
            return httpx.Response(
                200,
                json={
                    "resources": {
                        "core": {"limit": 5000, "remaining": 4990, "reset": 1750000000},
                        "integration_manifest": {"limit": 5000, "remaining": 5000},
                    }
                },
            )
        return httpx.Response(404, json={"message": "Not Found"})

    def calls(self, method: str, suffix: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path.endswith(suffix)]


@pytest.fixture
def github_stub() -> GitHubStub:
    return GitHubStub()
