"""
tests.test_api

HTTP surface: issuance, listing, deletion fallbacks, sweep, and rate-limit status.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta

import httpx
import pytest

from token_lease.api.app import create_app


@asynccontextmanager
async def api_client(settings, github_stub, clock) -> AsyncIterator[httpx.AsyncClient]:
    app = create_app(
        settings=settings,
        upstream_transport=httpx.MockTransport(github_stub),
        clock=clock,
    )
    async with app.router.lifespan_context(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            yield client


@pytest.mark.asyncio
async def test_get_token_issues_fresh_token_for_default_client(
    settings, github_stub, clock
) -> None:
    async with api_client(settings, github_stub, clock) as client:
        first = await client.get("/token")
        second = await client.get("/token")

    assert first.status_code == 200
    body = first.json()
    assert body["success"] is True
    assert body["clientId"] == "default"
    assert body["token"] == "ghs_stub_1"
    assert body["cached"] is False
    assert body["createdAt"] == "2025-06-01T12:00:00.000Z"
    assert body["expiresAt"] == "2025-06-01T12:05:00.000Z"
    assert "repositories" not in body

    assert second.json()["token"] == "ghs_stub_2"
    assert second.json()["tokenId"] != body["tokenId"]
    assert len(github_stub.calls("POST", "/access_tokens")) == 2


@pytest.mark.asyncio
async def test_get_token_upstream_failure_returns_500(settings, github_stub, clock) -> None:
    github_stub.exchange_status = 404

    async with api_client(settings, github_stub, clock) as client:
        r = await client.get("/token/app1")
        listed = await client.get("/tokens")

    assert r.status_code == 500
    assert r.json()["success"] is False
    assert r.json()["error"] == "Failed to generate token"
    assert "404" in r.json()["message"]
    assert listed.json()["totalTokens"] == 0


@pytest.mark.asyncio
async def test_post_token_with_repositories(settings, github_stub, clock) -> None:
    async with api_client(settings, github_stub, clock) as client:
        scoped = await client.post("/token/app1", json={"repositories": ["repo-a", "repo-b"]})
        unscoped = await client.post("/token/app1", json={})

    assert scoped.status_code == 200
    assert scoped.json()["clientId"] == "app1"
    assert scoped.json()["repositories"] == ["repo-a", "repo-b"]
    assert unscoped.json()["repositories"] == "all"

    scoped_req, unscoped_req = github_stub.calls("POST", "/access_tokens")
    assert b"repo-a" in scoped_req.content
    assert b"repositories" not in unscoped_req.content


@pytest.mark.asyncio
@pytest.mark.parametrize("repositories", ["repo-a", ["repo-a", 7], {"name": "repo-a"}])
async def test_post_token_rejects_malformed_repositories(
    settings, github_stub, clock, repositories
) -> None:
    async with api_client(settings, github_stub, clock) as client:
        r = await client.post("/token/app1", json={"repositories": repositories})

    assert r.status_code == 400
    assert r.json() == {
        "success": False,
        "error": "Invalid repositories parameter",
        "message": "repositories must be an array of strings",
    }
    assert github_stub.requests == []


@pytest.mark.asyncio
async def test_list_tokens_reports_expiry(settings, github_stub, clock) -> None:
    async with api_client(settings, github_stub, clock) as client:
        await client.get("/token/app1")
        clock.advance(minutes=4)
        await client.get("/token/app2")
        clock.advance(minutes=2)
        r = await client.get("/tokens")

    body = r.json()
    assert body["success"] is True
    assert body["totalTokens"] == 2
    by_client = {t["clientId"]: t for t in body["tokens"]}
    assert by_client["app1"]["isExpired"] is True
    assert by_client["app1"]["timeUntilExpiry"] == 0
    assert by_client["app2"]["isExpired"] is False
    assert by_client["app2"]["timeUntilExpiry"] == 180_000
    assert "token" not in by_client["app2"]


@pytest.mark.asyncio
async def test_delete_by_token_id(settings, github_stub, clock) -> None:
    async with api_client(settings, github_stub, clock) as client:
        token_id = (await client.get("/token/app1")).json()["tokenId"]
        r = await client.delete(f"/tokens/{token_id}")
        health = await client.get("/health")

    assert r.json() == {
        "success": True,
        "message": f"Token {token_id} deleted and revoked",
        "tokenId": token_id,
        "clientId": "app1",
        "revoked": True,
    }
    assert health.json()["storedTokens"] == 0


@pytest.mark.asyncio
async def test_delete_by_token_id_when_revocation_fails(settings, github_stub, clock) -> None:
    github_stub.revoke_status = 500

    async with api_client(settings, github_stub, clock) as client:
        token_id = (await client.get("/token/app1")).json()["tokenId"]
        r = await client.delete(f"/tokens/{token_id}")
        listed = await client.get("/tokens")

    assert r.status_code == 200
    assert r.json()["revoked"] is False
    assert r.json()["message"].endswith("(revocation failed)")
    assert listed.json()["totalTokens"] == 0


@pytest.mark.asyncio
async def test_delete_falls_back_to_client_id(settings, github_stub, clock) -> None:
    async with api_client(settings, github_stub, clock) as client:
        a1 = (await client.get("/token/app1")).json()["tokenId"]
        a2 = (await client.get("/token/app1")).json()["tokenId"]
        await client.get("/token/app2")
        r = await client.delete("/tokens/app1")
        listed = await client.get("/tokens")

    body = r.json()
    assert body["success"] is True
    assert body["clientId"] == "app1"
    assert sorted(body["deletedTokens"]) == sorted([a1, a2])
    assert body["revokedCount"] == 2
    assert body["message"] == "Deleted 2 tokens for client: app1 (2 revoked)"
    assert [t["clientId"] for t in listed.json()["tokens"]] == ["app2"]


@pytest.mark.asyncio
async def test_delete_unknown_identifier_is_not_an_http_error(
    settings, github_stub, clock
) -> None:
    async with api_client(settings, github_stub, clock) as client:
        r = await client.delete("/tokens/nobody")

    assert r.status_code == 200
    assert r.json() == {"success": False, "message": "No tokens found for identifier: nobody"}


@pytest.mark.asyncio
async def test_clear_all(settings, github_stub, clock) -> None:
    async with api_client(settings, github_stub, clock) as client:
        empty = await client.delete("/tokens")
        assert github_stub.calls("DELETE", "/installation/token") == []

        await client.get("/token/app1")
        await client.get("/token/app2")
        r = await client.delete("/tokens")

    assert empty.json()["cleared"] == 0
    assert r.json() == {
        "success": True,
        "message": "Cleared 2 tokens from storage (2 revoked)",
        "cleared": 2,
        "revokedCount": 2,
    }


@pytest.mark.asyncio
async def test_sweep_endpoint(settings, github_stub, clock) -> None:
    async with api_client(settings, github_stub, clock) as client:
        await client.get("/token/app1")
        clock.advance(minutes=4)
        await client.get("/token/app2")
        clock.now += timedelta(minutes=2)
        first = await client.post("/tokens/sweep")
        second = await client.post("/tokens/sweep")

    assert first.json() == {"success": True, "removed": 1, "revokedCount": 1, "remaining": 1}
    assert second.json() == {"success": True, "removed": 0, "revokedCount": 0, "remaining": 1}


@pytest.mark.asyncio
async def test_rate_limit(settings, github_stub, clock) -> None:
    async with api_client(settings, github_stub, clock) as client:
        ok = await client.get("/rate-limit")
        github_stub.exchange_status = 401
        unavailable = await client.get("/rate-limit")
        health = await client.get("/health")

    body = ok.json()
    assert body["success"] is True
    assert body["rateLimit"]["core"]["remaining"] == 4990
    assert body["rateLimit"]["timestamp"] == "2025-06-01T12:00:00.000Z"
    assert unavailable.json()["success"] is False
    # Throwaway tokens are never tracked.
    assert health.json()["storedTokens"] == 0


@pytest.mark.asyncio
async def test_cors_preflight(settings, github_stub, clock) -> None:
    async with api_client(settings, github_stub, clock) as client:
        r = await client.options(
            "/tokens",
            headers={
                "Origin": "http://example.com",
                "Access-Control-Request-Method": "DELETE",
            },
        )

    assert r.status_code == 200
    assert r.headers["access-control-allow-origin"] == "*"


@pytest.mark.asyncio
async def test_list_tokens_reports_exact_milliseconds(settings, github_stub, clock) -> None:
    async with api_client(settings, github_stub, clock) as client:
        await client.get("/token/app1")
        clock.advance(milliseconds=123_457, microseconds=400)
        r = await client.get("/tokens")

    (token,) = r.json()["tokens"]
    assert token["timeUntilExpiry"] == 300_000 - 123_457 - 1


@pytest.mark.asyncio
async def test_health_timestamp_uses_service_clock(settings, github_stub, clock) -> None:
    async with api_client(settings, github_stub, clock) as client:
        clock.advance(seconds=90)
        r = await client.get("/health")

    assert r.json()["timestamp"] == "2025-06-01T12:01:30.000Z"


@pytest.mark.asyncio
async def test_bare_token_route_ignores_client_id_query(settings, github_stub, clock) -> None:
    async with api_client(settings, github_stub, clock) as client:
        got = await client.get("/token", params={"client_id": "intruder"})
        posted = await client.post("/token", params={"client_id": "intruder"}, json={})
        listed = await client.get("/tokens")

    assert got.json()["clientId"] == "default"
    assert posted.json()["clientId"] == "default"
    assert {t["clientId"] for t in listed.json()["tokens"]} == {"default"}


@pytest.mark.asyncio
async def test_dashboard_lists_tracked_tokens(settings, github_stub, clock) -> None:
    async with api_client(settings, github_stub, clock) as client:
        stale_id = (await client.get("/token/app1")).json()["tokenId"]
        clock.advance(minutes=6)
        fresh_id = (await client.get("/token/app2")).json()["tokenId"]
        r = await client.get("/dashboard")
        health = await client.get("/health")

    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/html")
    page = r.text
    assert stale_id in page
    assert fresh_id in page
    assert "app1" in page and "app2" in page
    assert "Expired" in page and "Active" in page
    assert "300s" in page
    assert 'class="badge bg-success">4990/5000' in page
    assert "Token Lifespan: 5.0 minutes" in page
    # Secrets are never rendered.
    assert "ghs_stub_" not in page
    # The rate-limit lookup's throwaway token is revoked and never tracked.
    assert health.json()["storedTokens"] == 2


@pytest.mark.asyncio
async def test_dashboard_escapes_client_ids_and_survives_rate_limit_outage(
    settings, github_stub, clock
) -> None:
    async with api_client(settings, github_stub, clock) as client:
        await client.get("/token/<i>app")
        github_stub.rate_limit_status = 500
        r = await client.get("/dashboard")

    assert r.status_code == 200
    assert "&lt;i&gt;app" in r.text
    assert "<i>app" not in r.text
    assert "rate limit unavailable" in r.text
