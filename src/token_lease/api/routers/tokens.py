"""
token_lease.api.routers.tokens

Token issuance, listing, and deletion endpoints.

Responsibilities:
- Issue a fresh installation token per request (optionally repository-scoped).
- Enumerate tracked tokens with computed staleness.
- Delete by token id, fall back to client id, or clear everything; trigger a sweep.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse
from starlette.status import HTTP_400_BAD_REQUEST, HTTP_500_INTERNAL_SERVER_ERROR

from token_lease.api.deps import lifecycle_dep
from token_lease.api.schemas import (
    ScopedTokenIssuedResponse,
    SweepResponse,
    TokenIssuedResponse,
    TokenListResponse,
    TokenStatus,
    iso_z,
)
from token_lease.errors import ScopeValidationError, UpstreamExchangeError
from token_lease.observability.logging import get_logger
from token_lease.registry.models import CredentialRecord
from token_lease.services.lifecycle import TokenLifecycleService

log = get_logger(__name__)

router = APIRouter(tags=["tokens"])

DEFAULT_CLIENT_ID = "default"


def parse_repositories(body: Any) -> list[str] | None:
    if not isinstance(body, dict):
        return None
    repositories = body.get("repositories")
    if repositories is None:
        return None
    if not isinstance(repositories, list) or not all(isinstance(r, str) for r in repositories):
        raise ScopeValidationError("repositories must be an array of strings")
    return repositories


def _issued(record: CredentialRecord) -> dict[str, Any]:
    return {
        "client_id": record.owner,
        "token_id": record.id,
        "token": record.secret,
        "expires_at": iso_z(record.expires_at),
        "created_at": iso_z(record.issued_at),
    }


def _exchange_failed(e: UpstreamExchangeError) -> JSONResponse:
    return JSONResponse(
        status_code=HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "error": "Failed to generate token", "message": e.message},
    )


async def _issue_unscoped(lifecycle: TokenLifecycleService, client_id: str) -> Any:
    try:
        record = await lifecycle.issue(client_id)
    except UpstreamExchangeError as e:
        log.error("token.issue_failed", client_id=client_id, error=e.message, status=e.status_code)
        return _exchange_failed(e)
    return TokenIssuedResponse(**_issued(record))


async def _issue_scoped(lifecycle: TokenLifecycleService, client_id: str, body: Any) -> Any:
    # Validation happens before any upstream call.
    try:
        repositories = parse_repositories(body)
    except ScopeValidationError as e:
        return JSONResponse(
            status_code=HTTP_400_BAD_REQUEST,
            content={
                "success": False,
                "error": "Invalid repositories parameter",
                "message": str(e),
            },
        )

    try:
        record = await lifecycle.issue(client_id, repositories)
    except UpstreamExchangeError as e:
        log.error(
            "token.issue_failed",
            client_id=client_id,
            repositories=repositories,
            error=e.message,
            status=e.status_code,
        )
        return _exchange_failed(e)
    return ScopedTokenIssuedResponse(
        **_issued(record),
        repositories=repositories if repositories is not None else "all",
    )


# The bare routes always issue for the default client; only the path segment names one.
@router.get("/token", response_model=TokenIssuedResponse)
async def get_default_token(
    lifecycle: TokenLifecycleService = Depends(lifecycle_dep),
) -> Any:
    return await _issue_unscoped(lifecycle, DEFAULT_CLIENT_ID)


@router.get("/token/{client_id}", response_model=TokenIssuedResponse)
async def get_token(
    client_id: str,
    lifecycle: TokenLifecycleService = Depends(lifecycle_dep),
) -> Any:
    return await _issue_unscoped(lifecycle, client_id)


@router.post("/token", response_model=ScopedTokenIssuedResponse)
async def post_default_token(
    body: Any = Body(default=None),
    lifecycle: TokenLifecycleService = Depends(lifecycle_dep),
) -> Any:
    return await _issue_scoped(lifecycle, DEFAULT_CLIENT_ID, body)


@router.post("/token/{client_id}", response_model=ScopedTokenIssuedResponse)
async def post_token(
    client_id: str,
    body: Any = Body(default=None),
    lifecycle: TokenLifecycleService = Depends(lifecycle_dep),
) -> Any:
    return await _issue_scoped(lifecycle, client_id, body)


@router.get("/tokens", response_model=TokenListResponse)
async def list_tokens(
    lifecycle: TokenLifecycleService = Depends(lifecycle_dep),
) -> TokenListResponse:
    views = lifecycle.list()
    return TokenListResponse(
        total_tokens=len(views),
        tokens=[
            TokenStatus(
                token_id=v.id,
                client_id=v.owner,
                expires_at=iso_z(v.expires_at),
                created_at=iso_z(v.issued_at),
                is_expired=v.is_stale,
                time_until_expiry=v.time_remaining // timedelta(milliseconds=1),
            )
            for v in views
        ],
    )


@router.post("/tokens/sweep", response_model=SweepResponse)
async def sweep_tokens(
    lifecycle: TokenLifecycleService = Depends(lifecycle_dep),
) -> SweepResponse:
    outcome = await lifecycle.sweep()
    return SweepResponse(
        removed=outcome.removed_count,
        revoked_count=outcome.revoked_count,
        remaining=lifecycle.registry.size,
    )


@router.delete("/tokens/{identifier}")
async def delete_tokens(
    identifier: str,
    lifecycle: TokenLifecycleService = Depends(lifecycle_dep),
) -> dict[str, Any]:
    # Token id first; anything else is treated as a client id.
    deleted = await lifecycle.delete_by_id(identifier)
    if deleted.found and deleted.record is not None:
        suffix = " and revoked" if deleted.revoked else " (revocation failed)"
        return {
            "success": True,
            "message": f"Token {identifier} deleted{suffix}",
            "tokenId": identifier,
            "clientId": deleted.record.owner,
            "revoked": deleted.revoked,
        }

    outcome = await lifecycle.delete_by_owner(identifier)
    if outcome.count:
        return {
            "success": True,
            "message": (
                f"Deleted {outcome.count} tokens for client: {identifier} "
                f"({outcome.revoked_count} revoked)"
            ),
            "clientId": identifier,
            "deletedTokens": outcome.removed_ids,
            "revokedCount": outcome.revoked_count,
        }

    return {"success": False, "message": f"No tokens found for identifier: {identifier}"}


@router.delete("/tokens")
async def clear_tokens(
    lifecycle: TokenLifecycleService = Depends(lifecycle_dep),
) -> dict[str, Any]:
    outcome = await lifecycle.clear_all()
    return {
        "success": True,
        "message": (
            f"Cleared {outcome.count} tokens from storage ({outcome.revoked_count} revoked)"
        ),
        "cleared": outcome.count,
        "revokedCount": outcome.revoked_count,
    }


# --- Module Notes -----------------------------------------------------------
# "Nothing found" on delete is a normal outcome (HTTP 200, success=false), never an error.
