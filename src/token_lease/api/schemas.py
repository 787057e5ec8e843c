"""
token_lease.api.schemas

Response models for the public HTTP API.

Responsibilities:
- Keep the camelCase wire shape existing clients depend on.
- Render timestamps as ISO-8601 UTC with millisecond precision.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

MODE = "fresh-tokens-only"


def iso_z(dt: datetime) -> str:
    return dt.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HealthResponse(ApiModel):
    status: Literal["healthy"] = "healthy"
    timestamp: str
    stored_tokens: int
    mode: str = MODE
    token_lifespan_ms: int
    token_lifespan_minutes: str
    version: str


class TokenIssuedResponse(ApiModel):
    success: bool = True
    client_id: str
    token_id: str
    token: str
    expires_at: str
    created_at: str
    cached: bool = False


class ScopedTokenIssuedResponse(TokenIssuedResponse):
    repositories: list[str] | Literal["all"] = "all"


class TokenStatus(ApiModel):
    token_id: str
    client_id: str
    expires_at: str
    created_at: str
    is_expired: bool
    time_until_expiry: int


class TokenListResponse(ApiModel):
    success: bool = True
    total_tokens: int
    mode: str = MODE
    tokens: list[TokenStatus]


class SweepResponse(ApiModel):
    success: bool = True
    removed: int
    revoked_count: int
    remaining: int
