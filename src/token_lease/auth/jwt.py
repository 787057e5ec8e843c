"""
token_lease.auth.jwt

GitHub App JWT (assertion) helpers.

Responsibilities:
- Issue the RS256-signed app JWT GitHub requires before it hands out installation tokens.

Note:
- GitHub rejects app JWTs whose lifetime exceeds 10 minutes; we default to 9 to leave
  room for clock drift between us and the provider.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt

APP_JWT_TTL = timedelta(minutes=9)


@dataclass(frozen=True, slots=True)
class AppJwtConfig:
    app_id: str
    private_key: str = field(repr=False)
    alg: str = "RS256"


def issue_app_jwt(
    *,
    cfg: AppJwtConfig,
    now: datetime | None = None,
    ttl: timedelta = APP_JWT_TTL,
) -> str:
    now = now or datetime.now(tz=UTC)
    payload: dict[str, Any] = {
        "iat": int(now.timestamp()),
        "exp": int((now + ttl).timestamp()),
        "iss": cfg.app_id,
    }
    return jwt.encode(payload, cfg.private_key, algorithm=cfg.alg)


# --- Module Notes -----------------------------------------------------------
# Used only by `provider_clients.github_app`; the assertion never leaves this process
# except as the Authorization header of the access-token exchange.
