"""
token_lease.registry.models

Registry domain models.

Responsibilities:
- Define the immutable `CredentialRecord` stored per issued installation token.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True, slots=True)
class CredentialRecord:
    """
    One issued installation token.

    `expires_at` is our local deadline (issued_at + configured lifespan), not the
    provider's. "Expired" is computed on demand; nothing flips a stored flag.
    """

    id: str
    sequence: int
    owner: str
    secret: str = field(repr=False)
    issued_at: datetime
    expires_at: datetime
    scope: tuple[str, ...] | None = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at < now


# --- Module Notes -----------------------------------------------------------
# Records are frozen: the registry replaces nothing in place, it only inserts and deletes.
