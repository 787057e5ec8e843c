"""
token_lease.registry.credentials

Thread-safe in-memory store of issued installation tokens.

Responsibilities:
- Assign monotonically increasing, never-reused token ids.
- Serve point lookups, per-owner lookups, and expiry snapshots.
- Make every mutation atomic with respect to concurrent readers.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable
from datetime import UTC, datetime, timedelta

from token_lease.registry.models import CredentialRecord

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


class CredentialRegistry:
    """
    Keyed by token id; insertion order is preserved (dict semantics) for listing.

    All access goes through a single lock so a reader never observes a half-applied
    insert or clear, even if the service is ever driven from multiple threads.
    """

    def __init__(self, *, clock: Clock = utc_now) -> None:
        self._clock = clock
        self._records: dict[str, CredentialRecord] = {}
        self._counter = 0
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def insert(
        self,
        *,
        owner: str,
        secret: str,
        ttl: timedelta,
        scope: Iterable[str] | None = None,
    ) -> CredentialRecord:
        if ttl <= timedelta(0):
            raise ValueError("ttl must be a positive duration")

        with self._lock:
            self._counter += 1
            issued_at = self._clock()
            record = CredentialRecord(
                id=f"token_{self._counter}_{int(issued_at.timestamp() * 1000)}",
                sequence=self._counter,
                owner=owner,
                secret=secret,
                issued_at=issued_at,
                expires_at=issued_at + ttl,
                scope=tuple(scope) if scope is not None else None,
            )
            self._records[record.id] = record
            return record

    def delete_by_id(self, token_id: str) -> bool:
        with self._lock:
            return self._records.pop(token_id, None) is not None

    def delete_by_owner(self, owner: str) -> list[CredentialRecord]:
        with self._lock:
            removed = [r for r in self._records.values() if r.owner == owner]
            for record in removed:
                del self._records[record.id]
            return removed

    def clear(self) -> list[CredentialRecord]:
        with self._lock:
            removed = list(self._records.values())
            self._records.clear()
            return removed

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, token_id: str) -> CredentialRecord | None:
        with self._lock:
            return self._records.get(token_id)

    def has(self, token_id: str) -> bool:
        with self._lock:
            return token_id in self._records

    def list_all(self) -> list[CredentialRecord]:
        with self._lock:
            return list(self._records.values())

    def list_by_owner(self, owner: str) -> list[CredentialRecord]:
        with self._lock:
            return [r for r in self._records.values() if r.owner == owner]

    def expired_snapshot(self, now: datetime | None = None) -> list[CredentialRecord]:
        now = now or self._clock()
        with self._lock:
            return [r for r in self._records.values() if r.is_expired(now)]

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._records)

    def __len__(self) -> int:
        return self.size


# --- Module Notes -----------------------------------------------------------
# The lifecycle service is the only writer. It decides *when* to delete (explicit
# request, clear-all, or sweep); this module only decides *how* atomically.
