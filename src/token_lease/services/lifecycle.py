"""
token_lease.services.lifecycle

Token lifecycle service (issuance, enumeration, revocation, expiry sweep).

Responsibilities:
- Issue a fresh installation token per request and track it in the registry.
- Retire tokens (revoke upstream, then remove locally) by id, by owner, or all at once.
- Run the periodic sweep that retires tokens past their local deadline.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Protocol

from token_lease.observability.logging import get_logger
from token_lease.provider_clients.github_app import InstallationToken, RateLimitInfo
from token_lease.registry.credentials import CredentialRegistry, utc_now
from token_lease.registry.models import CredentialRecord

log = get_logger(__name__)


class TokenGateway(Protocol):
    async def exchange_for_credential(
        self, scope: Sequence[str] | None = None
    ) -> InstallationToken: ...

    async def revoke(self, secret: str) -> bool: ...

    async def rate_limit_snapshot(self) -> RateLimitInfo | None: ...


@dataclass(frozen=True, slots=True)
class CredentialView:
    id: str
    owner: str
    issued_at: datetime
    expires_at: datetime
    is_stale: bool
    time_remaining: timedelta


@dataclass(frozen=True, slots=True)
class DeleteOutcome:
    found: bool
    revoked: bool = False
    record: CredentialRecord | None = None


@dataclass(frozen=True, slots=True)
class BulkOutcome:
    count: int = 0
    revoked_count: int = 0
    removed_ids: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class SweepOutcome:
    removed_count: int = 0
    revoked_count: int = 0


class TokenLifecycleService:
    """
    Per-token state is implicit: ISSUED -> STALE (expires_at < now, still stored)
    -> REMOVED (explicit delete, clear-all, or sweep).

    Revocation is always attempted before local removal, but a failed revocation never
    blocks or undoes the removal. The registry is authoritative for "do we still track
    this"; the provider side is eventually consistent with it.
    """

    def __init__(
        self,
        *,
        registry: CredentialRegistry,
        gateway: TokenGateway,
        lifespan: timedelta,
        sweep_interval: timedelta,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if lifespan <= timedelta(0):
            raise ValueError("lifespan must be a positive duration")
        if sweep_interval <= timedelta(0):
            raise ValueError("sweep_interval must be a positive duration")

        self._registry = registry
        self._gateway = gateway
        self._lifespan = lifespan
        self._sweep_interval = sweep_interval
        self._clock = clock

        self._retiring: set[str] = set()
        self._sweep_lock = asyncio.Lock()
        self._stop_requested = asyncio.Event()
        self._sweep_task: asyncio.Task[None] | None = None

    @property
    def registry(self) -> CredentialRegistry:
        return self._registry

    @property
    def lifespan(self) -> timedelta:
        return self._lifespan

    def now(self) -> datetime:
        return self._clock()

    # ------------------------------------------------------------------
    # Issuance / enumeration
    # ------------------------------------------------------------------

    async def issue(self, owner: str, scope: Sequence[str] | None = None) -> CredentialRecord:
        # An empty restriction means unrestricted, same as the provider treats it.
        scope = list(scope) if scope else None
        log.info("token.issuing", client_id=owner, repositories=scope)
        # UpstreamExchangeError propagates as-is; nothing is stored on failure.
        issued = await self._gateway.exchange_for_credential(scope)

        record = self._registry.insert(
            owner=owner,
            secret=issued.secret,
            ttl=self._lifespan,
            scope=scope,
        )
        provider_deadline = issued.provider_expires_at
        if provider_deadline is not None and provider_deadline < record.expires_at:
            log.warning(
                "token.provider_expiry_earlier",
                token_id=record.id,
                provider_expires_at=provider_deadline.isoformat(),
                expires_at=record.expires_at.isoformat(),
            )
        log.info(
            "token.issued",
            token_id=record.id,
            client_id=owner,
            expires_at=record.expires_at.isoformat(),
            total_tokens=self._registry.size,
        )
        return record

    def list(self) -> list[CredentialView]:
        now = self._clock()
        return [
            CredentialView(
                id=r.id,
                owner=r.owner,
                issued_at=r.issued_at,
                expires_at=r.expires_at,
                is_stale=now > r.expires_at,
                time_remaining=max(timedelta(0), r.expires_at - now),
            )
            for r in self._registry.list_all()
        ]

    async def rate_limit(self) -> RateLimitInfo | None:
        return await self._gateway.rate_limit_snapshot()

    # ------------------------------------------------------------------
    # Retirement
    # ------------------------------------------------------------------

    async def delete_by_id(self, token_id: str) -> DeleteOutcome:
        record = self._registry.get(token_id)
        if record is None:
            return DeleteOutcome(found=False)

        removed, revoked = await self._retire(record, reason="delete")
        if not removed:
            # Another path (usually the sweep) retired it first.
            return DeleteOutcome(found=False)
        return DeleteOutcome(found=True, revoked=revoked, record=record)

    async def delete_by_owner(self, owner: str) -> BulkOutcome:
        outcome = await self._retire_many(self._registry.list_by_owner(owner), reason="delete")
        if outcome.count:
            log.info(
                "token.owner_deleted",
                client_id=owner,
                deleted=outcome.count,
                revoked=outcome.revoked_count,
            )
        return outcome

    async def clear_all(self) -> BulkOutcome:
        outcome = await self._retire_many(self._registry.list_all(), reason="clear")
        log.info("token.cleared", cleared=outcome.count, revoked=outcome.revoked_count)
        return outcome

    async def sweep(self) -> SweepOutcome:
        # Serialized so an on-demand sweep and the timer never retire the same batch twice.
        async with self._sweep_lock:
            expired = self._registry.expired_snapshot(self._clock())
            outcome = await self._retire_many(expired, reason="expired")

        if outcome.count:
            log.info(
                "sweep.completed",
                removed=outcome.count,
                revoked=outcome.revoked_count,
                remaining=self._registry.size,
            )
        else:
            log.debug("sweep.completed", removed=0, remaining=self._registry.size)
        return SweepOutcome(removed_count=outcome.count, revoked_count=outcome.revoked_count)

    async def _retire_many(self, records: list[CredentialRecord], *, reason: str) -> BulkOutcome:
        if not records:
            return BulkOutcome()

        results = await asyncio.gather(*(self._retire(r, reason=reason) for r in records))
        removed_ids = [r.id for r, (removed, _) in zip(records, results) if removed]
        return BulkOutcome(
            count=len(removed_ids),
            revoked_count=sum(1 for _, revoked in results if revoked),
            removed_ids=removed_ids,
        )

    async def _retire(self, record: CredentialRecord, *, reason: str) -> tuple[bool, bool]:
        # Lost a race with another retirement path: nothing left to do. The claim is
        # taken before the first await so only one path ever revokes a given id.
        if record.id in self._retiring or not self._registry.has(record.id):
            return False, False
        self._retiring.add(record.id)

        try:
            log.info("token.revoking", token_id=record.id, client_id=record.owner, reason=reason)
            revoked = await self._gateway.revoke(record.secret)
            removed = self._registry.delete_by_id(record.id)
        finally:
            self._retiring.discard(record.id)

        log.info(
            "token.removed",
            token_id=record.id,
            client_id=record.owner,
            reason=reason,
            revoked=revoked,
        )
        return removed, revoked and removed

    # ------------------------------------------------------------------
    # Background sweep
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    def start(self) -> None:
        if self.running:
            return
        self._stop_requested.clear()
        self._sweep_task = asyncio.create_task(self._sweep_loop(), name="token-sweep")
        log.info(
            "sweep.scheduled",
            interval_ms=int(self._sweep_interval.total_seconds() * 1000),
            interval_minutes=f"{self._sweep_interval.total_seconds() / 60:.1f}",
        )

    async def stop(self) -> None:
        task, self._sweep_task = self._sweep_task, None
        if task is None:
            return
        # Stop the next scheduling only; an in-flight sweep is allowed to finish.
        self._stop_requested.set()
        await task
        log.info("sweep.stopped")

    async def _sweep_loop(self) -> None:
        interval = self._sweep_interval.total_seconds()
        while not self._stop_requested.is_set():
            try:
                await asyncio.wait_for(self._stop_requested.wait(), timeout=interval)
            except TimeoutError:
                pass
            else:
                break

            try:
                await self.sweep()
            except Exception:
                # Keep the schedule alive; the next tick retries whatever is still stale.
                log.exception("sweep.failed")


# --- Module Notes -----------------------------------------------------------
# No transaction spans more than one upstream call plus its local mutation: partial
# outcomes (removed locally, revocation failed) are expected and reported as such.
