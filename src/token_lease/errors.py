"""
token_lease.errors

Error taxonomy shared across layers.

Responsibilities:
- Fatal startup errors (`ConfigurationError`).
- Request-level failures surfaced to callers (`UpstreamExchangeError`, `ScopeValidationError`).
"""

from __future__ import annotations

from typing import Any


class TokenLeaseError(Exception):
    pass


class ConfigurationError(TokenLeaseError):
    """
    Missing identity settings or an unreadable private key.
    Raised before the app serves any traffic.
    """


class UpstreamExchangeError(TokenLeaseError):
    """
    The identity provider rejected (or never answered) a token exchange.
    Carries the provider's status/body so the API layer can report it.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body


class ScopeValidationError(TokenLeaseError):
    pass


# --- Module Notes -----------------------------------------------------------
# Revocation failures intentionally have no exception type: the gateway reports them
# as `False` and the lifecycle service carries on with local removal.
