"""
token_lease.registry

In-memory credential registry.

Responsibilities:
- Hold issued-credential records and answer point/bulk queries.
- Stay policy-free: no revocation, no scheduling, no provider knowledge.
"""

from token_lease.registry.credentials import CredentialRegistry
from token_lease.registry.models import CredentialRecord

__all__ = ["CredentialRecord", "CredentialRegistry"]
