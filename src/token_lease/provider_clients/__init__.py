"""
token_lease.provider_clients

Identity-provider client package.

Responsibilities:
- Wrap the GitHub App endpoints the lifecycle service depends on
  (token exchange, revocation, rate-limit status).
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# The lifecycle service depends on this boundary, never on httpx directly.
