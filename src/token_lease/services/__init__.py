"""
token_lease.services

Service-layer package.

Responsibilities:
- Own the token lifecycle: issuance, retirement, and the expiry sweep.
- Coordinate the registry and the provider client.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Services should be pure Python and easily testable with fake gateways and clocks.
