"""
token_lease.auth

GitHub App authentication helpers.

Responsibilities:
- Mint the short-lived RS256 app assertion exchanged for installation tokens.
"""

# Package marker.
