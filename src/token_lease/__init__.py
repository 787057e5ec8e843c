"""
token_lease

Top-level package for the GitHub App token lease service.

Responsibilities:
- Expose package version metadata.
"""

__all__ = ["__version__"]

__version__ = "2.1.0"


# --- Module Notes -----------------------------------------------------------
# Keep this file minimal to avoid import-time side effects across the codebase.
