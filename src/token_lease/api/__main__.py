"""
token_lease.api.__main__

Entrypoint for running the service via `python -m token_lease.api` (or `token-lease`).

Responsibilities:
- Load and validate settings; refuse to start on configuration errors.
- Create the app.
- Start uvicorn with structlog-compatible logging config.
"""

from __future__ import annotations

import sys

import uvicorn
from pydantic import ValidationError

from token_lease.api.app import create_app
from token_lease.errors import ConfigurationError
from token_lease.observability.logging import get_logger
from token_lease.settings import get_settings

log = get_logger(__name__)


def main() -> None:
    try:
        settings = get_settings()
        app = create_app(settings=settings)
    except (ConfigurationError, ValidationError) as e:
        log.error("startup.failed", error=str(e))
        sys.exit(1)

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_config=None,  # structlog
    )


if __name__ == "__main__":
    main()
