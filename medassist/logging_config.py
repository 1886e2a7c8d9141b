from __future__ import annotations

import logging


def configure_app_logging(level: str = "INFO") -> None:
    """
    Minimal logging configuration for this repo.

    Notes:
    - Uvicorn already configures handlers; this function sets levels for our package.
    - Set `APP_LOG_LEVEL=DEBUG` to see prompt classification decisions.
    - The `medassist.audit` logger carries access-attempt records; keep it at INFO or lower
      if those records should reach the server log.
    """

    normalized = level.upper()
    logging.getLogger("medassist").setLevel(normalized)
    # Ensure child loggers under medassist.* inherit this level.
    logging.getLogger("medassist").propagate = True
