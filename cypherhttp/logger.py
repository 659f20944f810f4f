"""
cypherhttp logging interface.

The library only creates named loggers. Handlers and formats are the host
application's business; call ``setup_logging()`` to opt into the structured
configuration from ``cypherhttp.config.logging``.
"""

import logging
from typing import Any, Dict, Optional

from .config.logging import (
  setup_logging,
  get_logger,
  log_error,
)

# Main library logger (pool lifecycle, readiness probe, swallowed errors)
logger = get_logger("cypherhttp")

# Statement logging, only written to when query logging is enabled
query_logger = get_logger("cypherhttp.query")

# Libraries should never print "No handlers could be found" warnings
logger.addHandler(logging.NullHandler())


def log_client_error(
  error: Exception,
  action: str,
  metadata: Optional[Dict[str, Any]] = None,
) -> None:
  """Log a client error which was converted into a fallback value."""
  log_error(
    logger,
    error,
    component="client",
    action=action,
    error_category=type(error).__name__,
    metadata=metadata,
    level=logging.WARNING,
  )


__all__ = [
  "logger",
  "query_logger",
  "log_client_error",
  "log_error",
  "setup_logging",
  "get_logger",
]
