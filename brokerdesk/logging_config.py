"""
Logging levels for the brokerdesk loggers.

Every module logs through ``logging.getLogger(__name__)`` under the
``brokerdesk`` namespace, and handlers belong to the server process. What each
level shows:

- DEBUG: individual denials, abandoned route checks, cache invalidations.
- INFO: startup, identity problems (missing or expired tokens) and view
  assignments.
- WARNING: authorization store failures and timeouts, which deny access.

Tokens and request bodies are never logged at any level.
"""

from __future__ import annotations

import logging

PACKAGE_LOGGER = "brokerdesk"


def configure_app_logging(level: str = "INFO") -> None:
    """Set the package logger to ``level`` (``BROKERDESK_LOG_LEVEL``)."""
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level.upper())
    logger.propagate = True
