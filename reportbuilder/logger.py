"""
Report service logging.

Initializes structured logging once on import and exposes the application
logger plus component loggers for the API, the upstream statement client and
the result cache.
"""

import logging

from .config import env
from .config.logging import (
  get_logger,
  log_error,
  log_performance_metric,
  setup_logging,
)

setup_logging()

logger = get_logger("reportbuilder")

if env.is_development():
  # Suppress per-request noise from the HTTP stack
  logging.getLogger("httpx").setLevel(logging.WARNING)
  logging.getLogger("httpcore").setLevel(logging.WARNING)

api_logger = get_logger("reportbuilder.api")
upstream_logger = get_logger("reportbuilder.upstream")
cache_logger = get_logger("reportbuilder.cache")

__all__ = [
  "api_logger",
  "cache_logger",
  "log_error",
  "log_performance_metric",
  "logger",
  "upstream_logger",
]
