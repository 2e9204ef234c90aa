"""
Centralized environment variable configuration.

This module provides a single source of truth for all environment variables,
with type conversions, validation, and default values.

Organization:
- Helper functions for type-safe env var access
- Core application settings
- Upstream statement engine (Databricks SQL)
- Valkey/Redis result cache
- Paging, view building and export guardrails
"""

import os
from typing import List

from .constants import (
  DEFAULT_CACHE_TTL,
  DEFAULT_CONNECT_TIMEOUT_MS,
  DEFAULT_FIRST_CHUNK_MAX_WAIT_MS,
  DEFAULT_FIRST_CHUNK_POLL_MS,
  DEFAULT_PAGE_SIZE,
  DEFAULT_READ_TIMEOUT_MS,
  DEFAULT_SCOPE,
  DEFAULT_STATEMENT_POLL_INTERVAL_MS,
  DEFAULT_VIEW_BUILD_LOG_EVERY,
  DEFAULT_VIEW_MAX_SCAN_PAGES,
  REPORT_KEY_PREFIX,
)

# ==========================================================================
# HELPER FUNCTIONS FOR TYPE-SAFE ENVIRONMENT VARIABLE ACCESS
# ==========================================================================


def get_int_env(key: str, default: int) -> int:
  """
  Get an integer environment variable with safe type conversion.

  Args:
      key: Environment variable name
      default: Default value if not set or invalid

  Returns:
      Integer value from environment or default
  """
  try:
    return int(os.getenv(key, str(default)))
  except (ValueError, TypeError):
    # Use print instead of logger to avoid circular import
    print(f"Warning: Invalid {key} value, using default: {default}")
    return default


def get_float_env(key: str, default: float) -> float:
  """
  Get a float environment variable with safe type conversion.

  Args:
      key: Environment variable name
      default: Default value if not set or invalid

  Returns:
      Float value from environment or default
  """
  try:
    return float(os.getenv(key, str(default)))
  except (ValueError, TypeError):
    print(f"Warning: Invalid {key} value, using default: {default}")
    return default


def get_bool_env(key: str, default: bool = False) -> bool:
  """Get a boolean environment variable ("true", "1", "yes", "on" are truthy)."""
  value = os.getenv(key, str(default)).lower()
  return value in ("true", "1", "yes", "on")


def get_str_env(key: str, default: str = "") -> str:
  """Get a string environment variable."""
  return os.getenv(key, default)


def get_list_env(key: str, default: str = "", separator: str = ",") -> List[str]:
  """
  Get a list environment variable (comma-separated by default).

  Args:
      key: Environment variable name
      default: Default value if not set
      separator: String separator for list items

  Returns:
      List of strings from environment or default
  """
  value = os.getenv(key, default)
  if not value:
    return []
  return [item.strip() for item in value.split(separator) if item.strip()]


# ==========================================================================
# MAIN CONFIGURATION CLASS
# ==========================================================================


class EnvConfig:
  """
  Centralized environment variable configuration.

  Variables are organized into logical groups for easier maintenance.
  All variables use type-safe helper functions for consistent behavior.
  """

  # ==========================================================================
  # CORE APPLICATION SETTINGS
  # ==========================================================================

  ENVIRONMENT = get_str_env("ENVIRONMENT", "dev")
  LOG_LEVEL = get_str_env("LOG_LEVEL", "INFO")

  HOST = get_str_env("HOST", "0.0.0.0")
  PORT = get_int_env("PORT", 8000)

  CORS_ORIGINS = get_list_env("CORS_ORIGINS", "http://localhost:4200")

  # ==========================================================================
  # UPSTREAM STATEMENT ENGINE
  # ==========================================================================

  DATABRICKS_HOST = get_str_env("DATABRICKS_HOST", "").strip().rstrip("/")
  DATABRICKS_TOKEN = get_str_env("DATABRICKS_TOKEN", "").strip()
  DATABRICKS_WAREHOUSE_ID = get_str_env("DATABRICKS_WAREHOUSE_ID", "").strip()
  DATABRICKS_CONNECT_TIMEOUT_MS = get_int_env(
    "DATABRICKS_CONNECT_TIMEOUT_MS", DEFAULT_CONNECT_TIMEOUT_MS
  )
  DATABRICKS_READ_TIMEOUT_MS = get_int_env(
    "DATABRICKS_READ_TIMEOUT_MS", DEFAULT_READ_TIMEOUT_MS
  )
  STATEMENT_POLL_INTERVAL_MS = get_int_env(
    "STATEMENT_POLL_INTERVAL_MS", DEFAULT_STATEMENT_POLL_INTERVAL_MS
  )

  # ==========================================================================
  # RESULT CACHE (VALKEY/REDIS)
  # ==========================================================================

  CACHE_KEY_PREFIX = get_str_env("CACHE_KEY_PREFIX", REPORT_KEY_PREFIX)
  REDIS_CHUNK_TTL = get_int_env("REDIS_CHUNK_TTL", DEFAULT_CACHE_TTL)
  # View TTL falls back to the base chunk TTL when unset
  REDIS_VIEW_TTL = get_int_env("REDIS_VIEW_TTL", REDIS_CHUNK_TTL)

  # ==========================================================================
  # PAGING AND VIEW GUARDRAILS
  # ==========================================================================

  CACHE_PAGE_SIZE = get_int_env("CACHE_PAGE_SIZE", DEFAULT_PAGE_SIZE)
  CACHE_FIRST_CHUNK_MAX_WAIT_MS = get_int_env(
    "CACHE_FIRST_CHUNK_MAX_WAIT_MS", DEFAULT_FIRST_CHUNK_MAX_WAIT_MS
  )
  CACHE_FIRST_CHUNK_POLL_MS = get_int_env(
    "CACHE_FIRST_CHUNK_POLL_MS", DEFAULT_FIRST_CHUNK_POLL_MS
  )
  VIEW_MAX_SCAN_PAGES = get_int_env("VIEW_MAX_SCAN_PAGES", DEFAULT_VIEW_MAX_SCAN_PAGES)
  VIEW_BUILD_LOG_EVERY = get_int_env(
    "VIEW_BUILD_LOG_EVERY", DEFAULT_VIEW_BUILD_LOG_EVERY
  )

  DEFAULT_SCOPE = get_str_env("REPORT_DEFAULT_SCOPE", DEFAULT_SCOPE)

  # ==========================================================================
  # ENVIRONMENT HELPERS
  # ==========================================================================

  @classmethod
  def is_production(cls) -> bool:
    return cls.ENVIRONMENT == "prod"

  @classmethod
  def is_staging(cls) -> bool:
    return cls.ENVIRONMENT == "staging"

  @classmethod
  def is_development(cls) -> bool:
    return cls.ENVIRONMENT == "dev"

  @classmethod
  def missing_upstream_settings(cls) -> List[str]:
    """Names of the upstream settings that are blank."""
    missing = []
    if not cls.DATABRICKS_HOST:
      missing.append("DATABRICKS_HOST")
    if not cls.DATABRICKS_TOKEN:
      missing.append("DATABRICKS_TOKEN")
    if not cls.DATABRICKS_WAREHOUSE_ID:
      missing.append("DATABRICKS_WAREHOUSE_ID")
    return missing

  @classmethod
  def validate_upstream(cls) -> None:
    """
    Fail fast when the upstream engine is not configured.

    Raises:
        ConfigurationError: Listing every missing setting at once
    """
    missing = cls.missing_upstream_settings()
    if missing:
      from ..exceptions import ConfigurationError

      raise ConfigurationError(
        f"Missing required Databricks configuration: {', '.join(missing)}",
        missing=missing,
      )


# ==========================================================================
# SINGLETON INSTANCE
# ==========================================================================

env = EnvConfig()
