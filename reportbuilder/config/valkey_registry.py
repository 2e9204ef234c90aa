"""
Centralized Valkey/Redis Database Number Registry.

This module provides a single source of truth for the Valkey/Redis database
allocations used by the report service, plus factories that build correctly
configured clients for them.

IMPORTANT: When adding a new Redis connection, always check this registry first
and use the next available database number.
"""

import os
import ssl
from enum import IntEnum
from typing import Any, Dict, Optional
from urllib.parse import quote


class ValkeyDatabase(IntEnum):
  """
  Enumeration of all Valkey/Redis database allocations.

  Current allocation:
  - 0: Statement and view result pages (meta + compressed chunks)
  """

  REPORT_CACHE = 0  # Statement meta, base chunks, derived views


class ValkeyURLBuilder:
  """Helper class to build Valkey/Redis URLs with proper database numbers."""

  @staticmethod
  def get_base_url() -> str:
    """Base Valkey URL from VALKEY_URL, falling back to localhost."""
    return os.getenv("VALKEY_URL", "redis://localhost:6379")

  @staticmethod
  def get_auth_token() -> Optional[str]:
    """Valkey auth token from VALKEY_AUTH_TOKEN, or None when unset."""
    token = os.getenv("VALKEY_AUTH_TOKEN", "")
    return token or None

  @staticmethod
  def build_url(
    base_url: Optional[str] = None,
    database: ValkeyDatabase = ValkeyDatabase.REPORT_CACHE,
    auth_token: Optional[str] = None,
    use_tls: Optional[bool] = None,
  ) -> str:
    """
    Build a complete Valkey/Redis URL with the specified database.

    Args:
        base_url: Base Redis URL. If None, read from the environment
        database: Database number from ValkeyDatabase enum
        auth_token: Optional auth token for authenticated connections
        use_tls: If True, use TLS (rediss://). If None, auto-detect based on auth_token

    Returns:
        Complete URL with database number (e.g., "redis://localhost:6379/0")

    Examples:
        >>> ValkeyURLBuilder.build_url("redis://cache:6379/4", ValkeyDatabase.REPORT_CACHE)
        'redis://cache:6379/0'
    """
    if base_url is None:
      base_url = ValkeyURLBuilder.get_base_url()

    # Only use TLS in prod/staging with auth
    if use_tls is None:
      environment = os.getenv("ENVIRONMENT", "dev").lower()
      use_tls = auth_token is not None and environment in ["prod", "staging"]

    base_url = base_url.rstrip("/")

    # Remove any existing database number
    if "/" in base_url.split("://")[-1]:
      base_url = base_url.rsplit("/", 1)[0]

    if "://" in base_url:
      host_part = base_url.split("://", 1)[1]
    else:
      host_part = base_url

    # URL already has auth, strip it to avoid conflicts
    if "@" in host_part:
      host_part = host_part.split("@")[-1]

    protocol = "rediss" if use_tls else "redis"
    if auth_token:
      # Use 'default' as username for Redis/Valkey AUTH
      encoded_token = quote(auth_token, safe="")
      base_url = f"{protocol}://default:{encoded_token}@{host_part}"
    else:
      base_url = f"{protocol}://{host_part}"

    return f"{base_url}/{database.value}"

  @staticmethod
  def build_authenticated_url(
    database: ValkeyDatabase = ValkeyDatabase.REPORT_CACHE,
    base_url: Optional[str] = None,
  ) -> str:
    """Build a Valkey URL with auto-detected authentication for the current environment."""
    return ValkeyURLBuilder.build_url(
      base_url=base_url,
      database=database,
      auth_token=ValkeyURLBuilder.get_auth_token(),
    )
    return url, None


def get_redis_connection_params(environment: Optional[str] = None) -> Dict[str, Any]:
  """
  Get Redis connection parameters based on environment.

  Args:
      environment: Environment name (defaults to ENVIRONMENT env var)

  Returns:
      Dictionary of connection parameters for Redis client.
  """
  if environment is None:
    environment = os.getenv("ENVIRONMENT", "dev").lower()

  params: Dict[str, Any] = {
    "decode_responses": False,
    "socket_connect_timeout": 5,
    "socket_timeout": 5,
    "retry_on_timeout": True,
    "health_check_interval": 30,
  }

  # Managed Valkey in prod/staging terminates TLS with self-signed certificates
  if environment in ["prod", "staging"]:
    params["ssl_cert_reqs"] = ssl.CERT_NONE
    params["ssl_check_hostname"] = False
    params["ssl_ca_certs"] = None

  return params


def create_async_redis_client(
  database: ValkeyDatabase, decode_responses: bool = False, **kwargs
) -> Any:  # Returns redis.asyncio.Redis but avoid import here
  """
  Create an async Redis client with proper configuration for the environment.

  Chunks are stored as compressed bytes, so responses are not decoded by
  default.

  Example:
      >>> client = create_async_redis_client(ValkeyDatabase.REPORT_CACHE)
      >>> await client.set("key", b"value")
  """
  import redis.asyncio as redis_async

  url = ValkeyURLBuilder.build_authenticated_url(database)

  params = get_redis_connection_params()
  params["decode_responses"] = decode_responses
  params.update(kwargs)

  return redis_async.from_url(url, **params)
