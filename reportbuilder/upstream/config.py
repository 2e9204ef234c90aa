"""
Statement Client Configuration.

Connection, retry and polling settings for the upstream SQL statement engine.
"""

import os
from typing import Dict, Any
from dataclasses import dataclass, field

from ..config import env


@dataclass
class StatementClientConfig:
  """Configuration for the statement engine client."""

  # Connection settings
  base_url: str = ""
  token: str = ""
  warehouse_id: str = ""
  connect_timeout: float = 3.0
  read_timeout: float = 30.0
  max_retries: int = 3
  retry_delay: float = 1.0
  retry_backoff: float = 2.0

  # Status polling interval while a statement streams
  poll_interval: float = 1.0

  # Connection pool settings
  max_connections: int = 50
  max_keepalive_connections: int = 10
  keepalive_expiry: float = 5.0

  # Circuit breaker settings
  circuit_breaker_threshold: int = 5
  circuit_breaker_timeout: int = 60

  # Request settings
  headers: Dict[str, str] = field(default_factory=dict)
  verify_ssl: bool = True

  @classmethod
  def from_env(cls, prefix: str = "STATEMENT_CLIENT_") -> "StatementClientConfig":
    """
    Create configuration from environment variables.

    Engine host, token, warehouse and timeouts come from the central
    ``DATABRICKS_*`` settings; retry, pool and circuit breaker tuning can be
    overridden with ``{prefix}*`` variables.

    Args:
        prefix: Environment variable prefix for tuning overrides

    Returns:
        StatementClientConfig instance
    """
    config = cls(
      base_url=env.DATABRICKS_HOST,
      token=env.DATABRICKS_TOKEN,
      warehouse_id=env.DATABRICKS_WAREHOUSE_ID,
      connect_timeout=env.DATABRICKS_CONNECT_TIMEOUT_MS / 1000.0,
      read_timeout=env.DATABRICKS_READ_TIMEOUT_MS / 1000.0,
      poll_interval=env.STATEMENT_POLL_INTERVAL_MS / 1000.0,
    )

    # Map of config attribute to env var suffix
    env_mappings = {
      "max_retries": "MAX_RETRIES",
      "retry_delay": "RETRY_DELAY",
      "retry_backoff": "RETRY_BACKOFF",
      "max_connections": "MAX_CONNECTIONS",
      "max_keepalive_connections": "MAX_KEEPALIVE_CONNECTIONS",
      "keepalive_expiry": "KEEPALIVE_EXPIRY",
      "circuit_breaker_threshold": "CIRCUIT_BREAKER_THRESHOLD",
      "circuit_breaker_timeout": "CIRCUIT_BREAKER_TIMEOUT",
      "verify_ssl": "VERIFY_SSL",
    }

    for attr, env_suffix in env_mappings.items():
      value = os.environ.get(prefix + env_suffix)
      if value is None:
        continue
      attr_type = type(getattr(config, attr))
      if attr_type is bool:
        setattr(config, attr, value.lower() in ("true", "1", "yes"))
      elif attr_type in (int, float):
        setattr(config, attr, attr_type(value))
      else:
        setattr(config, attr, value)

    return config

  def with_overrides(self, **kwargs: Any) -> "StatementClientConfig":
    """Create a new config with overridden values."""
    config_dict: Dict[str, Any] = {
      "base_url": self.base_url,
      "token": self.token,
      "warehouse_id": self.warehouse_id,
      "connect_timeout": self.connect_timeout,
      "read_timeout": self.read_timeout,
      "max_retries": self.max_retries,
      "retry_delay": self.retry_delay,
      "retry_backoff": self.retry_backoff,
      "poll_interval": self.poll_interval,
      "max_connections": self.max_connections,
      "max_keepalive_connections": self.max_keepalive_connections,
      "keepalive_expiry": self.keepalive_expiry,
      "circuit_breaker_threshold": self.circuit_breaker_threshold,
      "circuit_breaker_timeout": self.circuit_breaker_timeout,
      "headers": self.headers.copy(),
      "verify_ssl": self.verify_ssl,
    }
    config_dict.update(kwargs)
    return StatementClientConfig(**config_dict)
