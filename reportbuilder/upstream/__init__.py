"""
Upstream SQL statement engine client.

Provides the asynchronous client that submits statements, reads schemas and
streams result chunks, plus its configuration and exception hierarchy.
"""

from .client import StatementClient
from .config import StatementClientConfig
from .exceptions import (
  StatementAPIError,
  StatementClientError,
  StatementServerError,
  StatementTimeoutError,
  StatementTransientError,
)
from .models import (
  META_ONLY_CHUNK,
  ChunkListener,
  SchemaInfo,
  StatementState,
  is_terminal_state,
)

__all__ = [
  "META_ONLY_CHUNK",
  "ChunkListener",
  "SchemaInfo",
  "StatementAPIError",
  "StatementClient",
  "StatementClientConfig",
  "StatementClientError",
  "StatementServerError",
  "StatementState",
  "StatementTimeoutError",
  "StatementTransientError",
  "is_terminal_state",
]
