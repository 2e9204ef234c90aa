"""
Base Statement Client.

Retry policy, circuit breaker and error mapping shared by statement engine
clients.
"""

import time
import random
from typing import Optional, Dict, Any

from ..logger import upstream_logger as logger
from .config import StatementClientConfig
from .exceptions import (
  StatementAPIError,
  StatementTransientError,
  StatementClientError,
  StatementServerError,
)


class BaseStatementClient:
  """Base class for statement engine clients."""

  def __init__(
    self,
    config: Optional[StatementClientConfig] = None,
    **kwargs,
  ):
    """
    Initialize the client.

    Args:
        config: Client configuration (read from the environment if None)
        **kwargs: Additional config overrides

    Raises:
        ValueError: If no engine host is configured
    """
    self.config = config or StatementClientConfig.from_env()
    if kwargs:
      self.config = self.config.with_overrides(**kwargs)

    if not self.config.base_url:
      raise ValueError("base_url must be provided or set in environment")
    self.config.base_url = self.config.base_url.rstrip("/")

    if self.config.token:
      self.config.headers["Authorization"] = f"Bearer {self.config.token}"
    else:
      logger.warning("Statement client initialized without an access token")

    # Circuit breaker state
    self._circuit_breaker_failures = 0
    self._circuit_breaker_last_failure = 0.0
    self._circuit_breaker_open = False

  def _should_retry(self, error: Exception, attempt: int) -> bool:
    """
    Determine if request should be retried.

    Args:
        error: The exception that occurred
        attempt: Current attempt number (0-based)

    Returns:
        True if should retry, False otherwise
    """
    if attempt >= self.config.max_retries:
      return False

    if isinstance(error, (StatementTransientError, StatementServerError)):
      return True

    # Client errors and unknown errors are not retried
    return False

  def _calculate_retry_delay(self, attempt: int) -> float:
    """Exponential backoff with up to 10% jitter, in seconds."""
    delay = self.config.retry_delay * (self.config.retry_backoff**attempt)
    jitter = random.uniform(0, delay * 0.1)
    return delay + jitter

  def _check_circuit_breaker(self) -> None:
    """
    Check if circuit breaker is open.

    Raises:
        StatementTransientError: If circuit breaker is open
    """
    if not self._circuit_breaker_open:
      return

    time_since_failure = time.time() - self._circuit_breaker_last_failure
    if time_since_failure > self.config.circuit_breaker_timeout:
      self._circuit_breaker_open = False
      self._circuit_breaker_failures = 0
      logger.info("Statement client circuit breaker reset")
    else:
      raise StatementTransientError(
        f"Circuit breaker open. Retry after {self.config.circuit_breaker_timeout - time_since_failure:.0f}s"
      )

  def _record_failure(self) -> None:
    """Record a failure for circuit breaker."""
    self._circuit_breaker_failures += 1
    self._circuit_breaker_last_failure = time.time()

    if self._circuit_breaker_failures >= self.config.circuit_breaker_threshold:
      self._circuit_breaker_open = True
      logger.warning(
        f"Statement client circuit breaker opened after {self._circuit_breaker_failures} failures"
      )

  def _record_success(self) -> None:
    """Record a success for circuit breaker."""
    self._circuit_breaker_failures = 0
    self._circuit_breaker_open = False

  def _handle_response_error(
    self, status_code: int, response_data: Optional[Dict[str, Any]] = None
  ) -> StatementAPIError:
    """
    Convert HTTP status code to appropriate exception.

    Args:
        status_code: HTTP status code
        response_data: Response body data

    Returns:
        Appropriate StatementAPIError subclass
    """
    error_message = "Statement API request failed"
    if response_data and isinstance(response_data, dict):
      error_message = (
        response_data.get("message") or response_data.get("detail") or error_message
      )

    if status_code in (429, 502, 503, 504):
      return StatementTransientError(error_message, status_code, response_data)
    elif status_code in (400, 401, 403, 404, 422):
      return StatementClientError(error_message, status_code, response_data)
    elif status_code >= 500:
      return StatementServerError(error_message, status_code, response_data)
    else:
      return StatementAPIError(error_message, status_code, response_data)
