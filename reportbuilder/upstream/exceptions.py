"""
Statement Client Exceptions.

Defines the exception hierarchy for upstream statement engine calls.
"""

from typing import Optional, Dict, Any


class StatementAPIError(Exception):
  """Base exception for all statement engine errors."""

  def __init__(
    self,
    message: str,
    status_code: Optional[int] = None,
    response_data: Optional[Dict[str, Any]] = None,
  ):
    super().__init__(message)
    self.status_code = status_code
    self.response_data = response_data


class StatementTransientError(StatementAPIError):
  """
  Transient errors that can be retried.

  Examples: Network errors, 429 Too Many Requests, 503 Service Unavailable
  """

  pass


class StatementTimeoutError(StatementTransientError):
  """Request timeout errors."""

  pass


class StatementClientError(StatementAPIError):
  """
  Client errors that should not be retried.

  Examples: 400 Bad Request, 401 Unauthorized, 404 Not Found
  """

  pass


class StatementServerError(StatementAPIError):
  """Server errors that might be retriable (500 Internal Server Error)."""

  pass
