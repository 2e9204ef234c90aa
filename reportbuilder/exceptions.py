"""
Custom Exception Types for the report service.

Each exception type carries an application error code and a details mapping
so the HTTP layer can render it consistently.
"""

from typing import Optional, Dict, Any
from datetime import datetime, timezone


class ReportBuilderError(Exception):
  """
  Base exception for all report service errors.

  Attributes:
      message: Human-readable error message
      error_code: Application-specific error code for categorization
      details: Additional error context and metadata
      timestamp: When the error occurred
  """

  def __init__(
    self,
    message: str,
    error_code: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
  ):
    super().__init__(message)
    self.message = message
    self.error_code = error_code or self.__class__.__name__
    self.details = details or {}
    self.timestamp = datetime.now(timezone.utc).isoformat()

  def to_dict(self) -> Dict[str, Any]:
    """Convert exception to dictionary for API responses."""
    return {
      "error": self.error_code,
      "message": self.message,
      "details": self.details,
      "timestamp": self.timestamp,
    }


class ConfigurationError(ReportBuilderError):
  """Raised when required settings are missing or invalid."""

  def __init__(self, message: str, **kwargs):
    super().__init__(message, error_code="CONFIGURATION_ERROR", details=kwargs)


# ============================================================================
# Statement Exceptions
# ============================================================================


class StatementError(ReportBuilderError):
  """Base exception for statement lifecycle failures."""

  pass


class StatementSubmissionError(StatementError):
  """Raised when the upstream engine accepts a submission but returns no id."""

  def __init__(self, reason: str, sql: Optional[str] = None, **kwargs):
    details: Dict[str, Any] = {"reason": reason}
    if sql:
      # Truncate long statements for error messages
      details["sql"] = sql[:500] + "..." if len(sql) > 500 else sql
    details.update(kwargs)
    super().__init__(
      f"Statement submission failed: {reason}",
      error_code="STATEMENT_SUBMISSION_FAILED",
      details=details,
    )


class InvalidRowRangeError(StatementError):
  """Raised when a row range request is malformed."""

  def __init__(self, start_row: int, end_row: int):
    super().__init__(
      f"Invalid row range [{start_row}, {end_row})",
      error_code="INVALID_ROW_RANGE",
      details={"start_row": start_row, "end_row": end_row},
    )


# ============================================================================
# Cache Exceptions
# ============================================================================


class CacheWriteError(ReportBuilderError):
  """
  Raised when a statement or view entry cannot be serialized or stored.

  Never swallowed: a silently dropped page would break the contiguous page
  index contract readers rely on.
  """

  def __init__(self, key: str, reason: str):
    super().__init__(
      f"Failed to write cache entry {key}: {reason}",
      error_code="CACHE_WRITE_FAILED",
      details={"key": key, "reason": reason},
    )
