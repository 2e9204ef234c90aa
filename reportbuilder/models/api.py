"""Common API response models."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
  """Standard error response format used across all API endpoints."""

  detail: str = Field(
    ...,
    description="Human-readable error message explaining what went wrong",
    examples=["statementId must not be blank"],
  )
  code: str | None = Field(
    None,
    description="Machine-readable error code for programmatic handling",
    examples=["INVALID_ROW_RANGE"],
  )
  details: dict[str, Any] | None = Field(None, description="Additional error context")


class HealthStatus(BaseModel):
  """Health check status information."""

  status: str = Field(
    ...,
    description="Current health status",
    examples=["healthy"],
    pattern="^(healthy|degraded|unhealthy)$",
  )
  timestamp: datetime = Field(
    ..., description="Time of health check", examples=["2024-01-01T00:00:00Z"]
  )
  details: dict[str, Any] | None = Field(
    None, description="Additional health check details"
  )
