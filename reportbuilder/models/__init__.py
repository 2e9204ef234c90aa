"""Shared API models."""

from .api import ErrorResponse, HealthStatus

__all__ = ["ErrorResponse", "HealthStatus"]
