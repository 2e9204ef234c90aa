"""
Centralized configuration package for the report service.

This package provides a single source of truth for environment settings,
operational constants and Valkey/Redis database allocations.
"""

from .env import EnvConfig, env
from .valkey_registry import ValkeyDatabase, ValkeyURLBuilder

__all__ = [
  "EnvConfig",
  "ValkeyDatabase",
  "ValkeyURLBuilder",
  "env",
]
