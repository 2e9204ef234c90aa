"""
Structured Logging Configuration for the report service.

Key Features:
- Tiered logging (Critical/Operational/Debug)
- Structured JSON output for log search
- Automatic log level management by environment
- Error categorization and performance metrics
"""

import json
import logging
import logging.config
import traceback
from datetime import datetime, timezone
from typing import Any

from reportbuilder.config.env import EnvConfig

APP_LOGGERS = [
  "reportbuilder",
  "reportbuilder.api",
  "reportbuilder.upstream",
  "reportbuilder.cache",
]


class StructuredFormatter(logging.Formatter):
  """
  JSON formatter that creates searchable structured logs.

  - Timestamp in ISO format
  - Consistent field names for filtering
  - Hierarchical component/action structure
  - Metadata preserved as searchable fields
  """

  def format(self, record: logging.LogRecord) -> str:
    log_entry = {
      "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc)
      .isoformat()
      .replace("+00:00", "Z"),
      "level": record.levelname,
      "component": getattr(record, "component", record.name),
      "message": record.getMessage(),
    }

    if hasattr(record, "action"):
      log_entry["action"] = record.action

    # Statement context
    if hasattr(record, "statement_id"):
      log_entry["statement_id"] = record.statement_id
    if hasattr(record, "scope"):
      log_entry["scope"] = record.scope
    if hasattr(record, "signature"):
      log_entry["signature"] = record.signature

    if hasattr(record, "duration_ms"):
      log_entry["duration_ms"] = record.duration_ms
    if hasattr(record, "status_code"):
      log_entry["status_code"] = record.status_code

    if record.levelno >= logging.ERROR:
      if record.exc_info:
        log_entry["error"] = {
          "type": record.exc_info[0].__name__ if record.exc_info[0] else "Unknown",
          "message": str(record.exc_info[1]) if record.exc_info[1] else "",
          "traceback": traceback.format_exception(*record.exc_info),
        }

      if hasattr(record, "error_category"):
        log_entry["error_category"] = record.error_category

    if hasattr(record, "metadata"):
      log_entry["metadata"] = record.metadata

    return json.dumps(log_entry, default=str, separators=(",", ":"))


class TieredLogFilter:
  """
  Filter logs by tier.

  Tier 1 (Critical): ERROR, CRITICAL
  Tier 2 (Operational): INFO, WARNING
  Tier 3 (Debug): DEBUG
  """

  def __init__(self, tier: str):
    self.tier = tier

  def filter(self, record: logging.LogRecord) -> bool:
    if self.tier == "critical":
      return record.levelno >= logging.ERROR
    elif self.tier == "operational":
      return logging.INFO <= record.levelno < logging.ERROR
    elif self.tier == "debug":
      return record.levelno == logging.DEBUG
    return True


def get_logging_config(environment: str | None = None) -> dict[str, Any]:
  """
  Generate logging configuration based on environment.

  - prod: INFO level, structured output, no debug logs
  - staging: INFO level, with debug logs enabled
  - test: WARNING level, minimal output for clean test runs
  - dev: DEBUG level unless LOG_LEVEL overrides, plain console output
  """
  env = environment or EnvConfig.ENVIRONMENT
  log_level_override = getattr(EnvConfig, "LOG_LEVEL", None)

  if env == "prod":
    default_level = "INFO"
    enable_debug = False
  elif env == "staging":
    default_level = "INFO"
    enable_debug = True
  elif env == "test":
    default_level = "WARNING"
    enable_debug = False
  else:  # dev
    default_level = log_level_override or "DEBUG"
    enable_debug = default_level == "DEBUG"

  app_handlers = ["critical", "operational"] if env != "dev" else ["console"]

  config: dict[str, Any] = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
      "structured": {
        "()": StructuredFormatter,
      },
      "simple": {"format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"},
    },
    "filters": {
      "critical_filter": {"()": TieredLogFilter, "tier": "critical"},
      "operational_filter": {"()": TieredLogFilter, "tier": "operational"},
      "debug_filter": {"()": TieredLogFilter, "tier": "debug"},
    },
    "handlers": {
      "critical": {
        "class": "logging.StreamHandler",
        "level": "ERROR",
        "formatter": "structured",
        "filters": ["critical_filter"],
        "stream": "ext://sys.stderr",
      },
      "operational": {
        "class": "logging.StreamHandler",
        "level": "INFO",
        "formatter": "structured",
        "filters": ["operational_filter"],
        "stream": "ext://sys.stdout",
      },
      "console": {
        "class": "logging.StreamHandler",
        "level": default_level,
        "formatter": "simple" if env == "dev" else "structured",
        "stream": "ext://sys.stdout",
      },
    },
    "loggers": {
      name: {
        "level": default_level,
        "handlers": list(app_handlers),
        "propagate": False,
      }
      for name in APP_LOGGERS
    },
    "root": {
      "level": "WARNING",
      "handlers": ["critical"] if env != "dev" else ["console"],
    },
  }

  config["loggers"]["uvicorn"] = {
    "level": "WARNING",
    "handlers": ["operational"] if env != "dev" else ["console"],
    "propagate": False,
  }

  if enable_debug:
    config["handlers"]["debug"] = {
      "class": "logging.StreamHandler",
      "level": "DEBUG",
      "formatter": "structured",
      "filters": ["debug_filter"],
      "stream": "ext://sys.stdout",
    }
    if env != "dev":
      for logger_name in APP_LOGGERS:
        config["loggers"][logger_name]["handlers"].append("debug")

  return config


def setup_logging(environment: str | None = None) -> None:
  """Initialize structured logging configuration."""
  logging.config.dictConfig(get_logging_config(environment))


def get_logger(name: str) -> logging.Logger:
  """Get a logger with structured logging capabilities."""
  return logging.getLogger(name)


def log_error(
  logger: logging.Logger,
  error: Exception,
  component: str,
  action: str,
  error_category: str = "application",
  statement_id: str | None = None,
  metadata: dict[str, Any] | None = None,
) -> None:
  """Log error with structured data for easy searching."""
  logger.error(
    f"Error in {component}.{action}: {error!s}",
    exc_info=error,
    extra={
      "component": component,
      "action": action,
      "error_category": error_category,
      "statement_id": statement_id,
      "metadata": metadata or {},
    },
  )


def log_performance_metric(
  logger: logging.Logger,
  metric_name: str,
  value: int | float,
  unit: str = "count",
  component: str = "system",
  metadata: dict[str, Any] | None = None,
) -> None:
  """Log performance metrics for monitoring."""
  logger.info(
    f"Performance metric: {metric_name} = {value} {unit}",
    extra={
      "component": "performance",
      "action": "metric_recorded",
      "metric_name": metric_name,
      "metric_value": value,
      "unit": unit,
      "source_component": component,
      "metadata": metadata or {},
    },
  )
