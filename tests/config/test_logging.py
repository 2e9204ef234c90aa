import json
import logging
import sys

import pytest

from reportbuilder.config.env import EnvConfig
from reportbuilder.config.logging import (
  APP_LOGGERS,
  StructuredFormatter,
  TieredLogFilter,
  get_logger,
  get_logging_config,
  log_error,
  log_performance_metric,
  setup_logging,
)


def _make_record(level: int) -> logging.LogRecord:
  return logging.LogRecord(
    name="test",
    level=level,
    pathname=__file__,
    lineno=0,
    msg="message",
    args=(),
    exc_info=None,
  )


def test_structured_formatter_includes_statement_fields():
  formatter = StructuredFormatter()
  record = logging.LogRecord(
    name="reportbuilder.cache",
    level=logging.INFO,
    pathname=__file__,
    lineno=10,
    msg="Built view %s",
    args=("abc",),
    exc_info=None,
  )
  record.component = "reports"
  record.action = "build_view"
  record.statement_id = "stmt-1"
  record.scope = "tenant-a"
  record.signature = "abc"
  record.duration_ms = 12.5
  record.metadata = {"rows": 3}

  payload = json.loads(formatter.format(record))

  assert payload["message"] == "Built view abc"
  assert payload["component"] == "reports"
  assert payload["action"] == "build_view"
  assert payload["statement_id"] == "stmt-1"
  assert payload["scope"] == "tenant-a"
  assert payload["signature"] == "abc"
  assert payload["duration_ms"] == 12.5
  assert payload["metadata"] == {"rows": 3}
  assert payload["timestamp"].endswith("Z")


def test_structured_formatter_defaults_component_to_logger_name():
  payload = json.loads(StructuredFormatter().format(_make_record(logging.INFO)))

  assert payload["component"] == "test"
  assert "error" not in payload


def test_structured_formatter_includes_error_details():
  formatter = StructuredFormatter()

  try:
    raise ValueError("boom")
  except ValueError:
    record = logging.LogRecord(
      name="reportbuilder.upstream",
      level=logging.ERROR,
      pathname=__file__,
      lineno=50,
      msg="Failure occurred",
      args=(),
      exc_info=None,
    )
    record.exc_info = sys.exc_info()
    record.error_category = "upstream"

  payload = json.loads(formatter.format(record))

  assert payload["level"] == "ERROR"
  assert payload["error_category"] == "upstream"
  assert payload["error"]["type"] == "ValueError"
  assert payload["error"]["message"] == "boom"
  assert any("ValueError: boom" in line for line in payload["error"]["traceback"])


@pytest.mark.parametrize(
  "tier,level,should_pass",
  [
    ("critical", logging.ERROR, True),
    ("critical", logging.INFO, False),
    ("operational", logging.INFO, True),
    ("operational", logging.WARNING, True),
    ("operational", logging.ERROR, False),
    ("debug", logging.DEBUG, True),
    ("debug", logging.INFO, False),
  ],
)
def test_tiered_log_filter(tier, level, should_pass):
  log_filter = TieredLogFilter(tier)
  record = _make_record(level)

  assert log_filter.filter(record) is should_pass


def test_get_logging_config_prod_has_expected_handlers(monkeypatch):
  monkeypatch.setattr(EnvConfig, "LOG_LEVEL", "INFO")
  config = get_logging_config("prod")

  assert config["handlers"]["console"]["formatter"] == "structured"
  assert "debug" not in config["handlers"]
  for name in APP_LOGGERS:
    assert config["loggers"][name]["handlers"] == ["critical", "operational"]
    assert config["loggers"][name]["level"] == "INFO"


def test_get_logging_config_staging_adds_debug_handler(monkeypatch):
  monkeypatch.setattr(EnvConfig, "LOG_LEVEL", "INFO")
  config = get_logging_config("staging")

  assert "debug" in config["handlers"]
  assert "debug" in config["loggers"]["reportbuilder.cache"]["handlers"]


def test_get_logging_config_test_is_quiet():
  config = get_logging_config("test")

  assert config["loggers"]["reportbuilder"]["level"] == "WARNING"
  assert "debug" not in config["handlers"]


def test_get_logging_config_dev_respects_log_level_override(monkeypatch):
  monkeypatch.setattr(EnvConfig, "LOG_LEVEL", "INFO")
  config = get_logging_config("dev")

  assert config["handlers"]["console"]["level"] == "INFO"
  assert config["handlers"]["console"]["formatter"] == "simple"
  assert "debug" not in config["handlers"]
  assert config["loggers"]["reportbuilder"]["handlers"] == ["console"]


def test_setup_logging_invokes_dict_config(monkeypatch):
  captured = {}

  def fake_dict_config(value):
    captured["config"] = value

  monkeypatch.setattr(logging.config, "dictConfig", fake_dict_config)
  setup_logging("test")

  assert captured["config"]["root"]["level"] == "WARNING"
  assert captured["config"]["loggers"]["uvicorn"]["level"] == "WARNING"


def test_log_error_includes_statement_context(caplog):
  logger = get_logger("tests.config.logging.error")

  with caplog.at_level(logging.ERROR, logger=logger.name):
    try:
      raise RuntimeError("stream broke")
    except RuntimeError as exc:
      log_error(
        logger,
        error=exc,
        component="upstream",
        action="stream_chunks",
        error_category="upstream",
        statement_id="stmt-9",
        metadata={"chunk": 3},
      )

  record = caplog.records[-1]
  assert record.component == "upstream"
  assert record.action == "stream_chunks"
  assert record.error_category == "upstream"
  assert record.statement_id == "stmt-9"
  assert record.metadata == {"chunk": 3}
  assert record.exc_info is not None
  assert record.getMessage() == "Error in upstream.stream_chunks: stream broke"


def test_log_performance_metric_logs_expected_fields(caplog):
  logger = get_logger("tests.config.logging.metric")

  with caplog.at_level(logging.INFO, logger=logger.name):
    log_performance_metric(
      logger,
      metric_name="view_build_ms",
      value=42,
      unit="ms",
      component="reports",
      metadata={"pages": 2},
    )

  record = caplog.records[-1]
  assert record.component == "performance"
  assert record.action == "metric_recorded"
  assert record.metric_name == "view_build_ms"
  assert record.metric_value == 42
  assert record.unit == "ms"
  assert record.source_component == "reports"
  assert record.metadata == {"pages": 2}
