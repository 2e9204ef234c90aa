"""Tests for statement client configuration, error mapping and retry policy."""

from unittest.mock import patch

import pytest

from reportbuilder.config.env import EnvConfig
from reportbuilder.upstream import (
  StatementAPIError,
  StatementClientConfig,
  StatementClientError,
  StatementServerError,
  StatementTimeoutError,
  StatementTransientError,
)
from reportbuilder.upstream.base import BaseStatementClient


class TestStatementClientConfig:
  def test_from_env_reads_engine_settings(self, monkeypatch):
    monkeypatch.setattr(EnvConfig, "DATABRICKS_HOST", "https://dbc.example.net")
    monkeypatch.setattr(EnvConfig, "DATABRICKS_TOKEN", "dapi-token")
    monkeypatch.setattr(EnvConfig, "DATABRICKS_WAREHOUSE_ID", "wh-1")
    monkeypatch.setattr(EnvConfig, "DATABRICKS_CONNECT_TIMEOUT_MS", 1500)
    monkeypatch.setattr(EnvConfig, "DATABRICKS_READ_TIMEOUT_MS", 20000)
    monkeypatch.setattr(EnvConfig, "STATEMENT_POLL_INTERVAL_MS", 250)

    config = StatementClientConfig.from_env()

    assert config.base_url == "https://dbc.example.net"
    assert config.token == "dapi-token"
    assert config.warehouse_id == "wh-1"
    assert config.connect_timeout == pytest.approx(1.5)
    assert config.read_timeout == pytest.approx(20.0)
    assert config.poll_interval == pytest.approx(0.25)

  def test_from_env_applies_prefixed_overrides(self, monkeypatch):
    monkeypatch.setenv("STATEMENT_CLIENT_MAX_RETRIES", "5")
    monkeypatch.setenv("STATEMENT_CLIENT_RETRY_DELAY", "0.5")
    monkeypatch.setenv("STATEMENT_CLIENT_VERIFY_SSL", "false")

    config = StatementClientConfig.from_env()

    assert config.max_retries == 5
    assert config.retry_delay == pytest.approx(0.5)
    assert config.verify_ssl is False

  def test_with_overrides_copies_headers(self):
    config = StatementClientConfig(base_url="https://a", headers={"X-Trace": "1"})

    copy = config.with_overrides(max_retries=0)
    copy.headers["X-Other"] = "2"

    assert copy.max_retries == 0
    assert copy.base_url == "https://a"
    assert config.headers == {"X-Trace": "1"}


class TestBaseStatementClient:
  @pytest.fixture
  def base_client(self):
    return BaseStatementClient(
      StatementClientConfig(
        base_url="https://dbc.example.net/",
        token="tok",
        warehouse_id="wh-1",
        max_retries=2,
        retry_delay=1.0,
        retry_backoff=2.0,
        circuit_breaker_threshold=3,
        circuit_breaker_timeout=60,
      )
    )

  def test_requires_base_url(self):
    with pytest.raises(ValueError, match="base_url"):
      BaseStatementClient(StatementClientConfig(base_url=""))

  def test_normalizes_base_url_and_sets_bearer_token(self, base_client):
    assert base_client.config.base_url == "https://dbc.example.net"
    assert base_client.config.headers["Authorization"] == "Bearer tok"

  def test_missing_token_sends_no_authorization(self):
    client = BaseStatementClient(StatementClientConfig(base_url="https://a"))

    assert "Authorization" not in client.config.headers

  def test_kwargs_override_config(self):
    client = BaseStatementClient(
      StatementClientConfig(base_url="https://a"), max_retries=7
    )

    assert client.config.max_retries == 7

  @pytest.mark.parametrize(
    "status_code,expected",
    [
      (400, StatementClientError),
      (401, StatementClientError),
      (404, StatementClientError),
      (429, StatementTransientError),
      (500, StatementServerError),
      (502, StatementTransientError),
      (503, StatementTransientError),
      (504, StatementTransientError),
      (507, StatementServerError),
      (418, StatementAPIError),
    ],
  )
  def test_handle_response_error_maps_status(self, base_client, status_code, expected):
    error = base_client._handle_response_error(status_code, {"message": "nope"})

    assert type(error) is expected
    assert error.status_code == status_code
    assert str(error) == "nope"

  def test_handle_response_error_falls_back_to_detail(self, base_client):
    error = base_client._handle_response_error(400, {"detail": "bad sql"})

    assert str(error) == "bad sql"
    assert error.response_data == {"detail": "bad sql"}

  def test_handle_response_error_default_message(self, base_client):
    assert str(base_client._handle_response_error(500)) == "Statement API request failed"

  def test_should_retry(self, base_client):
    assert base_client._should_retry(StatementTransientError("x"), 0) is True
    assert base_client._should_retry(StatementTimeoutError("x"), 1) is True
    assert base_client._should_retry(StatementServerError("x"), 0) is True
    assert base_client._should_retry(StatementClientError("x"), 0) is False
    assert base_client._should_retry(ValueError("x"), 0) is False
    assert base_client._should_retry(StatementTransientError("x"), 2) is False

  def test_retry_delay_backs_off_with_bounded_jitter(self, base_client):
    for attempt, base in [(0, 1.0), (1, 2.0), (2, 4.0)]:
      delay = base_client._calculate_retry_delay(attempt)
      assert base <= delay <= base * 1.1

  def test_circuit_breaker_opens_after_threshold(self, base_client):
    for _ in range(3):
      base_client._record_failure()

    with pytest.raises(StatementTransientError, match="Circuit breaker open"):
      base_client._check_circuit_breaker()

  def test_circuit_breaker_resets_after_timeout(self, base_client):
    for _ in range(3):
      base_client._record_failure()

    with patch("reportbuilder.upstream.base.time.time") as mock_time:
      mock_time.return_value = base_client._circuit_breaker_last_failure + 61
      base_client._check_circuit_breaker()

    assert base_client._circuit_breaker_open is False
    assert base_client._circuit_breaker_failures == 0

  def test_success_closes_circuit(self, base_client):
    for _ in range(3):
      base_client._record_failure()

    base_client._record_success()

    base_client._check_circuit_breaker()
    assert base_client._circuit_breaker_failures == 0
