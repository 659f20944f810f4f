import json
import logging
import sys

import pytest

from cypherhttp.config.env import EnvConfig
from cypherhttp.config.logging import (
  APPLICATION_LOGGERS,
  StructuredFormatter,
  TieredLogFilter,
  get_logger,
  get_logging_config,
  log_error,
  setup_logging,
)
from cypherhttp.client.exceptions import TransactionNotFoundError
from cypherhttp.logger import log_client_error, logger as client_logger


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


def test_structured_formatter_includes_optional_fields():
  formatter = StructuredFormatter()
  record = logging.LogRecord(
    name="cypherhttp.query",
    level=logging.INFO,
    pathname=__file__,
    lineno=10,
    msg="Test %s",
    args=("message",),
    exc_info=None,
  )
  record.component = "request"
  record.action = "write"
  record.database = "neo4j"
  record.access_mode = "write"
  record.tx_id = 12
  record.request_count = 3
  record.duration_ms = 42.5
  record.statement_count = 2
  record.metadata = {"key": "value"}

  payload = json.loads(formatter.format(record))

  assert payload["message"] == "Test message"
  assert payload["level"] == "INFO"
  assert payload["component"] == "request"
  assert payload["action"] == "write"
  assert payload["database"] == "neo4j"
  assert payload["access_mode"] == "write"
  assert payload["tx_id"] == 12
  assert payload["request_count"] == 3
  assert payload["duration_ms"] == 42.5
  assert payload["statement_count"] == 2
  assert payload["metadata"] == {"key": "value"}
  assert payload["timestamp"].endswith("Z")


def test_structured_formatter_defaults_component_to_logger_name():
  formatter = StructuredFormatter()

  payload = json.loads(formatter.format(_make_record(logging.INFO)))

  assert payload["component"] == "test"
  assert "tx_id" not in payload
  assert "error" not in payload


def test_structured_formatter_includes_error_details():
  formatter = StructuredFormatter()

  try:
    raise ValueError("boom")
  except ValueError:
    record = logging.LogRecord(
      name="cypherhttp",
      level=logging.ERROR,
      pathname=__file__,
      lineno=50,
      msg="Failure occurred",
      args=(),
      exc_info=None,
    )
    record.exc_info = sys.exc_info()
    record.error_category = "TransactionRollbackError"

  payload = json.loads(formatter.format(record))

  assert payload["level"] == "ERROR"
  assert payload["error_category"] == "TransactionRollbackError"
  assert payload["error"]["type"] == "ValueError"
  assert payload["error"]["message"] == "boom"
  assert isinstance(payload["error"]["traceback"], list)
  assert any("ValueError: boom" in line for line in payload["error"]["traceback"])


def test_structured_formatter_skips_error_category_below_error():
  formatter = StructuredFormatter()
  record = _make_record(logging.WARNING)
  record.error_category = "RequestError"

  payload = json.loads(formatter.format(record))

  assert "error_category" not in payload


@pytest.mark.parametrize(
  "tier,level,should_pass",
  [
    ("critical", logging.ERROR, True),
    ("critical", logging.CRITICAL, True),
    ("critical", logging.INFO, False),
    ("operational", logging.INFO, True),
    ("operational", logging.WARNING, True),
    ("operational", logging.ERROR, False),
    ("debug", logging.DEBUG, True),
    ("debug", logging.INFO, False),
    ("unknown", logging.DEBUG, True),
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
  for name in APPLICATION_LOGGERS:
    assert config["loggers"][name]["handlers"] == ["critical", "operational"]
    assert config["loggers"][name]["level"] == "INFO"


def test_get_logging_config_staging_adds_debug_handler(monkeypatch):
  monkeypatch.setattr(EnvConfig, "LOG_LEVEL", "INFO")
  config = get_logging_config("staging")

  assert "debug" in config["handlers"]
  assert "debug" in config["loggers"]["cypherhttp"]["handlers"]
  assert "debug" in config["loggers"]["cypherhttp.query"]["handlers"]
  assert config["handlers"]["debug"]["level"] == "DEBUG"


def test_get_logging_config_test_is_quiet(monkeypatch):
  monkeypatch.setattr(EnvConfig, "LOG_LEVEL", "DEBUG")
  config = get_logging_config("test")

  assert config["loggers"]["cypherhttp"]["level"] == "WARNING"
  assert "debug" not in config["handlers"]


def test_get_logging_config_dev_respects_log_level_override(monkeypatch):
  monkeypatch.setattr(EnvConfig, "LOG_LEVEL", "DEBUG")
  config = get_logging_config("dev")

  assert config["handlers"]["console"]["level"] == "DEBUG"
  assert config["handlers"]["console"]["formatter"] == "simple"
  assert "debug" in config["handlers"]
  assert config["loggers"]["cypherhttp"]["handlers"] == ["console"]


def test_get_logging_config_dev_without_debug(monkeypatch):
  monkeypatch.setattr(EnvConfig, "LOG_LEVEL", "INFO")
  config = get_logging_config("dev")

  assert config["handlers"]["console"]["level"] == "INFO"
  assert "debug" not in config["handlers"]


@pytest.mark.parametrize("environment", ["prod", "staging", "test", "dev"])
def test_get_logging_config_quiets_transport_loggers(monkeypatch, environment):
  monkeypatch.setattr(EnvConfig, "LOG_LEVEL", "DEBUG")
  config = get_logging_config(environment)

  for name in ("httpx", "httpcore"):
    assert config["loggers"][name]["level"] == "WARNING"
    assert config["loggers"][name]["propagate"] is False


def test_get_logging_config_defaults_to_environment(monkeypatch):
  monkeypatch.setattr(EnvConfig, "ENVIRONMENT", "prod")
  monkeypatch.setattr(EnvConfig, "LOG_LEVEL", "DEBUG")
  config = get_logging_config()

  assert config["loggers"]["cypherhttp"]["handlers"] == ["critical", "operational"]


def test_setup_logging_invokes_dict_config(monkeypatch):
  captured = {}

  def fake_dict_config(value):
    captured["config"] = value

  monkeypatch.setattr(logging.config, "dictConfig", fake_dict_config)
  setup_logging("test")

  assert captured["config"]["loggers"]["cypherhttp"]["level"] == "WARNING"
  assert captured["config"]["disable_existing_loggers"] is False


def test_log_error_includes_metadata(caplog):
  logger = get_logger("tests.config.logging.error")

  with caplog.at_level(logging.ERROR, logger=logger.name):
    try:
      raise RuntimeError("Failure")
    except RuntimeError as exc:
      log_error(
        logger,
        error=exc,
        component="pool",
        action="shutdown",
        error_category="runtime",
        metadata={"foo": "bar"},
      )

  record = caplog.records[-1]
  assert record.getMessage() == "Error in pool.shutdown: Failure"
  assert record.component == "pool"
  assert record.action == "shutdown"
  assert record.error_category == "runtime"
  assert record.metadata == {"foo": "bar"}
  assert record.exc_info is not None


def test_log_error_below_error_level_skips_traceback(caplog):
  logger = get_logger("tests.config.logging.warning")

  with caplog.at_level(logging.WARNING, logger=logger.name):
    log_error(
      logger,
      error=ValueError("soft"),
      component="client",
      action="run",
      level=logging.WARNING,
    )

  record = caplog.records[-1]
  assert record.levelno == logging.WARNING
  assert not record.exc_info
  assert record.metadata == {}
  assert record.error_category == "application"


def test_log_client_error_logs_warning_with_category(caplog):
  with caplog.at_level(logging.WARNING, logger=client_logger.name):
    log_client_error(
      TransactionNotFoundError("Unrecognized transaction id 7"),
      action="commit",
      metadata={"tx_id": 7},
    )

  record = caplog.records[-1]
  assert record.name == "cypherhttp"
  assert record.levelno == logging.WARNING
  assert record.component == "client"
  assert record.action == "commit"
  assert record.error_category == "TransactionNotFoundError"
  assert record.metadata == {"tx_id": 7}
  assert "client.commit" in record.getMessage()
