"""
Structured Logging Configuration for cypherhttp

JSON structured logs for production log pipelines and a plain text format
for local development. The library never installs handlers on import; host
applications call ``setup_logging()`` when they want this configuration.

Key Features:
- Tiered logging (Critical/Operational/Debug) split across streams
- Structured JSON output with searchable component/action fields
- Automatic log level management by environment
"""

import json
import logging
import logging.config
import traceback
from datetime import datetime, timezone
from typing import Any

from cypherhttp.config.env import EnvConfig


class StructuredFormatter(logging.Formatter):
  """
  JSON formatter that creates searchable structured logs.

  - Timestamp in ISO format
  - Consistent field names for filtering
  - Hierarchical component/action structure
  - Metadata preserved as searchable fields
  """

  # Optional record attributes copied into the log entry when present
  OPTIONAL_FIELDS = (
    "action",
    "database",
    "access_mode",
    "tx_id",
    "request_count",
    "duration_ms",
    "status_code",
    "statement_count",
  )

  def format(self, record: logging.LogRecord) -> str:
    log_entry = {
      "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc)
      .replace(tzinfo=None)
      .isoformat()
      + "Z",
      "level": record.levelname,
      "component": getattr(record, "component", record.name),
      "message": record.getMessage(),
    }

    for field in self.OPTIONAL_FIELDS:
      if hasattr(record, field):
        log_entry[field] = getattr(record, field)

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


APPLICATION_LOGGERS = ["cypherhttp", "cypherhttp.query"]


def get_logging_config(environment: str | None = None) -> dict[str, Any]:
  """
  Generate logging configuration based on environment.

  - prod: INFO level, structured output, no debug logs
  - staging: INFO level, with debug logs enabled
  - test: WARNING level, minimal output for clean test runs
  - dev: DEBUG level, all logs enabled (unless LOG_LEVEL overrides)
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
      for name in APPLICATION_LOGGERS
    },
  }

  # The transport libraries are chatty at DEBUG level
  for name in ("httpx", "httpcore"):
    config["loggers"][name] = {
      "level": "WARNING",
      "handlers": ["critical"] if env != "dev" else ["console"],
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
      for logger_name in APPLICATION_LOGGERS:
        config["loggers"][logger_name]["handlers"].append("debug")

  return config


def setup_logging(environment: str | None = None) -> None:
  """Initialize structured logging configuration."""
  config = get_logging_config(environment)
  logging.config.dictConfig(config)


def get_logger(name: str) -> logging.Logger:
  """Get a logger with structured logging capabilities."""
  return logging.getLogger(name)


def log_error(
  logger: logging.Logger,
  error: Exception,
  component: str,
  action: str,
  error_category: str = "application",
  metadata: dict[str, Any] | None = None,
  level: int = logging.ERROR,
) -> None:
  """Log error with structured data for easy searching."""
  logger.log(
    level,
    f"Error in {component}.{action}: {error!s}",
    exc_info=level >= logging.ERROR,
    extra={
      "component": component,
      "action": action,
      "error_category": error_category,
      "metadata": metadata or {},
    },
  )
