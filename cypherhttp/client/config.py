"""
Cypher HTTP Client Configuration.

Centralized configuration for the transactional Cypher HTTP client. A config
instance is passed explicitly to the client, pool and request objects; there
is no process wide mutable configuration.
"""

from dataclasses import dataclass, field, fields, replace
from typing import Any, Callable, Dict, List, Optional

import httpx

from cypherhttp.config.constants import (
  DEFAULT_BASE_URL,
  DEFAULT_DATABASE,
  DEFAULT_PASSWORD,
  DEFAULT_POOL_SIZE,
  DEFAULT_POOL_TIMEOUT,
  DEFAULT_REQUEST_TIMEOUT,
  DEFAULT_RETRY_INTERVAL,
  DEFAULT_USERNAME,
  DEFAULT_WAIT_FOR_UPSTREAM_SERVER,
  QUERY_LOG_DEBUG,
  QUERY_LOG_MODES,
  QUERY_LOG_OFF,
  QUERY_LOG_ON,
)
from cypherhttp.config.env import get_bool_env, get_float_env, get_int_env, get_str_env

# Receives the raw response body (and the response) before JSON decoding,
# must return a still parseable JSON string
RawResponseHandler = Callable[[str, Optional[httpx.Response]], str]

# Receives a freshly built HTTP client, returns the client to pool
HttpClientConfigure = Callable[[httpx.Client], httpx.Client]


def normalize_query_log(value: Any) -> str:
  """
  Coerce a query logging setting into one of ``off``, ``on`` or ``debug``.

  Booleans are accepted for convenience (``True`` means ``on``).

  Raises:
      ValueError: For unknown settings
  """
  if value is None or value is False:
    return QUERY_LOG_OFF
  if value is True:
    return QUERY_LOG_ON

  mode = str(value).strip().lower()
  if mode in ("true", "1", "yes"):
    return QUERY_LOG_ON
  if mode in ("false", "0", "no", ""):
    return QUERY_LOG_OFF
  if mode not in QUERY_LOG_MODES:
    raise ValueError(
      f"Unknown query log mode '{value}'. Use one of: {', '.join(QUERY_LOG_MODES)}"
    )
  return mode


@dataclass
class CypherClientConfig:
  """Configuration for Cypher HTTP clients."""

  # Connection settings
  base_url: str = DEFAULT_BASE_URL
  username: str = DEFAULT_USERNAME
  password: str = DEFAULT_PASSWORD
  default_db: str = DEFAULT_DATABASE

  # Connection pool settings
  connection_pool_size: int = DEFAULT_POOL_SIZE
  connection_pool_timeout: float = DEFAULT_POOL_TIMEOUT

  # Request settings
  request_timeout: float = DEFAULT_REQUEST_TIMEOUT
  headers: Dict[str, str] = field(default_factory=dict)
  verify_ssl: bool = True

  # Server readiness probe
  wait_for_upstream_server: float = DEFAULT_WAIT_FOR_UPSTREAM_SERVER
  retry_interval: float = DEFAULT_RETRY_INTERVAL

  # Query logging: "off", "on" or "debug" (no parameter sanitation is done,
  # secrets passed as parameters end up in the logs when enabled)
  query_log: str = QUERY_LOG_OFF

  # Hooks
  raw_response_handler: Optional[RawResponseHandler] = None
  http_client_configure: Optional[HttpClientConfigure] = None

  def __post_init__(self) -> None:
    self.base_url = self.base_url.rstrip("/")
    self.query_log = normalize_query_log(self.query_log)

  @property
  def query_log_enabled(self) -> bool:
    """Whether any query logging is enabled."""
    return self.query_log != QUERY_LOG_OFF

  @property
  def query_debug_log_enabled(self) -> bool:
    """Whether statements are logged before they are sent."""
    return self.query_log == QUERY_LOG_DEBUG

  @classmethod
  def from_env(cls, prefix: str = "CYPHER_CLIENT_") -> "CypherClientConfig":
    """
    Create configuration from environment variables.

    Args:
        prefix: Environment variable prefix

    Returns:
        CypherClientConfig instance
    """
    defaults = cls()

    def key(suffix: str) -> str:
      return prefix + suffix

    return cls(
      base_url=get_str_env(key("BASE_URL"), defaults.base_url),
      username=get_str_env(key("USERNAME"), defaults.username),
      password=get_str_env(key("PASSWORD"), defaults.password),
      default_db=get_str_env(key("DEFAULT_DB"), defaults.default_db),
      connection_pool_size=get_int_env(
        key("CONNECTION_POOL_SIZE"), defaults.connection_pool_size
      ),
      connection_pool_timeout=get_float_env(
        key("CONNECTION_POOL_TIMEOUT"), defaults.connection_pool_timeout
      ),
      request_timeout=get_float_env(key("REQUEST_TIMEOUT"), defaults.request_timeout),
      verify_ssl=get_bool_env(key("VERIFY_SSL"), defaults.verify_ssl),
      wait_for_upstream_server=get_float_env(
        key("WAIT_FOR_UPSTREAM_SERVER"), defaults.wait_for_upstream_server
      ),
      retry_interval=get_float_env(key("RETRY_INTERVAL"), defaults.retry_interval),
      query_log=get_str_env(key("QUERY_LOG"), defaults.query_log),
    )

  def with_overrides(self, **kwargs: Any) -> "CypherClientConfig":
    """
    Create a new config with overridden values.

    Args:
        **kwargs: Values to override

    Returns:
        New CypherClientConfig instance

    Raises:
        TypeError: For unknown configuration keys
    """
    known = {f.name for f in fields(self)}
    unknown = sorted(set(kwargs) - known)
    if unknown:
      raise TypeError(f"Unknown configuration keys: {', '.join(unknown)}")

    if "headers" not in kwargs:
      kwargs["headers"] = self.headers.copy()
    return replace(self, **kwargs)

  def validate(self) -> List[str]:
    """
    Validate the configuration.

    Returns:
        List of validation errors (empty if all valid)
    """
    errors = []

    if not self.base_url:
      errors.append("base_url must be provided")
    elif not self.base_url.startswith(("http://", "https://")):
      errors.append(f"base_url must be an http(s) URL: {self.base_url}")

    if not self.default_db:
      errors.append("default_db must be provided")

    if self.connection_pool_size < 1:
      errors.append("connection_pool_size must be at least 1")

    for attr in ("connection_pool_timeout", "request_timeout", "retry_interval"):
      if getattr(self, attr) <= 0:
        errors.append(f"{attr} must be greater than 0")

    if self.wait_for_upstream_server < 0:
      errors.append("wait_for_upstream_server must not be negative")

    return errors
