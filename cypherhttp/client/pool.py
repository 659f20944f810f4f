"""
Thread-Safe HTTP Connection Pool

Bounded pool of persistent HTTP connections to a single server. Every pooled
``httpx.Client`` is limited to one keep-alive connection, so checking out a
client is checking out exactly one persistent connection.

Key features:
- Checkout/checkin discipline, a connection is never handed out twice
- Lazy connection creation up to the configured pool size
- Bounded waiting for a free connection (PoolTimeoutError afterwards)
- One-time server readiness probe with bounded retries
- Explicit shutdown (host applications call it on graceful shutdown)
"""

import math
import threading
import time
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional, Set

import httpx

from cypherhttp.config.constants import SERVER_READY_MARKER
from cypherhttp.logger import logger
from cypherhttp.version import __version__
from .config import CypherClientConfig
from .exceptions import PoolClosedError, PoolTimeoutError, RequestError

ConnectionFactory = Callable[[CypherClientConfig], httpx.Client]

DEFAULT_HEADERS = {
  "User-Agent": f"cypherhttp/{__version__}",
  "Accept": "application/json",
  "Accept-Encoding": "gzip",
  "Content-Type": "application/json",
  "X-Stream": "true",
}


def build_connection(config: CypherClientConfig) -> httpx.Client:
  """
  Build a persistent HTTP connection for the configured server.

  The ``http_client_configure`` hook of the config may replace or tweak the
  client, it must return the client to use.
  """
  client = httpx.Client(
    base_url=config.base_url,
    auth=httpx.BasicAuth(config.username, config.password),
    timeout=httpx.Timeout(config.request_timeout),
    limits=httpx.Limits(max_connections=1, max_keepalive_connections=1),
    headers={**DEFAULT_HEADERS, **config.headers},
    verify=config.verify_ssl,
  )

  if config.http_client_configure is not None:
    client = config.http_client_configure(client)
  return client


class ConnectionPool:
  """
  Thread-safe pool of persistent HTTP connections.

  Example:
      pool = ConnectionPool(config)
      with pool.connection() as conn:
          conn.get("/")
      pool.shutdown()
  """

  def __init__(
    self,
    config: CypherClientConfig,
    connection_factory: Optional[ConnectionFactory] = None,
  ):
    """
    Initialize connection pool.

    Args:
        config: Client configuration (pool size, timeouts, server URL)
        connection_factory: Builds a new connection, defaults to
            ``build_connection``
    """
    self.config = config
    self.size = config.connection_pool_size
    self.timeout = config.connection_pool_timeout
    self._factory = connection_factory or build_connection

    self._idle: List[httpx.Client] = []
    self._in_use: Set[httpx.Client] = set()
    self._lock = threading.Lock()
    self._available = threading.Condition(self._lock)
    self._closed = False

    # Server readiness probe state
    self._ready = False
    self._ready_lock = threading.Lock()
    self._upstream_retry_count = 0

    self._stats = {"created": 0, "reused": 0, "closed": 0}

    logger.debug(
      f"Initialized connection pool: {self.size} connections, "
      f"{self.timeout}s acquire timeout, {config.base_url}"
    )

  @property
  def closed(self) -> bool:
    return self._closed

  @property
  def server_ready(self) -> bool:
    return self._ready

  def acquire(self, timeout: Optional[float] = None) -> httpx.Client:
    """
    Check out a connection.

    Idle connections are reused last-in-first-out. New connections are
    created while the pool is below its size, otherwise we wait for a
    connection to be released.

    Args:
        timeout: Seconds to wait for a free connection, defaults to the
            configured ``connection_pool_timeout``

    Raises:
        PoolTimeoutError: When no connection became available in time
        PoolClosedError: When the pool was shut down
    """
    timeout = self.timeout if timeout is None else timeout
    deadline = time.monotonic() + timeout

    with self._available:
      while True:
        if self._closed:
          raise PoolClosedError("Connection pool is shut down")

        if self._idle:
          connection = self._idle.pop()
          self._stats["reused"] += 1
          break

        if self._total() < self.size:
          connection = self._create_connection()
          break

        remaining = deadline - time.monotonic()
        if remaining <= 0:
          raise PoolTimeoutError(
            f"Timed out after {timeout}s waiting for a connection "
            f"({self.size} of {self.size} in use)"
          )
        self._available.wait(remaining)

      self._in_use.add(connection)
      return connection

  def release(self, connection: httpx.Client) -> None:
    """
    Check a connection back in.

    Raises:
        ValueError: When the connection is not checked out from this pool
    """
    with self._available:
      if connection not in self._in_use:
        raise ValueError("Connection is not checked out from this pool")
      self._in_use.remove(connection)

      if not self._closed:
        self._idle.append(connection)
        self._available.notify()
        return

    # The pool was shut down while the connection was in use
    self._close_connection(connection)

  @contextmanager
  def connection(self, timeout: Optional[float] = None) -> Iterator[httpx.Client]:
    """Check out a connection for the duration of the block."""
    connection = self.acquire(timeout)
    try:
      yield connection
    finally:
      self.release(connection)

  def wait_for_server(self, connection: httpx.Client) -> httpx.Client:
    """
    Make sure the upstream server accepts requests.

    This comes in handy when the server boots in parallel to the
    application. The check runs once per pool; retries happen every
    ``retry_interval`` seconds until ``wait_for_upstream_server`` elapsed.

    Args:
        connection: The connection to probe with

    Returns:
        The given connection

    Raises:
        RequestError: When the server did not come up in time
    """
    if self._ready:
      return connection

    with self._ready_lock:
      if self._ready:
        return connection

      interval = self.config.retry_interval
      max_retries = max(1, math.ceil(self.config.wait_for_upstream_server / interval))

      while True:
        self._upstream_retry_count += 1
        try:
          body = connection.get("/").text
          if SERVER_READY_MARKER not in body:
            raise RequestError(f"Upstream server not available: {body}")
        except (httpx.HTTPError, RequestError) as e:
          if self._upstream_retry_count >= max_retries:
            if isinstance(e, RequestError):
              raise
            raise RequestError(f"Upstream server not available: {e}") from e

          logger.warning(
            f"Server is unavailable, retry in {interval:g} seconds "
            f"({self._upstream_retry_count}/{max_retries}, {self.config.base_url})",
            extra={"component": "pool", "action": "wait_for_server"},
          )
          time.sleep(interval)
          continue

        self._upstream_retry_count = 0
        self._ready = True
        logger.debug(f"Server is ready ({self.config.base_url})")
        return connection

  def shutdown(self) -> None:
    """
    Close all pooled connections.

    Idle connections are closed immediately, checked out connections when
    they are released. Safe to call multiple times.
    """
    with self._available:
      if self._closed:
        return
      self._closed = True
      idle, self._idle = self._idle, []
      in_use = len(self._in_use)
      self._available.notify_all()

    for connection in idle:
      self._close_connection(connection)

    logger.info(
      f"Connection pool shut down ({len(idle)} closed, {in_use} still in use)",
      extra={"component": "pool", "action": "shutdown"},
    )

  close = shutdown

  def stats(self) -> Dict[str, int]:
    """Get pool statistics."""
    with self._lock:
      return {
        "size": self.size,
        "idle": len(self._idle),
        "in_use": len(self._in_use),
        **self._stats,
      }

  def _total(self) -> int:
    return len(self._idle) + len(self._in_use)

  def _create_connection(self) -> httpx.Client:
    connection = self._factory(self.config)
    self._stats["created"] += 1
    logger.debug(
      f"Created connection {self._stats['created']} "
      f"for {self.config.base_url}"
    )
    return connection

  def _close_connection(self, connection: httpx.Client) -> None:
    try:
      connection.close()
    except Exception as e:
      logger.warning(f"Error closing connection: {e}")
      return

    with self._lock:
      self._stats["closed"] += 1
