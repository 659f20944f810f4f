"""
Cypher HTTP Client.

Entry point of the library. Owns the connection pool and offers the
transaction helpers on top of it:

- ``transaction_strict`` / ``transaction``: multi request transactions,
  committed when the block finishes, rolled back when it raises
- ``one_shot_strict`` / ``one_shot``: collect statements, send them as a
  single self-committing request
- ``execute_strict`` / ``execute`` (aliases ``write_strict`` / ``write``)
  and ``query_strict`` / ``query`` (aliases ``read_strict`` / ``read``):
  a single statement as one-shot transaction

The ``*_strict`` helpers raise on errors, the others return ``None``.
"""

import threading
from contextlib import contextmanager
from typing import Any, Callable, Iterator, List, Optional, TypeVar, Union

import httpx

from cypherhttp.logger import log_client_error, logger
from .collector import StatementCollector
from .config import CypherClientConfig
from .exceptions import ConfigurationError, RequestError, ResponseError
from .pool import ConnectionFactory, ConnectionPool
from .request import AccessMode, RequestExecutor
from .transaction import Transaction

T = TypeVar("T")

AccessModeInput = Union[AccessMode, str]


class CypherClient:
  """
  Client for the transactional Cypher HTTP API.

  Example:
      with CypherClient(base_url="http://localhost:7474") as db:
          with db.transaction_strict() as tx:
              tx.run_strict("CREATE (n:User { name: $name })", name="Klaus")

          db.query_strict("MATCH (n:User) RETURN n.name").value
  """

  def __init__(
    self,
    config: Optional[CypherClientConfig] = None,
    connection_factory: Optional[ConnectionFactory] = None,
    **kwargs,
  ):
    """
    Initialize the client.

    Args:
        config: Client configuration, read from the environment when omitted
        connection_factory: Builds pooled connections (mostly for testing)
        **kwargs: Additional config overrides

    Raises:
        ConfigurationError: When the configuration is invalid
    """
    self.config = config or CypherClientConfig.from_env()
    if kwargs:
      self.config = self.config.with_overrides(**kwargs)

    errors = self.config.validate()
    if errors:
      raise ConfigurationError(f"Invalid configuration: {'; '.join(errors)}")

    self._connection_factory = connection_factory
    self._pool: Optional[ConnectionPool] = None
    self._pool_lock = threading.Lock()

  def __enter__(self):
    """Context manager entry."""
    return self

  def __exit__(self, exc_type, exc_val, exc_tb):
    """Context manager exit."""
    self.close()

  @property
  def pool(self) -> ConnectionPool:
    """The connection pool, created on first use."""
    if self._pool is None:
      with self._pool_lock:
        if self._pool is None:
          self._pool = ConnectionPool(self.config, self._connection_factory)
    return self._pool

  def close(self) -> None:
    """Shut down the connection pool, call this on application shutdown."""
    with self._pool_lock:
      pool, self._pool = self._pool, None
    if pool is not None:
      pool.shutdown()

  @contextmanager
  def transaction_strict(
    self,
    access_mode: AccessModeInput = AccessMode.WRITE,
    database: Optional[str] = None,
    raw_results: bool = False,
  ) -> Iterator[Transaction]:
    """
    Run statements inside a new transaction.

    The transaction is committed when the block finishes and still open.
    When the block raises, the transaction is rolled back and the exception
    is re-raised.

    Raises:
        RequestError: When begin or commit failed
        ResponseError: When the server reported an error
    """
    pool = self.pool
    with pool.connection() as connection:
      tx = self._transaction(pool, connection, access_mode, database, raw_results)
      try:
        tx.begin_strict()
        try:
          yield tx
        except Exception:
          if tx.state.is_open:
            tx.rollback()
          raise

        if tx.state.is_open:
          tx.commit_strict()
      finally:
        tx.cleanup()

  @contextmanager
  def transaction(
    self,
    access_mode: AccessModeInput = AccessMode.WRITE,
    database: Optional[str] = None,
    raw_results: bool = False,
  ) -> Iterator[Optional[Transaction]]:
    """
    Run statements inside a new transaction, tolerating client errors.

    Yields ``None`` when the transaction could not be started. A failed
    commit is not retried, check ``tx.committed`` afterwards. Exceptions
    raised by the block itself roll back the transaction and are re-raised.
    """
    pool = self.pool
    with pool.connection() as connection:
      tx = self._transaction(pool, connection, access_mode, database, raw_results)
      try:
        if not tx.begin():
          yield None
          return

        try:
          yield tx
        except Exception:
          if tx.state.is_open:
            tx.rollback()
          raise

        if tx.state.is_open:
          tx.commit()
      finally:
        tx.cleanup()

  def run_transaction_strict(
    self,
    fn: Callable[[Transaction], T],
    access_mode: AccessModeInput = AccessMode.WRITE,
    database: Optional[str] = None,
    raw_results: bool = False,
  ) -> T:
    """
    Call ``fn(tx)`` inside a new transaction and return its result.

    Raises:
        RequestError: When begin or commit failed
        ResponseError: When the server reported an error
    """
    with self.transaction_strict(access_mode, database, raw_results) as tx:
      return fn(tx)

  def run_transaction(
    self,
    fn: Callable[[Transaction], T],
    access_mode: AccessModeInput = AccessMode.WRITE,
    database: Optional[str] = None,
    raw_results: bool = False,
  ) -> Optional[T]:
    """
    Call ``fn(tx)`` inside a new transaction, tolerating client errors.

    Returns:
        The result of ``fn``, or ``None`` when begin or commit failed
    """
    pool = self.pool
    with pool.connection() as connection:
      tx = self._transaction(pool, connection, access_mode, database, raw_results)
      try:
        if not tx.begin():
          return None

        try:
          result = fn(tx)
        except Exception:
          if tx.state.is_open:
            tx.rollback()
          raise

        if tx.state.is_open and tx.commit() is None:
          return None
        return result
      finally:
        tx.cleanup()

  def one_shot_strict(
    self,
    fn: Callable[[StatementCollector], Any],
    access_mode: AccessModeInput = AccessMode.WRITE,
    database: Optional[str] = None,
    raw_results: bool = False,
  ) -> List[Any]:
    """
    Collect statements with ``fn(collector)`` and run them in one request.

    When ``fn`` raises, nothing is sent to the server.

    Returns:
        One result per collected statement

    Raises:
        ValueError: When no statements were collected
        RequestError: On transport errors or when a statement failed
    """
    pool = self.pool
    with pool.connection() as connection:
      request = self._request(pool, connection, access_mode, database, raw_results)
      collector = StatementCollector()
      fn(collector)
      return request.one_shot_transaction(*collector.statements)

  def one_shot(
    self,
    fn: Callable[[StatementCollector], Any],
    access_mode: AccessModeInput = AccessMode.WRITE,
    database: Optional[str] = None,
    raw_results: bool = False,
  ) -> Optional[List[Any]]:
    """
    Collect statements with ``fn(collector)`` and run them in one request.

    Returns:
        One result per collected statement, ``None`` on client errors
    """
    pool = self.pool
    with pool.connection() as connection:
      request = self._request(pool, connection, access_mode, database, raw_results)
      collector = StatementCollector()
      fn(collector)

      try:
        return request.one_shot_transaction(*collector.statements)
      except (RequestError, ResponseError) as e:
        log_client_error(
          e,
          action="one_shot",
          metadata={"statement_count": len(collector.statements)},
        )
        return None

  def execute_strict(
    self,
    cypher: str,
    /,
    access_mode: AccessModeInput = AccessMode.WRITE,
    database: Optional[str] = None,
    raw_results: bool = False,
    **parameters: Any,
  ) -> Any:
    """
    Run a single statement as one-shot transaction.

    Returns:
        The result of the statement, ``None`` when the server sent none
    """
    results = self.one_shot_strict(
      lambda collector: collector.add(cypher, **parameters),
      access_mode=access_mode,
      database=database,
      raw_results=raw_results,
    )
    return results[0] if results else None

  def execute(
    self,
    cypher: str,
    /,
    access_mode: AccessModeInput = AccessMode.WRITE,
    database: Optional[str] = None,
    raw_results: bool = False,
    **parameters: Any,
  ) -> Any:
    """Run a single statement as one-shot transaction, ``None`` on errors."""
    results = self.one_shot(
      lambda collector: collector.add(cypher, **parameters),
      access_mode=access_mode,
      database=database,
      raw_results=raw_results,
    )
    return results[0] if results else None

  def query_strict(
    self,
    cypher: str,
    /,
    access_mode: AccessModeInput = AccessMode.READ,
    **kwargs: Any,
  ) -> Any:
    """Run a single statement in read access mode."""
    return self.execute_strict(cypher, access_mode=access_mode, **kwargs)

  def query(
    self,
    cypher: str,
    /,
    access_mode: AccessModeInput = AccessMode.READ,
    **kwargs: Any,
  ) -> Any:
    """Run a single statement in read access mode, ``None`` on errors."""
    return self.execute(cypher, access_mode=access_mode, **kwargs)

  write_strict = execute_strict
  write = execute
  read_strict = query_strict
  read = query

  def _request(
    self,
    pool: ConnectionPool,
    connection: httpx.Client,
    access_mode: AccessModeInput,
    database: Optional[str],
    raw_results: bool,
  ) -> RequestExecutor:
    return RequestExecutor(
      connection,
      self.config,
      access_mode=access_mode,
      database=database,
      raw_results=raw_results,
      pool=pool,
    )

  def _transaction(
    self,
    pool: ConnectionPool,
    connection: httpx.Client,
    access_mode: AccessModeInput,
    database: Optional[str],
    raw_results: bool,
  ) -> Transaction:
    tx = Transaction(
      connection,
      self.config,
      access_mode=access_mode,
      database=database,
      raw_results=raw_results,
      pool=pool,
    )
    logger.debug(f"Prepared {tx!r} on database {tx.request.database}")
    return tx
