"""
Cypher HTTP Transaction.

A single transaction on a dedicated connection, modelled as a small state
machine::

    NOT_STARTED --begin--> OPEN --commit/rollback--> CLOSED
         any state --cleanup--> CLEANED

Every operation comes in two flavours. The ``*_strict`` methods raise on any
problem. The tolerant methods (``begin``, ``run``, ``commit``, ...) return a
fallback value instead and make the transaction unusable, as the server
rolls back a transaction on any error anyway.
A strict method which receives a rollback error closes the transaction
locally, no further request is sent for it.

When passing Cypher parameters, the reserved keys ``with_stats=True`` and
``result_as_graph=True`` tweak the result shape and are not sent as
parameters.
"""

from enum import Enum
from typing import Any, Callable, List, Optional, TypeVar, Union

import httpx

from cypherhttp.logger import log_client_error
from .config import CypherClientConfig
from .exceptions import (
  RequestError,
  ResponseError,
  TransactionInBadStateError,
  TransactionNotFoundError,
  TransactionRollbackError,
)
from .pool import ConnectionPool
from .request import AccessMode, RequestExecutor
from .statements import StatementInput, statement_payload, statement_payloads
from . import utils

T = TypeVar("T")


class TransactionState(str, Enum):
  """Client side transaction states."""

  NOT_STARTED = "not_started"
  OPEN = "open"
  CLOSED = "closed"
  CLEANED = "cleaned"

  @property
  def is_not_started(self) -> bool:
    return self is TransactionState.NOT_STARTED

  @property
  def is_open(self) -> bool:
    return self is TransactionState.OPEN

  @property
  def is_closed(self) -> bool:
    return self is TransactionState.CLOSED

  @property
  def is_cleaned(self) -> bool:
    return self is TransactionState.CLEANED


class Transaction:
  """
  A single transaction of the transactional Cypher HTTP API.

  Example:
      tx = Transaction(connection, config)
      tx.begin_strict()
      tx.run_strict("CREATE (n:User { name: $name })", name="Klaus")
      tx.commit_strict()
      tx.cleanup()
  """

  # Cypher helpers, available right on the transaction
  build_cypher = staticmethod(utils.build_cypher)
  prepare_label = staticmethod(utils.prepare_label)
  prepare_type = staticmethod(utils.prepare_type)
  prepare_string = staticmethod(utils.prepare_string)
  to_options = staticmethod(utils.to_options)
  resolve_cypher = staticmethod(utils.resolve_cypher)

  def __init__(
    self,
    connection: httpx.Client,
    config: CypherClientConfig,
    access_mode: Union[AccessMode, str] = AccessMode.WRITE,
    database: Optional[str] = None,
    raw_results: bool = False,
    pool: Optional[ConnectionPool] = None,
  ):
    """
    Initialize a not yet started transaction.

    Args:
        connection: A checked out, ready to use persistent connection
        config: Client configuration
        access_mode: Transaction access mode (``read`` or ``write``)
        database: Database to use, defaults to ``config.default_db``
        raw_results: Return the decoded JSON results instead of
            ``Result`` objects
        pool: Pool of the connection, used for the server readiness check
    """
    self.request: Optional[RequestExecutor] = RequestExecutor(
      connection,
      config,
      access_mode=access_mode,
      database=database,
      raw_results=raw_results,
      pool=pool,
    )
    self.access_mode = self.request.access_mode
    self.id: Optional[int] = None
    self.state = TransactionState.NOT_STARTED
    self.committed = False

  def __repr__(self) -> str:
    return (
      f"<Transaction id={self.id} state={self.state.value} "
      f"access_mode={self.access_mode.value.lower()}>"
    )

  def begin_strict(self) -> bool:
    """
    Begin the transaction.

    Raises:
        TransactionInBadStateError: When the transaction was already started
        RequestError: When the server refused the transaction
    """
    if not self.state.is_not_started:
      raise TransactionInBadStateError(f"Transaction already {self.state.value}")

    self.id = self._executor().begin_transaction()
    self.state = TransactionState.OPEN
    return True

  def begin(self) -> bool:
    """Begin the transaction, ``False`` on errors."""
    return self.handle_errors(self.begin_strict, False, action="begin")

  def run_strict(self, cypher: str, /, **parameters: Any) -> Any:
    """
    Run a single statement, in its own HTTP request.

    Returns:
        The result of the statement

    Raises:
        TransactionInBadStateError: When the transaction is not open
        TransactionRollbackError: When the statement failed, the
            transaction is closed then
    """
    self._ensure_open()
    results = self._send(
      lambda request: request.run_query(
        self.id, statement_payload(cypher, **parameters)
      )
    )
    return results[0] if results else None

  def run(self, cypher: str, /, **parameters: Any) -> Any:
    """Run a single statement, ``None`` on errors."""
    return self.handle_errors(
      lambda: self.run_strict(cypher, **parameters), action="run"
    )

  def run_in_batch_strict(self, *statements: StatementInput) -> List[Any]:
    """
    Run multiple statements within a single HTTP request.

    Args:
        *statements: ``(cypher, parameters)`` pairs, bare Cypher strings or
            ``Statement`` objects

    Returns:
        One result per statement

    Raises:
        TransactionInBadStateError: When the transaction is not open
        TransactionRollbackError: When any statement failed
    """
    self._ensure_open()
    return self._send(
      lambda request: request.run_query(self.id, *statement_payloads(*statements))
    )

  def run_in_batch(self, *statements: StatementInput) -> Optional[List[Any]]:
    """Run multiple statements, ``None`` on errors."""
    return self.handle_errors(
      lambda: self.run_in_batch_strict(*statements), action="run_in_batch"
    )

  def commit_strict(self, *statements: StatementInput) -> List[Any]:
    """
    Commit the transaction, optionally running final statements.

    The final statements and the commit are sent in a single HTTP request.

    Raises:
        TransactionInBadStateError: When the transaction is not open
        TransactionRollbackError: When the commit failed
    """
    self._ensure_open()
    results = self._send(
      lambda request: request.commit_transaction(
        self.id, *statement_payloads(*statements)
      )
    )
    self.state = TransactionState.CLOSED
    self.committed = True
    return results

  def commit(self, *statements: StatementInput) -> Optional[List[Any]]:
    """Commit the transaction, ``None`` on errors."""
    return self.handle_errors(
      lambda: self.commit_strict(*statements), action="commit"
    )

  def rollback_strict(self) -> bool:
    """
    Roll back the transaction.

    Raises:
        TransactionInBadStateError: When the transaction is not open
        TransactionNotFoundError: When the server does not know the
            transaction (anymore)
    """
    self._ensure_open()
    self._send(lambda request: request.rollback_transaction(self.id))
    self.state = TransactionState.CLOSED
    return True

  def rollback(self) -> bool:
    """Roll back the transaction, ``False`` on errors."""
    return self.handle_errors(self.rollback_strict, False, action="rollback")

  def handle_errors(
    self,
    fn: Callable[[], T],
    error_result: Union[Any, Callable[[Exception], Any]] = None,
    action: str = "transaction",
  ) -> Union[T, Any]:
    """
    Run the given function, converting client errors into a fallback value.

    On errors the server already rolled back the transaction, so it gets
    cleaned up and can not be used any further.

    Args:
        fn: The operation to run
        error_result: Value returned on errors; when callable, it is called
            with the exception and its return value is used
        action: Operation name for the error log
    """
    try:
      return fn()
    except (RequestError, ResponseError, TransactionInBadStateError) as e:
      log_client_error(
        e, action=action, metadata={"tx_id": self.id, "state": self.state.value}
      )
      self.cleanup()
      if callable(error_result):
        return error_result(e)
      return error_result

  def cleanup(self) -> None:
    """
    Make the transaction unusable for further interaction.

    This prevents leaking the transaction (and its pooled connection) out of
    the block it was created for.
    """
    self.request = None
    self.state = TransactionState.CLEANED

  def _ensure_open(self) -> None:
    if not self.state.is_open:
      raise TransactionInBadStateError("Transaction not open")

  def _executor(self) -> RequestExecutor:
    if self.request is None:
      raise TransactionInBadStateError("Transaction already cleaned")
    return self.request

  def _send(self, fn: Callable[[RequestExecutor], T]) -> T:
    """
    Perform a request for the open transaction.

    When the server rolled the transaction back (or does not know it), the
    transaction is closed locally and the error is re-raised.
    """
    try:
      return fn(self._executor())
    except (TransactionRollbackError, TransactionNotFoundError):
      self.state = TransactionState.CLOSED
      raise
