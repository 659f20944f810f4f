"""
Cypher HTTP API Request Executor.

A request executor consumes a single persistent connection for its whole
lifetime. The connection is strictly owned by the executor, it is not safe
to share it between logical operations.
"""

import logging
import re
import time
from enum import Enum
from typing import Any, Callable, List, Optional, Sequence, TypeVar, Union

import httpx

from cypherhttp.config.constants import ONE_SHOT_TX_ID, SLOW_QUERY_THRESHOLD_MS
from cypherhttp.logger import query_logger
from .config import CypherClientConfig
from .exceptions import (
  RequestError,
  TransactionBeginError,
  TransactionNotFoundError,
  TransactionRollbackError,
)
from .pool import ConnectionPool
from .results import ResultMapper
from .statements import Statement, serialize_body, statement_payload
from .utils import cypher_action, resolve_cypher

T = TypeVar("T")

# Marks the begin request in the query log, the id is assigned by the server
BEGIN = object()

# Pseudo statements logged for the transaction control requests
BEGIN_STATEMENTS = (statement_payload("BEGIN"),)
COMMIT_STATEMENTS = (statement_payload("COMMIT"),)
ROLLBACK_STATEMENTS = (statement_payload("ROLLBACK"),)


class AccessMode(str, Enum):
  """Transaction access modes, sent as ``Access-Mode`` header."""

  READ = "READ"
  WRITE = "WRITE"

  @classmethod
  def parse(cls, value: Union["AccessMode", str]) -> "AccessMode":
    """
    Parse an access mode, case-insensitive.

    Raises:
        ValueError: For unknown access modes
    """
    if isinstance(value, cls):
      return value
    try:
      return cls(str(value).upper())
    except ValueError:
      raise ValueError(
        f"Unknown access mode '{value}'. Use 'read' or 'write'."
      ) from None


class RequestExecutor:
  """
  Perform the requests of the transactional Cypher HTTP API.

  Every operation maps to exactly one HTTP request:

  - begin_transaction: ``POST /db/<db>/tx``
  - run_query: ``POST /db/<db>/tx/<id>``
  - commit_transaction: ``POST /db/<db>/tx/<id>/commit``
  - rollback_transaction: ``DELETE /db/<db>/tx/<id>``
  - one_shot_transaction: ``POST /db/<db>/tx/commit``
  """

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
    Initialize the request executor.

    Args:
        connection: A checked out, ready to use persistent connection
        config: Client configuration
        access_mode: Transaction access mode (``read`` or ``write``)
        database: Database to use, defaults to ``config.default_db``
        raw_results: Return the decoded JSON results instead of
            ``Result`` objects
        pool: Pool of the connection, used for the server readiness check

    Raises:
        ValueError: For unknown access modes
        RequestError: When the server did not become ready in time
    """
    self.access_mode = AccessMode.parse(access_mode)
    self.connection = connection
    self.config = config
    self.database = database or config.default_db
    self.path_prefix = f"/db/{self.database}"
    self.raw_results = raw_results
    self.requests_done = 0
    self.mapper = ResultMapper(
      raw_results=raw_results,
      raw_response_handler=config.raw_response_handler,
    )

    # Make sure the upstream server is ready to rumble
    if pool is not None:
      pool.wait_for_server(connection)

  def one_shot_transaction(self, *statements: Statement) -> List[Any]:
    """
    Run statements inside a one-shot transaction.

    A new transaction is opened, the statements are run and the transaction
    is committed, all within a single HTTP request.

    Raises:
        ValueError: When no statements are given
        TransactionNotFoundError: When the server answered with 404
        TransactionRollbackError: When any statement failed
    """
    if not statements:
      raise ValueError("No statements given")

    def perform() -> List[Any]:
      return self.handle_transaction(
        ONE_SHOT_TX_ID,
        lambda path: self.connection.post(
          path,
          headers=self._access_mode_header(),
          content=serialize_body(statements),
        ),
      )

    return self.log_query(None, statements, perform)

  def begin_transaction(self) -> int:
    """
    Start a new transaction on our dedicated connection.

    Returns:
        The transaction identifier assigned by the server

    Raises:
        TransactionBeginError: When the server refused the transaction
    """

    def perform() -> int:
      path = f"{self.path_prefix}/tx"
      response = self.handle_transport_errors(
        lambda: self.connection.post(path, headers=self._access_mode_header())
      )

      if not response.is_success:
        raise TransactionBeginError(response.text, response=response)

      location = response.headers.get("Location", "")
      match = re.fullmatch(r"\d+", location.rstrip("/").rsplit("/", 1)[-1])
      tx_id = int(match.group()) if match else 0

      # Drain the response from the persistent connection
      response.close()

      if tx_id <= 0:
        raise TransactionBeginError(response.text, response=response)
      return tx_id

    return self.log_query(BEGIN, BEGIN_STATEMENTS, perform)

  def run_query(self, tx_id: int, *statements: Statement) -> List[Any]:
    """
    Run statements inside an open transaction.

    Raises:
        ValueError: When no statements are given
        TransactionNotFoundError: When the transaction is unknown
        TransactionRollbackError: When any statement failed
    """
    if not statements:
      raise ValueError("No statements given")

    return self.log_query(
      tx_id,
      statements,
      lambda: self.handle_transaction(
        tx_id,
        lambda path: self.connection.post(path, content=serialize_body(statements)),
      ),
    )

  def commit_transaction(self, tx_id: int, *statements: Statement) -> List[Any]:
    """
    Commit an open transaction, optionally running final statements.

    Raises:
        TransactionNotFoundError: When the transaction is unknown
        TransactionRollbackError: When the commit failed
    """

    def send(path: str) -> httpx.Response:
      if statements:
        return self.connection.post(
          f"{path}/commit", content=serialize_body(statements)
        )
      return self.connection.post(f"{path}/commit")

    return self.log_query(
      tx_id,
      COMMIT_STATEMENTS,
      lambda: self.handle_transaction(tx_id, send),
    )

  def rollback_transaction(self, tx_id: int) -> List[Any]:
    """
    Roll back an open transaction.

    Raises:
        TransactionNotFoundError: When the transaction is unknown
        TransactionRollbackError: When the rollback failed
    """
    return self.log_query(
      tx_id,
      ROLLBACK_STATEMENTS,
      lambda: self.handle_transaction(
        tx_id, lambda path: self.connection.delete(path)
      ),
    )

  def handle_transaction(
    self,
    tx_id: Union[int, str],
    send: Callable[[str], httpx.Response],
  ) -> List[Any]:
    """
    Handle a generic transaction interaction.

    Args:
        tx_id: Transaction identifier (or ``commit`` for one-shots)
        send: Performs the request for the given transaction path

    Raises:
        TransactionNotFoundError: When the server answered with 404
        TransactionRollbackError: On any other non-2xx status, or when the
            response reports errors
    """
    response = self.handle_transport_errors(
      lambda: send(f"{self.path_prefix}/tx/{tx_id}")
    )

    if response.status_code == 404:
      raise TransactionNotFoundError(response.text, response=response)

    if not response.is_success:
      raise TransactionRollbackError(response.text, response=response)

    return self.mapper.parse(response.text, response=response, tx_id=tx_id)

  @staticmethod
  def handle_transport_errors(fn: Callable[[], T]) -> T:
    """
    Run the given function, converting transport errors.

    Raises:
        RequestError: When a low-level HTTP error occurred
    """
    try:
      return fn()
    except httpx.HTTPError as e:
      raise RequestError(str(e) or type(e).__name__) from e

  def log_query(
    self,
    tx_id: Any,
    statements: Sequence[Statement],
    fn: Callable[[], T],
  ) -> T:
    """
    Run the given function while logging the statements it sends.

    When query logging is disabled this is a plain call. Otherwise the
    duration of the function (request and response handling) is measured
    and logged along with the resolved statements.

    Args:
        tx_id: Transaction identifier, ``None`` for one-shots, ``BEGIN``
            for the begin request (the result is the new identifier)
        statements: The statements sent by the function
        fn: Performs the request
    """
    if not self.config.query_log_enabled:
      return fn()

    self.requests_done += 1

    # Logging before the request helps to spot never ending statements
    if self.config.query_debug_log_enabled:
      self._write_log(
        "tbd" if tx_id is BEGIN else tx_id, None, statements, before=True
      )

    start = time.monotonic()
    result = fn()
    duration = round((time.monotonic() - start) * 1000, 1)

    self._write_log(result if tx_id is BEGIN else tx_id, duration, statements)
    return result

  def generate_log_str(
    self,
    tx_id: Any,
    duration: Optional[float],
    statements: Sequence[Statement],
  ) -> str:
    """
    Generate the log output for the given statements, one line each.

    Example:
        [tx:write:12 rq:3] (4.2ms) MATCH (n:User { name: "Klaus" }) RETURN n
    """
    tag = f"tx:{self.access_mode.value.lower()}:{tx_id or 'one-shot'}"
    if tx_id:
      tag += f" rq:{self.requests_done}"

    prefix = f"[{tag}]"
    if duration is not None:
      prefix += f" ({duration}ms)"

    lines = []
    for statement in statements:
      cypher = resolve_cypher(statement.text, **statement.parameters)
      cypher = " ".join(line.strip() for line in cypher.splitlines())
      lines.append(f"{prefix} {cypher}")
    return "\n".join(lines)

  def _write_log(
    self,
    tx_id: Any,
    duration: Optional[float],
    statements: Sequence[Statement],
    before: bool = False,
  ) -> None:
    level = logging.DEBUG
    if duration is not None and duration >= SLOW_QUERY_THRESHOLD_MS:
      level = logging.WARNING
    if not query_logger.isEnabledFor(level):
      return

    extra = {
      "component": "request",
      "action": cypher_action(statements[0].text) if statements else "read",
      "database": self.database,
      "access_mode": self.access_mode.value.lower(),
      "tx_id": tx_id or ONE_SHOT_TX_ID,
      "request_count": self.requests_done,
      "statement_count": len(statements),
    }
    if not before:
      extra["duration_ms"] = duration

    query_logger.log(
      level, self.generate_log_str(tx_id, duration, statements), extra=extra
    )

  def _access_mode_header(self) -> dict:
    return {"Access-Mode": self.access_mode.value}
