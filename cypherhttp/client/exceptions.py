"""
Cypher HTTP Client Exceptions.

Defines exception hierarchy for the transactional Cypher HTTP API.

RequestError covers everything that happened on our side of the wire or
that makes the transaction unusable, ResponseError is a single error
reported by the server for a statement.
"""

from typing import Iterable, List, Optional

import httpx


class CypherHTTPError(Exception):
  """Base exception for all cypherhttp errors."""

  def __init__(self, message: str, response: Optional[httpx.Response] = None):
    super().__init__(message)
    self.message = message
    self.response = response

  @property
  def status_code(self) -> Optional[int]:
    """HTTP status code of the related response, when there is one."""
    return self.response.status_code if self.response is not None else None


class RequestError(CypherHTTPError):
  """
  Low-level request errors.

  Examples: Connection refused, request timeout, pool exhaustion
  """

  pass


class InvalidJsonError(RequestError):
  """The response body could not be decoded as JSON."""

  pass


class TransactionBeginError(RequestError):
  """The server refused to open a transaction, or sent no usable identifier."""

  pass


class TransactionInBadStateError(RequestError):
  """
  The transaction is used in a state which does not allow the operation.

  Raised client side, before any request is sent.
  """

  pass


class TransactionNotFoundError(RequestError):
  """
  The server does not know the transaction (anymore).

  Usually the transaction expired because it was idle for too long.
  """

  pass


class ResponseError(CypherHTTPError):
  """A single error reported by the server inside a response body."""

  def __init__(
    self,
    message: Optional[str],
    code: Optional[str] = None,
    response: Optional[httpx.Response] = None,
  ):
    if message and code:
      formatted = f"{message} ({code})"
    else:
      formatted = message or code or ""
    super().__init__(formatted, response=response)
    self.code = code


class TransactionRollbackError(RequestError):
  """
  The transaction was rolled back by the server.

  Any error reported within a transaction makes the server roll it back, so
  the transaction must not be used for further requests.
  """

  def __init__(
    self,
    message: str,
    errors: Optional[Iterable[ResponseError]] = None,
    response: Optional[httpx.Response] = None,
  ):
    self.errors: List[ResponseError] = list(errors or [])
    if self.errors:
      details = "\n".join(f"* {error.message}" for error in self.errors)
      message = f"{message}\n\n{details}"
    super().__init__(message, response=response)


class PoolTimeoutError(RequestError):
  """No pooled connection became available within the acquire timeout."""

  pass


class PoolClosedError(RequestError):
  """The connection pool was already shut down."""

  pass


class ConfigurationError(CypherHTTPError):
  """The client configuration is invalid."""

  pass
