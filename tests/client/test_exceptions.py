"""Tests for the client exception hierarchy."""

from unittest.mock import Mock

import httpx
import pytest

from cypherhttp.client.exceptions import (
  ConfigurationError,
  CypherHTTPError,
  InvalidJsonError,
  PoolClosedError,
  PoolTimeoutError,
  RequestError,
  ResponseError,
  TransactionBeginError,
  TransactionInBadStateError,
  TransactionNotFoundError,
  TransactionRollbackError,
)


class TestExceptionHierarchy:
  """Test cases for the exception taxonomy."""

  @pytest.mark.parametrize(
    "error_class",
    [
      InvalidJsonError,
      TransactionBeginError,
      TransactionInBadStateError,
      TransactionNotFoundError,
      TransactionRollbackError,
      PoolTimeoutError,
      PoolClosedError,
    ],
  )
  def test_request_errors(self, error_class):
    assert issubclass(error_class, RequestError)
    assert issubclass(error_class, CypherHTTPError)

  def test_response_error_is_not_a_request_error(self):
    assert not issubclass(ResponseError, RequestError)
    assert issubclass(ResponseError, CypherHTTPError)

  def test_configuration_error(self):
    assert not issubclass(ConfigurationError, RequestError)


class TestCypherHTTPError:
  """Test cases for the base error."""

  def test_without_response(self):
    error = RequestError("Connection refused")

    assert str(error) == "Connection refused"
    assert error.message == "Connection refused"
    assert error.response is None
    assert error.status_code is None

  def test_with_response(self):
    response = Mock(spec=httpx.Response)
    response.status_code = 404

    error = TransactionNotFoundError("gone", response=response)

    assert error.response is response
    assert error.status_code == 404


class TestResponseError:
  """Test cases for ResponseError formatting."""

  def test_message_and_code(self):
    error = ResponseError("Invalid input", code="Neo.ClientError.Statement.SyntaxError")

    assert str(error) == "Invalid input (Neo.ClientError.Statement.SyntaxError)"
    assert error.code == "Neo.ClientError.Statement.SyntaxError"

  def test_message_only(self):
    assert str(ResponseError("Invalid input")) == "Invalid input"

  def test_code_only(self):
    assert str(ResponseError(None, code="Neo.X")) == "Neo.X"


class TestTransactionRollbackError:
  """Test cases for TransactionRollbackError."""

  def test_lists_wrapped_errors(self):
    errors = [ResponseError("First", code="A"), ResponseError("Second", code="B")]

    error = TransactionRollbackError("Transaction (1) rolled back", errors=errors)

    assert error.errors == errors
    assert str(error) == (
      "Transaction (1) rolled back\n\n* First (A)\n* Second (B)"
    )

  def test_without_errors(self):
    error = TransactionRollbackError("Internal error")

    assert error.errors == []
    assert str(error) == "Internal error"
