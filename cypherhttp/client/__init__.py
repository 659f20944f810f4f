"""
Cypher HTTP Client - Sync client for the transactional Cypher HTTP API.

This module provides pooled, thread-safe access to Neo4j compatible servers
through their JSON/HTTP transaction endpoints.
"""

from .client import CypherClient
from .collector import StatementCollector
from .config import CypherClientConfig
from .exceptions import (
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
from .pool import ConnectionPool, build_connection
from .request import AccessMode, RequestExecutor
from .results import Result, ResultMapper, ResultRow
from .statements import Statement, statement_payload, statement_payloads
from .transaction import Transaction, TransactionState
from .utils import (
  build_cypher,
  cypher_action,
  prepare_label,
  prepare_string,
  prepare_type,
  resolve_cypher,
  to_options,
)

__all__ = [
  "AccessMode",
  "ConfigurationError",
  "ConnectionPool",
  "CypherClient",
  "CypherClientConfig",
  "CypherHTTPError",
  "InvalidJsonError",
  "PoolClosedError",
  "PoolTimeoutError",
  "RequestError",
  "RequestExecutor",
  "ResponseError",
  "Result",
  "ResultMapper",
  "ResultRow",
  "Statement",
  "StatementCollector",
  "Transaction",
  "TransactionBeginError",
  "TransactionInBadStateError",
  "TransactionNotFoundError",
  "TransactionRollbackError",
  "TransactionState",
  "build_connection",
  "build_cypher",
  "cypher_action",
  "prepare_label",
  "prepare_string",
  "prepare_type",
  "resolve_cypher",
  "statement_payload",
  "statement_payloads",
  "to_options",
]
