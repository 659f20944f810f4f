"""
cypherhttp - transactional Cypher over HTTP.

Example:
    from cypherhttp import CypherClient

    with CypherClient() as db:
        db.query_strict("MATCH (n) RETURN count(n)").value
"""

from .version import __version__
from .client import (
  AccessMode,
  CypherClient,
  CypherClientConfig,
  CypherHTTPError,
  RequestError,
  ResponseError,
  Result,
  ResultRow,
  Transaction,
  TransactionRollbackError,
  TransactionState,
)
from .logger import setup_logging

__all__ = [
  "__version__",
  "AccessMode",
  "CypherClient",
  "CypherClientConfig",
  "CypherHTTPError",
  "RequestError",
  "ResponseError",
  "Result",
  "ResultRow",
  "Transaction",
  "TransactionRollbackError",
  "TransactionState",
  "setup_logging",
]
