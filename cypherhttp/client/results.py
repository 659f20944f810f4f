"""
Result structures and response body mapping.

The transactional Cypher API answers every request with the same envelope:

  {"results": [{"columns": [...], "data": [{"row": [...], "meta": [...]}]}],
   "errors": [{"code": "...", "message": "..."}]}

ResultMapper turns that envelope into Result/ResultRow objects (or hands
out the decoded ``results`` list untouched in raw mode), and converts
reported errors into a TransactionRollbackError.
"""

import json
from dataclasses import dataclass, field
from typing import (
  Any,
  Dict,
  Iterator,
  List,
  Optional,
  Tuple,
  Union,
)

import httpx

from .config import RawResponseHandler
from .exceptions import InvalidJsonError, ResponseError, TransactionRollbackError


class ResultRow:
  """
  A single result row.

  Values are positional, the column names are looked up on the owning
  result. Iterating a row yields ``(column, value)`` pairs.
  """

  __slots__ = ("result", "values", "meta", "graph")

  def __init__(
    self,
    result: "Result",
    values: List[Any],
    meta: Optional[List[Any]] = None,
    graph: Optional[Dict[str, Any]] = None,
  ):
    self.result = result
    self.values = list(values)
    meta = list(meta or [])
    # Servers omit meta for some result shapes, keep it aligned with values
    if len(meta) < len(self.values):
      meta.extend([None] * (len(self.values) - len(meta)))
    self.meta = meta
    self.graph = graph

  @property
  def columns(self) -> List[str]:
    return self.result.columns

  def __getitem__(self, key: Union[str, int]) -> Any:
    if isinstance(key, int):
      return self.values[key]
    return self.get(key)

  def get(self, key: str, default: Any = None) -> Any:
    """Return the value of the given column, or ``default`` when unknown."""
    try:
      idx = self.columns.index(str(key))
    except ValueError:
      return default
    return self.values[idx]

  @property
  def value(self) -> Any:
    """The first value of the row (handy for ``RETURN count(n)``)."""
    return self.values[0] if self.values else None

  def keys(self) -> List[str]:
    return list(self.columns)

  def items(self) -> List[Tuple[str, Any]]:
    return list(zip(self.columns, self.values))

  def to_dict(self) -> Dict[str, Any]:
    """
    Return the row as a dict.

    This merges the column names with the values for every call, prefer
    ``row["column"]`` access when iterating large results.
    """
    return dict(zip(self.columns, self.values))

  def as_json(self) -> Dict[str, Any]:
    """JSON compatible dict representation (string keys)."""
    return {str(column): value for column, value in zip(self.columns, self.values)}

  def __iter__(self) -> Iterator[Tuple[str, Any]]:
    return iter(zip(self.columns, self.values))

  def __len__(self) -> int:
    return len(self.values)

  def __eq__(self, other: object) -> bool:
    if not isinstance(other, ResultRow):
      return NotImplemented
    return (
      self.columns == other.columns
      and self.values == other.values
      and self.meta == other.meta
      and self.graph == other.graph
    )

  def __repr__(self) -> str:
    return (
      f"ResultRow(columns={self.columns!r}, values={self.values!r}, "
      f"meta={self.meta!r}, graph={self.graph!r})"
    )


@dataclass(eq=False)
class Result:
  """The result of a single statement."""

  columns: List[str]
  rows: List[ResultRow] = field(default_factory=list)
  stats: Optional[Dict[str, Any]] = None

  @classmethod
  def from_dict(cls, data: Dict[str, Any]) -> "Result":
    """
    Build a result from a single decoded ``results`` entry.

    Raises:
        ValueError: When a row does not match the column count
    """
    result = cls(columns=[str(col) for col in data.get("columns") or []])
    result.stats = data.get("stats")

    width = len(result.columns)
    for datum in data.get("data") or []:
      values = datum.get("row") or []
      if len(values) != width:
        raise ValueError(
          f"Result row has {len(values)} values, expected {width} columns"
        )
      result.rows.append(
        ResultRow(result, values, datum.get("meta"), datum.get("graph"))
      )
    return result

  def __iter__(self) -> Iterator[ResultRow]:
    return iter(self.rows)

  def __len__(self) -> int:
    return len(self.rows)

  def __getitem__(self, idx: int) -> ResultRow:
    return self.rows[idx]

  def __bool__(self) -> bool:
    # An empty result is still a successful result
    return True

  def first(self) -> Optional[ResultRow]:
    return self.rows[0] if self.rows else None

  @property
  def value(self) -> Any:
    """
    The first value of the first row.

    Handy for single value statements like ``RETURN date() AS date``, or
    probes like ``MATCH (n:User {name: $name}) RETURN 1 LIMIT 1``.
    """
    row = self.first()
    return row.value if row is not None else None

  def values(self) -> List[Dict[str, Any]]:
    """All rows as dicts. Costly on large results."""
    return [row.to_dict() for row in self.rows]

  def to_list(self) -> List[ResultRow]:
    return list(self.rows)

  def __repr__(self) -> str:
    if len(self.rows) > 1:
      rows = f"[{self.rows[0]!r}, [+{len(self.rows) - 1} ..]]"
    else:
      rows = repr(self.rows)
    return f"Result(columns={self.columns!r}, rows={rows}, stats={self.stats!r})"


def _identity_handler(body: str, response: Optional[httpx.Response]) -> str:
  return body


class ResultMapper:
  """Decode transactional API response bodies."""

  def __init__(
    self,
    raw_results: bool = False,
    raw_response_handler: Optional[RawResponseHandler] = None,
  ):
    """
    Args:
        raw_results: Return the decoded ``results`` list as it is, instead
            of Result objects
        raw_response_handler: Hook to inspect/rewrite the body text before
            it is decoded
    """
    self.raw_results = raw_results
    self.raw_response_handler = raw_response_handler or _identity_handler

  def parse(
    self,
    body: str,
    response: Optional[httpx.Response] = None,
    tx_id: Optional[Union[int, str]] = None,
  ) -> Any:
    """
    Decode a response body.

    Args:
        body: The raw response body
        response: The HTTP response, attached to raised errors
        tx_id: The transaction identifier, for error messages

    Returns:
        List of Result objects, or the raw ``results`` value in raw mode

    Raises:
        InvalidJsonError: When the body is not valid JSON
        TransactionRollbackError: When the server reported errors
    """
    try:
      document = json.loads(self.raw_response_handler(body, response))
    except (json.JSONDecodeError, TypeError) as e:
      raise InvalidJsonError(str(e), response=response) from e

    if not isinstance(document, dict):
      raise InvalidJsonError(
        f"Expected a JSON object, got {type(document).__name__}",
        response=response,
      )

    errors = document.get("errors") or []
    if errors:
      wrapped = [
        ResponseError(error.get("message"), code=error.get("code"), response=response)
        for error in errors
      ]
      raise TransactionRollbackError(
        f"Transaction ({tx_id}) rolled back due to errors ({len(wrapped)})",
        errors=wrapped,
        response=response,
      )

    results = document.get("results") or []
    if self.raw_results:
      return results

    try:
      return [Result.from_dict(result) for result in results]
    except (ValueError, TypeError, AttributeError) as e:
      raise InvalidJsonError(f"Malformed result: {e}", response=response) from e
