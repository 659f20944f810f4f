"""
Statement payloads for the transactional Cypher HTTP API.

Two parameter keys are reserved and never sent to the server, they toggle
the shape of the statement result instead:

  * ``with_stats=True``: include statement statistics
  * ``result_as_graph=True``: additionally return the result as graph
    structure (``resultDataContents: ["row", "graph"]``)
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from cypherhttp.config.constants import (
  GRAPH_RESULT_DATA_CONTENTS,
  RESULT_AS_GRAPH_KEY,
  WITH_STATS_KEY,
)


@dataclass(frozen=True)
class Statement:
  """A single Cypher statement, ready to be sent."""

  text: str
  parameters: Dict[str, Any] = field(default_factory=dict)
  include_stats: bool = False
  result_as_graph: bool = False

  def to_payload(self) -> Dict[str, Any]:
    """Return the wire representation of the statement."""
    payload: Dict[str, Any] = {"statement": self.text}
    if self.include_stats:
      payload["includeStats"] = True
    if self.result_as_graph:
      payload["resultDataContents"] = list(GRAPH_RESULT_DATA_CONTENTS)
    payload["parameters"] = dict(self.parameters)
    return payload


StatementInput = Union[
  Statement,
  str,
  Tuple[str],
  Tuple[str, Optional[Mapping[str, Any]]],
]


def statement_payload(cypher: str, /, **parameters: Any) -> Statement:
  """
  Convert a Cypher string and its parameters into a statement.

  Args:
      cypher: The Cypher statement to run
      **parameters: Cypher parameters, including the reserved toggles

  Returns:
      The statement, with the reserved toggles extracted
  """
  include_stats = parameters.pop(WITH_STATS_KEY, None) is True
  result_as_graph = parameters.pop(RESULT_AS_GRAPH_KEY, None) is True
  return Statement(
    text=cypher,
    parameters=parameters,
    include_stats=include_stats,
    result_as_graph=result_as_graph,
  )


def statement_payloads(*statements: StatementInput) -> List[Statement]:
  """
  Convert multiple statements.

  Each element may be a ``Statement``, a bare Cypher string, or a
  ``(cypher, parameters)`` pair. An empty input yields an empty list.
  """
  result = []
  for stmt in statements:
    if isinstance(stmt, Statement):
      result.append(stmt)
    elif isinstance(stmt, str):
      result.append(statement_payload(stmt))
    else:
      cypher, *rest = stmt
      params = dict(rest[0] or {}) if rest else {}
      result.append(statement_payload(cypher, **params))
  return result


def serialize_body(statements: Sequence[Statement]) -> str:
  """Serialize statements into a transactional API request body."""
  body = {"statements": [stmt.to_payload() for stmt in statements]}
  return json.dumps(body, default=str, separators=(",", ":"))
