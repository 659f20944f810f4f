"""
Statement collector for one-shot transactions.

Collects statements without running them, so no statement can see the
results of a previous one. All collected statements are sent within a
single HTTP request.
"""

from typing import Any, List

from .statements import Statement, statement_payload
from . import utils


class StatementCollector:
  """Collect multiple Cypher statements for a single request."""

  build_cypher = staticmethod(utils.build_cypher)
  prepare_label = staticmethod(utils.prepare_label)
  prepare_type = staticmethod(utils.prepare_type)
  prepare_string = staticmethod(utils.prepare_string)
  to_options = staticmethod(utils.to_options)
  resolve_cypher = staticmethod(utils.resolve_cypher)

  def __init__(self):
    self.statements: List[Statement] = []

  def add(self, cypher: str, /, **parameters: Any) -> "StatementCollector":
    """Add a statement, returns the collector for chaining."""
    self.statements.append(statement_payload(cypher, **parameters))
    return self

  def __len__(self) -> int:
    return len(self.statements)
