"""
Cypher string helpers.

Formatting helpers for values which cannot be passed as Cypher parameters
(node labels, relationship types, inline option maps), plus the statement
resolution used by the query log.
"""

import re
from typing import Any, Iterable, List, Optional

LABEL_KEY = re.compile(r"_labels?$|^labels?$")
TYPE_KEY = re.compile(r"_types?$|^types?$")
STRING_KEY = re.compile(r"_strs?$")


def _flatten(inputs: Iterable[Any]) -> List[Any]:
  """Flatten one level of list/tuple/set inputs and drop ``None`` values."""
  result = []
  for item in inputs:
    if isinstance(item, (list, tuple, set, frozenset)):
      result.extend(elem for elem in item if elem is not None)
    elif item is not None:
      result.append(item)
  return result


def _underscore(value: str) -> str:
  value = re.sub(r"([A-Z\d]+)([A-Z][a-z])", r"\1_\2", value)
  value = re.sub(r"([a-z\d])([A-Z])", r"\1_\2", value)
  return value.replace("-", "_").lower()


def _camelize(value: str) -> str:
  return "".join(part[:1].upper() + part[1:] for part in value.split("_"))


def _unique(values: Iterable[str]) -> List[str]:
  return list(dict.fromkeys(values))


def prepare_label(*inputs: Any) -> str:
  """
  Prepare the given input(s) as node label(s) for injection-free Cypher.

  Labels are camel cased, sorted, de-duplicated and joined with ``:``.
  Labels with characters outside ``[a-zA-Z0-9]`` are backtick quoted.

  Raises:
      ValueError: When no (non-``None``) inputs are given
  """
  values = _flatten(inputs)
  if not values:
    raise ValueError(f"Bad labels: {inputs!r}")

  labels = []
  for value in values:
    label = _camelize(_underscore(str(value)))
    labels.append(f"`{label}`" if re.search(r"[^a-z0-9]", label, re.I) else label)
  return ":".join(sorted(_unique(labels)))


def prepare_type(*inputs: Any) -> str:
  """
  Prepare the given input(s) as relationship type(s) for injection-free Cypher.

  Types are upper snake cased, sorted, de-duplicated and joined with ``|``.

  Raises:
      ValueError: When no (non-``None``) inputs are given
  """
  values = _flatten(inputs)
  if not values:
    raise ValueError(f"Bad types: {inputs!r}")

  types = []
  for value in values:
    rel_type = _underscore(str(value)).upper()
    types.append(
      f"`{rel_type}`" if re.search(r"[^a-z0-9_]", rel_type, re.I) else rel_type
    )
  return "|".join(sorted(_unique(types)))


def prepare_string(*inputs: Any) -> str:
  """Prepare the given input(s) as double quoted, escaped Cypher strings."""
  values = _flatten(inputs)
  if not values:
    return '""'

  quoted = ['"' + str(value).replace('"', '\\"') + '"' for value in values]
  return ", ".join(_unique(quoted))


def to_options(obj: Any) -> Optional[str]:
  """
  Render a Python value in the inline options map notation.

  Strings are single quoted, map keys are backtick quoted, ``None`` values
  are dropped from lists. ``None`` itself renders as ``None``.
  """
  if obj is None:
    return None
  if isinstance(obj, str):
    return f"'{obj}'"
  if isinstance(obj, bool):
    return "true" if obj else "false"
  if isinstance(obj, (list, tuple)):
    items = [item for item in (to_options(elem) for elem in obj) if item is not None]
    return f"[ {', '.join(items)} ]"
  if isinstance(obj, dict):
    pairs = [f"`{key}`: {to_options(value)}" for key, value in obj.items()]
    return "{ " + ", ".join(pairs) + " }"
  return str(obj)


def build_cypher(template: str, **replacements: Any) -> str:
  """
  Build a Cypher string from a template and unsafe user inputs.

  Reference replacements as ``%(subject_label)s`` in the template. Keys are
  prepared by their suffix:

    * ``*_label(s)`` / ``label(s)``: ``prepare_label``
    * ``*_type(s)`` / ``type(s)``: ``prepare_type``
    * ``*_str(s)``: ``prepare_string``

  Other keys are interpolated as they are. ``//`` line comments and blank
  lines are stripped from the result.

  Example:
      >>> build_cypher("MATCH (n:%(subject_label)s) RETURN n", subject_label="user")
      'MATCH (n:User) RETURN n'
  """
  prepared = {}
  for key, value in replacements.items():
    if LABEL_KEY.search(key):
      value = prepare_label(value)
    if TYPE_KEY.search(key):
      value = prepare_type(value)
    if STRING_KEY.search(key):
      value = prepare_string(value)
    prepared[key] = value

  lines = []
  for line in (template % prepared).splitlines():
    processed = line.split("//")[0].rstrip()
    if processed:
      lines.append(processed)
  return "\n".join(lines)


def _literal(value: Any) -> str:
  if isinstance(value, str):
    return f'"{value}"'
  if isinstance(value, bool):
    return "true" if value else "false"
  if value is None:
    return "null"
  return str(value)


def resolve_cypher(cypher: str, **parameters: Any) -> str:
  """
  Substitute ``$name`` parameter references with their values.

  Only meant for human inspection (query logs); the result is not escaped.
  """
  for name, value in parameters.items():
    cypher = re.sub(
      rf"\${re.escape(str(name))}\b",
      lambda _match, value=value: _literal(value),
      cypher,
    )
  return cypher


def cypher_action(cypher: str) -> str:
  """
  Classify a statement for log records.

  Returns one of ``begin``, ``commit``, ``rollback``, ``create``,
  ``update``, ``delete`` or ``read``.
  """
  lines = [line.strip() for line in str(cypher).lower().splitlines()] or [""]
  first = lines[0]

  if first in ("begin", "commit", "rollback"):
    return first
  if any(re.search(r"\bcreate\s", line) for line in lines):
    return "create"
  if any(re.search(r"\b(set|merge)\s", line) for line in lines):
    return "update"
  if any(re.search(r"\b(delete|remove)\s", line) for line in lines):
    return "delete"
  return "read"
