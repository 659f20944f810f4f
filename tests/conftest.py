import json
import re
import threading
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

from cypherhttp.client import CypherClient, CypherClientConfig
from cypherhttp.client.pool import DEFAULT_HEADERS

BASE_URL = "http://neo4j:7474"

CREATE_USER = re.compile(r"^CREATE \(\w+:User \{ name: \$name \}\)$")
MATCH_USERS = re.compile(r"^MATCH \((\w+):User\) RETURN \1\.name AS name$")
RETURN_PARAM = re.compile(r"^RETURN \$(\w+) AS (\w+)$")
COUNT_NODES = re.compile(r"^MATCH \((\w+)(?::User)?\) RETURN count\(\1\) AS (\w+)$")

SYNTAX_ERROR = "Neo.ClientError.Statement.SyntaxError"
ACCESS_MODE_ERROR = "Neo.ClientError.Statement.AccessMode"
TX_NOT_FOUND = "Neo.ClientError.Transaction.TransactionNotFound"


class StatementFailed(Exception):
  def __init__(self, code: str, message: str):
    super().__init__(message)
    self.code = code
    self.message = message


class FakeNeo4jServer:
  """
  In-memory stand-in for the transactional Cypher HTTP API.

  Understands a handful of statements on ``User`` nodes. Writes of an open
  transaction are staged and only become visible to others on commit, any
  statement error rolls the transaction back.
  """

  def __init__(self):
    self.users: List[str] = []
    self.transactions: Dict[int, Dict[str, Any]] = {}
    self.next_id = 1
    self.requests: List[httpx.Request] = []
    self.ready = True
    self.not_ready_responses = 0
    self.override: Optional[Callable[[httpx.Request], httpx.Response]] = None
    self._lock = threading.Lock()

  def handle(self, request: httpx.Request) -> httpx.Response:
    with self._lock:
      return self._handle(request)

  def _handle(self, request: httpx.Request) -> httpx.Response:
    self.requests.append(request)
    path = request.url.path

    if request.method == "GET" and path == "/":
      if not self.ready or self.not_ready_responses > 0:
        self.not_ready_responses = max(0, self.not_ready_responses - 1)
        return httpx.Response(503, text="starting up")
      return httpx.Response(
        200, json={"neo4j_version": "5.26.0", "neo4j_edition": "community"}
      )

    if self.override is not None:
      return self.override(request)

    match = re.match(r"^/db/(\w+)/tx(?:/(\w+))?(/commit)?$", path)
    if not match:
      return httpx.Response(404, text="Not Found")

    database, tx_id, commit = match.groups()
    statements = self._statements(request)
    access_mode = request.headers.get("Access-Mode", "WRITE")

    if tx_id is None:
      return self._begin(database, access_mode)
    if tx_id == "commit":
      return self._one_shot(statements, access_mode)

    tx = self.transactions.get(int(tx_id))
    if tx is None:
      return httpx.Response(
        404,
        json={
          "results": [],
          "errors": [
            {"code": TX_NOT_FOUND, "message": f"Unrecognized transaction id {tx_id}"}
          ],
        },
      )

    if request.method == "DELETE":
      del self.transactions[int(tx_id)]
      return httpx.Response(200, json={"results": [], "errors": []})

    response = self._run(int(tx_id), tx, statements)
    if commit and int(tx_id) in self.transactions:
      self.users.extend(tx["staged"])
      del self.transactions[int(tx_id)]
    return response

  @property
  def tx_requests(self) -> List[httpx.Request]:
    return [r for r in self.requests if r.url.path != "/"]

  def _statements(self, request: httpx.Request) -> List[Dict[str, Any]]:
    content = request.read()
    if not content:
      return []
    return json.loads(content)["statements"]

  def _begin(self, database: str, access_mode: str) -> httpx.Response:
    tx_id = self.next_id
    self.next_id += 1
    self.transactions[tx_id] = {"staged": [], "access_mode": access_mode}
    location = f"{BASE_URL}/db/{database}/tx/{tx_id}"
    return httpx.Response(
      201,
      headers={"Location": location},
      json={
        "results": [],
        "errors": [],
        "commit": f"{location}/commit",
        "transaction": {"expires": "Sat, 17 Oct 2026 10:00:00 GMT"},
      },
    )

  def _one_shot(self, statements, access_mode: str) -> httpx.Response:
    tx = {"staged": [], "access_mode": access_mode}
    try:
      results = [self._execute(tx, statement) for statement in statements]
    except StatementFailed as e:
      return self._errors(e)
    self.users.extend(tx["staged"])
    return httpx.Response(200, json={"results": results, "errors": []})

  def _run(self, tx_id: int, tx, statements) -> httpx.Response:
    try:
      results = [self._execute(tx, statement) for statement in statements]
    except StatementFailed as e:
      del self.transactions[tx_id]
      return self._errors(e)
    return httpx.Response(200, json={"results": results, "errors": []})

  def _errors(self, error: StatementFailed) -> httpx.Response:
    return httpx.Response(
      200,
      json={
        "results": [],
        "errors": [{"code": error.code, "message": error.message}],
      },
    )

  def _execute(self, tx, statement: Dict[str, Any]) -> Dict[str, Any]:
    text = statement["statement"]
    params = statement.get("parameters", {})
    result: Dict[str, Any]

    if CREATE_USER.match(text):
      if tx["access_mode"] == "READ":
        raise StatementFailed(
          ACCESS_MODE_ERROR, "Writing in read access mode not allowed."
        )
      tx["staged"].append(params["name"])
      result = {"columns": [], "data": []}
      stats = {"contains_updates": True, "nodes_created": 1}
    elif MATCH_USERS.match(text):
      names = sorted(self.users + tx["staged"])
      result = {
        "columns": ["name"],
        "data": [{"row": [name], "meta": [None]} for name in names],
      }
      stats = {"contains_updates": False, "nodes_created": 0}
    elif COUNT_NODES.match(text):
      column = COUNT_NODES.match(text).group(2)
      count = len(self.users) + len(tx["staged"])
      result = {"columns": [column], "data": [{"row": [count], "meta": [None]}]}
      stats = {"contains_updates": False, "nodes_created": 0}
    elif RETURN_PARAM.match(text):
      param, column = RETURN_PARAM.match(text).groups()
      result = {
        "columns": [column],
        "data": [{"row": [params.get(param)], "meta": [None]}],
      }
      stats = {"contains_updates": False, "nodes_created": 0}
    else:
      raise StatementFailed(SYNTAX_ERROR, f"Invalid input '{text.split()[0]}'")

    if statement.get("includeStats"):
      result["stats"] = stats
    if statement.get("resultDataContents") == ["row", "graph"]:
      for row in result["data"]:
        row["graph"] = {"nodes": [], "relationships": []}
    return result


@pytest.fixture
def fake_server():
  """A fresh in-memory server."""
  return FakeNeo4jServer()


@pytest.fixture
def config():
  """Client configuration with short timeouts for tests."""
  return CypherClientConfig(
    base_url=BASE_URL,
    connection_pool_size=2,
    connection_pool_timeout=0.2,
    wait_for_upstream_server=0.05,
    retry_interval=0.01,
  )


@pytest.fixture
def connection_factory(fake_server):
  """Builds connections routed to the fake server."""

  def factory(cfg: CypherClientConfig) -> httpx.Client:
    return httpx.Client(
      base_url=cfg.base_url,
      auth=httpx.BasicAuth(cfg.username, cfg.password),
      headers={**DEFAULT_HEADERS, **cfg.headers},
      transport=httpx.MockTransport(fake_server.handle),
    )

  return factory


@pytest.fixture
def connection(connection_factory, config):
  """A single connection to the fake server."""
  conn = connection_factory(config)
  yield conn
  conn.close()


@pytest.fixture
def client(config, connection_factory):
  """A client talking to the fake server."""
  db = CypherClient(config=config, connection_factory=connection_factory)
  yield db
  db.close()
