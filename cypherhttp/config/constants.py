"""
Static constants configuration.

Default values for the HTTP transport, the connection pool and the
transactional Cypher API paths. Environment-specific overrides live in
``cypherhttp.config.env`` and ``cypherhttp.client.config``.
"""

# =============================================================================
# SERVER DEFAULTS
# =============================================================================

# HTTP API port 7474 (7473 when HTTPS is enabled server side)
DEFAULT_BASE_URL = "http://neo4j:7474"
DEFAULT_USERNAME = "neo4j"
DEFAULT_PASSWORD = "neo4j"

# Community edition only supports a single user database
DEFAULT_DATABASE = "neo4j"

# =============================================================================
# CONNECTION POOL
# =============================================================================

# Match this to the thread pool size of the host application server
DEFAULT_POOL_SIZE = 10
DEFAULT_POOL_TIMEOUT = 15.0  # seconds

# =============================================================================
# TIMEOUTS (seconds)
# =============================================================================

# Covers connect, transmit and response completion of a single request
DEFAULT_REQUEST_TIMEOUT = 10.0

# Grace period for a server booting in parallel to the application
DEFAULT_WAIT_FOR_UPSTREAM_SERVER = 30.0
DEFAULT_RETRY_INTERVAL = 2.0

# =============================================================================
# PROTOCOL
# =============================================================================

# The discovery document at "/" contains this key once the server is up
SERVER_READY_MARKER = "neo4j_version"

# Statement parameters which only toggle result shaping
WITH_STATS_KEY = "with_stats"
RESULT_AS_GRAPH_KEY = "result_as_graph"
RESERVED_PARAMETER_KEYS = (WITH_STATS_KEY, RESULT_AS_GRAPH_KEY)

GRAPH_RESULT_DATA_CONTENTS = ["row", "graph"]

# Pseudo transaction id of the begin+run+commit endpoint
ONE_SHOT_TX_ID = "commit"

# =============================================================================
# QUERY LOGGING
# =============================================================================

QUERY_LOG_OFF = "off"
QUERY_LOG_ON = "on"
QUERY_LOG_DEBUG = "debug"
QUERY_LOG_MODES = (QUERY_LOG_OFF, QUERY_LOG_ON, QUERY_LOG_DEBUG)

# Statements slower than this are logged at WARNING level
SLOW_QUERY_THRESHOLD_MS = 1000
