"""Constants used throughout the delivery engine."""

# HTTP Headers
REQUEST_ID_HEADER = "X-Request-ID"
PROCESS_TIME_HEADER = "X-Process-Time"

# Requests slower than this are logged as warnings
SLOW_REQUEST_THRESHOLD_SECONDS = 1.0

# Retry defaults
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_INITIAL_DELAY_MS = 1000
DEFAULT_MAX_DELAY_MS = 300_000
DEFAULT_BACKOFF_FACTOR = 2.0
DEFAULT_RETRY_TICK_SECONDS = 1.0

# Alert threshold defaults
DEFAULT_FAILURE_RATE_THRESHOLD = 0.10
DEFAULT_RETRY_ATTEMPTS_THRESHOLD = 3
DEFAULT_CONSECUTIVE_FAILURES_THRESHOLD = 5
DEFAULT_HOURLY_FAILURE_RATE_THRESHOLD = 0.15

# Failures closer together than this count as consecutive
CONSECUTIVE_FAILURE_WINDOW_SECONDS = 300

RECENT_FAILURES_LIMIT = 10
UNKNOWN_ERROR = "Unknown error"

# Queue defaults
DEFAULT_WORKER_COUNT = 4
DEFAULT_SEND_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_LANE_SKIPS = 8

# Audit entity types
AUDIT_ENTITY_NOTIFICATION = "notification"
AUDIT_ENTITY_QUEUE = "queue"
AUDIT_ENTITY_METRICS = "metrics"
