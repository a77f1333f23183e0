"""
constants.py
- Project-wide constants shared across the reconciler, adapters and entrypoints.
- Includes retry budgets, backoff timing and other tuned values.
"""

# --- Projection ---
DEFAULT_LABEL_PREFIX = "kubernetes.io"
LABEL_SEPARATOR = "/"

# --- Retry Budgets ---
DEFAULT_RESUBSCRIBE_ATTEMPTS = 5
DEFAULT_DRAIN_ATTEMPTS = 5
BOOTSTRAP_CREATE_ATTEMPTS = 3

# --- Backoff Timing (seconds) ---
BACKOFF_MULTIPLIER = 1
BACKOFF_MIN = 1
BACKOFF_MAX = 30

# --- Watch ---
DEFAULT_WATCH_TIMEOUT = 300  # seconds before the server closes an idle watch
PUMP_JOIN_TIMEOUT = 2  # seconds to wait for the stream thread on shutdown

# --- Service ---
DEFAULT_HEALTH_PORT = 6060
DEFAULT_CONFIG_FILE = "/etc/label-mirror/config.yml"
DEFAULT_STORE_PATH = "/var/lib/label-mirror"
