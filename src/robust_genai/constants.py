"""
Project-wide constants for the robust-genai call layer

Durations are expressed in seconds.
"""

# Throttle gate
DEFAULT_COOLDOWN_SECONDS = 5.0  # minimum gap between dispatch starts (~12 RPM)

# Retry policy
DEFAULT_MAX_RETRIES = 3
TRANSIENT_RETRY_DELAY = 1.0
RATE_LIMIT_BACKOFF_BASE = 2.0
RATE_LIMIT_BACKOFF_CEILING = 60.0
RATE_LIMIT_HINT_BUFFER = 1.5  # added on top of a provider "try again in N s" hint

# Provider requests
DEFAULT_TEMPERATURE = 0.1
DEFAULT_REQUEST_TIMEOUT = 120.0

# Validation markers
JSON_PARSE_ERROR = "JSON_PARSE_ERROR"
ROOT_NOT_OBJECT = "ROOT_NOT_OBJECT"
SELF_HEALING_TAG = "[SELF_HEALING_FEEDBACK]"

DEFAULT_INTENT = "EXPLORATION"
