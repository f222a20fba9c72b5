"""
Constants for async-source components.

Defines default values, environment variable names and error message
templates shared across the package.
"""

# Request sequencing
DEFAULT_DEBOUNCE_MS = 100  # Debounce window for non-immediate calls
UPDATE_ONCE_POLL_MS = 100  # Poll interval while waiting for a pending call

# Cache defaults
DEFAULT_KEY_PREFIX = "async-source"  # Composite key prefix
DEFAULT_CACHE_TTL_MS = 5 * 60 * 1000  # 5 minutes
DEFAULT_SUBKEY = "default"  # Sub-key used for zero-argument calls
KEY_SEPARATOR = "-"

# Record fields
RECORD_DATA_FIELD = "data"
RECORD_TIMESTAMP_FIELD = "timestamp"

# Environment variables
ENV_CACHE_PREFIX = "ASYNC_SOURCE_CACHE_PREFIX"
ENV_CACHE_TTL_MS = "ASYNC_SOURCE_CACHE_TTL_MS"

# Error message templates
ERROR_DEBOUNCE_INVALID = "debounce_ms must be >= 0, got {value}"
ERROR_TTL_INVALID = "cache_ttl_ms must be > 0 or None, got {value}"
ERROR_KEY_PREFIX_EMPTY = "cache_key_prefix cannot be empty or whitespace-only"
ERROR_PRODUCER_NOT_CALLABLE = "producer must be callable, got {name}"
