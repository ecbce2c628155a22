"""
Custom error classes for Lead Conversation Hub.
Structured error handling with error codes across all modules.

Hierarchy:
    HubError
    └── DataError
        ├── ConfigError
        ├── SchemaValidationError
        └── TimestampParseError

The processing and analytics layers raise these at their validation seams and
recover at the component boundary (drop the record, fall back to "now", skip
the value). Only ConfigError reaches callers.
"""


class HubError(Exception):
    """Base exception for all Lead Conversation Hub errors."""

    def __init__(self, message: str, code: str = "UNKNOWN", details: dict = None):
        self.code = code
        self.details = details or {}
        super().__init__(f"[{code}] {message}")


# --- Data Errors ---

class DataError(HubError):
    """Base class for data processing errors."""
    pass


class ConfigError(DataError):
    """Configuration value error."""

    def __init__(self, message: str, key: str = None):
        super().__init__(
            message, code="CONFIG_ERROR",
            details={"key": key},
        )


class SchemaValidationError(DataError):
    """Raw record doesn't match the expected shape."""

    def __init__(self, message: str, field: str = None, value=None):
        super().__init__(
            message, code="SCHEMA_INVALID",
            details={"field": field, "value_type": type(value).__name__},
        )


class TimestampParseError(DataError):
    """A timestamp value could not be turned into a datetime."""

    def __init__(self, value):
        self.value = value
        super().__init__(
            f"Unparseable timestamp: {value!r}",
            code="TIMESTAMP_INVALID",
            details={"value": repr(value)},
        )
