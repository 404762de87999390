"""
Custom exception classes for the reward oracle.
Provides structured error handling across all modules.
"""

from typing import Any, Optional, Dict


class RewardOracleException(Exception):
    """Base exception class for the reward oracle."""

    # Whether the current period iteration may simply be retried on the next wake-up
    retryable: bool = False

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)


# Configuration errors are fatal at startup
class ConfigurationError(RewardOracleException):
    """Raised when there's a configuration error."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "CONFIGURATION_ERROR", details)


class ChecksumMismatchError(ConfigurationError):
    """Raised when the served reward config does not hash to the expected checksum."""

    def __init__(self, expected: str, actual: str):
        super().__init__(
            f"config checksum mismatch: expected {expected}; actual {actual}",
            {"expected": expected, "actual": actual}
        )
        self.code = "CHECKSUM_MISMATCH"
        self.expected = expected
        self.actual = actual


# Transient I/O
class QueryError(RewardOracleException):
    """Raised when a single indexed-data query attempt fails."""

    retryable = True

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "QUERY_ERROR", details)


class ChainError(RewardOracleException):
    """Raised when a JSON-RPC call against the chain fails."""

    retryable = True

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "CHAIN_ERROR", details)


class RetryExhaustedError(RewardOracleException):
    """Raised when a bounded retry loop runs out of attempts."""

    retryable = True

    def __init__(self, operation: str, retries: int, last_error: Optional[str] = None):
        super().__init__(
            f"{operation} still failed after {retries} retries",
            "RETRY_EXHAUSTED",
            {"operation": operation, "retries": retries, "last_error": last_error}
        )
        self.operation = operation
        self.retries = retries


# Data errors abort the current iteration and are never coerced
class DataError(RewardOracleException):
    """Raised when collected or computed data is invalid."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        code: str = "DATA_ERROR"
    ):
        super().__init__(message, code, details)


class MalformedEntryError(DataError):
    """Raised when a raw indexed row cannot be converted to a typed entry."""

    def __init__(self, kind: str, field: str, value: Any):
        super().__init__(
            f"error parsing raw {kind}: invalid {field} {value!r}",
            {"kind": kind, "field": field, "value": repr(value)},
            "MALFORMED_ENTRY"
        )


class RewardOverflowError(DataError):
    """Raised when a reward amount would not fit in 256 bits."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details, "REWARD_OVERFLOW")


class RewardComputationError(DataError):
    """Raised when a reward distribution cannot be computed consistently."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details, "REWARD_COMPUTATION_ERROR")


# Coordination protocol
class CoordinationError(RewardOracleException):
    """Raised when the coordination service answers with a non-success status."""

    def __init__(self, message: str, status: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message, "COORDINATION_ERROR", {"status": status, "body": body})
        self.status = status
        self.body = body


class SigningError(RewardOracleException):
    """Raised when a signing backend cannot produce a signature."""

    retryable = True

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "SIGNING_ERROR", details)
