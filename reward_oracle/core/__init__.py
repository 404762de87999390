"""
Core configuration, logging and error types.
"""

from .config import Settings, get_settings, parse_sha256_sum
from .logging import setup_logging
from .exceptions import (
    RewardOracleException,
    ConfigurationError,
    ChecksumMismatchError,
    QueryError,
    ChainError,
    RetryExhaustedError,
    DataError,
    MalformedEntryError,
    RewardOverflowError,
    RewardComputationError,
    CoordinationError,
    SigningError,
)

__all__ = [
    "Settings",
    "get_settings",
    "parse_sha256_sum",
    "setup_logging",
    "RewardOracleException",
    "ConfigurationError",
    "ChecksumMismatchError",
    "QueryError",
    "ChainError",
    "RetryExhaustedError",
    "DataError",
    "MalformedEntryError",
    "RewardOverflowError",
    "RewardComputationError",
    "CoordinationError",
    "SigningError",
]
