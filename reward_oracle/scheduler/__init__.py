"""
Period run loop and service bootstrapping.
"""

from .context import RunContext
from .period_runner import (
    PeriodRunner,
    RunOutcome,
    RunnerStatus,
    RunnerStats,
    sign_rewards,
    build_submission,
    SIGN_RETRY_COUNT,
    SIGN_RETRY_DELAY,
)
from .main import OracleService, main

__all__ = [
    "RunContext",
    "PeriodRunner",
    "RunOutcome",
    "RunnerStatus",
    "RunnerStats",
    "sign_rewards",
    "build_submission",
    "SIGN_RETRY_COUNT",
    "SIGN_RETRY_DELAY",
    "OracleService",
    "main",
]
