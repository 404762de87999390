"""
Wire schemas for the coordination service and reward entries.
"""

from .common import Address, Uint256, HexBytes, UINT256_MAX, UINT32_MAX
from .reward_config import RewardConfig, StakingRewardScheduleEntry, DEFAULT_CLAIM_WINDOW
from .rewards import (
    RewardEntry,
    Signature,
    SignedRewardEntry,
    serialize_reward_entries,
    reward_entries_digest,
)
from .worker import Period, WorkerConfig, RewardComposition, Submission, SubmissionEntry

__all__ = [
    "Address",
    "Uint256",
    "HexBytes",
    "UINT256_MAX",
    "UINT32_MAX",
    "RewardConfig",
    "StakingRewardScheduleEntry",
    "DEFAULT_CLAIM_WINDOW",
    "RewardEntry",
    "Signature",
    "SignedRewardEntry",
    "serialize_reward_entries",
    "reward_entries_digest",
    "Period",
    "WorkerConfig",
    "RewardComposition",
    "Submission",
    "SubmissionEntry",
]
