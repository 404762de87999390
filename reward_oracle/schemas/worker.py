"""
Schemas exchanged with the coordination service.
"""

from dataclasses import dataclass
from typing import List

from pydantic import BaseModel, ConfigDict, Field

from ..core.exceptions import RewardOverflowError
from .common import Address, HexBytes, Uint256, UINT256_MAX, UINT32_MAX


@dataclass(frozen=True)
class Period:
    """A settlement window [start_time, start_time + duration) in UNIX seconds."""
    period_id: int
    start_time: int
    duration: int

    @property
    def end_time(self) -> int:
        return self.start_time + self.duration

    def contains(self, timestamp: int) -> bool:
        return self.start_time <= timestamp < self.end_time


class WorkerConfig(BaseModel):
    """Canonical period schedule and quorum membership."""
    model_config = ConfigDict(frozen=True)

    first_period_start_time: int = Field(ge=0)
    period_duration: int = Field(gt=0)
    signers: List[Address]

    def get_period(self, period_id: int) -> Period:
        if period_id < 0 or period_id > UINT32_MAX:
            raise ValueError(f"period id out of range: {period_id}")
        return Period(
            period_id=period_id,
            start_time=self.first_period_start_time + period_id * self.period_duration,
            duration=self.period_duration,
        )

    def is_signer(self, address: str) -> bool:
        return address.lower() in {s.lower() for s in self.signers}


class RewardComposition(BaseModel):
    """Per-period reward totals."""
    model_config = ConfigDict(frozen=True)

    scheduled_staking_rewards: Uint256 = 0
    rollover_staking_rewards: Uint256 = 0
    fees_accumulated: Uint256 = 0
    rollover_fees: Uint256 = 0

    def staking_reward_for_period(self) -> int:
        total = self.scheduled_staking_rewards + self.rollover_staking_rewards
        if total > UINT256_MAX:
            raise RewardOverflowError(
                "staking reward overflow",
                {
                    "scheduled": str(self.scheduled_staking_rewards),
                    "rollover": str(self.rollover_staking_rewards),
                }
            )
        return total

    def fee_reward_for_period(self) -> int:
        total = self.fees_accumulated + self.rollover_fees
        if total > UINT256_MAX:
            raise RewardOverflowError(
                "fee reward overflow",
                {
                    "accumulated": str(self.fees_accumulated),
                    "rollover": str(self.rollover_fees),
                }
            )
        return total


class SubmissionEntry(BaseModel):
    recipient: Address
    staking_reward: Uint256
    fee_reward: Uint256
    signature: HexBytes


class Submission(BaseModel):
    """One signer's attestation bundle for a period."""
    period_id: int = Field(ge=0, le=UINT32_MAX)
    chain_id: int
    signer: Address
    entries: List[SubmissionEntry]
    composition: RewardComposition
