"""
Reward configuration served by the coordination service.

The raw JSON text is checksum-bound, so unknown fields are rejected rather
than ignored.
"""

from typing import Dict, List, Set

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .common import Address, Uint256, UINT32_MAX


DEFAULT_CLAIM_WINDOW = 2


class StakingRewardScheduleEntry(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    period_id: int = Field(ge=0, le=UINT32_MAX)
    reward: Uint256


class RewardConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    has_legacy_chain: bool
    exclude_list: List[Address]
    staking_reward_schedule: List[StakingRewardScheduleEntry]
    # Periods after a period during which its rewards stay claimable
    claim_window: int = Field(default=DEFAULT_CLAIM_WINDOW, ge=1)

    @field_validator("staking_reward_schedule")
    @classmethod
    def validate_unique_periods(cls, v):
        seen = set()
        for entry in v:
            if entry.period_id in seen:
                raise ValueError(f"duplicate schedule entry for period {entry.period_id}")
            seen.add(entry.period_id)
        return v

    @property
    def schedule(self) -> Dict[int, int]:
        return {entry.period_id: entry.reward for entry in self.staking_reward_schedule}

    @property
    def excluded(self) -> Set[str]:
        """Excluded addresses, lowercased."""
        return {address.lower() for address in self.exclude_list}

    def scheduled_reward(self, period_id: int) -> int:
        return self.schedule.get(period_id, 0)
