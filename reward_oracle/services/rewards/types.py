"""
Types for reward computation.
"""

import hashlib
import json
from dataclasses import dataclass, field
from typing import Dict, List

from ...schemas.rewards import RewardEntry
from ...schemas.worker import Period, RewardComposition


def address_key(address: str) -> bytes:
    """Byte-order sort key for a 0x-prefixed address."""
    return bytes.fromhex(address[2:])


@dataclass(frozen=True)
class AddressWeights:
    """Separate staking and fee weights of one address for one period."""
    staking_weight: int = 0
    fee_weight: int = 0

    @property
    def is_zero(self) -> bool:
        return self.staking_weight == 0 and self.fee_weight == 0


def serialize_weights(weights: Dict[str, AddressWeights]) -> bytes:
    """Compact JSON of per-address weights in ascending address order."""
    payload = [
        {
            "address": address,
            "stakingWeight": str(weights[address].staking_weight),
            "feeWeight": str(weights[address].fee_weight),
        }
        for address in sorted(weights, key=address_key)
    ]
    return json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8")


def weights_digest(weights: Dict[str, AddressWeights]) -> str:
    return hashlib.sha256(serialize_weights(weights)).hexdigest()


@dataclass(frozen=True)
class ClaimedReward:
    """Amounts already claimed on-chain by one recipient for one period."""
    recipient: str
    staking_reward: int = 0
    fee_reward: int = 0


@dataclass
class PeriodTotals:
    """Replay bookkeeping for one period."""
    period_id: int
    composition: RewardComposition
    staking_distributed: int = 0
    fees_distributed: int = 0

    @property
    def staking_undistributed(self) -> int:
        return self.composition.staking_reward_for_period() - self.staking_distributed

    @property
    def fees_undistributed(self) -> int:
        return self.composition.fee_reward_for_period() - self.fees_distributed


@dataclass
class RewardCalculation:
    """Outcome of computing one period's rewards."""
    period: Period
    composition: RewardComposition
    entries: Dict[str, RewardEntry] = field(default_factory=dict)
    claimed: Dict[str, ClaimedReward] = field(default_factory=dict)
    weights: Dict[str, AddressWeights] = field(default_factory=dict)
    undistributed_staking: int = 0
    undistributed_fees: int = 0

    def sorted_entries(self) -> List[RewardEntry]:
        return [self.entries[address] for address in sorted(self.entries, key=address_key)]

    @property
    def total_staking_reward(self) -> int:
        return sum(entry.staking_reward for entry in self.entries.values())

    @property
    def total_fee_reward(self) -> int:
        return sum(entry.fee_reward for entry in self.entries.values())

    @property
    def claimed_staking_reward(self) -> int:
        return sum(claim.staking_reward for claim in self.claimed.values())

    @property
    def claimed_fee_reward(self) -> int:
        return sum(claim.fee_reward for claim in self.claimed.values())
