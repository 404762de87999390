"""
Reward computation engine.
"""

from .types import (
    AddressWeights,
    ClaimedReward,
    PeriodTotals,
    RewardCalculation,
    address_key,
    serialize_weights,
    weights_digest,
)
from .allocation import allocate
from .ledger import DebtLedger
from .policy import WeightingPolicy, DebtWeightedPolicy
from .engine import RewardEngine, compute_rewards, checked_add

__all__ = [
    "AddressWeights",
    "ClaimedReward",
    "PeriodTotals",
    "RewardCalculation",
    "address_key",
    "serialize_weights",
    "weights_digest",
    "allocate",
    "DebtLedger",
    "WeightingPolicy",
    "DebtWeightedPolicy",
    "RewardEngine",
    "compute_rewards",
    "checked_add",
]
