"""
Deterministic reward computation.

Given the same collected entries and configuration, every signer computes
byte-identical reward entries. Amounts are integers throughout.

Rollover is reconstructed by replaying every period from 0 up to the target:

- a period's staking pool is its scheduled reward plus its rollover, its fee
  pool is the pool fees collected in its window plus its fee rollover;
- a pool with no eligible weight is not distributed and rolls into the next
  period;
- rewards of period q stay claimable for ``claim_window`` periods; whatever
  is still unclaimed rolls into period q + claim_window.

Each amount is carried forward exactly once.
"""

from typing import Dict, Iterable, List, Optional, Sequence

import structlog

from ...core.exceptions import RewardComputationError, RewardOverflowError
from ...indexer.types import DebtEntry, ExchangeEntry, PerpFeeEntry, RewardClaim
from ...schemas.common import UINT256_MAX
from ...schemas.reward_config import RewardConfig
from ...schemas.rewards import RewardEntry
from ...schemas.worker import Period, RewardComposition, WorkerConfig
from .allocation import allocate
from .policy import DebtWeightedPolicy, WeightingPolicy
from .types import (
    AddressWeights,
    ClaimedReward,
    PeriodTotals,
    RewardCalculation,
    address_key,
    weights_digest,
)


logger = structlog.get_logger(__name__)


def checked_add(*values: int, what: str = "amount") -> int:
    total = 0
    for value in values:
        total += value
        if total > UINT256_MAX:
            raise RewardOverflowError(f"{what} overflows uint256")
    return total


def _group_claims(claims: Iterable[RewardClaim]) -> Dict[int, Dict[str, ClaimedReward]]:
    grouped: Dict[int, Dict[str, ClaimedReward]] = {}
    for claim in sorted(claims, key=lambda c: c.index):
        by_recipient = grouped.setdefault(claim.period_id, {})
        key = claim.recipient.lower()
        previous = by_recipient.get(key)
        if previous is None:
            by_recipient[key] = ClaimedReward(claim.recipient, claim.staking_reward, claim.fee_reward)
        else:
            by_recipient[key] = ClaimedReward(
                claim.recipient,
                checked_add(previous.staking_reward, claim.staking_reward, what="claimed staking reward"),
                checked_add(previous.fee_reward, claim.fee_reward, what="claimed fee reward"),
            )
    return grouped


class RewardEngine:
    """Computes a period's reward distribution with a pluggable weighting policy."""

    def __init__(self, policy: Optional[WeightingPolicy] = None):
        self.policy = policy or DebtWeightedPolicy()
        self.logger = logger.bind(service="reward_engine", policy=self.policy.name)

    def compute_rewards(
        self,
        chain_id: int,
        period_id: int,
        worker_config: WorkerConfig,
        reward_config: RewardConfig,
        debt_entries: Sequence[DebtEntry],
        exchange_entries: Sequence[ExchangeEntry],
        perp_fee_entries: Sequence[PerpFeeEntry],
        prior_claims: Sequence[RewardClaim],
    ) -> RewardCalculation:
        """
        Compute the reward entries of ``period_id``.

        Addresses on the exclude list never receive anything. Addresses that
        already claimed for the period are left out and keep their claimed
        amounts; the rest of the pool is split among the others.

        Raises:
            RewardOverflowError: a total does not fit in 256 bits
            RewardComputationError: claims exceed what a period distributed
        """
        periods = [worker_config.get_period(q) for q in range(period_id + 1)]
        period = periods[-1]

        fee_entries = [
            *sorted(exchange_entries, key=lambda e: e.index),
            *sorted(perp_fee_entries, key=lambda e: e.index),
        ]
        weights_by_period = self.policy.period_weights(periods, debt_entries, fee_entries)
        fees_by_period = self._bucket_fees(fee_entries, worker_config, period_id)
        claims_by_period = _group_claims(prior_claims)
        excluded = reward_config.excluded
        claim_window = reward_config.claim_window

        history: List[PeriodTotals] = []
        for q in range(period_id + 1):
            weights = {
                address: w
                for address, w in weights_by_period[q].items()
                if address.lower() not in excluded
            }
            composition = self._composition(
                q, reward_config, fees_by_period.get(q, 0), history, claims_by_period, claim_window
            )
            totals = PeriodTotals(period_id=q, composition=composition)
            if any(w.staking_weight > 0 for w in weights.values()):
                totals.staking_distributed = composition.staking_reward_for_period()
            if any(w.fee_weight > 0 for w in weights.values()):
                totals.fees_distributed = composition.fee_reward_for_period()
            history.append(totals)

        calculation = self._distribute(
            chain_id,
            period,
            history[-1].composition,
            {a: w for a, w in weights_by_period[-1].items() if a.lower() not in excluded},
            claims_by_period.get(period_id, {}),
        )

        self.logger.info(
            "Rewards computed",
            period_id=period_id,
            recipients=len(calculation.entries),
            staking_reward_for_period=str(calculation.composition.staking_reward_for_period()),
            fee_reward_for_period=str(calculation.composition.fee_reward_for_period()),
            undistributed_staking=str(calculation.undistributed_staking),
            undistributed_fees=str(calculation.undistributed_fees),
            prior_claims=len(calculation.claimed),
            claimed_staking=str(calculation.claimed_staking_reward),
            claimed_fees=str(calculation.claimed_fee_reward),
            weights_sha256=weights_digest(calculation.weights)
        )
        return calculation

    @staticmethod
    def _bucket_fees(
        fee_entries: Sequence,
        worker_config: WorkerConfig,
        last_period_id: int
    ) -> Dict[int, int]:
        buckets: Dict[int, int] = {}
        start = worker_config.first_period_start_time
        for entry in fee_entries:
            if entry.timestamp < start:
                continue
            q = (entry.timestamp - start) // worker_config.period_duration
            if q > last_period_id:
                continue
            buckets[q] = checked_add(buckets.get(q, 0), entry.fee_for_pool, what="fees accumulated")
        return buckets

    @staticmethod
    def _composition(
        period_id: int,
        reward_config: RewardConfig,
        fees_accumulated: int,
        history: List[PeriodTotals],
        claims_by_period: Dict[int, Dict[str, ClaimedReward]],
        claim_window: int
    ) -> RewardComposition:
        rollover_staking = 0
        rollover_fees = 0

        if period_id > 0:
            previous = history[period_id - 1]
            rollover_staking = previous.staking_undistributed
            rollover_fees = previous.fees_undistributed

        expired_id = period_id - claim_window
        if expired_id >= 0:
            expired = history[expired_id]
            claims = claims_by_period.get(expired_id, {}).values()
            claimed_staking = checked_add(*(c.staking_reward for c in claims), what="claimed staking reward")
            claimed_fees = checked_add(*(c.fee_reward for c in claims), what="claimed fee reward")
            if claimed_staking > expired.staking_distributed or claimed_fees > expired.fees_distributed:
                raise RewardComputationError(
                    f"claims for period {expired_id} exceed its distribution",
                    {
                        "period_id": expired_id,
                        "claimed_staking": str(claimed_staking),
                        "claimed_fees": str(claimed_fees),
                    }
                )
            rollover_staking = checked_add(
                rollover_staking,
                expired.staking_distributed - claimed_staking,
                what="rollover staking rewards"
            )
            rollover_fees = checked_add(
                rollover_fees,
                expired.fees_distributed - claimed_fees,
                what="rollover fees"
            )

        composition = RewardComposition(
            scheduled_staking_rewards=reward_config.scheduled_reward(period_id),
            rollover_staking_rewards=rollover_staking,
            fees_accumulated=fees_accumulated,
            rollover_fees=rollover_fees,
        )
        # Both totals must fit in 256 bits
        composition.staking_reward_for_period()
        composition.fee_reward_for_period()
        return composition

    @staticmethod
    def _distribute(
        chain_id: int,
        period: Period,
        composition: RewardComposition,
        weights: Dict[str, AddressWeights],
        claimed: Dict[str, ClaimedReward],
    ) -> RewardCalculation:
        staking_pool = composition.staking_reward_for_period()
        fee_pool = composition.fee_reward_for_period()

        claimed_staking = sum(c.staking_reward for c in claimed.values())
        claimed_fees = sum(c.fee_reward for c in claimed.values())
        if claimed_staking > staking_pool or claimed_fees > fee_pool:
            raise RewardComputationError(
                f"claims for period {period.period_id} exceed its reward pool",
                {
                    "period_id": period.period_id,
                    "claimed_staking": str(claimed_staking),
                    "claimed_fees": str(claimed_fees),
                }
            )

        eligible = {a: w for a, w in weights.items() if a.lower() not in claimed}
        staking_shares = allocate(
            staking_pool - claimed_staking,
            {a: w.staking_weight for a, w in eligible.items()}
        )
        fee_shares = allocate(
            fee_pool - claimed_fees,
            {a: w.fee_weight for a, w in eligible.items()}
        )

        entries: Dict[str, RewardEntry] = {}
        for address in sorted(set(staking_shares) | set(fee_shares), key=address_key):
            staking_reward = staking_shares.get(address, 0)
            fee_reward = fee_shares.get(address, 0)
            if staking_reward == 0 and fee_reward == 0:
                continue
            entries[address] = RewardEntry(
                chain_id=chain_id,
                period_id=period.period_id,
                recipient=address,
                staking_reward=staking_reward,
                fee_reward=fee_reward,
            )

        return RewardCalculation(
            period=period,
            composition=composition,
            entries=entries,
            claimed={claim.recipient: claim for claim in claimed.values()},
            weights=weights,
            undistributed_staking=staking_pool - claimed_staking - sum(staking_shares.values()),
            undistributed_fees=fee_pool - claimed_fees - sum(fee_shares.values()),
        )


def compute_rewards(
    chain_id: int,
    period_id: int,
    worker_config: WorkerConfig,
    reward_config: RewardConfig,
    debt_entries: Sequence[DebtEntry],
    exchange_entries: Sequence[ExchangeEntry],
    perp_fee_entries: Sequence[PerpFeeEntry],
    prior_claims: Sequence[RewardClaim] = (),
    policy: Optional[WeightingPolicy] = None,
) -> RewardCalculation:
    """Compute a period's rewards with the given (default: debt-weighted) policy."""
    return RewardEngine(policy).compute_rewards(
        chain_id,
        period_id,
        worker_config,
        reward_config,
        debt_entries,
        exchange_entries,
        perp_fee_entries,
        prior_claims,
    )
