"""
Reward weighting policies.

A policy turns the collected debt snapshots and fee events into per-address
weights for a run of consecutive periods. The engine only relies on the
weights, so the formula can be swapped without touching allocation,
rollover or claim handling.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Sequence

from ...indexer.types import DebtEntry, PoolableFeeEntry
from ...schemas.worker import Period
from .ledger import DebtLedger
from .types import AddressWeights


# Snapshots sort before fee events with the same timestamp
_DEBT = 0
_FEE = 1


class WeightingPolicy(ABC):

    name: str = "abstract"

    @abstractmethod
    def period_weights(
        self,
        periods: Sequence[Period],
        debt_entries: Sequence[DebtEntry],
        fee_entries: Sequence[PoolableFeeEntry],
    ) -> List[Dict[str, AddressWeights]]:
        """
        Weights for each of ``periods``, which must be consecutive and ascending.

        Returns one mapping per period, keyed by checksummed address.
        """


class DebtWeightedPolicy(WeightingPolicy):
    """
    Staking weight is the time-weighted debt proportion over the period.
    Fee weight is the sum, over the period's fee events, of the event's pool
    fee times the address's debt proportion at that moment. A snapshot and
    a fee event at the same second: the snapshot applies first.
    """

    name = "debt_weighted"

    def period_weights(self, periods, debt_entries, fee_entries):
        if not periods:
            return []

        events = [(entry.timestamp, _DEBT, entry.index, entry) for entry in debt_entries]
        events.extend(
            (entry.timestamp, _FEE, position, entry) for position, entry in enumerate(fee_entries)
        )
        events.sort(key=lambda event: event[:3])

        ledger = DebtLedger(periods[0].start_time)
        results = []
        cursor = 0

        for period in periods:
            while cursor < len(events) and events[cursor][0] < period.end_time:
                timestamp, kind, _, entry = events[cursor]
                if kind == _DEBT:
                    ledger.apply_snapshot(entry.address, entry.debt_proportion, timestamp)
                elif period.contains(timestamp):
                    ledger.apply_fee(entry.fee_for_pool, timestamp)
                cursor += 1
            results.append(ledger.settle(period.end_time))

        return results
