"""
Debt ledger replay.

Each address's debt proportion is the one from its latest snapshot and stays
in effect until the next one. The ledger keeps two clocks, wall time and
cumulative pool fee volume, so both weights accumulate lazily:

    staking weight += proportion * elapsed seconds
    fee weight     += proportion * fee volume collected meanwhile
"""

from dataclasses import dataclass
from typing import Dict

from .types import AddressWeights


@dataclass
class _Position:
    proportion: int
    since_time: int
    since_fee_volume: int


class DebtLedger:

    def __init__(self, start_time: int):
        self._time = start_time
        self._fee_volume = 0
        self._positions: Dict[str, _Position] = {}
        self._staking: Dict[str, int] = {}
        self._fees: Dict[str, int] = {}

    @property
    def time(self) -> int:
        return self._time

    def _advance(self, timestamp: int) -> None:
        # Anything older than the clock counts from the clock
        if timestamp > self._time:
            self._time = timestamp

    def _accrue(self, address: str, position: _Position) -> None:
        elapsed = self._time - position.since_time
        volume = self._fee_volume - position.since_fee_volume
        if elapsed:
            self._staking[address] = self._staking.get(address, 0) + position.proportion * elapsed
        if volume:
            self._fees[address] = self._fees.get(address, 0) + position.proportion * volume
        position.since_time = self._time
        position.since_fee_volume = self._fee_volume

    def apply_snapshot(self, address: str, proportion: int, timestamp: int) -> None:
        self._advance(timestamp)
        position = self._positions.get(address)
        if position is not None:
            self._accrue(address, position)
        if proportion:
            self._positions[address] = _Position(proportion, self._time, self._fee_volume)
        else:
            self._positions.pop(address, None)

    def apply_fee(self, amount: int, timestamp: int) -> None:
        self._advance(timestamp)
        self._fee_volume += amount

    def settle(self, end_time: int) -> Dict[str, AddressWeights]:
        """Close the running period at ``end_time`` and return its weights."""
        self._advance(end_time)
        for address, position in self._positions.items():
            self._accrue(address, position)

        weights = {
            address: AddressWeights(
                staking_weight=self._staking.get(address, 0),
                fee_weight=self._fees.get(address, 0),
            )
            for address in set(self._staking) | set(self._fees)
        }
        self._staking = {}
        self._fees = {}
        return {address: w for address, w in weights.items() if not w.is_zero}
