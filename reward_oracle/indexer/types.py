"""
Typed entries collected from the indexed-data service.

Raw rows carry every number as a string. Conversion is entry by entry and
fails closed: one malformed row aborts the whole batch.
"""

from dataclasses import dataclass
from typing import Any, Dict, Protocol

from eth_utils import is_address, to_checksum_address

from ..core.exceptions import MalformedEntryError
from ..schemas.common import UINT256_MAX, UINT32_MAX


UINT64_MAX = 2 ** 64 - 1


def _field(raw: Dict[str, Any], kind: str, name: str) -> str:
    value = raw.get(name)
    if not isinstance(value, str):
        raise MalformedEntryError(kind, name, value)
    return value


def _parse_uint(raw: Dict[str, Any], kind: str, name: str, upper: int) -> int:
    value = _field(raw, kind, name)
    if not (value.isascii() and value.isdigit()):
        raise MalformedEntryError(kind, name, value)
    number = int(value)
    if number > upper:
        raise MalformedEntryError(kind, name, value)
    return number


def _parse_address(raw: Dict[str, Any], kind: str, name: str) -> str:
    value = _field(raw, kind, name)
    if not is_address(value):
        raise MalformedEntryError(kind, name, value)
    return to_checksum_address(value)


class PoolableFeeEntry(Protocol):
    """Any event contributing fee income to the shared reward pool."""
    fee_for_pool: int
    timestamp: int


@dataclass(frozen=True)
class DebtEntry:
    """Point-in-time snapshot of an address's share of protocol debt."""
    id: str
    index: int
    address: str
    debt_factor: int
    debt_proportion: int
    timestamp: int

    @classmethod
    def from_raw(cls, raw: Dict[str, Any]) -> "DebtEntry":
        kind = "debt entry"
        return cls(
            id=_field(raw, kind, "id"),
            index=_parse_uint(raw, kind, "index", UINT64_MAX),
            address=_parse_address(raw, kind, "address"),
            debt_factor=_parse_uint(raw, kind, "debtFactor", UINT256_MAX),
            debt_proportion=_parse_uint(raw, kind, "debtProportion", UINT256_MAX),
            timestamp=_parse_uint(raw, kind, "timestamp", UINT64_MAX),
        )


@dataclass(frozen=True)
class ExchangeEntry:
    id: str
    index: int
    from_addr: str
    source_key: str
    source_amount: int
    dest_addr: str
    dest_key: str
    dest_recived: int
    fee_for_pool: int
    fee_for_foundation: int
    timestamp: int

    @classmethod
    def from_raw(cls, raw: Dict[str, Any]) -> "ExchangeEntry":
        kind = "exchange entry"
        return cls(
            id=_field(raw, kind, "id"),
            index=_parse_uint(raw, kind, "index", UINT64_MAX),
            from_addr=_parse_address(raw, kind, "fromAddr"),
            source_key=_field(raw, kind, "sourceKey"),
            source_amount=_parse_uint(raw, kind, "sourceAmount", UINT256_MAX),
            dest_addr=_parse_address(raw, kind, "destAddr"),
            dest_key=_field(raw, kind, "destKey"),
            dest_recived=_parse_uint(raw, kind, "destRecived", UINT256_MAX),
            fee_for_pool=_parse_uint(raw, kind, "feeForPool", UINT256_MAX),
            fee_for_foundation=_parse_uint(raw, kind, "feeForFoundation", UINT256_MAX),
            timestamp=_parse_uint(raw, kind, "timestamp", UINT64_MAX),
        )


@dataclass(frozen=True)
class PerpFeeEntry:
    id: str
    index: int
    fee_for_pool: int
    fee_for_foundation: int
    timestamp: int

    @classmethod
    def from_raw(cls, raw: Dict[str, Any]) -> "PerpFeeEntry":
        kind = "perp fee entry"
        return cls(
            id=_field(raw, kind, "id"),
            index=_parse_uint(raw, kind, "index", UINT64_MAX),
            fee_for_pool=_parse_uint(raw, kind, "feeForPool", UINT256_MAX),
            fee_for_foundation=_parse_uint(raw, kind, "feeForFoundation", UINT256_MAX),
            timestamp=_parse_uint(raw, kind, "timestamp", UINT64_MAX),
        )


@dataclass(frozen=True)
class RewardClaim:
    """A distribution already claimed on-chain."""
    id: str
    index: int
    recipient: str
    period_id: int
    staking_reward: int
    fee_reward: int

    @classmethod
    def from_raw(cls, raw: Dict[str, Any]) -> "RewardClaim":
        kind = "reward claim"
        return cls(
            id=_field(raw, kind, "id"),
            index=_parse_uint(raw, kind, "index", UINT64_MAX),
            recipient=_parse_address(raw, kind, "recipient"),
            period_id=_parse_uint(raw, kind, "periodId", UINT32_MAX),
            staking_reward=_parse_uint(raw, kind, "stakingReward", UINT256_MAX),
            fee_reward=_parse_uint(raw, kind, "feeReward", UINT256_MAX),
        )
