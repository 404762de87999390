"""
Reward entries and their canonical serialization.

Entries are ordered by recipient address. Serializing the same set of entries
always produces the same bytes, so independently-operated signers can compare
their results by digest.
"""

import hashlib
import json
from typing import Iterable, List, Tuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .common import Address, HexBytes, Uint256, UINT32_MAX


class RewardEntry(BaseModel):
    """One recipient's share for one period."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    chain_id: int
    period_id: int = Field(ge=0, le=UINT32_MAX)
    recipient: Address
    staking_reward: Uint256
    fee_reward: Uint256

    def sort_key(self) -> bytes:
        return bytes.fromhex(self.recipient[2:])

    def reward_key(self) -> Tuple[int, int, str, int, int]:
        return (
            self.chain_id,
            self.period_id,
            self.recipient.lower(),
            self.staking_reward,
            self.fee_reward,
        )

    def __eq__(self, other):
        if not isinstance(other, RewardEntry):
            return NotImplemented
        return self.reward_key() == other.reward_key()

    def __hash__(self):
        return hash(self.reward_key())

    def __lt__(self, other):
        if not isinstance(other, RewardEntry):
            return NotImplemented
        return self.sort_key() < other.sort_key()


class Signature(BaseModel):
    model_config = ConfigDict(frozen=True)

    signer: Address
    signature: HexBytes


class SignedRewardEntry(RewardEntry):
    """A reward entry with one or more signatures; compares as the bare entry."""
    signatures: List[Signature] = Field(min_length=1)

    @classmethod
    def from_entry(cls, entry: RewardEntry, signatures: List[Signature]) -> "SignedRewardEntry":
        return cls(
            chain_id=entry.chain_id,
            period_id=entry.period_id,
            recipient=entry.recipient,
            staking_reward=entry.staking_reward,
            fee_reward=entry.fee_reward,
            signatures=signatures,
        )

    def to_entry(self) -> RewardEntry:
        return RewardEntry(
            chain_id=self.chain_id,
            period_id=self.period_id,
            recipient=self.recipient,
            staking_reward=self.staking_reward,
            fee_reward=self.fee_reward,
        )


def serialize_reward_entries(entries: Iterable[RewardEntry]) -> bytes:
    """Compact JSON of the bare entries in ascending recipient order."""
    ordered = sorted(entries, key=lambda e: e.sort_key())
    fields = set(RewardEntry.model_fields)
    payload = [entry.model_dump(mode="json", by_alias=True, include=fields) for entry in ordered]
    return json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8")


def reward_entries_digest(entries: Iterable[RewardEntry]) -> str:
    return hashlib.sha256(serialize_reward_entries(entries)).hexdigest()
