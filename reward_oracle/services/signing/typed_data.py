"""
EIP-712 hashing for reward entries.

The digest must match what the settlement contract recomputes on claim:
keccak256(0x19 0x01 || domainSeparator || structHash).
"""

from dataclasses import dataclass
from typing import Any, Dict

from eth_abi import encode
from eth_utils import keccak, to_checksum_address

from ...schemas.rewards import RewardEntry


DOMAIN_VERSION = "1"

EIP712_DOMAIN_TYPE = (
    "EIP712Domain(string name,string version,uint256 chainId,address verifyingContract)"
)
REWARD_TYPE = (
    "Reward(uint256 periodId,address recipient,uint256 stakingReward,uint256 feeReward)"
)

EIP712_DOMAIN_TYPEHASH = keccak(text=EIP712_DOMAIN_TYPE)
REWARD_TYPEHASH = keccak(text=REWARD_TYPE)


@dataclass(frozen=True)
class Eip712Domain:
    name: str
    chain_id: int
    verifying_contract: str
    version: str = DOMAIN_VERSION

    def separator(self) -> bytes:
        return keccak(
            encode(
                ["bytes32", "bytes32", "bytes32", "uint256", "address"],
                [
                    EIP712_DOMAIN_TYPEHASH,
                    keccak(text=self.name),
                    keccak(text=self.version),
                    self.chain_id,
                    to_checksum_address(self.verifying_contract),
                ],
            )
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "chainId": self.chain_id,
            "verifyingContract": to_checksum_address(self.verifying_contract),
        }


def reward_struct_hash(entry: RewardEntry) -> bytes:
    return keccak(
        encode(
            ["bytes32", "uint256", "address", "uint256", "uint256"],
            [
                REWARD_TYPEHASH,
                entry.period_id,
                entry.recipient,
                entry.staking_reward,
                entry.fee_reward,
            ],
        )
    )


def typed_data_digest(domain: Eip712Domain, struct_hash: bytes) -> bytes:
    return keccak(b"\x19\x01" + domain.separator() + struct_hash)


def reward_digest(domain: Eip712Domain, entry: RewardEntry) -> bytes:
    return typed_data_digest(domain, reward_struct_hash(entry))


def reward_typed_data(domain: Eip712Domain, entry: RewardEntry) -> Dict[str, Any]:
    """Full EIP-712 message for wallets and tooling that take the JSON form."""
    return {
        "types": {
            "EIP712Domain": [
                {"name": "name", "type": "string"},
                {"name": "version", "type": "string"},
                {"name": "chainId", "type": "uint256"},
                {"name": "verifyingContract", "type": "address"},
            ],
            "Reward": [
                {"name": "periodId", "type": "uint256"},
                {"name": "recipient", "type": "address"},
                {"name": "stakingReward", "type": "uint256"},
                {"name": "feeReward", "type": "uint256"},
            ],
        },
        "primaryType": "Reward",
        "domain": domain.as_dict(),
        "message": {
            "periodId": entry.period_id,
            "recipient": entry.recipient,
            "stakingReward": entry.staking_reward,
            "feeReward": entry.fee_reward,
        },
    }
