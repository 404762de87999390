"""
Signing authority interface.

A wallet wraps exactly one key-custody backend. Callers only ever see this
interface, so adding a backend means adding a subclass.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Union

from eth_account.messages import encode_defunct
from eth_utils import keccak

from ...schemas.rewards import RewardEntry
from .typed_data import Eip712Domain, reward_struct_hash, typed_data_digest


def encode_signature(r: int, s: int, v: int) -> bytes:
    """65-byte r || s || v signature with v in {27, 28}."""
    if v in (0, 1):
        v += 27
    return r.to_bytes(32, "big") + s.to_bytes(32, "big") + bytes([v])


class Wallet(ABC):
    """Uniform signing interface over key-custody backends."""

    backend: str = "abstract"

    def __init__(self, chain_id: int):
        self._chain_id = chain_id

    @property
    def chain_id(self) -> int:
        return self._chain_id

    @property
    @abstractmethod
    def address(self) -> str:
        """Checksummed address of the signing key."""

    @abstractmethod
    async def sign_digest(self, digest: bytes) -> bytes:
        """Sign a 32-byte hash, returning a 65-byte r || s || v signature."""

    @abstractmethod
    async def sign_transaction(self, transaction: Dict[str, Any]) -> bytes:
        """Sign a transaction dict, returning the raw encoded transaction."""

    async def sign_message(self, message: Union[str, bytes]) -> bytes:
        """EIP-191 personal message signature."""
        if isinstance(message, str):
            signable = encode_defunct(text=message)
        else:
            signable = encode_defunct(primitive=message)
        digest = keccak(b"\x19" + signable.version + signable.header + signable.body)
        return await self.sign_digest(digest)

    async def sign_typed_data(self, domain: Eip712Domain, struct_hash: bytes) -> bytes:
        return await self.sign_digest(typed_data_digest(domain, struct_hash))

    async def sign_reward(self, domain: Eip712Domain, entry: RewardEntry) -> bytes:
        return await self.sign_typed_data(domain, reward_struct_hash(entry))

    def _with_chain_id(self, transaction: Dict[str, Any]) -> Dict[str, Any]:
        if "chainId" in transaction:
            return transaction
        return {**transaction, "chainId": self._chain_id}

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.address}>"
