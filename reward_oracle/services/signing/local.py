"""
Plaintext private key backend, meant for development setups.
"""

from typing import Any, Dict

from eth_account import Account
from eth_keys import keys
from eth_keys.exceptions import ValidationError as KeyValidationError

from ...core.exceptions import ConfigurationError
from .wallet import Wallet, encode_signature


class LocalKeySigner(Wallet):

    backend = "local"

    def __init__(self, private_key: str, chain_id: int):
        super().__init__(chain_id)
        text = private_key[2:] if private_key.startswith(("0x", "0X")) else private_key
        try:
            self._key = keys.PrivateKey(bytes.fromhex(text))
        except (ValueError, KeyValidationError):
            raise ConfigurationError("invalid private key")

    @property
    def address(self) -> str:
        return self._key.public_key.to_checksum_address()

    async def sign_digest(self, digest: bytes) -> bytes:
        signature = self._key.sign_msg_hash(digest)
        return encode_signature(signature.r, signature.s, signature.v)

    async def sign_transaction(self, transaction: Dict[str, Any]) -> bytes:
        signed = Account.sign_transaction(self._with_chain_id(transaction), self._key.to_bytes())
        return bytes(signed.raw_transaction)
