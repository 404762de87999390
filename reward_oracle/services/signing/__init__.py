"""
Signing authority over interchangeable key-custody backends.
"""

from .typed_data import (
    Eip712Domain,
    reward_struct_hash,
    reward_digest,
    reward_typed_data,
    typed_data_digest,
    REWARD_TYPEHASH,
    EIP712_DOMAIN_TYPEHASH,
)
from .wallet import Wallet, encode_signature
from .local import LocalKeySigner
from .kms import KmsSigner, public_key_from_der
from .factory import create_wallet

__all__ = [
    "Eip712Domain",
    "reward_struct_hash",
    "reward_digest",
    "reward_typed_data",
    "typed_data_digest",
    "REWARD_TYPEHASH",
    "EIP712_DOMAIN_TYPEHASH",
    "Wallet",
    "encode_signature",
    "LocalKeySigner",
    "KmsSigner",
    "public_key_from_der",
    "create_wallet",
]
