"""
AWS KMS backend for secp256k1 keys (ECC_SECG_P256K1).

KMS only returns DER-encoded (r, s) pairs. The signature is normalized to
low-s and the recovery id is found by recovering against the key's public
key. boto3 is blocking, so every call runs in a worker thread.
"""

import asyncio
from typing import Any, Dict, Optional

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    PublicFormat,
    load_der_public_key,
)
from eth_account._utils.signing import sign_transaction_dict
from eth_keys import keys
from eth_keys.constants import SECPK1_N
from eth_keys.exceptions import BadSignature

from ...core.exceptions import SigningError
from .wallet import Wallet, encode_signature


logger = structlog.get_logger(__name__)


def public_key_from_der(der: bytes) -> keys.PublicKey:
    """Convert a DER SubjectPublicKeyInfo secp256k1 key to an eth_keys public key."""
    try:
        public_key = load_der_public_key(der)
    except ValueError as e:
        raise SigningError(f"invalid KMS public key: {e}")

    if not isinstance(public_key, ec.EllipticCurvePublicKey) or public_key.curve.name != "secp256k1":
        raise SigningError("KMS key is not a secp256k1 key")

    point = public_key.public_bytes(Encoding.X962, PublicFormat.UncompressedPoint)
    return keys.PublicKey(point[1:])


class _KmsKeyAdapter:
    """Exposes sign_msg_hash so eth-account can serialize transactions for a KMS key."""

    def __init__(self, signer: "KmsSigner"):
        self._signer = signer

    def sign_msg_hash(self, message_hash: bytes) -> keys.Signature:
        return self._signer._sign_digest_sync(message_hash)


class KmsSigner(Wallet):

    backend = "aws_kms"

    def __init__(
        self,
        key_id: str,
        region: str,
        chain_id: int,
        client: Optional[Any] = None
    ):
        super().__init__(chain_id)
        self.key_id = key_id
        self.region = region
        self._client = client or boto3.client("kms", region_name=region)
        self._public_key: Optional[keys.PublicKey] = None
        self.logger = logger.bind(service="kms_signer", key_id=key_id)

    @classmethod
    async def create(
        cls,
        key_id: str,
        region: str,
        chain_id: int,
        client: Optional[Any] = None
    ) -> "KmsSigner":
        signer = cls(key_id, region, chain_id, client)
        await signer.load_public_key()
        return signer

    async def load_public_key(self) -> None:
        try:
            response = await asyncio.to_thread(self._client.get_public_key, KeyId=self.key_id)
        except (BotoCoreError, ClientError) as e:
            raise SigningError(f"failed to fetch KMS public key: {e}", {"key_id": self.key_id})

        self._public_key = public_key_from_der(response["PublicKey"])
        self.logger.info("Loaded KMS public key", address=self.address)

    @property
    def address(self) -> str:
        if self._public_key is None:
            raise SigningError("KMS public key not loaded")
        return self._public_key.to_checksum_address()

    def _sign_digest_sync(self, digest: bytes) -> keys.Signature:
        if self._public_key is None:
            raise SigningError("KMS public key not loaded")

        try:
            response = self._client.sign(
                KeyId=self.key_id,
                Message=digest,
                MessageType="DIGEST",
                SigningAlgorithm="ECDSA_SHA_256",
            )
        except (BotoCoreError, ClientError) as e:
            raise SigningError(f"KMS sign request failed: {e}", {"key_id": self.key_id})

        r, s = decode_dss_signature(response["Signature"])
        if s > SECPK1_N // 2:
            s = SECPK1_N - s

        for v in (0, 1):
            signature = keys.Signature(vrs=(v, r, s))
            try:
                recovered = signature.recover_public_key_from_msg_hash(digest)
            except BadSignature:
                continue
            if recovered == self._public_key:
                return signature

        raise SigningError("KMS signature does not recover to the key address", {"key_id": self.key_id})

    async def sign_digest(self, digest: bytes) -> bytes:
        signature = await asyncio.to_thread(self._sign_digest_sync, digest)
        return encode_signature(signature.r, signature.s, signature.v)

    async def sign_transaction(self, transaction: Dict[str, Any]) -> bytes:
        transaction = self._with_chain_id(transaction)

        def _sign():
            _, _, _, encoded = sign_transaction_dict(_KmsKeyAdapter(self), transaction)
            return bytes(encoded)

        return await asyncio.to_thread(_sign)
