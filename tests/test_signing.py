"""
Test typed-data hashing and the signing backends.
"""

import pytest
from botocore.exceptions import ClientError
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import (
    Prehashed,
    decode_dss_signature,
    encode_dss_signature,
)
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat
from eth_account import Account
from eth_account.messages import encode_defunct, encode_typed_data
from eth_keys import keys
from eth_keys.constants import SECPK1_N
from eth_utils import keccak

from conftest import ADDRESS_A, ADDRESS_B, CHAIN_ID, PRIVATE_KEY
from reward_oracle.core.exceptions import ConfigurationError, SigningError
from reward_oracle.schemas.rewards import RewardEntry
from reward_oracle.services.signing import (
    KmsSigner,
    LocalKeySigner,
    create_wallet,
    public_key_from_der,
    reward_digest,
    reward_typed_data,
)


def _entry(**overrides):
    fields = dict(
        chain_id=CHAIN_ID,
        period_id=136,
        recipient=ADDRESS_A,
        staking_reward=10 ** 22,
        fee_reward=10 ** 15,
    )
    fields.update(overrides)
    return RewardEntry(**fields)


class FakeKmsClient:
    """Stands in for a boto3 KMS client backed by a local secp256k1 key."""

    def __init__(self, high_s=False, fail_times=0):
        self.key = ec.generate_private_key(ec.SECP256K1())
        self.high_s = high_s
        self.fail_times = fail_times
        self.sign_calls = 0

    @property
    def eth_address(self):
        raw = self.key.private_numbers().private_value.to_bytes(32, "big")
        return keys.PrivateKey(raw).public_key.to_checksum_address()

    def get_public_key(self, KeyId):
        der = self.key.public_key().public_bytes(Encoding.DER, PublicFormat.SubjectPublicKeyInfo)
        return {"KeyId": KeyId, "PublicKey": der}

    def sign(self, KeyId, Message, MessageType, SigningAlgorithm):
        assert MessageType == "DIGEST"
        assert SigningAlgorithm == "ECDSA_SHA_256"
        self.sign_calls += 1
        if self.fail_times > 0:
            self.fail_times -= 1
            raise ClientError(
                {"Error": {"Code": "KMSInternalException", "Message": "unavailable"}}, "Sign"
            )

        der = self.key.sign(Message, ec.ECDSA(Prehashed(hashes.SHA256())))
        r, s = decode_dss_signature(der)
        # Force the form KMS is free to return
        if self.high_s and s <= SECPK1_N // 2:
            s = SECPK1_N - s
        return {"KeyId": KeyId, "Signature": encode_dss_signature(r, s)}


def test_reward_digest_matches_eip712_encoding(domain):
    entry = _entry()
    signable = encode_typed_data(full_message=reward_typed_data(domain, entry))
    expected = keccak(b"\x19" + signable.version + signable.header + signable.body)

    assert reward_digest(domain, entry) == expected


def test_digest_depends_on_every_field(domain):
    base = reward_digest(domain, _entry())

    assert reward_digest(domain, _entry(period_id=137)) != base
    assert reward_digest(domain, _entry(recipient=ADDRESS_B)) != base
    assert reward_digest(domain, _entry(staking_reward=1)) != base
    assert reward_digest(domain, _entry(fee_reward=1)) != base


@pytest.mark.asyncio
async def test_local_typed_data_signature_is_stable_and_verifies(wallet, domain):
    entry = _entry()

    first = await wallet.sign_reward(domain, entry)
    second = await wallet.sign_reward(domain, entry)

    assert first == second
    assert len(first) == 65
    assert first[-1] in (27, 28)

    signable = encode_typed_data(full_message=reward_typed_data(domain, entry))
    assert Account.recover_message(signable, signature=first) == wallet.address
    assert first == bytes(Account.sign_message(signable, PRIVATE_KEY).signature)


@pytest.mark.asyncio
async def test_local_signer_address_and_chain(wallet):
    assert wallet.address == Account.from_key(PRIVATE_KEY).address
    assert wallet.chain_id == CHAIN_ID


@pytest.mark.asyncio
async def test_local_sign_message(wallet):
    signature = await wallet.sign_message("reward oracle")

    assert Account.recover_message(encode_defunct(text="reward oracle"), signature=signature) == wallet.address


@pytest.mark.asyncio
async def test_local_sign_transaction(wallet):
    raw = await wallet.sign_transaction({
        "nonce": 0,
        "gas": 21000,
        "gasPrice": 10 ** 9,
        "to": ADDRESS_B,
        "value": 1,
        "data": b"",
    })

    assert Account.recover_transaction(raw) == wallet.address


def test_invalid_private_key_is_configuration_error():
    with pytest.raises(ConfigurationError):
        LocalKeySigner("0x1234", CHAIN_ID)


@pytest.mark.asyncio
@pytest.mark.parametrize("high_s", [False, True])
async def test_kms_signature_recovers_to_key_address(domain, high_s):
    client = FakeKmsClient(high_s=high_s)
    signer = await KmsSigner.create("key-1", "eu-west-1", CHAIN_ID, client=client)
    entry = _entry()

    signature = await signer.sign_reward(domain, entry)

    assert signer.address == client.eth_address
    s = int.from_bytes(signature[32:64], "big")
    assert s <= SECPK1_N // 2
    signable = encode_typed_data(full_message=reward_typed_data(domain, entry))
    assert Account.recover_message(signable, signature=signature) == client.eth_address


@pytest.mark.asyncio
async def test_kms_sign_message_and_transaction():
    client = FakeKmsClient()
    signer = await KmsSigner.create("key-1", "eu-west-1", CHAIN_ID, client=client)

    signature = await signer.sign_message(b"payload")
    assert Account.recover_message(encode_defunct(primitive=b"payload"), signature=signature) == signer.address

    raw = await signer.sign_transaction({
        "type": 2,
        "nonce": 3,
        "gas": 21000,
        "maxFeePerGas": 2 * 10 ** 9,
        "maxPriorityFeePerGas": 10 ** 9,
        "to": ADDRESS_B,
        "value": 5,
        "data": b"",
    })
    assert Account.recover_transaction(raw) == signer.address


@pytest.mark.asyncio
async def test_kms_failure_is_signing_error(domain):
    client = FakeKmsClient(fail_times=1)
    signer = await KmsSigner.create("key-1", "eu-west-1", CHAIN_ID, client=client)

    with pytest.raises(SigningError):
        await signer.sign_reward(domain, _entry())


def test_non_secp256k1_kms_key_is_rejected():
    der = ec.generate_private_key(ec.SECP256R1()).public_key().public_bytes(
        Encoding.DER, PublicFormat.SubjectPublicKeyInfo
    )

    with pytest.raises(SigningError):
        public_key_from_der(der)


@pytest.mark.asyncio
async def test_wallet_requires_exactly_one_backend():
    with pytest.raises(ConfigurationError):
        await create_wallet(CHAIN_ID)

    with pytest.raises(ConfigurationError):
        await create_wallet(CHAIN_ID, private_key=PRIVATE_KEY, aws_key_id="key-1", aws_region="eu-west-1")


@pytest.mark.asyncio
async def test_kms_wallet_requires_region():
    with pytest.raises(ConfigurationError):
        await create_wallet(CHAIN_ID, aws_key_id="key-1", kms_client=FakeKmsClient())


@pytest.mark.asyncio
async def test_wallet_factory_builds_each_backend():
    local = await create_wallet(CHAIN_ID, private_key=PRIVATE_KEY)
    assert isinstance(local, LocalKeySigner)

    client = FakeKmsClient()
    kms = await create_wallet(CHAIN_ID, aws_key_id="key-1", aws_region="eu-west-1", kms_client=client)
    assert isinstance(kms, KmsSigner)
    assert kms.address == client.eth_address
