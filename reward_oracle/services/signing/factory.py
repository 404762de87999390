"""
Wallet construction from process settings.
"""

from typing import Any, Optional

import structlog

from ...core.exceptions import ConfigurationError, SigningError
from .kms import KmsSigner
from .local import LocalKeySigner
from .wallet import Wallet


logger = structlog.get_logger(__name__)


async def create_wallet(
    chain_id: int,
    private_key: Optional[str] = None,
    aws_key_id: Optional[str] = None,
    aws_region: Optional[str] = None,
    kms_client: Optional[Any] = None
) -> Wallet:
    """
    Build the wallet for the one configured key-custody backend.

    Raises:
        ConfigurationError: zero or both backends configured, a KMS key
            without a region, or a key that cannot be loaded
    """
    if private_key and aws_key_id:
        raise ConfigurationError("only one of PRIVATE_KEY and AWS_KEY_ID can be set")
    if not private_key and not aws_key_id:
        raise ConfigurationError("no signer configured: set either PRIVATE_KEY or AWS_KEY_ID")

    if private_key:
        wallet: Wallet = LocalKeySigner(private_key, chain_id)
    else:
        if not aws_region:
            raise ConfigurationError("AWS_REGION must be set together with AWS_KEY_ID")
        try:
            wallet = await KmsSigner.create(aws_key_id, aws_region, chain_id, client=kms_client)
        except SigningError as e:
            raise ConfigurationError(f"unable to load KMS signer: {e.message}", e.details)

    logger.info("Signer configured", backend=wallet.backend, address=wallet.address)
    return wallet
