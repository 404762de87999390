"""
Shared fixtures for the reward oracle tests.
"""

from contextlib import asynccontextmanager

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from reward_oracle.indexer.types import DebtEntry, ExchangeEntry, PerpFeeEntry, RewardClaim
from reward_oracle.schemas.reward_config import RewardConfig
from reward_oracle.schemas.worker import WorkerConfig
from reward_oracle.services.signing.local import LocalKeySigner
from reward_oracle.services.signing.typed_data import Eip712Domain


# Digit-only addresses are their own checksum form
ADDRESS_A = "0x1111111111111111111111111111111111111111"
ADDRESS_B = "0x2222222222222222222222222222222222222222"
ADDRESS_C = "0x3333333333333333333333333333333333333333"
ADDRESS_D = "0x4444444444444444444444444444444444444444"
REWARD_SYSTEM = "0x5555555555555555555555555555555555555555"

PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
CHAIN_ID = 1

ONE = 10 ** 18


@asynccontextmanager
async def serve(app: web.Application):
    """Run an aiohttp application on a local port for the duration of a test."""
    server = TestServer(app)
    await server.start_server()
    try:
        yield server
    finally:
        await server.close()


def debt(address, proportion, timestamp, index, debt_factor=0):
    return DebtEntry(
        id=f"debt-{index}",
        index=index,
        address=address,
        debt_factor=debt_factor,
        debt_proportion=proportion,
        timestamp=timestamp,
    )


def exchange_fee(fee_for_pool, timestamp, index):
    return ExchangeEntry(
        id=f"exchange-{index}",
        index=index,
        from_addr=ADDRESS_D,
        source_key="lUSD",
        source_amount=fee_for_pool * 100,
        dest_addr=ADDRESS_D,
        dest_key="lBTC",
        dest_recived=1,
        fee_for_pool=fee_for_pool,
        fee_for_foundation=0,
        timestamp=timestamp,
    )


def perp_fee(fee_for_pool, timestamp, index):
    return PerpFeeEntry(
        id=f"perp-{index}",
        index=index,
        fee_for_pool=fee_for_pool,
        fee_for_foundation=0,
        timestamp=timestamp,
    )


def claim(recipient, period_id, staking_reward, fee_reward, index=0):
    return RewardClaim(
        id=f"claim-{index}",
        index=index,
        recipient=recipient,
        period_id=period_id,
        staking_reward=staking_reward,
        fee_reward=fee_reward,
    )


def reward_config(schedule=None, exclude_list=(), claim_window=2, has_legacy_chain=False):
    return RewardConfig(
        has_legacy_chain=has_legacy_chain,
        exclude_list=list(exclude_list),
        staking_reward_schedule=[
            {"period_id": period_id, "reward": str(reward)}
            for period_id, reward in (schedule or {}).items()
        ],
        claim_window=claim_window,
    )


@pytest.fixture
def worker_config():
    return WorkerConfig(first_period_start_time=10, period_duration=2, signers=[ADDRESS_A])


@pytest.fixture
def wallet():
    return LocalKeySigner(PRIVATE_KEY, CHAIN_ID)


@pytest.fixture
def domain():
    return Eip712Domain(name="Linear", chain_id=CHAIN_ID, verifying_contract=REWARD_SYSTEM)
