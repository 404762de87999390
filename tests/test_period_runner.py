"""
Test the period run loop against mocked collaborators.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest
from eth_account import Account
from eth_account.messages import encode_typed_data

from conftest import ADDRESS_A, ADDRESS_B, CHAIN_ID, PRIVATE_KEY, debt, reward_config
from reward_oracle.core.exceptions import CoordinationError, RetryExhaustedError, SigningError
from reward_oracle.schemas.rewards import RewardEntry, reward_entries_digest
from reward_oracle.schemas.worker import Submission, WorkerConfig
from reward_oracle.scheduler import (
    PeriodRunner,
    RunContext,
    RunnerStatus,
    RunOutcome,
    sign_rewards,
)
from reward_oracle.services.chain_client import ChainClient
from reward_oracle.services.signing import LocalKeySigner, reward_typed_data
from reward_oracle.services.worker_client import WorkerClient


SIGNER = Account.from_key(PRIVATE_KEY).address
PERIOD_ID = 136
ANCHOR_BLOCK = 1000
NOW = 1_000_000


class FakeGraph:
    """Serves fixed entries and records the blocks it was anchored to."""

    def __init__(self, debt_entries=(), exchange_entries=(), perp_fee_entries=(), reward_claims=()):
        self.debt_entries = list(debt_entries)
        self.exchange_entries = list(exchange_entries)
        self.perp_fee_entries = list(perp_fee_entries)
        self.reward_claims = list(reward_claims)
        self.anchor_blocks = []

    def __call__(self, anchor_block):
        self.anchor_blocks.append(anchor_block)
        return self

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return None

    async def get_debt_entries(self):
        return self.debt_entries

    async def get_exchange_entries(self):
        return self.exchange_entries

    async def get_perp_fee_entries(self):
        return self.perp_fee_entries

    async def get_reward_claims(self):
        return self.reward_claims


class FlakyWallet(LocalKeySigner):
    """Local signer that fails its first ``failures`` signatures."""

    def __init__(self, failures):
        super().__init__(PRIVATE_KEY, CHAIN_ID)
        self.failures = failures
        self.attempts = 0

    async def sign_digest(self, digest):
        self.attempts += 1
        if self.attempts <= self.failures:
            raise SigningError("backend unavailable")
        return await super().sign_digest(digest)


class SlowWallet(LocalKeySigner):

    async def sign_digest(self, digest):
        await asyncio.sleep(1)
        return await super().sign_digest(digest)


def _worker_config(signers=(SIGNER,)):
    return WorkerConfig(first_period_start_time=10, period_duration=2, signers=list(signers))


def _worker(config=None, staged=False, ready=False):
    worker = AsyncMock(spec=WorkerClient)
    worker.get_worker_config.return_value = config if config is not None else _worker_config()
    worker.get_last_period_id.return_value = PERIOD_ID - 1
    worker.get_signer_staged.return_value = staged
    worker.get_stage_ready.return_value = ready
    return worker


def _chain(anchor_timestamp=NOW):
    chain = AsyncMock(spec=ChainClient)
    chain.get_anchor_block.return_value = ANCHOR_BLOCK
    chain.get_block_timestamp.return_value = anchor_timestamp
    return chain


def _runner(
    wallet,
    domain,
    worker=None,
    chain=None,
    graph=None,
    is_leader=False,
    local_worker_config=None,
    now=NOW
):
    context = RunContext(
        chain_id=CHAIN_ID,
        wallet=wallet,
        domain=domain,
        reward_config=reward_config(schedule={PERIOD_ID: 10 ** 17}),
        worker_client=worker or _worker(),
        chain_client=chain or _chain(),
        graph_client_factory=graph or FakeGraph(debt_entries=[debt(ADDRESS_A, 10 ** 27, 11, 0)]),
        is_leader=is_leader,
        process_interval=0,
        local_worker_config=local_worker_config,
    )
    return PeriodRunner(context, clock=lambda: now, sign_retry_delay=0)


@pytest.mark.asyncio
async def test_stages_signed_rewards(wallet, domain):
    worker = _worker()
    chain = _chain()
    graph = FakeGraph(debt_entries=[debt(ADDRESS_A, 10 ** 27, 11, 0)])
    runner = _runner(wallet, domain, worker=worker, chain=chain, graph=graph)

    outcome = await runner.run_once()

    assert outcome == RunOutcome.STAGED
    chain.get_anchor_block.assert_awaited_once_with(12)
    chain.get_block_timestamp.assert_awaited_once_with(ANCHOR_BLOCK)
    worker.get_signer_staged.assert_awaited_once_with(PERIOD_ID, SIGNER)
    assert graph.anchor_blocks == [ANCHOR_BLOCK]
    worker.publish.assert_not_awaited()
    worker.get_stage_ready.assert_not_awaited()

    submission = worker.stage.await_args.args[0]
    assert isinstance(submission, Submission)
    assert submission.period_id == PERIOD_ID
    assert submission.chain_id == CHAIN_ID
    assert submission.signer == SIGNER
    assert submission.composition.scheduled_staking_rewards == 10 ** 17
    assert len(submission.entries) == 1

    staged = submission.entries[0]
    assert staged.recipient == ADDRESS_A
    assert staged.staking_reward == 10 ** 17
    assert staged.fee_reward == 0

    entry = RewardEntry(
        chain_id=CHAIN_ID,
        period_id=PERIOD_ID,
        recipient=ADDRESS_A,
        staking_reward=10 ** 17,
        fee_reward=0,
    )
    signable = encode_typed_data(full_message=reward_typed_data(domain, entry))
    assert Account.recover_message(signable, signature=staged.signature) == SIGNER
    assert runner.stats.last_digest == reward_entries_digest([entry])


@pytest.mark.asyncio
async def test_waits_for_worker_config(wallet, domain):
    worker = _worker()
    worker.get_worker_config.return_value = None
    runner = _runner(wallet, domain, worker=worker)

    assert await runner.run_once() == RunOutcome.WAITING_FOR_CONFIG
    worker.set_worker_config.assert_not_awaited()
    worker.get_last_period_id.assert_not_awaited()


@pytest.mark.asyncio
async def test_leader_pushes_local_worker_config(wallet, domain):
    worker = _worker()
    worker.get_worker_config.return_value = None
    local = _worker_config()
    runner = _runner(wallet, domain, worker=worker, is_leader=True, local_worker_config=local)

    assert await runner.run_once() == RunOutcome.STAGED
    worker.set_worker_config.assert_awaited_once_with(local)


@pytest.mark.asyncio
async def test_leader_keeps_matching_worker_config(wallet, domain):
    worker = _worker()
    runner = _runner(wallet, domain, worker=worker, is_leader=True, local_worker_config=_worker_config())

    await runner.run_once()

    worker.set_worker_config.assert_not_awaited()


@pytest.mark.asyncio
async def test_follower_never_pushes_worker_config(wallet, domain):
    worker = _worker()
    worker.get_worker_config.return_value = None
    runner = _runner(wallet, domain, worker=worker, local_worker_config=_worker_config())

    assert await runner.run_once() == RunOutcome.WAITING_FOR_CONFIG
    worker.set_worker_config.assert_not_awaited()


@pytest.mark.asyncio
async def test_worker_config_is_fetched_once(wallet, domain):
    worker = _worker(staged=True)
    runner = _runner(wallet, domain, worker=worker)

    await runner.run_once()
    await runner.run_once()

    worker.get_worker_config.assert_awaited_once()


@pytest.mark.asyncio
async def test_non_signer_does_nothing(wallet, domain):
    worker = _worker(config=_worker_config(signers=[ADDRESS_B]))
    runner = _runner(wallet, domain, worker=worker)

    assert await runner.run_once() == RunOutcome.NOT_A_SIGNER
    worker.get_last_period_id.assert_not_awaited()
    worker.stage.assert_not_awaited()


@pytest.mark.asyncio
async def test_waits_for_period_end(wallet, domain):
    chain = _chain()
    # Period 136 is [282, 284)
    runner = _runner(wallet, domain, chain=chain, now=283)

    assert await runner.run_once() == RunOutcome.PERIOD_NOT_ENDED
    chain.get_anchor_block.assert_not_awaited()


@pytest.mark.asyncio
async def test_waits_for_confirmed_anchor(wallet, domain):
    worker = _worker()
    graph = FakeGraph()
    runner = _runner(wallet, domain, worker=worker, chain=_chain(anchor_timestamp=283), graph=graph)

    assert await runner.run_once() == RunOutcome.ANCHOR_NOT_CONFIRMED
    assert graph.anchor_blocks == []
    worker.get_signer_staged.assert_not_awaited()


@pytest.mark.asyncio
async def test_already_staged_skips_collection(wallet, domain):
    worker = _worker(staged=True)
    graph = FakeGraph()
    runner = _runner(wallet, domain, worker=worker, graph=graph)

    assert await runner.run_once() == RunOutcome.ALREADY_STAGED
    assert graph.anchor_blocks == []
    worker.stage.assert_not_awaited()


@pytest.mark.asyncio
@pytest.mark.parametrize("staged", [False, True])
async def test_leader_publishes_when_ready(wallet, domain, staged):
    worker = _worker(staged=staged, ready=True)
    runner = _runner(wallet, domain, worker=worker, is_leader=True)

    assert await runner.run_once() == RunOutcome.PUBLISHED
    worker.publish.assert_awaited_once_with(PERIOD_ID)


@pytest.mark.asyncio
async def test_leader_waits_for_stage_ready(wallet, domain):
    worker = _worker(ready=False)
    runner = _runner(wallet, domain, worker=worker, is_leader=True)

    assert await runner.run_once() == RunOutcome.STAGED
    worker.get_stage_ready.assert_awaited_once_with(PERIOD_ID)
    worker.publish.assert_not_awaited()


@pytest.mark.asyncio
async def test_failed_iteration_does_not_stop_the_loop(wallet, domain):
    worker = _worker()
    worker.get_last_period_id.side_effect = [
        CoordinationError("coordination service unavailable", status=503, body="down"),
        PERIOD_ID - 1,
    ]
    runner = _runner(wallet, domain, worker=worker)

    assert await runner.run_iteration() is None
    assert runner.status == RunnerStatus.ERROR
    assert runner.stats.failed_runs == 1

    assert await runner.run_iteration() == RunOutcome.STAGED
    assert runner.status == RunnerStatus.WAITING
    assert runner.stats.successful_runs == 1
    assert runner.stats.last_error is None


@pytest.mark.asyncio
async def test_run_forever_stops(wallet, domain):
    worker = _worker()
    runner = _runner(wallet, domain, worker=worker)

    async def stop_after_first_call():
        runner.stop()
        return None

    worker.get_worker_config.side_effect = stop_after_first_call

    await asyncio.wait_for(runner.run_forever(), timeout=5)

    assert runner.status == RunnerStatus.STOPPED
    assert runner.stats.total_runs == 1


def _entries():
    return [
        RewardEntry(chain_id=CHAIN_ID, period_id=PERIOD_ID, recipient=ADDRESS_B, staking_reward=2, fee_reward=0),
        RewardEntry(chain_id=CHAIN_ID, period_id=PERIOD_ID, recipient=ADDRESS_A, staking_reward=1, fee_reward=0),
    ]


@pytest.mark.asyncio
async def test_sign_rewards_orders_and_attributes(domain):
    signed = await sign_rewards(_entries(), LocalKeySigner(PRIVATE_KEY, CHAIN_ID), domain, retry_delay=0)

    assert [entry.recipient for entry in signed] == [ADDRESS_A, ADDRESS_B]
    assert all(entry.signatures[0].signer == SIGNER for entry in signed)


@pytest.mark.asyncio
async def test_sign_rewards_within_retry_ceiling(domain):
    wallet = FlakyWallet(failures=10)

    signed = await sign_rewards(_entries()[:1], wallet, domain, retry_count=10, retry_delay=0)

    assert len(signed) == 1
    assert wallet.attempts == 11


@pytest.mark.asyncio
async def test_sign_rewards_retry_exhausted(domain):
    wallet = FlakyWallet(failures=11)

    with pytest.raises(RetryExhaustedError):
        await sign_rewards(_entries(), wallet, domain, retry_count=10, retry_delay=0)

    assert wallet.attempts == 11


@pytest.mark.asyncio
async def test_sign_rewards_times_out(domain):
    wallet = SlowWallet(PRIVATE_KEY, CHAIN_ID)

    with pytest.raises(RetryExhaustedError):
        await sign_rewards(_entries()[:1], wallet, domain, retry_count=1, retry_delay=0, timeout=0.01)
