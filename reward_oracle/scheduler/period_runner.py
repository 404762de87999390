"""
Period run loop.

One iteration: resolve period -> collect -> compute -> sign -> stage ->
(leader) publish attempt -> idle. Iterations never overlap and share no
state apart from the run context and the cached worker config; a failed
iteration is logged and the whole period is retried on the next wake-up.
"""

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional, Sequence

import structlog

from ..core.exceptions import RetryExhaustedError, RewardOracleException, SigningError
from ..schemas.rewards import RewardEntry, Signature, SignedRewardEntry, reward_entries_digest
from ..schemas.worker import RewardComposition, Submission, SubmissionEntry, WorkerConfig
from ..services.rewards.engine import RewardEngine
from ..services.signing.typed_data import Eip712Domain
from ..services.signing.wallet import Wallet
from .context import RunContext


logger = structlog.get_logger(__name__)

# Retries after the first attempt of every entry signature
SIGN_RETRY_COUNT = 10
SIGN_RETRY_DELAY = 10.0  # seconds
SIGN_TIMEOUT = 30.0  # seconds


class RunnerStatus(Enum):
    STOPPED = "stopped"
    WAITING = "waiting"
    PROCESSING = "processing"
    ERROR = "error"


class RunOutcome(Enum):
    """How a single iteration ended."""
    WAITING_FOR_CONFIG = "waiting_for_config"
    NOT_A_SIGNER = "not_a_signer"
    PERIOD_NOT_ENDED = "period_not_ended"
    ANCHOR_NOT_CONFIRMED = "anchor_not_confirmed"
    STAGED = "staged"
    ALREADY_STAGED = "already_staged"
    PUBLISHED = "published"


@dataclass
class RunnerStats:
    total_runs: int = 0
    successful_runs: int = 0
    failed_runs: int = 0
    last_run: Optional[datetime] = None
    last_outcome: Optional[RunOutcome] = None
    last_period_id: Optional[int] = None
    last_digest: Optional[str] = None
    last_error: Optional[str] = None


async def sign_rewards(
    entries: Sequence[RewardEntry],
    wallet: Wallet,
    domain: Eip712Domain,
    retry_count: int = SIGN_RETRY_COUNT,
    retry_delay: float = SIGN_RETRY_DELAY,
    timeout: float = SIGN_TIMEOUT
) -> List[SignedRewardEntry]:
    """
    Sign every entry, in canonical order.

    Each entry gets its own bounded retry loop. If any entry runs out of
    retries the whole batch fails: no partial signature set is returned.
    """
    signed = []

    for entry in sorted(entries):
        failed_attempts = 0
        while True:
            try:
                signature = await asyncio.wait_for(wallet.sign_reward(domain, entry), timeout)
                break
            except (SigningError, asyncio.TimeoutError) as e:
                failed_attempts += 1
                error = str(e) or type(e).__name__
                logger.error(
                    "Signing attempt failed",
                    recipient=entry.recipient,
                    attempt=failed_attempts,
                    error=error
                )
                if failed_attempts > retry_count:
                    raise RetryExhaustedError("Signing reward entry", retry_count, error)
                await asyncio.sleep(retry_delay)

        signed.append(
            SignedRewardEntry.from_entry(entry, [Signature(signer=wallet.address, signature=signature)])
        )

    return signed


def build_submission(
    period_id: int,
    chain_id: int,
    signer: str,
    signed_entries: Sequence[SignedRewardEntry],
    composition: RewardComposition
) -> Submission:
    entries = []
    for entry in sorted(signed_entries):
        signature = next(s.signature for s in entry.signatures if s.signer.lower() == signer.lower())
        entries.append(
            SubmissionEntry(
                recipient=entry.recipient,
                staking_reward=entry.staking_reward,
                fee_reward=entry.fee_reward,
                signature=signature,
            )
        )
    return Submission(
        period_id=period_id,
        chain_id=chain_id,
        signer=signer,
        entries=entries,
        composition=composition,
    )


class PeriodRunner:
    """Drives the period state machine against one run context."""

    def __init__(
        self,
        context: RunContext,
        engine: Optional[RewardEngine] = None,
        clock: Callable[[], float] = time.time,
        sign_retry_count: int = SIGN_RETRY_COUNT,
        sign_retry_delay: float = SIGN_RETRY_DELAY
    ):
        self.context = context
        self.engine = engine or RewardEngine()
        self.clock = clock
        self.sign_retry_count = sign_retry_count
        self.sign_retry_delay = sign_retry_delay
        self.logger = logger.bind(service="period_runner", signer=context.signer)

        self.status = RunnerStatus.STOPPED
        self.stats = RunnerStats()
        self._worker_config: Optional[WorkerConfig] = None
        self._should_stop = False

    async def _ensure_worker_config(self) -> Optional[WorkerConfig]:
        if self._worker_config is not None:
            return self._worker_config

        worker = self.context.worker_client
        remote = await worker.get_worker_config()
        local = self.context.local_worker_config

        if self.context.is_leader and local is not None and remote != local:
            self.logger.info(
                "Syncing worker config",
                current=remote.model_dump() if remote else None,
                desired=local.model_dump()
            )
            await worker.set_worker_config(local)
            remote = local

        if remote is None:
            self.logger.warning("Worker config not set on coordination service")
            return None

        self._worker_config = remote
        return remote

    async def run_once(self) -> RunOutcome:
        ctx = self.context
        worker = ctx.worker_client

        worker_config = await self._ensure_worker_config()
        if worker_config is None:
            return RunOutcome.WAITING_FOR_CONFIG

        if not worker_config.is_signer(ctx.signer):
            self.logger.warning("Signer is not in the worker signer list", signers=worker_config.signers)
            return RunOutcome.NOT_A_SIGNER

        period_id = await worker.get_last_period_id() + 1
        period = worker_config.get_period(period_id)
        self.stats.last_period_id = period_id

        now = int(self.clock())
        if now < period.end_time:
            self.logger.debug("Period not ended", period_id=period_id, ends_in=period.end_time - now)
            return RunOutcome.PERIOD_NOT_ENDED

        anchor_block = await ctx.chain_client.get_anchor_block(ctx.confirmation_blocks)
        anchor_timestamp = await ctx.chain_client.get_block_timestamp(anchor_block)
        if anchor_timestamp < period.end_time:
            self.logger.debug(
                "Anchor block before period end",
                period_id=period_id,
                anchor_block=anchor_block,
                anchor_timestamp=anchor_timestamp
            )
            return RunOutcome.ANCHOR_NOT_CONFIRMED

        if await worker.get_signer_staged(period_id, ctx.signer):
            self.logger.debug("Period already staged by this signer", period_id=period_id)
            outcome = RunOutcome.ALREADY_STAGED
        else:
            await self._stage_period(worker_config, period_id, anchor_block)
            outcome = RunOutcome.STAGED

        if not ctx.is_leader:
            return outcome

        if not await worker.get_stage_ready(period_id):
            self.logger.info("Stage not ready for publishing", period_id=period_id)
            return outcome

        await worker.publish(period_id)
        return RunOutcome.PUBLISHED

    async def _stage_period(self, worker_config: WorkerConfig, period_id: int, anchor_block: int):
        ctx = self.context
        self.logger.info("Processing period", period_id=period_id, anchor_block=anchor_block)

        async with ctx.graph_client_factory(anchor_block) as graph:
            debt_entries = await graph.get_debt_entries()
            exchange_entries = await graph.get_exchange_entries()
            perp_fee_entries = await graph.get_perp_fee_entries()
            reward_claims = await graph.get_reward_claims()

        self.logger.info(
            "Entries collected",
            period_id=period_id,
            debt_entries=len(debt_entries),
            exchange_entries=len(exchange_entries),
            perp_fee_entries=len(perp_fee_entries),
            reward_claims=len(reward_claims)
        )

        calculation = self.engine.compute_rewards(
            ctx.chain_id,
            period_id,
            worker_config,
            ctx.reward_config,
            debt_entries,
            exchange_entries,
            perp_fee_entries,
            reward_claims,
        )
        entries = calculation.sorted_entries()

        digest = reward_entries_digest(entries)
        self.stats.last_digest = digest
        self.logger.info("Reward entries digest", period_id=period_id, entries=len(entries), sha256=digest)

        signed_entries = await sign_rewards(
            entries,
            ctx.wallet,
            ctx.domain,
            retry_count=self.sign_retry_count,
            retry_delay=self.sign_retry_delay,
        )
        self.logger.info("Finished signing rewards", period_id=period_id, entries=len(signed_entries))

        submission = build_submission(
            period_id, ctx.chain_id, ctx.signer, signed_entries, calculation.composition
        )
        await ctx.worker_client.stage(submission)

    async def run_iteration(self) -> Optional[RunOutcome]:
        """Run one iteration, logging instead of raising on failure."""
        self.status = RunnerStatus.PROCESSING
        self.stats.total_runs += 1
        self.stats.last_run = datetime.now(timezone.utc)

        try:
            outcome = await self.run_once()
        except asyncio.CancelledError:
            raise
        except RewardOracleException as e:
            self._record_failure(e)
            self.logger.error(
                "Iteration failed",
                error=e.message,
                code=e.code,
                retryable=e.retryable,
                details=e.details
            )
            return None
        except Exception as e:
            self._record_failure(e)
            self.logger.exception("Unexpected error in iteration", error=str(e))
            return None

        self.stats.successful_runs += 1
        self.stats.last_outcome = outcome
        self.stats.last_error = None
        self.status = RunnerStatus.WAITING
        return outcome

    def _record_failure(self, error: Exception):
        self.stats.failed_runs += 1
        self.stats.last_error = str(error)
        self.status = RunnerStatus.ERROR

    async def run_forever(self):
        """Iterate until stopped, sleeping the process interval between runs."""
        self._should_stop = False
        self.status = RunnerStatus.WAITING
        self.logger.info("Run loop started", interval=self.context.process_interval)

        while not self._should_stop:
            await self.run_iteration()
            if self._should_stop:
                break
            await asyncio.sleep(self.context.process_interval)

        self.status = RunnerStatus.STOPPED
        self.logger.info("Run loop stopped")

    def stop(self):
        self._should_stop = True
