"""
Main entry point for the oracle service.
Boots the run context and drives the period run loop until stopped.
"""

import asyncio
import signal
from functools import partial
from typing import Optional

import structlog

from ..core.config import Settings, get_settings
from ..core.exceptions import ConfigurationError
from ..core.logging import setup_logging
from ..indexer.graph_client import GraphClient
from ..schemas.worker import WorkerConfig
from ..services.chain_client import ChainClient
from ..services.signing.factory import create_wallet
from ..services.signing.typed_data import Eip712Domain
from ..services.worker_client import WorkerClient
from .context import RunContext
from .period_runner import PeriodRunner


logger = structlog.get_logger(__name__)


class OracleService:
    """Owns the clients, the run context and the run loop."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.context: Optional[RunContext] = None
        self.runner: Optional[PeriodRunner] = None
        self.chain_client: Optional[ChainClient] = None
        self.worker_client: Optional[WorkerClient] = None
        self._task: Optional[asyncio.Task] = None
        self._shutdown_task: Optional[asyncio.Task] = None

    async def initialize(self, kms_client=None):
        """
        Build the run context. Any error here is fatal.

        Raises:
            ConfigurationError: signer, reward config or legacy chain misconfigured
        """
        settings = self.settings
        logger.info("Initializing oracle service")

        self.chain_client = ChainClient(settings.json_rpc, settings.rpc_timeout)
        chain_id = await self.chain_client.get_chain_id()
        logger.info("Chain resolved", chain_id=chain_id)

        wallet = await create_wallet(
            chain_id,
            private_key=settings.private_key,
            aws_key_id=settings.aws_key_id,
            aws_region=settings.aws_region,
            kms_client=kms_client,
        )
        logger.info("Reward signer", address=wallet.address)
        logger.info("Reward system", address=settings.reward_system_address)

        self.worker_client = WorkerClient(
            settings.worker_url, settings.worker_token, settings.worker_timeout
        )
        reward_config = await self.worker_client.get_reward_config_checked(
            settings.expected_config_checksum
        )
        logger.info(
            "Reward config verified",
            checksum=settings.expected_config_checksum.hex(),
            has_legacy_chain=reward_config.has_legacy_chain,
            excluded=len(reward_config.exclude_list),
            scheduled_periods=len(reward_config.staking_reward_schedule),
            claim_window=reward_config.claim_window
        )

        if reward_config.has_legacy_chain:
            await self._check_legacy_chain()

        local_worker_config = None
        if settings.has_local_worker_config:
            local_worker_config = WorkerConfig(
                first_period_start_time=settings.first_period_start_time,
                period_duration=settings.period_duration,
                signers=settings.signer_addresses,
            )

        self.context = RunContext(
            chain_id=chain_id,
            wallet=wallet,
            domain=Eip712Domain(
                name=settings.eip_712_contract_name,
                chain_id=chain_id,
                verifying_contract=settings.reward_system_address,
            ),
            reward_config=reward_config,
            worker_client=self.worker_client,
            chain_client=self.chain_client,
            graph_client_factory=partial(
                _graph_client, settings.graph_query, timeout=settings.graph_timeout
            ),
            confirmation_blocks=settings.confirmation_blocks,
            is_leader=settings.is_leader,
            process_interval=settings.process_interval_seconds,
            local_worker_config=local_worker_config,
        )
        self.runner = PeriodRunner(self.context)
        logger.info("Oracle service initialized", leader=settings.is_leader)

    async def _check_legacy_chain(self):
        url = self.settings.legacy_chain_json_rpc
        if not url:
            raise ConfigurationError(
                "reward config declares a legacy chain but LEGACY_CHAIN_JSON_RPC is not set"
            )
        legacy_client = ChainClient(url, self.settings.rpc_timeout)
        try:
            legacy_chain_id = await legacy_client.get_chain_id()
        finally:
            await legacy_client.close()
        logger.info("Legacy chain resolved", chain_id=legacy_chain_id)

    async def start(self):
        if self.runner is None:
            raise RuntimeError("Oracle service is not initialized")
        self._task = asyncio.create_task(self.runner.run_forever())
        try:
            await self._task
        except asyncio.CancelledError:
            logger.info("Run loop cancelled")

    def request_shutdown(self, sig: signal.Signals) -> asyncio.Task:
        """Schedule a stop from a signal handler; repeated signals reuse the pending stop."""
        if self._shutdown_task is None or self._shutdown_task.done():
            logger.info("Received signal, shutting down", signal=sig.name)
            self._shutdown_task = asyncio.create_task(self.stop())
        return self._shutdown_task

    async def stop(self):
        logger.info("Stopping oracle service")
        if self.runner:
            self.runner.stop()
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

        if self.worker_client:
            await self.worker_client.close()
        if self.chain_client:
            await self.chain_client.close()
        logger.info("Oracle service stopped")


def _graph_client(query_url: str, anchor_block: int, timeout: float) -> GraphClient:
    return GraphClient(query_url, anchor_block, timeout=timeout)


async def main(settings: Optional[Settings] = None):
    """Run the oracle service until interrupted."""
    settings = settings or get_settings()
    setup_logging(
        settings.log_level,
        settings.log_format,
        settings.log_file,
        development=settings.is_development,
    )

    service = OracleService(settings)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, service.request_shutdown, sig)

    try:
        await service.initialize()
        await service.start()
    except ConfigurationError as e:
        logger.critical("Startup configuration error", error=e.message, code=e.code, details=e.details)
        raise
    finally:
        await service.stop()


if __name__ == "__main__":
    asyncio.run(main())
