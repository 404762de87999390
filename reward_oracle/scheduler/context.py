"""
Process-wide run context, built once at startup.
"""

from dataclasses import dataclass
from typing import Callable, Optional

from ..indexer.graph_client import GraphClient
from ..schemas.reward_config import RewardConfig
from ..schemas.worker import WorkerConfig
from ..services.chain_client import ChainClient
from ..services.signing.typed_data import Eip712Domain
from ..services.signing.wallet import Wallet
from ..services.worker_client import WorkerClient


GraphClientFactory = Callable[[int], GraphClient]


@dataclass(frozen=True)
class RunContext:
    """Everything an iteration needs; never mutated after boot."""
    chain_id: int
    wallet: Wallet
    domain: Eip712Domain
    reward_config: RewardConfig
    worker_client: WorkerClient
    chain_client: ChainClient
    graph_client_factory: GraphClientFactory
    confirmation_blocks: int = 12
    is_leader: bool = False
    process_interval: float = 6.0  # seconds
    # Pushed by the leader when the coordination service has none or a different one
    local_worker_config: Optional[WorkerConfig] = None

    @property
    def signer(self) -> str:
        return self.wallet.address
