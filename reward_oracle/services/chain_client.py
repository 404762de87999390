"""
Read-only JSON-RPC access: chain id, head block and block timestamps.
"""

from typing import Optional

import structlog
from web3 import AsyncWeb3
from web3.providers import AsyncHTTPProvider

from ..core.exceptions import ChainError


logger = structlog.get_logger(__name__)


class ChainClient:

    def __init__(self, rpc_url: str, timeout: float = 10.0, web3: Optional[AsyncWeb3] = None):
        self.rpc_url = rpc_url
        self.w3 = web3 or AsyncWeb3(AsyncHTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))
        self.logger = logger.bind(service="chain_client")

    async def close(self):
        disconnect = getattr(self.w3.provider, "disconnect", None)
        if disconnect is not None:
            await disconnect()

    async def get_chain_id(self) -> int:
        try:
            return int(await self.w3.eth.chain_id)
        except Exception as e:
            self.logger.error("Failed to get chain id", error=str(e))
            raise ChainError(f"Failed to get chain id: {e}")

    async def get_block_number(self) -> int:
        try:
            return int(await self.w3.eth.block_number)
        except Exception as e:
            self.logger.error("Failed to get block number", error=str(e))
            raise ChainError(f"Failed to get block number: {e}")

    async def get_block_timestamp(self, block_number: int) -> int:
        try:
            block = await self.w3.eth.get_block(block_number)
        except Exception as e:
            self.logger.error("Failed to get block", block=block_number, error=str(e))
            raise ChainError(f"Failed to get block {block_number}: {e}")
        return int(block["timestamp"])

    async def get_anchor_block(self, confirmations: int) -> int:
        """Most recent block with at least ``confirmations`` blocks on top of it."""
        head = await self.get_block_number()
        return max(head - confirmations, 0)
