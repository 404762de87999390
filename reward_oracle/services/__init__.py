"""
External service clients, signing and reward computation.
"""

from .chain_client import ChainClient
from .worker_client import WorkerClient

__all__ = [
    "ChainClient",
    "WorkerClient",
]
