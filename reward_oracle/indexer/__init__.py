"""
Collection of indexed on-chain activity.
"""

from .types import DebtEntry, ExchangeEntry, PerpFeeEntry, RewardClaim, PoolableFeeEntry
from .graph_client import GraphClient, QUERY_ENTRY_COUNT, GRAPHQL_RETRY_COUNT

__all__ = [
    "DebtEntry",
    "ExchangeEntry",
    "PerpFeeEntry",
    "RewardClaim",
    "PoolableFeeEntry",
    "GraphClient",
    "QUERY_ENTRY_COUNT",
    "GRAPHQL_RETRY_COUNT",
]
