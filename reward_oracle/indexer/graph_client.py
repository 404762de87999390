"""
Paginated GraphQL client for the indexed-data service.

All four entry kinds are fetched from the same snapshot: the client is bound
to one anchor block for its whole lifetime.
"""

import asyncio
import json
from typing import Any, Callable, Dict, List, Optional, TypeVar

import aiohttp
import structlog

from ..core.exceptions import QueryError, RetryExhaustedError
from .queries import (
    DEBT_ENTRIES_QUERY,
    EXCHANGE_ENTRIES_QUERY,
    PERP_FEE_ENTRIES_QUERY,
    REWARD_CLAIMS_QUERY,
)
from .types import DebtEntry, ExchangeEntry, PerpFeeEntry, RewardClaim


logger = structlog.get_logger(__name__)

T = TypeVar("T")

QUERY_ENTRY_COUNT = 1000
# Retries after the first attempt of every page request
GRAPHQL_RETRY_COUNT = 5


class GraphClient:
    """
    Async client collecting typed entries from the indexed-data service.

    Pages are requested with ``first=page_size`` and ``skip=<entries so far>``
    until a page comes back shorter than the page size. Each page has its
    own bounded retry loop; running out of retries aborts the collection.
    """

    def __init__(
        self,
        query_url: str,
        anchor_block: int,
        timeout: float = 30.0,
        page_size: int = QUERY_ENTRY_COUNT,
        retry_count: int = GRAPHQL_RETRY_COUNT,
        session: Optional[aiohttp.ClientSession] = None
    ):
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        self.query_url = query_url
        self.anchor_block = anchor_block
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.page_size = page_size
        self.retry_count = retry_count
        self._session = session
        self._owns_session = session is None
        self.logger = logger.bind(service="graph_client", anchor_block=anchor_block)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        """Close the HTTP session if this client created it."""
        if self._session and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True
        return self._session

    async def get_debt_entries(self) -> List[DebtEntry]:
        return await self.fetch(DEBT_ENTRIES_QUERY, DebtEntry.from_raw)

    async def get_exchange_entries(self) -> List[ExchangeEntry]:
        return await self.fetch(EXCHANGE_ENTRIES_QUERY, ExchangeEntry.from_raw)

    async def get_perp_fee_entries(self) -> List[PerpFeeEntry]:
        return await self.fetch(PERP_FEE_ENTRIES_QUERY, PerpFeeEntry.from_raw)

    async def get_reward_claims(self) -> List[RewardClaim]:
        return await self.fetch(REWARD_CLAIMS_QUERY, RewardClaim.from_raw)

    async def fetch(self, query: str, parse: Callable[[Dict[str, Any]], T]) -> List[T]:
        """
        Collect every entry of a query at the anchor block.

        Args:
            query: GraphQL document aliasing its result list as ``entries``
            parse: Converts one raw row to a typed entry

        Raises:
            RetryExhaustedError: a page still failed after all retries
            MalformedEntryError: a row could not be converted
        """
        entries: List[T] = []

        while True:
            request = {
                "query": query,
                "variables": {
                    "block": self.anchor_block,
                    "first": self.page_size,
                    "skip": len(entries),
                },
            }
            batch = await self._get_batch_with_retry(request)

            for row in batch:
                entries.append(parse(row))

            if len(batch) < self.page_size:
                break

        self.logger.debug("Collected entries", count=len(entries))
        return entries

    async def _get_batch_with_retry(self, request: Dict[str, Any]) -> List[Dict[str, Any]]:
        attempt = 0
        last_error = None

        while True:
            try:
                return await self._try_get_batch(request)
            except (aiohttp.ClientError, asyncio.TimeoutError, QueryError, ValueError) as e:
                last_error = str(e) or type(e).__name__
                self.logger.error(
                    "GraphQL request attempt failed",
                    attempt=attempt,
                    skip=request["variables"]["skip"],
                    error=last_error
                )

            attempt += 1
            if attempt > self.retry_count:
                raise RetryExhaustedError("GraphQL request", self.retry_count, last_error)

    async def _try_get_batch(self, request: Dict[str, Any]) -> List[Dict[str, Any]]:
        session = self._get_session()

        async with session.post(self.query_url, json=request, timeout=self.timeout) as response:
            text = await response.text()
            if not 200 <= response.status < 300:
                raise QueryError(
                    f"GraphQL service returned HTTP {response.status}",
                    {"status": response.status, "body": text[:500]}
                )

        body = json.loads(text)
        if not isinstance(body, dict):
            raise QueryError("unexpected GraphQL response shape")

        if body.get("errors"):
            messages = [
                str(error.get("message")) if isinstance(error, dict) else str(error)
                for error in body["errors"]
            ]
            raise QueryError(f"GraphQL errors: {'; '.join(messages)}", {"errors": messages})

        data = body.get("data")
        entries = data.get("entries") if isinstance(data, dict) else None
        if not isinstance(entries, list) or not all(isinstance(row, dict) for row in entries):
            raise QueryError("unexpected GraphQL response shape")

        return entries
