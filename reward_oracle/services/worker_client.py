"""
HTTP client for the coordination service ("worker").

Every call is bearer-authenticated. A non-success status is surfaced as a
CoordinationError with the status and body; retries belong to the caller.
"""

import hashlib
import json
from typing import Any, Dict, Optional

import aiohttp
import structlog
from eth_utils import to_checksum_address
from pydantic import ValidationError

from ..core.exceptions import ChecksumMismatchError, ConfigurationError, CoordinationError
from ..schemas.reward_config import RewardConfig
from ..schemas.worker import Submission, WorkerConfig


logger = structlog.get_logger(__name__)


class WorkerClient:
    """Async client for config sync, staging and publishing."""

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = 30.0,
        session: Optional[aiohttp.ClientSession] = None
    ):
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.token = token
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None
        self.logger = logger.bind(service="worker_client")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        if self._session and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True
        return self._session

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        body: Optional[str] = None
    ) -> bytes:
        headers = {"Authorization": f"Bearer {self.token}"}
        if body is not None:
            headers["Content-Type"] = "application/json"

        session = self._get_session()
        async with session.request(
            method,
            self.base_url + path,
            params=params,
            data=body,
            headers=headers,
            timeout=self.timeout,
        ) as response:
            raw = await response.read()
            if not 200 <= response.status < 300:
                text = raw.decode("utf-8", errors="replace")
                self.logger.debug(
                    "Coordination service error body",
                    path=path,
                    status=response.status,
                    body=text
                )
                raise CoordinationError(
                    f"coordination service {method} {path} failed with status {response.status}",
                    status=response.status,
                    body=text,
                )
            return raw

    @staticmethod
    def _parse_json(raw: bytes, path: str) -> Any:
        try:
            return json.loads(raw)
        except ValueError:
            raise CoordinationError(f"invalid JSON from {path}", body=raw.decode("utf-8", errors="replace"))

    async def get_worker_config(self) -> Optional[WorkerConfig]:
        path = "admin/workerConfig"
        data = self._parse_json(await self._request("GET", path), path)
        if data is None:
            return None
        try:
            return WorkerConfig.model_validate(data)
        except ValidationError as e:
            raise CoordinationError(f"invalid worker config: {e}", body=json.dumps(data))

    async def set_worker_config(self, config: WorkerConfig) -> None:
        await self._request("POST", "admin/workerConfig", body=config.model_dump_json())
        self.logger.info(
            "Worker config updated",
            first_period_start_time=config.first_period_start_time,
            period_duration=config.period_duration,
            signers=config.signers
        )

    async def get_reward_config_checked(self, expected_checksum: bytes) -> RewardConfig:
        """
        Fetch the reward config and verify it against the expected SHA-256.

        The raw response body is hashed before any parsing, so nothing is
        read from a config whose checksum does not match.

        Raises:
            ChecksumMismatchError: the served body hashes to something else
            ConfigurationError: the verified body is not a valid config
        """
        raw = await self._request("GET", "admin/rewardConfig")
        actual = hashlib.sha256(raw).digest()

        if actual != expected_checksum:
            raise ChecksumMismatchError(expected_checksum.hex(), actual.hex())

        try:
            return RewardConfig.model_validate_json(raw)
        except ValidationError as e:
            raise ConfigurationError(f"invalid reward config: {e}")

    async def get_last_period_id(self) -> int:
        path = "lastPeriodId"
        value = self._parse_json(await self._request("GET", path), path)
        if isinstance(value, bool) or not isinstance(value, int):
            raise CoordinationError(f"invalid last period id: {value!r}", body=str(value))
        return value

    async def get_signer_staged(self, period_id: int, signer: str) -> bool:
        path = "admin/signerStaged"
        raw = await self._request(
            "GET",
            path,
            params={"periodId": str(period_id), "signer": to_checksum_address(signer)},
        )
        return self._parse_bool(raw, path)

    async def get_stage_ready(self, period_id: int) -> bool:
        path = "admin/stageReady"
        raw = await self._request("GET", path, params={"periodId": str(period_id)})
        return self._parse_bool(raw, path)

    async def stage(self, submission: Submission) -> None:
        await self._request("POST", "admin/stage", body=submission.model_dump_json())
        self.logger.info(
            "Submission staged",
            period_id=submission.period_id,
            signer=submission.signer,
            entries=len(submission.entries)
        )

    async def publish(self, period_id: int) -> None:
        await self._request("POST", "admin/publish", params={"periodId": str(period_id)})
        self.logger.info("Period published", period_id=period_id)

    def _parse_bool(self, raw: bytes, path: str) -> bool:
        value = self._parse_json(raw, path)
        if not isinstance(value, bool):
            raise CoordinationError(f"invalid boolean from {path}: {value!r}", body=str(value))
        return value
