"""
Configuration management using Pydantic Settings.
Every option can be given as an environment variable or in a local .env file.
"""

from functools import lru_cache
from typing import Optional, List

from eth_utils import is_address, to_checksum_address
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def parse_sha256_sum(value: str) -> bytes:
    """
    Parse a SHA-256 checksum given as hex, with or without a 0x prefix.

    Raises:
        ValueError: if the value is not hex or not exactly 32 bytes long
    """
    text = value.strip()
    if text.startswith(("0x", "0X")):
        text = text[2:]
    try:
        raw = bytes.fromhex(text)
    except ValueError:
        raise ValueError(f"invalid checksum hex: {value!r}")
    if len(raw) != 32:
        raise ValueError(f"invalid checksum length: expected 32 bytes, got {len(raw)}")
    return raw


def _checksum(value: str) -> str:
    if not is_address(value):
        raise ValueError(f"invalid address: {value!r}")
    return to_checksum_address(value)


class Settings(BaseSettings):
    """Process settings with environment-based configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    environment: str = Field(default="production")

    # Chain
    json_rpc: str
    legacy_chain_json_rpc: Optional[str] = None
    reward_system_address: str
    eip_712_contract_name: str = "Linear"
    rpc_timeout: float = 10.0  # seconds
    confirmation_blocks: int = Field(default=12, ge=0)

    # Indexed data
    graph_query: str
    graph_timeout: float = 30.0  # seconds

    # Signer: exactly one of private_key / aws_key_id
    private_key: Optional[str] = None
    aws_key_id: Optional[str] = None
    aws_region: Optional[str] = None

    # Coordination service
    worker_url: str
    worker_token: str
    worker_timeout: float = 30.0  # seconds
    reward_config_checksum: str
    is_leader: bool = False

    # Worker config pushed by the leader when the service has none or a different one
    first_period_start_time: Optional[int] = Field(default=None, ge=0)
    period_duration: Optional[int] = Field(default=None, gt=0)
    signers: Optional[str] = None  # comma separated

    # Run loop
    process_interval: int = Field(default=6000, gt=0)  # milliseconds

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or console
    log_file: Optional[str] = None

    @field_validator("reward_system_address")
    @classmethod
    def validate_reward_system_address(cls, v):
        return _checksum(v)

    @field_validator("reward_config_checksum")
    @classmethod
    def validate_reward_config_checksum(cls, v):
        parse_sha256_sum(v)
        return v

    @field_validator("worker_url")
    @classmethod
    def validate_worker_url(cls, v):
        # Endpoint paths are appended to the base url
        return v if v.endswith("/") else v + "/"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        level = v.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Log level must be one of: {', '.join(LOG_LEVELS)}")
        return level

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        if v not in ("json", "console"):
            raise ValueError("Log format must be 'json' or 'console'")
        return v

    @field_validator("signers")
    @classmethod
    def validate_signers(cls, v):
        if v is None or not v.strip():
            return None
        return ",".join(_checksum(item.strip()) for item in v.split(",") if item.strip())

    @model_validator(mode="after")
    def validate_worker_config_fields(self):
        fields = (self.first_period_start_time, self.period_duration, self.signers)
        if any(f is not None for f in fields) and not all(f is not None for f in fields):
            raise ValueError(
                "first_period_start_time, period_duration and signers must be set together"
            )
        return self

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    @property
    def process_interval_seconds(self) -> float:
        return self.process_interval / 1000

    @property
    def expected_config_checksum(self) -> bytes:
        return parse_sha256_sum(self.reward_config_checksum)

    @property
    def signer_addresses(self) -> List[str]:
        if not self.signers:
            return []
        return self.signers.split(",")

    @property
    def has_local_worker_config(self) -> bool:
        return self.first_period_start_time is not None


@lru_cache()
def get_settings() -> Settings:
    """Get the process settings, loading them on first use."""
    return Settings()
