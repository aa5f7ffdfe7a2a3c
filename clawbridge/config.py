"""Bridge settings loaded from environment variables (and ``.env``).

Required: OPENCLAW_AGENT_SEA, OPENCLAW_HOOKS_TOKEN, OPENCLAW_BASE_URL.
Everything else has a default. Missing or malformed required values raise
``ConfigError`` before anything connects.
"""

from __future__ import annotations

from loguru import logger
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from clawbridge.errors import ConfigError
from clawbridge.gun.sea import SeaPair

# Public relay peers used by the chat UI
DEFAULT_GUN_PEERS = (
    "https://gun-manhattan.herokuapp.com/gun,"
    "https://gun-agent-8786540a978c.herokuapp.com/gun"
)
DEFAULT_AGENT_ID = "agent"


class Settings(BaseSettings):
    """Process configuration for the bridge."""

    # Identity and OpenClaw hooks
    agent_sea: str = Field(alias="OPENCLAW_AGENT_SEA")
    hooks_token: str = Field(alias="OPENCLAW_HOOKS_TOKEN")
    base_url: str = Field(alias="OPENCLAW_BASE_URL")
    agent_id: str = Field(default=DEFAULT_AGENT_ID, alias="OPENCLAW_AGENT_ID")
    agent_timeout_seconds: float = Field(default=120.0, gt=0, alias="BRIDGE_AGENT_TIMEOUT_SECONDS")

    # Gun transport
    gun_peers: str = Field(default=DEFAULT_GUN_PEERS, alias="GUN_PEERS")
    gun_namespace: str = Field(default="openclaw", min_length=1, alias="GUN_NAMESPACE")

    # Pipeline timing
    settle_window_ms: int = Field(default=800, ge=0, alias="BRIDGE_SETTLE_WINDOW_MS")
    debounce_ms: int = Field(default=2000, ge=0, alias="BRIDGE_DEBOUNCE_MS")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    @field_validator("agent_sea")
    @classmethod
    def _check_keypair(cls, value: str) -> str:
        SeaPair.from_json(value)
        return value

    @field_validator("hooks_token")
    @classmethod
    def _require_token(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("OPENCLAW_HOOKS_TOKEN is required")
        return value

    @field_validator("base_url")
    @classmethod
    def _normalize_base_url(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if not value:
            raise ValueError("OPENCLAW_BASE_URL is required")
        return value

    @field_validator("agent_id")
    @classmethod
    def _default_agent_id(cls, value: str) -> str:
        return value.strip() or DEFAULT_AGENT_ID

    @field_validator("gun_peers")
    @classmethod
    def _check_peers(cls, value: str) -> str:
        if not value.strip():
            return DEFAULT_GUN_PEERS
        if not [p for p in value.split(",") if p.strip()]:
            raise ValueError("GUN_PEERS must list at least one peer URL")
        return value

    @field_validator("log_level")
    @classmethod
    def _check_level(cls, value: str) -> str:
        value = value.strip().upper() or "INFO"
        try:
            logger.level(value)
        except ValueError:
            raise ValueError(f"unknown log level {value!r}") from None
        return value

    @property
    def keypair(self) -> SeaPair:
        return SeaPair.from_json(self.agent_sea)

    @property
    def peers(self) -> list[str]:
        return [p.strip() for p in self.gun_peers.split(",") if p.strip()]

    @property
    def settle_window(self) -> float:
        return self.settle_window_ms / 1000

    @property
    def debounce_delay(self) -> float:
        return self.debounce_ms / 1000


def load_settings(**overrides: object) -> Settings:
    """Build settings from the environment, raising ``ConfigError`` on problems."""
    try:
        return Settings(**overrides)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigError(f"Invalid bridge configuration: {problems}") from e
