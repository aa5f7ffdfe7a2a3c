"""Exception types shared across the bridge."""

from __future__ import annotations


class BridgeError(RuntimeError):
    """Base exception for bridge failures."""


class ConfigError(BridgeError):
    """Raised when required configuration is missing or malformed.

    Startup aborts before any subscription is opened.
    """


class AgentError(BridgeError):
    """Raised when the OpenClaw hooks endpoint fails or rejects a request."""

    def __init__(self, message: str, status: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.body = body
