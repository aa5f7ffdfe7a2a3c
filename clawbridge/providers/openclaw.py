"""OpenClaw hooks client: turns an inbound chat message into an agent reply."""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from clawbridge.chat.models import ChatMessage
from clawbridge.errors import AgentError

HOOKS_AGENT_PATH = "/hooks/agent"
WAKE_MODE_NOW = "now"
DEFAULT_TIMEOUT = 120.0

# OpenClaw returns the reply under different keys depending on wakeMode and
# delivery configuration. First non-empty string wins.
REPLY_FIELDS = ("reply", "response", "output")
NO_REPLY = "(no reply)"


def build_prompt(thread_id: str, message: ChatMessage) -> str:
    return (
        f"You have received an inbound chat message in thread {thread_id}.\n"
        f"From: {message.sender}\n"
        f"Message: {message.text}\n\n"
        f"Please reply to this message."
    )


def extract_reply(data: Any) -> str:
    """Pick the reply text out of a hooks response body."""
    if isinstance(data, dict):
        for field in REPLY_FIELDS:
            value = data.get(field)
            if isinstance(value, str) and value.strip():
                return value
    return NO_REPLY


class OpenClawClient:
    """Thin wrapper around ``POST {base_url}/hooks/agent``."""

    def __init__(
        self,
        base_url: str,
        token: str,
        agent_id: str = "agent",
        timeout: float = DEFAULT_TIMEOUT,
        http: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.agent_id = agent_id
        self._token = token
        self._http = http or httpx.AsyncClient(timeout=timeout)

    async def generate_reply(self, thread_id: str, message: ChatMessage) -> str:
        """Ask the agent to answer ``message``.

        Raises:
            AgentError: On transport failure, non-2xx status, or a non-JSON body.
        """
        url = f"{self.base_url}{HOOKS_AGENT_PATH}"
        body = {
            "agentId": self.agent_id,
            "wakeMode": WAKE_MODE_NOW,
            "prompt": build_prompt(thread_id, message),
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._token}",
        }

        try:
            response = await self._http.post(url, headers=headers, json=body)
        except httpx.HTTPError as e:
            raise AgentError(f"OpenClaw {HOOKS_AGENT_PATH} request failed: {e}") from e

        if not response.is_success:
            raise AgentError(
                f"OpenClaw {HOOKS_AGENT_PATH} returned {response.status_code}: {response.text}",
                status=response.status_code,
                body=response.text,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise AgentError(
                f"OpenClaw {HOOKS_AGENT_PATH} returned invalid JSON: {response.text[:200]}",
                status=response.status_code,
                body=response.text,
            ) from e

        reply = extract_reply(data)
        if reply == NO_REPLY:
            logger.warning(f"OpenClaw returned no reply field for thread {thread_id}")
        return reply

    async def aclose(self) -> None:
        await self._http.aclose()
