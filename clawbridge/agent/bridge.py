"""Bridge runtime: wires the Gun transport to the OpenClaw agent.

    InboxSubscriber -> DebounceCoordinator -> ReconcilePipeline
                                                 ├─ ThreadStore (reads/writes)
                                                 └─ OpenClawClient (replies)
"""

from __future__ import annotations

from loguru import logger

from clawbridge.agent.debounce import DebounceCoordinator
from clawbridge.agent.inbox import InboxSubscriber
from clawbridge.agent.pipeline import ReconcilePipeline, ReplyGenerator
from clawbridge.chat.store import ThreadStore
from clawbridge.config import Settings
from clawbridge.gun.client import GunClient
from clawbridge.providers.openclaw import OpenClawClient


class Bridge:
    """One identity's inbox, bridged to one OpenClaw agent."""

    def __init__(
        self,
        settings: Settings,
        client: GunClient | None = None,
        agent: ReplyGenerator | None = None,
    ):
        self.settings = settings
        self.pair = settings.keypair
        self.client = client or GunClient(settings.peers)
        self.store = ThreadStore(
            self.client,
            namespace=settings.gun_namespace,
            settle_window=settings.settle_window,
        )
        self.agent = agent or OpenClawClient(
            settings.base_url,
            settings.hooks_token,
            agent_id=settings.agent_id,
            timeout=settings.agent_timeout_seconds,
        )
        self.debounce = DebounceCoordinator(settings.debounce_delay)
        self.pipeline = ReconcilePipeline(self.store, self.agent, self.pair)
        self.inbox = InboxSubscriber(self.store, self.debounce, self.pipeline, self.pair.pub)
        self._stopped = False

    async def run(self) -> None:
        """Connect to peers and process the inbox until cancelled."""
        logger.info(
            f"[bridge] Listening on inbox for pub {self.pair.pub[:8]}… "
            f"via {', '.join(self.settings.peers)}"
        )
        await self.client.start()
        try:
            await self.inbox.run()
        finally:
            await self.stop()

    async def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        await self.debounce.cancel_all()
        await self.client.stop()
        aclose = getattr(self.agent, "aclose", None)
        if aclose is not None:
            await aclose()
        logger.info("[bridge] Stopped")
