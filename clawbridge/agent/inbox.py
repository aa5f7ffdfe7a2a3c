"""Inbox subscriber: feeds counterparty inbox activity into the debouncer."""

from __future__ import annotations

from loguru import logger

from clawbridge.agent.debounce import DebounceCoordinator
from clawbridge.agent.pipeline import ReconcilePipeline
from clawbridge.chat.models import InboxEntry
from clawbridge.chat.store import ThreadStore


class InboxSubscriber:
    """Watches this identity's inbox and schedules thread reconciliation.

    Entries written by this identity (our own reply pointers) are dropped
    here, which is what keeps a reply from re-triggering its own thread.
    """

    def __init__(
        self,
        store: ThreadStore,
        debounce: DebounceCoordinator,
        pipeline: ReconcilePipeline,
        self_pub: str,
    ) -> None:
        self.store = store
        self.debounce = debounce
        self.pipeline = pipeline
        self.self_pub = self_pub

    async def run(self) -> None:
        """Consume the inbox subscription until cancelled."""
        async for thread_id, entry in self.store.subscribe_inbox(self.self_pub):
            self.handle(thread_id, entry)

    def handle(self, thread_id: str, entry: InboxEntry) -> bool:
        """Forward one inbox event; returns False if it was ignored."""
        if not thread_id or entry.sender == self.self_pub:
            return False
        logger.debug(f"[bridge] Inbox activity in thread {thread_id} from {entry.sender[:8]}…")
        self.debounce.notify(thread_id, lambda: self.pipeline.reconcile(thread_id))
        return True
