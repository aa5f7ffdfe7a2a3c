"""Thread store: chat threads and inbox pointers on top of the Gun graph.

Layout under the namespace root (``openclaw`` by default)::

    chat/threads/{thread_id}/messages/{message_id} -> {from, signed}
    inbox/{owner_pub}/{thread_id}                  -> {ts, from}

Gun has no "end of data" marker. A snapshot therefore reads whatever arrives
within a fixed settle window, then waits for the signature checks it started.
A longer window sees more of a slow relay's data at the cost of latency;
nothing is retried if the window was too short.
"""

from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator, Callable

from loguru import logger

from clawbridge.chat.models import MESSAGE_ID_LENGTH, ChatMessage, InboxEntry
from clawbridge.gun import sea
from clawbridge.gun.client import GunClient
from clawbridge.gun.graph import random_id

DEFAULT_NAMESPACE = "openclaw"
DEFAULT_SETTLE_WINDOW = 0.8  # seconds; covers typical public relay round trips

Verifier = Callable[[Any, str], Any]


class ThreadStore:
    """Read/write access to chat threads and inbox entries."""

    def __init__(
        self,
        client: GunClient,
        namespace: str = DEFAULT_NAMESPACE,
        settle_window: float = DEFAULT_SETTLE_WINDOW,
        verifier: Verifier = sea.verify,
    ) -> None:
        self.client = client
        self.namespace = namespace
        self.settle_window = settle_window
        self._verify = verifier

    # ── Paths ─────────────────────────────────────────────────────────

    def messages_path(self, thread_id: str) -> list[str]:
        return [self.namespace, "chat", "threads", thread_id, "messages"]

    def inbox_path(self, owner_pub: str) -> list[str]:
        return [self.namespace, "inbox", owner_pub]

    # ── Reads ─────────────────────────────────────────────────────────

    async def snapshot_thread(self, thread_id: str) -> list[ChatMessage]:
        """Collect, verify and sort every message visible within the settle window.

        Entries without ``from``/``signed``, with a bad signature, or whose
        signed ``from`` differs from the stored ``from`` are left out.
        """
        seen: set[str] = set()
        pending: list[asyncio.Future] = []

        def on_message(message_id: str, record: dict[str, Any]) -> None:
            if not message_id or message_id in seen:
                return
            seen.add(message_id)
            sender = record.get("from")
            signed = record.get("signed")
            if not isinstance(sender, str) or not sender or not signed:
                return
            pending.append(asyncio.ensure_future(self._verify_message(message_id, sender, signed)))

        detach = self.client.map(self.messages_path(thread_id), on_message, once=True)
        try:
            await asyncio.sleep(self.settle_window)
        finally:
            detach()

        results = await asyncio.gather(*pending, return_exceptions=True)
        messages = [r for r in results if isinstance(r, ChatMessage)]
        messages.sort(key=lambda m: m.when)
        logger.debug(f"Store: thread {thread_id} snapshot {len(messages)}/{len(seen)} verified")
        return messages

    async def _verify_message(self, message_id: str, sender: str, signed: Any) -> ChatMessage | None:
        payload = await asyncio.to_thread(self._verify, signed, sender)
        if not isinstance(payload, dict) or payload.get("from") != sender:
            return None
        return ChatMessage.from_payload(payload, message_id=message_id)

    async def subscribe_inbox(self, owner_pub: str) -> AsyncIterator[tuple[str, InboxEntry]]:
        """Yield ``(thread_id, entry)`` for existing and future inbox entries.

        Never ends on its own. Closing or cancelling the consumer detaches
        the graph listeners.
        """
        queue: asyncio.Queue[tuple[str, InboxEntry]] = asyncio.Queue()

        def on_entry(thread_id: str, record: dict[str, Any]) -> None:
            entry = InboxEntry.from_dict(record)
            if entry is None:
                logger.debug(f"Store: ignoring malformed inbox entry for thread {thread_id}")
                return
            queue.put_nowait((thread_id, entry))

        detach = self.client.map(self.inbox_path(owner_pub), on_entry)
        try:
            while True:
                yield await queue.get()
        finally:
            detach()

    # ── Writes ────────────────────────────────────────────────────────

    async def append_message(self, thread_id: str, message: ChatMessage, signed: str) -> str:
        """Store a signed message under a fresh random id; returns the id."""
        path = self.messages_path(thread_id)
        message_id = random_id(MESSAGE_ID_LENGTH)
        while "/".join(path + [message_id]) in self.client.graph:
            message_id = random_id(MESSAGE_ID_LENGTH)
        await self.client.put(path + [message_id], {"from": message.sender, "signed": signed})
        return message_id

    async def upsert_inbox_entry(self, owner_pub: str, thread_id: str, entry: InboxEntry) -> None:
        """Overwrite ``owner_pub``'s pointer for ``thread_id``."""
        await self.client.put(self.inbox_path(owner_pub) + [thread_id], entry.to_dict())
