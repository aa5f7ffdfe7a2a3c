"""Thread reconciliation: snapshot, decide, reply, store.

One run per debounce firing:
    1. Snapshot the thread (settle window + signature checks)
    2. Keep messages not authored by this identity
    3. Pick the latest of those as the trigger; stop if this identity
       has already replied at or after it
    4. Ask the agent for a reply
    5. Sign the reply, append it to the thread, and point the sender's
       inbox at this identity so their client notices

Nothing is cached between runs; every run re-reads the thread. Failures are
logged per thread and never escape ``reconcile``. Runs for different
threads proceed concurrently; runs for the same thread never overlap (a
request that arrives mid-run schedules exactly one follow-up run).
"""

from __future__ import annotations

from typing import Any, Callable, Protocol

from loguru import logger

from clawbridge.chat.models import MESSAGE_TYPE_CHAT, ChatMessage, InboxEntry, now_ms
from clawbridge.chat.store import ThreadStore
from clawbridge.gun import sea
from clawbridge.gun.sea import SeaPair

PREVIEW_CHARS = 80

Signer = Callable[[Any, SeaPair], str]


class ReplyGenerator(Protocol):
    async def generate_reply(self, thread_id: str, message: ChatMessage) -> str: ...


def preview(text: str, limit: int = PREVIEW_CHARS) -> str:
    return text[:limit] + "…" if len(text) > limit else text


class ReconcilePipeline:
    """Turns the current state of a thread into at most one signed reply."""

    def __init__(
        self,
        store: ThreadStore,
        agent: ReplyGenerator,
        pair: SeaPair,
        signer: Signer = sea.sign,
    ) -> None:
        self.store = store
        self.agent = agent
        self.pair = pair
        self._sign = signer
        self._in_flight: set[str] = set()
        self._rerun: set[str] = set()

    @property
    def self_pub(self) -> str:
        return self.pair.pub

    def in_flight(self, thread_id: str) -> bool:
        return thread_id in self._in_flight

    # ── Public entry point ────────────────────────────────────────────

    async def reconcile(self, thread_id: str) -> None:
        """Reconcile ``thread_id``; coalesces with a run already in progress."""
        if thread_id in self._in_flight:
            self._rerun.add(thread_id)
            logger.debug(f"[bridge] Thread {thread_id} busy, queued one follow-up run")
            return

        self._in_flight.add(thread_id)
        try:
            while True:
                self._rerun.discard(thread_id)
                await self.run_once(thread_id)
                if thread_id not in self._rerun:
                    break
        finally:
            self._in_flight.discard(thread_id)
            self._rerun.discard(thread_id)

    async def run_once(self, thread_id: str) -> ChatMessage | None:
        """One reconciliation pass. Returns the reply written, if any."""
        try:
            return await self._reconcile_thread(thread_id)
        except Exception as e:
            logger.error(f"[bridge] Error handling thread {thread_id}: {e}")
            return None

    # ── Steps ─────────────────────────────────────────────────────────

    async def _reconcile_thread(self, thread_id: str) -> ChatMessage | None:
        messages = await self.store.snapshot_thread(thread_id)
        if not messages:
            return None

        inbound = [m for m in messages if m.sender != self.self_pub]
        if not inbound:
            return None

        trigger = max(inbound, key=lambda m: m.when)
        if any(m.sender == self.self_pub and m.when >= trigger.when for m in messages):
            logger.debug(f"[bridge] Thread {thread_id} already answered, nothing to do")
            return None

        logger.info(f"[bridge] New inbound message in thread {thread_id} from {trigger.sender[:8]}…")
        reply_text = await self.agent.generate_reply(thread_id, trigger)
        return await self._write_reply(thread_id, trigger, reply_text)

    async def _write_reply(self, thread_id: str, trigger: ChatMessage, reply_text: str) -> ChatMessage | None:
        # Never sort before the message being answered, even with clock skew.
        reply = ChatMessage(
            type=MESSAGE_TYPE_CHAT,
            sender=self.self_pub,
            recipient=trigger.sender,
            when=max(now_ms(), trigger.when),
            text=reply_text,
        )
        signed = self._sign(reply.to_payload(), self.pair)

        try:
            message_id = await self.store.append_message(thread_id, reply, signed)
            await self.store.upsert_inbox_entry(
                trigger.sender, thread_id, InboxEntry(ts=now_ms(), sender=self.self_pub)
            )
        except Exception as e:
            logger.error(f"[bridge] Failed to store reply in thread {thread_id}: {e}")
            return None

        logger.info(f"[bridge] Replied to thread {thread_id}: {preview(reply_text)}")
        return ChatMessage(
            type=reply.type,
            sender=reply.sender,
            recipient=reply.recipient,
            when=reply.when,
            text=reply.text,
            message_id=message_id,
        )
