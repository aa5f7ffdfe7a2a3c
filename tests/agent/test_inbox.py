"""Tests for the inbox subscriber -> debounce hand-off."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from clawbridge.agent.debounce import DebounceCoordinator
from clawbridge.agent.inbox import InboxSubscriber
from clawbridge.chat.models import InboxEntry
from clawbridge.chat.store import ThreadStore
from clawbridge.gun.client import GunClient

ME = "me.pub"


def make_subscriber(store=None, delay: float = 0.03):
    store = store or ThreadStore(GunClient(), settle_window=0.01)
    debounce = DebounceCoordinator(delay)
    pipeline = MagicMock()
    pipeline.reconcile = AsyncMock()
    return InboxSubscriber(store, debounce, pipeline, ME), pipeline


class TestHandle:
    @pytest.mark.asyncio
    async def test_own_entries_are_ignored(self):
        subscriber, pipeline = make_subscriber()

        assert subscriber.handle("t1", InboxEntry(ts=1, sender=ME)) is False
        assert not subscriber.debounce.pending("t1")

    @pytest.mark.asyncio
    async def test_counterparty_entry_schedules_reconcile(self):
        subscriber, pipeline = make_subscriber()

        assert subscriber.handle("t1", InboxEntry(ts=1, sender="bob")) is True
        assert subscriber.debounce.pending("t1")

        await asyncio.sleep(0.1)
        pipeline.reconcile.assert_awaited_once_with("t1")

    @pytest.mark.asyncio
    async def test_burst_reconciles_once_per_thread(self):
        subscriber, pipeline = make_subscriber()

        for ts in range(4):
            subscriber.handle("t1", InboxEntry(ts=ts, sender="bob"))
        subscriber.handle("t2", InboxEntry(ts=1, sender="carol"))

        await asyncio.sleep(0.1)
        assert sorted(c.args[0] for c in pipeline.reconcile.await_args_list) == ["t1", "t2"]


class TestRun:
    @pytest.mark.asyncio
    async def test_run_consumes_store_stream(self):
        store = ThreadStore(GunClient(), settle_window=0.01)
        await store.upsert_inbox_entry(ME, "existing", InboxEntry(ts=1, sender="bob"))
        await store.upsert_inbox_entry(ME, "mine", InboxEntry(ts=1, sender=ME))
        subscriber, pipeline = make_subscriber(store)

        task = asyncio.create_task(subscriber.run())
        await asyncio.sleep(0.01)
        await store.upsert_inbox_entry(ME, "fresh", InboxEntry(ts=2, sender="carol"))
        await asyncio.sleep(0.1)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        reconciled = sorted(c.args[0] for c in pipeline.reconcile.await_args_list)
        assert reconciled == ["existing", "fresh"]
