"""Tests for chat data models."""

import pytest

from clawbridge.chat.models import ChatMessage, InboxEntry, canonical_thread_id


class TestCanonicalThreadId:
    @pytest.mark.parametrize("a,b", [
        ("alice", "bob"),
        ("bob", "alice"),
        ("Zed.pub", "abc.pub"),
        ("same", "same"),
    ])
    def test_symmetric(self, a, b):
        assert canonical_thread_id(a, b) == canonical_thread_id(b, a)

    def test_sorted_and_joined(self):
        assert canonical_thread_id("bob", "alice") == "alice__bob"


class TestChatMessage:
    def test_payload_field_order(self):
        msg = ChatMessage(sender="A", recipient="B", when=100, text="hi")
        assert list(msg.to_payload()) == ["type", "from", "to", "when", "text"]
        assert msg.to_payload()["type"] == "chat"

    def test_from_payload(self):
        msg = ChatMessage.from_payload(
            {"type": "chat", "from": "B", "to": "A", "when": 100, "text": "hi"},
            message_id="m1",
        )
        assert msg == ChatMessage(sender="B", recipient="A", when=100, text="hi", message_id="m1")

    def test_missing_to_is_tolerated(self):
        msg = ChatMessage.from_payload({"from": "B", "when": 1, "text": "x"})
        assert msg is not None
        assert msg.recipient == ""

    @pytest.mark.parametrize("payload", [
        None,
        "text",
        {"when": 1, "text": "x"},
        {"from": "B", "text": "x"},
        {"from": "B", "when": "1", "text": "x"},
        {"from": "B", "when": True, "text": "x"},
        {"from": "B", "when": 1, "text": None},
    ])
    def test_malformed_payload_returns_none(self, payload):
        assert ChatMessage.from_payload(payload) is None


class TestInboxEntry:
    def test_to_dict(self):
        assert InboxEntry(ts=5, sender="A").to_dict() == {"ts": 5, "from": "A"}

    def test_from_dict(self):
        assert InboxEntry.from_dict({"ts": 5, "from": "A"}) == InboxEntry(ts=5, sender="A")

    @pytest.mark.parametrize("data", [None, {}, {"ts": 5}, {"from": "A"}, {"ts": "5", "from": "A"}])
    def test_malformed_returns_none(self, data):
        assert InboxEntry.from_dict(data) is None
