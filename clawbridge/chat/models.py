"""Data models for Gun chat threads.

Messages are stored as ``{from, signed}`` where ``signed`` is a SEA envelope
over the payload ``{type, from, to, when, text}``. Inbox entries are
``{ts, from}`` pointers telling an identity which thread had activity.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

# ── Constants ───────────────────────────────────────────────────────────
MESSAGE_TYPE_CHAT = "chat"
THREAD_ID_SEPARATOR = "__"
MESSAGE_ID_LENGTH = 9


def canonical_thread_id(a: str, b: str) -> str:
    """Thread id for the conversation between two public keys (order-free)."""
    return THREAD_ID_SEPARATOR.join(sorted([a, b]))


def now_ms() -> int:
    return int(time.time() * 1000)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass(frozen=True)
class ChatMessage:
    """A verified chat message."""

    sender: str                     # Public key of the author (payload "from")
    recipient: str                  # Public key of the addressee (payload "to")
    when: float                     # Epoch milliseconds, set by the author
    text: str
    type: str = MESSAGE_TYPE_CHAT
    message_id: str | None = None   # Graph key under the thread, when known

    def to_payload(self) -> dict[str, Any]:
        """The signed payload. Field order matches the chat UI."""
        return {
            "type": self.type,
            "from": self.sender,
            "to": self.recipient,
            "when": self.when,
            "text": self.text,
        }

    @classmethod
    def from_payload(cls, payload: Any, message_id: str | None = None) -> ChatMessage | None:
        """Build from a verified payload; None if required fields are missing."""
        if not isinstance(payload, dict):
            return None
        sender = payload.get("from")
        when = payload.get("when")
        text = payload.get("text")
        if not isinstance(sender, str) or not sender or not _is_number(when) or not isinstance(text, str):
            return None
        recipient = payload.get("to")
        return cls(
            sender=sender,
            recipient=recipient if isinstance(recipient, str) else "",
            when=when,
            text=text,
            type=str(payload.get("type") or MESSAGE_TYPE_CHAT),
            message_id=message_id,
        )


@dataclass(frozen=True)
class InboxEntry:
    """Pointer record: thread had activity from ``sender`` at ``ts``."""

    ts: float
    sender: str

    def to_dict(self) -> dict[str, Any]:
        return {"ts": self.ts, "from": self.sender}

    @classmethod
    def from_dict(cls, data: Any) -> InboxEntry | None:
        if not isinstance(data, dict):
            return None
        ts = data.get("ts")
        sender = data.get("from")
        if not _is_number(ts) or not isinstance(sender, str) or not sender:
            return None
        return cls(ts=ts, sender=sender)
