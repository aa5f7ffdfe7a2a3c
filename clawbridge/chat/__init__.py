"""Chat threads stored in the Gun graph."""

from clawbridge.chat.models import ChatMessage, InboxEntry, canonical_thread_id
from clawbridge.chat.store import ThreadStore

__all__ = ["ChatMessage", "InboxEntry", "ThreadStore", "canonical_thread_id"]
