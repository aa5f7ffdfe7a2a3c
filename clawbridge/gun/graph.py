"""In-memory Gun graph with state-based conflict resolution.

Nodes are keyed by soul. Every field carries a state (ms timestamp written
by the peer that set it). Merging an incoming node keeps, per field:
    1. the value with the higher state
    2. on equal states, the value whose JSON text sorts higher
Stale fields are ignored, so replays and duplicate deliveries are no-ops.

Listeners registered with ``on()`` receive only the fields a merge changed.
"""

from __future__ import annotations

import json
import secrets
import time
from typing import Any, Callable

from loguru import logger

META_KEY = "_"
SOUL_KEY = "#"
STATE_KEY = ">"

# Gun.text.random's default alphabet
_ID_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXZabcdefghijklmnopqrstuvwxyz"

Listener = Callable[[str, dict[str, Any]], None]


def random_id(length: int = 9) -> str:
    """Random alphanumeric id, same shape as ``Gun.text.random``."""
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(length))


def now_state() -> float:
    return time.time() * 1000


def is_link(value: Any) -> bool:
    return isinstance(value, dict) and set(value) == {SOUL_KEY} and isinstance(value[SOUL_KEY], str)


def make_node(soul: str, data: dict[str, Any], state: float) -> dict[str, Any]:
    """Wrap plain fields in Gun's node envelope with one state for every field."""
    node: dict[str, Any] = {META_KEY: {SOUL_KEY: soul, STATE_KEY: {k: state for k in data}}}
    node.update(data)
    return node


def _lexical(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"))


class Graph:
    """Local replica of the subset of the Gun graph this process has seen."""

    def __init__(self) -> None:
        self._nodes: dict[str, dict[str, Any]] = {}
        self._states: dict[str, dict[str, float]] = {}
        self._listeners: dict[str, list[Listener]] = {}

    def __contains__(self, soul: str) -> bool:
        return soul in self._nodes

    def get(self, soul: str) -> dict[str, Any] | None:
        """Copy of a node's fields (without metadata), or None if unseen."""
        node = self._nodes.get(soul)
        return dict(node) if node is not None else None

    def state(self, soul: str, key: str) -> float | None:
        return self._states.get(soul, {}).get(key)

    def merge(self, soul: str, node: dict[str, Any]) -> dict[str, Any]:
        """Merge one incoming node; return the fields that changed."""
        meta = node.get(META_KEY)
        states = meta.get(STATE_KEY) if isinstance(meta, dict) else None
        if not isinstance(states, dict):
            logger.debug(f"Graph: dropping node {soul} without state vector")
            return {}

        current = self._nodes.setdefault(soul, {})
        current_states = self._states.setdefault(soul, {})
        changed: dict[str, Any] = {}

        for key, value in node.items():
            if key == META_KEY:
                continue
            incoming = states.get(key)
            if isinstance(incoming, bool) or not isinstance(incoming, (int, float)):
                continue
            existing = current_states.get(key)
            if existing is not None:
                if incoming < existing:
                    continue
                if incoming == existing and _lexical(value) <= _lexical(current.get(key)):
                    continue
            current[key] = value
            current_states[key] = float(incoming)
            changed[key] = value

        if changed:
            self._emit(soul, changed)
        return changed

    def on(self, soul: str, listener: Listener) -> Callable[[], None]:
        """Register a change listener for ``soul``; returns an unsubscribe callable."""
        self._listeners.setdefault(soul, []).append(listener)

        def unsubscribe() -> None:
            listeners = self._listeners.get(soul)
            if listeners and listener in listeners:
                listeners.remove(listener)
                if not listeners:
                    del self._listeners[soul]

        return unsubscribe

    def _emit(self, soul: str, changed: dict[str, Any]) -> None:
        for listener in list(self._listeners.get(soul, [])):
            try:
                listener(soul, dict(changed))
            except Exception:
                logger.exception(f"Graph: listener for {soul} failed")
