"""Gun relay client over websockets.

Speaks the subset of Gun's JSON wire protocol the bridge needs:
    - ``{"#": id, "get": {"#": soul}}`` asks peers for a node and keeps
      the peer pushing later updates to it
    - ``{"#": id, "put": {soul: node, ...}}`` carries graph data both ways
    - frames may hold a single message or a JSON array of them

Every peer gets its own reconnecting connection. Watched souls are
re-requested after each reconnect; a soul stays watched while
any ``map`` still follows it. With no peers the client is a purely
local graph, which is how the tests drive it.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable

import websockets
from loguru import logger

from clawbridge.gun.graph import (
    SOUL_KEY,
    Graph,
    is_link,
    make_node,
    now_state,
    random_id,
)

MessageCallback = Callable[[str, dict[str, Any]], None]

# Pause before reconnecting after a peer closes the socket cleanly
RECONNECT_DELAY = 5


def to_ws_url(peer: str) -> str:
    """Relay URLs are usually published as http(s); the socket is ws(s)."""
    if peer.startswith("https://"):
        return "wss://" + peer[len("https://"):]
    if peer.startswith("http://"):
        return "ws://" + peer[len("http://"):]
    return peer


class GunClient:
    """Connects a local ``Graph`` to a set of Gun relay peers."""

    def __init__(self, peers: list[str] | None = None, graph: Graph | None = None) -> None:
        self.peers = list(peers or [])
        self.graph = graph or Graph()
        self._connections: dict[str, Any] = {}
        self._tasks: list[asyncio.Task] = []
        self._watched: dict[str, int] = {}
        self._background: set[asyncio.Task] = set()
        self._running = False

    # ── Lifecycle ─────────────────────────────────────────────────────

    async def start(self) -> None:
        """Open one background connection per peer."""
        if self._running:
            return
        self._running = True
        for peer in self.peers:
            self._tasks.append(asyncio.create_task(self._run_peer(to_ws_url(peer))))

    async def stop(self) -> None:
        """Close all peer connections."""
        self._running = False
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        for ws in list(self._connections.values()):
            await ws.close()
        self._connections.clear()

    async def _run_peer(self, url: str) -> None:
        failures = 0
        while self._running:
            try:
                logger.info(f"Gun: connecting to {url}")
                async with websockets.connect(url) as ws:
                    self._connections[url] = ws
                    failures = 0
                    for soul in list(self._watched):
                        await ws.send(json.dumps(self._get_message(soul)))
                    await self._receive_loop(ws)
                if self._running:
                    logger.info(f"Gun: peer {url} closed the connection, reconnecting in {RECONNECT_DELAY}s")
                    await asyncio.sleep(RECONNECT_DELAY)
            except asyncio.CancelledError:
                break
            except Exception as e:
                failures += 1
                # Exponential backoff: 5s, 10s, 20s, 40s, 60s max
                delay = min(5 * (2 ** (failures - 1)), 60)
                logger.warning(f"Gun: peer {url} error: {e}")
                if self._running:
                    logger.info(f"Gun: reconnecting to {url} in {delay}s (attempt {failures})")
                    await asyncio.sleep(delay)
            finally:
                self._connections.pop(url, None)

    async def _receive_loop(self, ws: Any) -> None:
        async for raw in ws:
            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning(f"Gun: invalid JSON from peer: {str(raw)[:100]}")
                continue
            for message in data if isinstance(data, list) else [data]:
                self.handle_message(message)

    def handle_message(self, message: Any) -> None:
        """Apply one wire message from a peer to the local graph."""
        if not isinstance(message, dict):
            return
        if message.get("err"):
            logger.debug(f"Gun: peer error for {message.get('@')}: {message['err']}")
        put = message.get("put")
        if not isinstance(put, dict):
            return
        for soul, node in put.items():
            if isinstance(node, dict):
                self.graph.merge(soul, node)

    # ── Outbound ──────────────────────────────────────────────────────

    @staticmethod
    def _get_message(soul: str) -> dict[str, Any]:
        return {SOUL_KEY: random_id(), "get": {SOUL_KEY: soul}}

    async def _broadcast(self, message: dict[str, Any]) -> None:
        if not self._connections:
            return
        text = json.dumps(message)
        results = await asyncio.gather(
            *(ws.send(text) for ws in list(self._connections.values())),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, Exception):
                logger.warning(f"Gun: send to peer failed: {result}")

    def watch(self, soul: str) -> None:
        """Ask peers for ``soul``; re-sent on reconnect until unwatched."""
        count = self._watched.get(soul, 0)
        self._watched[soul] = count + 1
        if count:
            return
        if self._connections:
            task = asyncio.get_running_loop().create_task(self._broadcast(self._get_message(soul)))
            self._background.add(task)
            task.add_done_callback(self._background.discard)

    def unwatch(self, soul: str) -> None:
        """Release one ``watch``; the last release stops reconnect re-requests."""
        count = self._watched.get(soul, 0)
        if count <= 1:
            self._watched.pop(soul, None)
        else:
            self._watched[soul] = count - 1

    async def put(self, path: list[str], data: dict[str, Any]) -> str:
        """Write ``data`` at ``path``, linking every ancestor to its child.

        Returns the soul of the written node. The local graph is updated
        before peers are contacted, so local readers see the write at once.
        """
        state = now_state()
        souls = ["/".join(path[: i + 1]) for i in range(len(path))]
        graph: dict[str, Any] = {}
        for parent, child, key in zip(souls, souls[1:], path[1:]):
            graph[parent] = make_node(parent, {key: {SOUL_KEY: child}}, state)
        graph[souls[-1]] = make_node(souls[-1], data, state)

        for soul, node in graph.items():
            self.graph.merge(soul, node)
        await self._broadcast({SOUL_KEY: random_id(), "put": graph})
        return souls[-1]

    # ── Reads ─────────────────────────────────────────────────────────

    def map(self, path: list[str], callback: MessageCallback, once: bool = False) -> Callable[[], None]:
        """Follow every child linked from the node at ``path``.

        ``callback(key, node)`` fires for each child already known, then for
        each child created or updated later. With ``once`` each key fires at
        most one time. Returns a callable that detaches all listeners.
        """
        list_soul = "/".join(path)
        children: dict[str, tuple[str, Callable[[], None]]] = {}
        delivered: set[str] = set()

        def deliver(key: str, child_soul: str) -> None:
            node = self.graph.get(child_soul)
            if not node:
                return
            if once:
                if key in delivered:
                    return
                delivered.add(key)
            callback(key, node)

        def follow(key: str, value: Any) -> None:
            if not is_link(value):
                return
            child_soul = value[SOUL_KEY]
            known = children.get(key)
            if known and known[0] == child_soul:
                return
            if known:
                known[1]()
                self.unwatch(known[0])
            unsubscribe = self.graph.on(child_soul, lambda _soul, _changed: deliver(key, child_soul))
            children[key] = (child_soul, unsubscribe)
            self.watch(child_soul)
            deliver(key, child_soul)

        def on_list(_soul: str, changed: dict[str, Any]) -> None:
            for key, value in changed.items():
                follow(key, value)

        detach_list = self.graph.on(list_soul, on_list)
        self.watch(list_soul)
        for key, value in (self.graph.get(list_soul) or {}).items():
            follow(key, value)

        detached = False

        def detach() -> None:
            nonlocal detached
            if detached:
                return
            detached = True
            detach_list()
            self.unwatch(list_soul)
            for child_soul, unsubscribe in children.values():
                unsubscribe()
                self.unwatch(child_soul)
            children.clear()

        return detach
