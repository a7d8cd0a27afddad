"""
Subscription Registry
=====================

Maps a ride id to the live connections watching it.

* A connection watches at most one ride; subscribing again moves it.
* A ride key never maps to an empty set -- the last unsubscribe drops
  the key, so rides nobody watches cost nothing.
* Delivery failures drop the connection exactly like a disconnect.

Delivery
--------
``broadcast`` never waits on the network.  Each connection has its own
outbox queue drained by one sender task, so messages reach a connection
in the order they were queued, and a slow watcher only ever delays
itself.  A watcher that falls ``OUTBOX_LIMIT`` messages behind is
dropped.

Nothing here owns ride data; the registry holds ride ids only.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional, Protocol

logger = logging.getLogger(__name__)

OUTBOX_LIMIT = 256


class Connection(Protocol):
    async def send_json(self, data: Any) -> None: ...


class _Outbox:
    def __init__(self) -> None:
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=OUTBOX_LIMIT)
        self.sender: Optional[asyncio.Task] = None

    def discard(self) -> None:
        """Forget queued messages so ``queue.join()`` never hangs on them."""
        while not self.queue.empty():
            self.queue.get_nowait()
            self.queue.task_done()


class SubscriptionRegistry:
    def __init__(self) -> None:
        self._subscribers: dict[str, set[Connection]] = {}
        self._ride_of: dict[Connection, str] = {}
        self._outboxes: dict[Connection, _Outbox] = {}

    # ── Membership ────────────────────────────────────────────────────

    def subscribe(
        self,
        connection: Connection,
        ride_id: str,
        snapshot: Optional[dict[str, Any]] = None,
    ) -> None:
        """Move *connection* onto *ride_id*; queue *snapshot* if given."""
        self.unsubscribe(connection)
        self._subscribers.setdefault(ride_id, set()).add(connection)
        self._ride_of[connection] = ride_id
        logger.debug("Connection subscribed to ride %s", ride_id)
        if snapshot is not None:
            self._enqueue(connection, snapshot)

    def unsubscribe(self, connection: Connection) -> Optional[str]:
        """Detach *connection*; returns the ride it was watching."""
        ride_id = self._ride_of.pop(connection, None)
        if ride_id is None:
            return None
        watchers = self._subscribers.get(ride_id)
        if watchers is not None:
            watchers.discard(connection)
            if not watchers:
                del self._subscribers[ride_id]
        return ride_id

    def disconnect(self, connection: Connection) -> None:
        self.unsubscribe(connection)
        outbox = self._outboxes.pop(connection, None)
        if outbox is None:
            return
        outbox.discard()
        if outbox.sender is not None and outbox.sender is not asyncio.current_task():
            outbox.sender.cancel()

    def subscription_of(self, connection: Connection) -> Optional[str]:
        return self._ride_of.get(connection)

    def subscribers(self, ride_id: str) -> frozenset[Connection]:
        return frozenset(self._subscribers.get(ride_id, ()))

    def stats(self) -> dict[str, int]:
        return {ride_id: len(conns) for ride_id, conns in self._subscribers.items()}

    # ── Fan-out ───────────────────────────────────────────────────────

    def broadcast(
        self,
        ride_id: str,
        message: dict[str, Any],
        exclude: Optional[Connection] = None,
    ) -> int:
        """Queue *message* for every watcher of *ride_id*.  Returns the count."""
        queued = 0
        for connection in list(self._subscribers.get(ride_id, ())):
            if connection is exclude:
                continue
            if self._enqueue(connection, message):
                queued += 1
        return queued

    async def drain(self) -> None:
        """Wait until every queued message has been handed to its connection."""
        await asyncio.gather(
            *(outbox.queue.join() for outbox in list(self._outboxes.values()))
        )

    async def close(self) -> None:
        """Stop every sender task; pending messages are dropped."""
        senders = []
        for connection in list(self._outboxes):
            outbox = self._outboxes[connection]
            if outbox.sender is not None:
                senders.append(outbox.sender)
            self.disconnect(connection)
        await asyncio.gather(*senders, return_exceptions=True)

    # ── Internals ─────────────────────────────────────────────────────

    def _enqueue(self, connection: Connection, message: dict[str, Any]) -> bool:
        outbox = self._outboxes.get(connection)
        if outbox is None:
            outbox = self._outboxes[connection] = _Outbox()
            outbox.sender = asyncio.get_running_loop().create_task(
                self._send_loop(connection, outbox)
            )
        try:
            outbox.queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning("Dropping connection %d messages behind", OUTBOX_LIMIT)
            self.disconnect(connection)
            return False
        return True

    async def _send_loop(self, connection: Connection, outbox: _Outbox) -> None:
        while True:
            message = await outbox.queue.get()
            try:
                await connection.send_json(message)
            except Exception:
                logger.warning("Dropping connection after failed delivery", exc_info=True)
                self.disconnect(connection)
                return
            finally:
                outbox.queue.task_done()
