"""
Reconnecting live-channel connection
====================================

States: disconnected -> connecting -> connected -> disconnected ...

* At most one connection attempt is in flight at any time.
* When the socket closes (or an attempt fails) exactly one reconnect is
  scheduled after ``reconnect_delay`` seconds; this repeats until
  ``close()``.
* ``close()`` cancels the pending timer and the reader, and no further
  attempts are made.
"""

from __future__ import annotations

import asyncio
import enum
import json
import logging
from typing import Any, Callable, Optional

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

logger = logging.getLogger(__name__)

DEFAULT_RECONNECT_DELAY = 3.0


class ChannelState(str, enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class LiveConnection:
    def __init__(
        self,
        url: str,
        on_message: Callable[[str], None],
        *,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
        connector: Callable[[str], Any] = websockets.connect,
    ):
        self.url = url
        self.on_message = on_message
        self.reconnect_delay = reconnect_delay
        self._connector = connector
        self.state = ChannelState.DISCONNECTED
        self.attempts = 0
        self._socket: Any = None
        self._reader: Optional[asyncio.Task] = None
        self._reconnect_handle: Optional[asyncio.TimerHandle] = None
        self._closed = False

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_handle is not None

    def open(self) -> None:
        """Start a connection attempt unless one is already under way."""
        if self._closed or self.state is not ChannelState.DISCONNECTED:
            return
        self.state = ChannelState.CONNECTING
        self.attempts += 1
        self._reader = asyncio.get_running_loop().create_task(self._run())

    async def send(self, message: dict[str, Any]) -> bool:
        """Send *message* if connected; returns False when it was not sent."""
        if self.state is not ChannelState.CONNECTED or self._socket is None:
            return False
        try:
            await self._socket.send(json.dumps(message))
        except ConnectionClosed:
            return False
        return True

    async def close(self) -> None:
        self._closed = True
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None
        if self._socket is not None:
            await self._socket.close()
        if self._reader is not None and not self._reader.done():
            self._reader.cancel()
            try:
                await self._reader
            except asyncio.CancelledError:
                pass
        self.state = ChannelState.DISCONNECTED

    # ── Internals ─────────────────────────────────────────────────────

    async def _run(self) -> None:
        try:
            socket = await self._connector(self.url)
        except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
            logger.warning("Live channel connect failed: %s", exc)
            self.state = ChannelState.DISCONNECTED
            self._schedule_reconnect()
            return

        self._socket = socket
        self.state = ChannelState.CONNECTED
        logger.info("Live channel connected")
        try:
            async for raw in socket:
                try:
                    self.on_message(raw)
                except Exception:
                    logger.exception("Live message handler failed")
        except ConnectionClosed:
            pass
        finally:
            self._socket = None
            self.state = ChannelState.DISCONNECTED
            logger.info("Live channel disconnected")
            self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        if self._closed or self._reconnect_handle is not None:
            return
        loop = asyncio.get_running_loop()
        self._reconnect_handle = loop.call_later(self.reconnect_delay, self._reconnect)

    def _reconnect(self) -> None:
        self._reconnect_handle = None
        logger.info("Live channel reconnecting (attempt %d)", self.attempts + 1)
        self.open()
