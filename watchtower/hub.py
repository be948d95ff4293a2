"""WebSocket hub: fans collector updates out to every connected client."""

from __future__ import annotations

import asyncio
import contextlib
import enum
import logging
from dataclasses import dataclass, field

from fastapi import WebSocket

from .collector import Collector
from .messages import encode_pane_list, encode_pane_update

logger = logging.getLogger(__name__)

SEND_CAPACITY = 256
BROADCAST_CAPACITY = 256

_CLOSED = object()


class HubEvent(enum.Enum):
    REGISTER = "register"
    UNREGISTER = "unregister"
    BROADCAST = "broadcast"


@dataclass(eq=False)
class ClientSession:
    """One connected dashboard client and its bounded send queue."""

    websocket: WebSocket
    send: asyncio.Queue = field(
        default_factory=lambda: asyncio.Queue(maxsize=SEND_CAPACITY)
    )
    closed: bool = False

    def offer(self, message: str) -> bool:
        """Queue a frame without waiting; False if the queue is full or closed."""
        if self.closed:
            return False
        try:
            self.send.put_nowait(message)
        except asyncio.QueueFull:
            return False
        return True

    def close(self) -> None:
        """Close the send queue.

        Frames already queued are still written, on eviction and on
        unregister alike; the write pump exits once the queue is drained.
        """
        if self.closed:
            return
        self.closed = True
        if not self.send.full():
            self.send.put_nowait(_CLOSED)

    async def write_pump(self) -> None:
        """Write queued frames to the websocket until the queue is closed."""
        try:
            while True:
                message = await self.send.get()
                if message is _CLOSED:
                    break
                await self.websocket.send_text(message)
                # a full queue was closed without an end marker
                if self.closed and self.send.empty():
                    break
        except Exception as e:
            logger.debug("Write to client failed: %s", e)
        finally:
            with contextlib.suppress(Exception):
                # already closed by the peer
                await self.websocket.close()


@dataclass
class Hub:
    """Owns the client set. Only the ``run`` task mutates it."""

    collector: Collector
    clients: set[ClientSession] = field(default_factory=set)
    task: asyncio.Task[None] | None = None
    forwarder: asyncio.Task[None] | None = None
    _events: asyncio.Queue = field(
        default_factory=lambda: asyncio.Queue(maxsize=BROADCAST_CAPACITY)
    )

    def start(self) -> None:
        """Start the event loop task."""
        if self.task is not None:
            return
        self.task = asyncio.create_task(self.run(), name="hub")
        logger.info("Hub started")

    async def stop(self) -> None:
        """Stop the event loop and forwarder, closing every client."""
        for task in (self.forwarder, self.task):
            if task:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        for session in self.clients:
            session.close()
        self.clients.clear()
        logger.info("Hub stopped")

    async def run(self) -> None:
        """Process register/unregister/broadcast events one at a time."""
        while True:
            kind, value = await self._events.get()
            try:
                self._dispatch(kind, value)
            except Exception:
                logger.error("Hub event error (%s)", kind.value, exc_info=True)
            finally:
                self._events.task_done()

    def _dispatch(self, kind: HubEvent, value) -> None:
        if kind is HubEvent.REGISTER:
            self._on_register(value)
        elif kind is HubEvent.UNREGISTER:
            self._on_unregister(value)
        elif kind is HubEvent.BROADCAST:
            self._on_broadcast(value)

    def _on_register(self, session: ClientSession) -> None:
        self.clients.add(session)
        logger.info("Hub: client registered (total: %d)", len(self.clients))
        # Queued before any later broadcast, so pane_list always arrives first.
        message = encode_pane_list(self.collector.panes())
        if message is not None and not session.offer(message):
            logger.warning("Hub: initial pane list dropped, client queue full")

    def _on_unregister(self, session: ClientSession) -> None:
        if session not in self.clients:
            return
        self.clients.discard(session)
        session.close()
        logger.info("Hub: client unregistered (total: %d)", len(self.clients))

    def _on_broadcast(self, message: str) -> None:
        evicted = [s for s in self.clients if not s.offer(message)]
        for session in evicted:
            self.clients.discard(session)
            session.close()
        if evicted:
            logger.warning(
                "Hub: evicted %d slow client(s) (total: %d)",
                len(evicted),
                len(self.clients),
            )

    async def register(self, session: ClientSession) -> None:
        await self._events.put((HubEvent.REGISTER, session))

    async def unregister(self, session: ClientSession) -> None:
        await self._events.put((HubEvent.UNREGISTER, session))

    async def broadcast(self, message: str) -> None:
        await self._events.put((HubEvent.BROADCAST, message))

    async def flush(self) -> None:
        """Wait until every event posted so far has been processed."""
        await self._events.join()

    def start_forwarder(self) -> None:
        """Start forwarding collector updates to clients as pane_update frames."""
        if self.forwarder is not None:
            return
        self.forwarder = asyncio.create_task(self._forward(), name="forwarder")

    async def _forward(self) -> None:
        async for update in self.collector.updates():
            message = encode_pane_update(update)
            if message is None:
                continue
            await self.broadcast(message)
        logger.info("Forwarder: collector updates closed")

    async def serve(self, websocket: WebSocket) -> None:
        """
        Attach a websocket to the hub for the lifetime of the connection.

        Accepts the connection, registers a session and runs its write pump
        in a separate task while this coroutine runs the read pump.
        """
        await websocket.accept()
        session = ClientSession(websocket)
        await self.register(session)
        writer = asyncio.create_task(session.write_pump())
        await self._read_pump(session)
        await writer

    async def _read_pump(self, session: ClientSession) -> None:
        """Discard client frames; unregister on disconnect or read error."""
        try:
            while True:
                message = await session.websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
        except Exception as e:
            logger.debug("Read from client failed: %s", e)
        finally:
            await self.unregister(session)
