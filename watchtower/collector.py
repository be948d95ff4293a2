"""Periodic tmux sampler that emits pane content changes."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field

from .models import PaneIdentity, PaneInfo, PaneUpdate
from .runtime import TmuxRuntime
from .state import Change, PaneRegistry, fingerprint
from .tmux_bridge import MuxError, TmuxBridge

logger = logging.getLogger(__name__)

UPDATES_CAPACITY = 100

_CLOSED = object()


@dataclass
class Collector:
    """Samples tmux every ``poll_interval`` seconds and queues changed panes.

    The updates queue is bounded. When it is full new updates are dropped
    so that a slow consumer never stalls sampling.
    """

    tmux: TmuxBridge
    runtime: TmuxRuntime
    poll_interval: float = 0.1
    registry: PaneRegistry = field(default_factory=PaneRegistry)
    dropped: int = 0
    task: asyncio.Task[None] | None = None
    _queue: asyncio.Queue = field(
        default_factory=lambda: asyncio.Queue(maxsize=UPDATES_CAPACITY)
    )
    _stop: asyncio.Event = field(default_factory=asyncio.Event)
    _closed: asyncio.Event = field(default_factory=asyncio.Event)

    def start(self) -> None:
        """Start the sampler task. May only be called once."""
        if self.task is not None:
            raise RuntimeError("Collector already started")
        self.task = asyncio.create_task(self._loop(), name="collector")
        logger.info("Collector started (interval %.3fs)", self.poll_interval)

    def stop(self) -> None:
        """Ask the sampler to exit at the next tick boundary."""
        self._stop.set()

    async def wait_closed(self) -> None:
        """Wait until the sampler has exited and the updates stream is closed."""
        await self._closed.wait()

    async def updates(self) -> AsyncIterator[PaneUpdate]:
        """Yield updates in arrival order until the sampler exits."""
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item

    def panes(self) -> list[PaneInfo]:
        return self.registry.snapshot()

    def pending(self) -> int:
        """Number of updates queued and not yet consumed."""
        return self._queue.qsize()

    async def collect_once(self) -> list[PaneUpdate]:
        """
        Run one tick: list, capture, diff against the registry, emit.

        Returns:
            Every update produced this tick, including any that were
            dropped because the queue was full
        """
        try:
            panes = await self.runtime.call(self.tmux.list_panes)
        except MuxError as e:
            logger.debug("list-panes failed, skipping tick: %s", e)
            return []

        observed: set[PaneIdentity] = set()
        captured: list[tuple[PaneInfo, str]] = []
        for pane in panes:
            observed.add(pane.identity)
            try:
                content = await self.runtime.call(
                    self.tmux.capture_pane, pane.identity
                )
            except MuxError as e:
                logger.debug("capture of %s failed: %s", pane.identity, e)
                continue
            captured.append((pane, content))

        # Captures happen outside the registry lock.
        updates = []
        with self.registry.lock:
            for pane, content in captured:
                content_fingerprint = fingerprint(content)
                if self.registry.observe(pane, content_fingerprint) is Change.CHANGED:
                    update = PaneUpdate(
                        info=pane, content=content, fingerprint=content_fingerprint
                    )
                    self._emit(update)
                    updates.append(update)
            self.registry.retain(observed)
        return updates

    def _emit(self, update: PaneUpdate) -> None:
        try:
            self._queue.put_nowait(update)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.debug("Updates queue full, dropped update for %s", update.identity)

    async def _loop(self) -> None:
        """Fixed-interval sampling; an overrunning tick delays the next one."""
        loop = asyncio.get_running_loop()
        delay = self.poll_interval
        try:
            while not self._stop.is_set():
                try:
                    await asyncio.wait_for(self._stop.wait(), timeout=delay)
                    break
                except asyncio.TimeoutError:
                    pass

                started = loop.time()
                try:
                    await self.collect_once()
                except Exception:
                    logger.error("Collector tick error", exc_info=True)
                delay = max(0.0, self.poll_interval - (loop.time() - started))
        finally:
            self._close_stream()
            logger.info("Collector stopped")

    def _close_stream(self) -> None:
        """Queue the end-of-stream marker without waiting on the consumer."""
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
        self._queue.put_nowait(_CLOSED)
        self._closed.set()
