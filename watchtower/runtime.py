"""Blocking tmux calls, moved off the event loop one at a time."""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class TmuxRuntime:
    """Worker threads for tmux commands.

    tmux serves one client command at a time per socket, so calls are
    queued behind an ``asyncio.Lock`` even when more than one worker is
    configured. The event loop keeps serving websockets meanwhile.
    """

    max_workers: int = 2
    calls: int = 0
    closed: bool = False
    _pool: ThreadPoolExecutor = field(init=False, repr=False)
    _turn: asyncio.Lock = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._pool = ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="tmux"
        )
        self._turn = asyncio.Lock()

    async def call(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run ``fn(*args, **kwargs)`` on a worker and return its result.

        Cancelling the awaiting task does not interrupt a command that is
        already running; it finishes in its worker thread.

        Raises:
            RuntimeError: after ``shutdown``
        """
        if self.closed:
            raise RuntimeError("tmux runtime is shut down")
        async with self._turn:
            self.calls += 1
            return await asyncio.get_running_loop().run_in_executor(
                self._pool, functools.partial(fn, *args, **kwargs)
            )

    def shutdown(self) -> None:
        """Refuse new calls and release the workers without waiting."""
        if self.closed:
            return
        self.closed = True
        self._pool.shutdown(wait=False)
        logger.debug("tmux runtime shut down after %d call(s)", self.calls)
