"""Tests for watchtower/runtime.py."""

import asyncio
import threading
import time

import pytest

from watchtower.runtime import TmuxRuntime


@pytest.fixture
def runtime():
    rt = TmuxRuntime(max_workers=2)
    yield rt
    rt.shutdown()


class TestTmuxRuntime:
    @pytest.mark.asyncio
    async def test_runs_off_the_event_loop(self, runtime):
        loop_thread = threading.get_ident()

        worker_thread = await runtime.call(threading.get_ident)

        assert worker_thread != loop_thread

    @pytest.mark.asyncio
    async def test_passes_arguments(self, runtime):
        assert await runtime.call(lambda a, b=0: a + b, 2, b=3) == 5

    @pytest.mark.asyncio
    async def test_exceptions_propagate(self, runtime):
        def fail():
            raise ValueError("tmux exploded")

        with pytest.raises(ValueError, match="tmux exploded"):
            await runtime.call(fail)

    @pytest.mark.asyncio
    async def test_calls_are_serialized(self, runtime):
        """Two workers, but calls never overlap."""
        active = 0
        peak = 0
        guard = threading.Lock()

        def slow():
            nonlocal active, peak
            with guard:
                active += 1
                peak = max(peak, active)
            time.sleep(0.02)
            with guard:
                active -= 1

        await asyncio.gather(*(runtime.call(slow) for _ in range(4)))

        assert peak == 1

    @pytest.mark.asyncio
    async def test_counts_calls(self, runtime):
        await runtime.call(int)
        await runtime.call(str)

        assert runtime.calls == 2

    @pytest.mark.asyncio
    async def test_call_after_shutdown_raises(self):
        rt = TmuxRuntime(max_workers=1)
        rt.shutdown()
        rt.shutdown()

        assert rt.closed
        with pytest.raises(RuntimeError, match="shut down"):
            await rt.call(int)
        assert rt.calls == 0
