import asyncio
import sys
from pathlib import Path

import pytest

SRC_DIR = str((Path(__file__).resolve().parents[1] / "src").resolve())
if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)

from dual_subtitles.scheduler import RequestScheduler  # noqa: E402


async def _settle(rounds: int = 5) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


def _recorder(log, name, result=None):
    async def _op():
        log.append(name)
        return result if result is not None else name

    return _op


def test_admits_up_to_capacity_then_queues():
    async def scenario():
        scheduler = RequestScheduler(capacity=2, interval=3600)
        started = []
        tasks = [asyncio.create_task(scheduler.schedule(_recorder(started, n))) for n in ("a", "b", "c")]
        await _settle()

        assert started == ["a", "b"]
        assert scheduler.used == 2
        assert scheduler.pending == 1
        assert not tasks[2].done()

        scheduler.reset_window()
        results = await asyncio.gather(*tasks)
        await scheduler.aclose()
        return started, results, scheduler.used

    started, results, used = asyncio.run(scenario())
    assert started == ["a", "b", "c"]
    assert results == ["a", "b", "c"]
    assert used == 1


def test_drain_preserves_fifo_and_respects_capacity():
    async def scenario():
        scheduler = RequestScheduler(capacity=2, interval=3600)
        started = []
        names = ["first", "second", "q1", "q2", "q3"]
        tasks = [asyncio.create_task(scheduler.schedule(_recorder(started, n))) for n in names]
        await _settle()
        assert started == ["first", "second"]

        scheduler.reset_window()
        await _settle()
        after_first_reset = list(started)
        pending = scheduler.pending

        scheduler.reset_window()
        await asyncio.gather(*tasks)
        await scheduler.aclose()
        return after_first_reset, pending, started

    after_first_reset, pending, started = asyncio.run(scenario())
    assert after_first_reset == ["first", "second", "q1", "q2"]
    assert pending == 1
    assert started == ["first", "second", "q1", "q2", "q3"]


def test_failure_propagates_and_counts_against_window():
    async def scenario():
        scheduler = RequestScheduler(capacity=1, interval=3600)
        calls = []

        async def boom():
            calls.append("boom")
            raise RuntimeError("upstream down")

        with pytest.raises(RuntimeError, match="upstream down"):
            await scheduler.schedule(boom)
        used = scheduler.used
        await scheduler.aclose()
        return calls, used

    calls, used = asyncio.run(scenario())
    assert calls == ["boom"]
    assert used == 1


def test_queued_failure_counts_against_window_and_is_not_retried():
    async def scenario():
        scheduler = RequestScheduler(capacity=1, interval=3600)
        calls = []

        async def boom():
            calls.append("boom")
            raise RuntimeError("upstream down")

        first = asyncio.create_task(scheduler.schedule(_recorder(calls, "first")))
        queued = asyncio.create_task(scheduler.schedule(boom))
        await _settle()
        assert scheduler.pending == 1
        assert calls == ["first"]

        scheduler.reset_window()
        await first
        with pytest.raises(RuntimeError, match="upstream down"):
            await queued
        used = scheduler.used
        await _settle()
        await scheduler.aclose()
        return calls, used

    calls, used = asyncio.run(scenario())
    assert calls == ["first", "boom"]
    assert used == 1


def test_background_ticker_resets_window():
    async def scenario():
        scheduler = RequestScheduler(capacity=1, interval=0.01)
        started = []
        first = asyncio.create_task(scheduler.schedule(_recorder(started, "x")))
        second = asyncio.create_task(scheduler.schedule(_recorder(started, "y")))
        results = await asyncio.wait_for(asyncio.gather(first, second), timeout=2)
        await scheduler.aclose()
        return results

    assert asyncio.run(scenario()) == ["x", "y"]


def test_injected_sleep_drives_windows():
    async def scenario():
        gate = asyncio.Event()

        async def fake_sleep(_seconds):
            await gate.wait()
            gate.clear()

        scheduler = RequestScheduler(capacity=1, interval=60, sleep=fake_sleep)
        started = []
        tasks = [asyncio.create_task(scheduler.schedule(_recorder(started, n))) for n in ("a", "b")]
        await _settle()
        before = list(started)
        gate.set()
        await asyncio.gather(*tasks)
        await scheduler.aclose()
        return before, started

    before, started = asyncio.run(scenario())
    assert before == ["a"]
    assert started == ["a", "b"]


def test_cancelled_waiter_is_skipped_without_using_capacity():
    async def scenario():
        scheduler = RequestScheduler(capacity=1, interval=3600)
        started = []
        first = asyncio.create_task(scheduler.schedule(_recorder(started, "a")))
        abandoned = asyncio.create_task(scheduler.schedule(_recorder(started, "gone")))
        kept = asyncio.create_task(scheduler.schedule(_recorder(started, "b")))
        await _settle()
        abandoned.cancel()
        await _settle()
        scheduler.reset_window()
        await asyncio.gather(first, kept)
        await scheduler.aclose()
        return started

    assert asyncio.run(scenario()) == ["a", "b"]


def test_aclose_cancels_queued_callers():
    async def scenario():
        scheduler = RequestScheduler(capacity=1, interval=3600)
        started = []
        first = asyncio.create_task(scheduler.schedule(_recorder(started, "a")))
        queued = asyncio.create_task(scheduler.schedule(_recorder(started, "b")))
        await _settle()
        await scheduler.aclose()
        await first
        with pytest.raises(asyncio.CancelledError):
            await queued
        return started

    assert asyncio.run(scenario()) == ["a"]


def test_rejects_zero_capacity():
    with pytest.raises(ValueError):
        RequestScheduler(capacity=0)
