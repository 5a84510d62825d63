from __future__ import annotations

import asyncio
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

import pytest

from atelier.workers.concurrency import run_bounded
from atelier.workers.progress import ProgressCounter, ProgressReporter


def test_never_exceeds_limit_and_handles_every_item():
    seen: list[int] = []
    in_flight = 0
    peak = 0

    async def worker(item: int) -> None:
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.001)
        seen.append(item)
        in_flight -= 1

    summary = asyncio.run(run_bounded(range(20), worker, 5))

    assert sorted(seen) == list(range(20))
    assert peak <= 5
    assert summary.peak_in_flight == peak
    assert summary.handled == 20
    assert summary.unhandled == 0


def test_limit_larger_than_backlog():
    async def worker(item: int) -> None:
        await asyncio.sleep(0)

    summary = asyncio.run(run_bounded([1, 2], worker, 10))

    assert summary.total == 2
    assert summary.peak_in_flight <= 2


def test_worker_exceptions_do_not_stop_the_run():
    handled: list[int] = []

    async def worker(item: int) -> None:
        if item % 3 == 0:
            raise RuntimeError(f"boom {item}")
        handled.append(item)

    summary = asyncio.run(run_bounded(range(9), worker, 2))

    assert sorted(handled) == [1, 2, 4, 5, 7, 8]
    assert summary.unhandled == 3
    assert summary.handled == 6


def test_empty_backlog_and_invalid_limit():
    async def worker(item: int) -> None:
        raise AssertionError("not called")

    assert asyncio.run(run_bounded([], worker, 3)).total == 0
    with pytest.raises(ValueError):
        asyncio.run(run_bounded([1], worker, 0))


# ----------------------------------------------------------------------
# progress
# ----------------------------------------------------------------------
def test_counter_tracks_first_in_flight_item():
    counter = ProgressCounter(total=3)
    counter.begin("a")
    counter.begin("b")

    assert counter.snapshot() == (0, "a")
    counter.finish("a")
    assert counter.snapshot() == (1, "b")
    counter.finish("b")
    counter.begin("c")
    counter.finish("c")
    assert counter.snapshot() == (3, None)

    with pytest.raises(ValueError):
        counter.finish("d")


def test_reporter_only_reports_changes_below_total():
    counter = ProgressCounter(total=2)
    ticks: list[tuple[int, str | None]] = []
    reporter = ProgressReporter(counter, lambda processed, current: ticks.append((processed, current)))

    assert reporter.tick() is False
    counter.begin("x")
    counter.finish("x")
    assert reporter.tick() is True
    assert reporter.tick() is False
    counter.begin("y")
    counter.finish("y")
    assert reporter.tick() is False

    assert ticks == [(1, None)]
    assert reporter.last_reported == 1


def test_reporter_survives_failing_handler():
    counter = ProgressCounter(total=5)

    def explode(processed: int, current: str | None) -> None:
        raise RuntimeError("store offline")

    reporter = ProgressReporter(counter, explode)
    counter.begin("x")
    counter.finish("x")

    assert reporter.tick() is True


def test_reporter_loop_runs_until_stopped():
    counter = ProgressCounter(total=10)
    ticks: list[int] = []

    async def scenario() -> None:
        reporter = ProgressReporter(counter, lambda processed, _: ticks.append(processed), interval=0.01)
        reporter.start()
        counter.begin("a")
        counter.finish("a")
        await asyncio.sleep(0.05)
        await reporter.stop()
        await reporter.stop()

    asyncio.run(scenario())

    assert ticks == [1]
