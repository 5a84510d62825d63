from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from atelier.workers.broadcast import SUBSCRIPTION_CLOSED, EventBroadcaster
from atelier.workers.supervisor import TaskSupervisor


def test_every_subscriber_receives_events_after_joining():
    async def scenario():
        broadcaster = EventBroadcaster()
        broadcaster.publish("p1", "progress", {"processed": 0})
        first = broadcaster.subscribe("p1")
        second = broadcaster.subscribe("p1")
        other = broadcaster.subscribe("p2")

        delivered = broadcaster.publish("p1", "progress", {"processed": 1, "total": 3})

        assert delivered == 2
        assert first.get_nowait().data == {"processed": 1, "total": 3}
        assert second.get_nowait().event == "progress"
        assert first.empty()
        assert other.empty()

    asyncio.run(scenario())


def test_full_subscriber_is_dropped_and_closed():
    async def scenario():
        broadcaster = EventBroadcaster(max_queue_size=1)
        slow = broadcaster.subscribe("p1")
        fast = broadcaster.subscribe("p1")

        broadcaster.publish("p1", "progress", {"processed": 1})
        fast.get_nowait()
        delivered = broadcaster.publish("p1", "progress", {"processed": 2})

        assert delivered == 1
        assert broadcaster.subscriber_count("p1") == 1
        assert slow.qsize() == 1
        assert slow.get_nowait() is SUBSCRIPTION_CLOSED

    asyncio.run(scenario())


def test_subscription_context_unsubscribes():
    async def scenario():
        broadcaster = EventBroadcaster()
        with broadcaster.subscription("p1"):
            assert broadcaster.subscriber_count("p1") == 1
        assert broadcaster.subscriber_count("p1") == 0
        assert broadcaster.publish("p1", "completed", {}) == 0

    asyncio.run(scenario())


def test_supervisor_logs_failures_and_drains(caplog):
    async def fail():
        raise RuntimeError("background boom")

    async def finish(results: list[str]):
        await asyncio.sleep(0.01)
        results.append("done")

    async def scenario():
        supervisor = TaskSupervisor()
        results: list[str] = []
        supervisor.spawn(fail(), name="failing-task")
        supervisor.spawn(finish(results), name="finishing-task")
        assert supervisor.active == 2
        await supervisor.drain(timeout=1)
        await asyncio.sleep(0)
        return supervisor, results

    with caplog.at_level(logging.ERROR):
        supervisor, results = asyncio.run(scenario())

    assert results == ["done"]
    assert supervisor.active == 0
    assert "failing-task" in caplog.text
