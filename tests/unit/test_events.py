# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the event bus and the background task registry."""

import asyncio

import pytest

from campus_results.infrastructure.background import BackgroundTaskRegistry
from campus_results.infrastructure.events import EventBus, EventData, EventTypes


class TestEventBus:
    """Tests for EventBus."""

    async def test_exact_subscription(self, event_bus: EventBus) -> None:
        """Test a handler receives events of its type only."""
        received: list[EventData] = []

        async def handler(event: EventData) -> None:
            received.append(event)

        event_bus.subscribe(EventTypes.Result.PUBLISHED, handler)

        await event_bus.publish(EventTypes.Result.PUBLISHED, {"result_id": "r1"}, campus_id="T1")
        await event_bus.publish(EventTypes.Result.CORRECTED, {"result_id": "r1"}, campus_id="T1")

        assert len(received) == 1
        assert received[0].payload == {"result_id": "r1"}
        assert received[0].campus_id == "T1"

    async def test_several_handlers_per_type(self, event_bus: EventBus) -> None:
        """Test every subscriber of a type is called once."""
        seen: list[str] = []

        async def first(event: EventData) -> None:
            seen.append("first")

        async def second(event: EventData) -> None:
            seen.append("second")

        event_bus.subscribe(EventTypes.Result.CORRECTED, first)
        event_bus.subscribe(EventTypes.Result.CORRECTED, second)

        await event_bus.publish(EventTypes.Result.CORRECTED, {})

        assert sorted(seen) == ["first", "second"]

    async def test_failing_handler_is_isolated(self, event_bus: EventBus) -> None:
        """Test one failing handler neither reaches the publisher nor stops others."""
        delivered: list[str] = []

        async def broken(event: EventData) -> None:
            raise RuntimeError("boom")

        async def healthy(event: EventData) -> None:
            delivered.append(event.event_id)

        event_bus.subscribe(EventTypes.Result.PUBLISHED, broken)
        event_bus.subscribe(EventTypes.Result.PUBLISHED, healthy)

        event = await event_bus.publish(EventTypes.Result.PUBLISHED, {})

        assert delivered == [event.event_id]
        assert event_bus.failures == 1

    async def test_no_subscribers(self, event_bus: EventBus) -> None:
        """Test publishing without subscribers still returns the event."""
        event = await event_bus.publish(EventTypes.Result.PUBLISHED, {"result_id": "r1"})

        assert event.event_type == "result.published"
        assert event.timestamp.tzinfo is not None
        assert event_bus.failures == 0

    async def test_clear(self, event_bus: EventBus) -> None:
        """Test cleared subscriptions are no longer called."""
        calls: list[EventData] = []

        async def handler(event: EventData) -> None:
            calls.append(event)

        event_bus.subscribe(EventTypes.Result.PUBLISHED, handler)
        event_bus.clear()

        await event_bus.publish(EventTypes.Result.PUBLISHED, {})
        assert calls == []


class TestBackgroundTaskRegistry:
    """Tests for BackgroundTaskRegistry."""

    async def test_drain_waits_for_tasks(self) -> None:
        """Test drain returns once spawned work has finished."""
        registry = BackgroundTaskRegistry()
        done: list[int] = []

        async def work(n: int) -> None:
            await asyncio.sleep(0.01)
            done.append(n)

        registry.spawn(work(1), name="one")
        registry.spawn(work(2), name="two")
        assert registry.pending == 2

        await registry.drain(timeout=2)

        assert sorted(done) == [1, 2]
        assert registry.pending == 0

    async def test_drain_includes_tasks_spawned_meanwhile(self) -> None:
        """Test follow-up tasks spawned by a task are awaited too."""
        registry = BackgroundTaskRegistry()
        done: list[str] = []

        async def child() -> None:
            done.append("child")

        async def parent() -> None:
            registry.spawn(child(), name="child")

        registry.spawn(parent(), name="parent")
        await registry.drain(timeout=2)

        assert done == ["child"]

    async def test_failures_are_counted(self) -> None:
        """Test a failing task is logged and counted without propagating."""
        registry = BackgroundTaskRegistry()

        async def broken() -> None:
            raise ValueError("nope")

        registry.spawn(broken(), name="broken")
        await registry.drain(timeout=2)

        assert registry.failures == 1

    async def test_drain_timeout(self) -> None:
        """Test drain gives up after the timeout and leaves the task running."""
        registry = BackgroundTaskRegistry()
        task = registry.spawn(asyncio.sleep(10), name="slow")

        await registry.drain(timeout=0.05)

        assert registry.pending == 1
        assert not task.cancelled()
        assert not task.done()
        await registry.cancel_all()

    async def test_cancel_all(self) -> None:
        """Test cancellation is not counted as a failure."""
        registry = BackgroundTaskRegistry()
        task = registry.spawn(asyncio.sleep(10), name="slow")

        await registry.cancel_all()

        assert task.cancelled()
        assert registry.failures == 0

    @pytest.mark.parametrize("count", [0, 3])
    async def test_pending_count(self, count: int) -> None:
        """Test pending reflects in-flight work."""
        registry = BackgroundTaskRegistry()
        for i in range(count):
            registry.spawn(asyncio.sleep(0.01), name=f"t{i}")

        assert registry.pending == count
        await registry.drain(timeout=2)
