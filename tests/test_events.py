"""
Tests for round event delivery.
"""

import asyncio

from feedoracle.events import EventEmitter, RecentRoundsLog
from feedoracle.models import RoundOutcome, SelectionCriteria


def outcome(round_id):
    return RoundOutcome(
        round_id=round_id, data_type="price", subject="BTC", criteria=SelectionCriteria()
    )


class TestRecentRoundsLog:
    """Tests for RecentRoundsLog."""

    def test_keeps_newest_first_and_bounded(self):
        """Test the log evicts the oldest rounds."""
        log = RecentRoundsLog(maxlen=3)

        async def scenario():
            for i in range(5):
                await log.handle(outcome(f"r{i}"))

        asyncio.run(scenario())

        assert len(log) == 3
        assert [o.round_id for o in log.recent()] == ["r4", "r3", "r2"]
        assert [o.round_id for o in log.recent(1)] == ["r4"]


class TestEventEmitter:
    """Tests for EventEmitter."""

    def test_emit_does_not_wait_for_sinks(self):
        """Test emit returns before a slow sink finishes."""
        delivered = []

        class SlowSink:
            async def handle(self, event):
                await asyncio.sleep(0.05)
                delivered.append(event.round_id)

        emitter = EventEmitter([SlowSink()])

        async def scenario():
            emitter.emit(outcome("r1"))
            assert delivered == []
            await emitter.drain()

        asyncio.run(scenario())

        assert delivered == ["r1"]

    def test_sink_failure_is_isolated(self):
        """Test a raising sink does not stop the others."""
        log = RecentRoundsLog()

        class BrokenSink:
            async def handle(self, event):
                raise RuntimeError("boom")

        emitter = EventEmitter([BrokenSink()])
        emitter.subscribe(log)

        async def scenario():
            emitter.emit(outcome("r1"))
            await emitter.drain()

        asyncio.run(scenario())

        assert len(log) == 1

    def test_close_cancels_pending_deliveries(self):
        """Test close does not wait for stuck sinks."""

        class StuckSink:
            async def handle(self, event):
                await asyncio.sleep(60)

        emitter = EventEmitter([StuckSink()])

        async def scenario():
            emitter.emit(outcome("r1"))
            await asyncio.wait_for(emitter.close(timeout=0.05), timeout=1.0)

        asyncio.run(scenario())

    def test_close_flushes_deliveries_in_flight(self):
        """Test the last round still reaches a slow sink when closing right away."""
        delivered = []

        class SlowSink:
            async def handle(self, event):
                await asyncio.sleep(0.05)
                delivered.append(event.round_id)

        emitter = EventEmitter([SlowSink()])

        async def scenario():
            emitter.emit(outcome("r1"))
            await emitter.close(timeout=1.0)

        asyncio.run(scenario())

        assert delivered == ["r1"]
