"""
Round events.

Every round emits a ``RoundOutcome`` to the registered sinks. Delivery is
fire-and-forget: the query path never awaits a sink, and sink failures
are logged only.
"""

import asyncio
from collections import deque
from typing import Optional, Protocol

import structlog

from feedoracle.models import RoundOutcome

logger = structlog.get_logger()


class RoundEventSink(Protocol):
    """Anything that can consume round outcomes, e.g. an audit ledger."""

    async def handle(self, event: RoundOutcome) -> None:
        ...


class RecentRoundsLog:
    """In-memory audit sink keeping the most recent rounds."""

    def __init__(self, maxlen: int = 100):
        self._rounds: deque[RoundOutcome] = deque(maxlen=maxlen)

    async def handle(self, event: RoundOutcome) -> None:
        self._rounds.append(event)

    def recent(self, limit: Optional[int] = None) -> list[RoundOutcome]:
        """Most recent rounds first."""
        rounds = list(reversed(self._rounds))
        return rounds[:limit] if limit is not None else rounds

    def __len__(self) -> int:
        return len(self._rounds)


class EventEmitter:
    """Schedules sink deliveries without blocking the caller."""

    def __init__(self, sinks: Optional[list[RoundEventSink]] = None):
        self.sinks: list[RoundEventSink] = list(sinks or [])
        self._pending: set[asyncio.Task] = set()

    def subscribe(self, sink: RoundEventSink) -> None:
        self.sinks.append(sink)

    def emit(self, event: RoundOutcome) -> None:
        for sink in self.sinks:
            task = asyncio.create_task(self._deliver(sink, event))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    @staticmethod
    async def _deliver(sink: RoundEventSink, event: RoundOutcome) -> None:
        try:
            await sink.handle(event)
        except Exception as e:
            logger.error(
                "Round event delivery failed",
                sink=type(sink).__name__,
                round_id=event.round_id,
                error=str(e),
            )

    async def drain(self) -> None:
        """Wait for in-flight deliveries."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self, timeout: float = 1.0) -> None:
        """Give in-flight deliveries ``timeout`` seconds, then cancel the rest."""
        if self._pending:
            _, stuck = await asyncio.wait(list(self._pending), timeout=timeout)
            if stuck:
                logger.warning("Cancelling undelivered round events", pending=len(stuck))
            for task in stuck:
                task.cancel()
        await self.drain()
