"""
Dispatcher

Fans a query out concurrently to the selected providers and collects
every outcome: a response, a timeout or an error.
"""

import asyncio
import math
import time
from typing import Optional

import structlog

from feedoracle.cache import ResponseCache
from feedoracle.errors import ProviderFetchError, ProviderTimeout
from feedoracle.models import (
    DispatchOutcome,
    FailureKind,
    OracleResponse,
    ProviderFailure,
    ProviderNode,
    ProviderReading,
    is_numeric,
    utcnow,
)

logger = structlog.get_logger()


class Dispatcher:
    """
    Concurrent fan-out with a per-call timeout.

    Each provider call runs as its own task and only produces an outcome
    value; no provider state is touched during the fan-out. A slow or
    failing provider never delays or aborts another one.

    Readings are cached per provider for ``cache_ttl_seconds``; a cached
    reading keeps its original timestamp so freshness still decays. A TTL
    of zero disables caching.
    """

    def __init__(
        self,
        per_call_timeout: float = 10.0,
        cache_ttl_seconds: float = 0.0,
        cache_max_entries: int = 100,
    ):
        self.per_call_timeout = per_call_timeout
        self.cache_ttl_seconds = cache_ttl_seconds
        self.cache_max_entries = cache_max_entries
        self._caches: dict[str, ResponseCache] = {}

    def cache_for(self, provider: str) -> ResponseCache:
        """The response cache of one provider, created on first use."""
        cache = self._caches.get(provider)
        if cache is None:
            cache = ResponseCache(self.cache_ttl_seconds, self.cache_max_entries)
            self._caches[provider] = cache
        return cache

    def clear_cache(self) -> None:
        self._caches.clear()

    async def dispatch(
        self,
        data_type: str,
        subject: str,
        nodes: list[ProviderNode],
        per_call_timeout: Optional[float] = None,
        deadline: Optional[float] = None,
    ) -> list[DispatchOutcome]:
        """
        Query all nodes concurrently.

        Args:
            data_type: Requested data type
            subject: Subject of the query
            nodes: Selected providers, in selection order
            per_call_timeout: Seconds each provider may take
            deadline: Optional overall bound in seconds; providers still
                pending when it expires are cancelled and recorded as
                timeouts

        Returns:
            One outcome per node, in the order of ``nodes``
        """
        timeout = per_call_timeout or self.per_call_timeout
        if not nodes:
            return []

        tasks = [
            asyncio.create_task(
                self._call(node, data_type, subject, timeout),
                name=f"fetch:{node.name}",
            )
            for node in nodes
        ]
        started = time.perf_counter()
        try:
            done, pending = await asyncio.wait(tasks, timeout=deadline)
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            raise

        if pending:
            for task in pending:
                task.cancel()
            # Let cancelled tasks unwind so none outlive the round
            await asyncio.gather(*pending, return_exceptions=True)

        elapsed_ms = (time.perf_counter() - started) * 1000
        outcomes: list[DispatchOutcome] = []
        for node, task in zip(nodes, tasks):
            if task in done:
                outcomes.append(task.result())
            else:
                outcomes.append(
                    ProviderFailure(
                        source=node.name,
                        kind=FailureKind.TIMEOUT,
                        reason=f"abandoned at round deadline ({deadline:.2f}s)",
                        latency_ms=elapsed_ms,
                    )
                )

        logger.info(
            "Dispatch completed",
            data_type=data_type,
            subject=subject,
            total=len(outcomes),
            successful=sum(1 for o in outcomes if isinstance(o, OracleResponse)),
            failed=sum(1 for o in outcomes if isinstance(o, ProviderFailure)),
        )
        return outcomes

    async def _call(
        self,
        node: ProviderNode,
        data_type: str,
        subject: str,
        timeout: float,
    ) -> DispatchOutcome:
        """Run one provider call, converting every failure into a value."""
        started = time.perf_counter()
        cache = self.cache_for(node.name)
        try:
            reading = cache.get(data_type, subject) if cache.enabled else None
            if reading is None:
                reading = await asyncio.wait_for(
                    node.adapter.fetch(data_type, subject, timeout),
                    timeout=timeout,
                )
                if is_numeric(reading.value) and not math.isfinite(reading.value):
                    raise ProviderFetchError(node.name, f"non-finite value {reading.value!r}")
                reading = self._stamped(reading)
                cache.put(data_type, subject, reading)
            else:
                logger.debug("Serving cached reading", provider=node.name, subject=subject)

            return OracleResponse(
                source=node.name,
                value=reading.value,
                confidence=reading.confidence,
                timestamp=reading.timestamp,
                latency_ms=(time.perf_counter() - started) * 1000,
            )
        except asyncio.TimeoutError:
            error = ProviderTimeout(node.name, timeout)
            logger.warning("Provider timed out", provider=node.name, timeout=timeout)
            return ProviderFailure(
                source=node.name,
                kind=FailureKind.TIMEOUT,
                reason=str(error),
                latency_ms=timeout * 1000,
            )
        except Exception as e:
            logger.warning("Provider failed", provider=node.name, error=str(e))
            return ProviderFailure(
                source=node.name,
                kind=FailureKind.ERROR,
                reason=str(e) or type(e).__name__,
                latency_ms=(time.perf_counter() - started) * 1000,
            )

    @staticmethod
    def _stamped(reading: ProviderReading) -> ProviderReading:
        """Fix the observation time of a reading that carries none."""
        if reading.timestamp is not None:
            return reading
        return reading.model_copy(update={"timestamp": utcnow()})
