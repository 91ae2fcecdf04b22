"""
Health Monitor

Periodically checks every provider and flips its status between active
and error. Touches only ``status`` and ``last_health_check``.
"""

import asyncio
from typing import Optional

import structlog

from feedoracle.models import ProviderNode, ProviderStatus, utcnow
from feedoracle.registry import ProviderRegistry

logger = structlog.get_logger()


class HealthMonitor:
    """Background health-check loop over a provider registry."""

    def __init__(
        self,
        registry: ProviderRegistry,
        interval_seconds: float = 300.0,
        check_timeout_seconds: float = 3.0,
    ):
        self.registry = registry
        self.interval_seconds = interval_seconds
        self.check_timeout_seconds = check_timeout_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def check_all(self) -> dict[str, bool]:
        """Run one health pass concurrently over all providers."""
        nodes = self.registry.list_all()
        results = await asyncio.gather(*(self._check(node) for node in nodes))
        healthy = dict(zip((node.name for node in nodes), results))

        logger.info(
            "Health check completed",
            healthy=sum(healthy.values()),
            total=len(healthy),
        )
        if nodes and not any(healthy.values()):
            logger.warning("No healthy providers found")
        return healthy

    async def _check(self, node: ProviderNode) -> bool:
        try:
            healthy = bool(
                await asyncio.wait_for(
                    node.adapter.health_check(),
                    timeout=self.check_timeout_seconds,
                )
            )
        except asyncio.TimeoutError:
            logger.warning("Health check timed out", provider=node.name)
            healthy = False
        except Exception as e:
            logger.warning("Health check failed", provider=node.name, error=str(e))
            healthy = False

        previous = node.status
        node.status = ProviderStatus.ACTIVE if healthy else ProviderStatus.ERROR
        node.last_health_check = utcnow()
        if node.status != previous:
            logger.info(
                "Provider status changed",
                provider=node.name,
                previous=previous.value,
                status=node.status.value,
            )
        return healthy

    async def _run(self) -> None:
        while True:
            try:
                await self.check_all()
            except Exception as e:
                logger.error("Health check pass failed", error=str(e))
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="provider-health")
        logger.info("Started health monitor", interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Stopped health monitor")
