"""
Tests for the health monitor.
"""

import asyncio

from feedoracle.health import HealthMonitor
from feedoracle.models import ProviderStatus
from feedoracle.registry import ProviderRegistry
from tests.conftest import FakeProvider


class TestHealthMonitor:
    """Tests for HealthMonitor."""

    def test_check_all_sets_status(self):
        """Test unhealthy, raising and hanging providers are marked as errors."""
        registry = ProviderRegistry([
            FakeProvider("well"),
            FakeProvider("down", healthy=False),
            FakeProvider("raising", healthy=ConnectionError("refused")),
            FakeProvider("hanging", healthy=5.0),
        ])
        monitor = HealthMonitor(registry, check_timeout_seconds=0.1)

        results = asyncio.run(monitor.check_all())

        assert results == {"well": True, "down": False, "raising": False, "hanging": False}
        assert registry.get("well").status == ProviderStatus.ACTIVE
        for name in ("down", "raising", "hanging"):
            assert registry.get(name).status == ProviderStatus.ERROR
        assert all(node.last_health_check is not None for node in registry.list_all())

    def test_provider_recovers(self):
        """Test a provider passing its next check becomes active again."""
        provider = FakeProvider("flaky", healthy=False)
        registry = ProviderRegistry([provider])
        monitor = HealthMonitor(registry)

        asyncio.run(monitor.check_all())
        assert registry.get("flaky").status == ProviderStatus.ERROR

        provider.healthy = True
        asyncio.run(monitor.check_all())
        assert registry.get("flaky").status == ProviderStatus.ACTIVE

    def test_health_checks_leave_weights_alone(self):
        """Test only status fields change during a health pass."""
        registry = ProviderRegistry([FakeProvider("down", healthy=False)])
        node = registry.get("down")
        weights, metrics = node.weights.model_copy(), node.metrics.model_copy(deep=True)

        asyncio.run(HealthMonitor(registry).check_all())

        assert node.weights == weights
        assert node.metrics == metrics

    def test_background_loop(self):
        """Test the loop checks periodically until stopped."""
        provider = FakeProvider("well")
        monitor = HealthMonitor(ProviderRegistry([provider]), interval_seconds=0.01)

        async def scenario():
            monitor.start()
            assert monitor.running
            await asyncio.sleep(0.1)
            await monitor.stop()

        asyncio.run(scenario())

        assert provider.health_calls >= 2
        assert monitor.running is False
