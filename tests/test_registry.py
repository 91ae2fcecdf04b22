"""
Tests for the provider registry.
"""

import pytest

from feedoracle.models import ProviderStatus, dynamic_score
from feedoracle.registry import ProviderRegistry
from tests.conftest import FakeProvider


class TestProviderRegistry:
    """Tests for ProviderRegistry."""

    def test_register_seeds_weights_from_info(self):
        """Test a new node starts from the declared reliability, stake and reputation."""
        registry = ProviderRegistry()

        node = registry.register(FakeProvider("alpha", reliability=90, stake=40, reputation=70))

        assert node.weights.reliability == 90
        assert node.weights.accuracy == 90
        assert node.weights.response_time == 100
        assert node.weights.stake == 40
        assert node.weights.reputation == 70
        assert node.weights.combined == pytest.approx(dynamic_score(node.weights, []))
        assert node.status == ProviderStatus.ACTIVE
        assert node.metrics.total_requests == 0

    def test_reregister_keeps_accumulated_state(self):
        """Test registering a name again replaces the adapter but not its metrics."""
        registry = ProviderRegistry([FakeProvider("alpha")])
        node = registry.get("alpha")
        node.metrics.total_requests = 7

        replacement = FakeProvider("alpha", capabilities=("price", "weather"))
        again = registry.register(replacement)

        assert len(registry) == 1
        assert again.metrics.total_requests == 7
        assert again.adapter is replacement
        assert again.info.supports("weather")

    def test_capability_and_status_filters(self):
        """Test capability lookup and active filtering."""
        registry = ProviderRegistry([
            FakeProvider("alpha"),
            FakeProvider("beta"),
            FakeProvider("sky", capabilities=("weather",)),
        ])
        registry.get("beta").status = ProviderStatus.ERROR

        assert {n.name for n in registry.list_by_capability("price")} == {"alpha", "beta"}
        assert [n.name for n in registry.candidates("price")] == ["alpha"]
        assert {n.name for n in registry.list_active()} == {"alpha", "sky"}
        assert registry.candidates("rainfall") == []

    def test_unregister(self):
        """Test removing a provider."""
        registry = ProviderRegistry([FakeProvider("alpha")])

        assert registry.unregister("alpha") is True
        assert registry.unregister("alpha") is False
        assert "alpha" not in registry

    def test_snapshots_are_sorted_copies(self):
        """Test snapshots do not alias the live node state."""
        registry = ProviderRegistry([FakeProvider("beta"), FakeProvider("alpha")])

        snapshots = registry.snapshots()
        snapshots[0].metrics.performance_history.append(99.0)
        snapshots[0].weights.reliability = 1.0

        assert [s.name for s in snapshots] == ["alpha", "beta"]
        assert registry.get("alpha").metrics.performance_history == []
        assert registry.get("alpha").weights.reliability == 80
