"""
Tests for the metrics feedback loop.
"""

import pytest

from feedoracle.feedback import MetricsFeedback, response_time_weight
from feedoracle.models import FailureKind, HISTORY_SIZE, ProviderFailure, dynamic_score
from tests.conftest import make_node, make_response


def timeout(source, latency_ms=5000.0):
    return ProviderFailure(
        source=source, kind=FailureKind.TIMEOUT, reason="timed out", latency_ms=latency_ms
    )


class TestMetricsFeedback:
    """Tests for MetricsFeedback."""

    def test_clean_response_rewards_provider(self):
        """Test a contributing response updates counters and weights."""
        node = make_node("a", reliability=80, accuracy=80)

        MetricsFeedback().apply([node], [make_response("a", 1.0, confidence=0.9, latency_ms=200.0)], {"a"})

        metrics = node.metrics
        assert metrics.total_requests == 1
        assert metrics.successful_requests == 1
        assert metrics.failed_requests == 0
        assert metrics.avg_response_time_ms == pytest.approx(200.0)
        assert metrics.performance_history == [pytest.approx(90.0)]
        assert metrics.last_update is not None
        assert node.weights.response_time == pytest.approx(98.0)
        assert node.weights.accuracy == pytest.approx(90.0)
        assert node.weights.combined == pytest.approx(
            dynamic_score(node.weights, metrics.performance_history)
        )

    def test_timeout_charges_full_latency(self):
        """Test a timeout counts as a failure at the timeout latency."""
        node = make_node("a")

        MetricsFeedback().apply([node], [timeout("a")], set())

        assert node.metrics.failed_requests == 1
        assert node.metrics.successful_requests == 0
        assert node.metrics.avg_response_time_ms == pytest.approx(5000.0)
        assert node.weights.response_time == pytest.approx(50.0)
        assert node.metrics.performance_history == [0.0]
        assert node.weights.accuracy == 0.0

    def test_outlier_scores_zero_but_is_not_failed(self):
        """Test a rejected response is neither a success nor a failure."""
        node = make_node("a")

        MetricsFeedback().apply([node], [make_response("a", 150.0)], set())

        assert node.metrics.total_requests == 1
        assert node.metrics.successful_requests == 0
        assert node.metrics.failed_requests == 0
        assert node.metrics.performance_history == [0.0]

    def test_latency_is_a_running_average(self):
        """Test average latency over several rounds."""
        node = make_node("a")
        feedback = MetricsFeedback()

        feedback.apply([node], [make_response("a", 1.0, latency_ms=100.0)], {"a"})
        feedback.apply([node], [make_response("a", 1.0, latency_ms=300.0)], {"a"})

        assert node.metrics.avg_response_time_ms == pytest.approx(200.0)

    def test_history_is_bounded(self):
        """Test only the last ten round scores are kept."""
        node = make_node("a")
        feedback = MetricsFeedback()

        for i in range(12):
            feedback.apply([node], [make_response("a", 1.0, confidence=i / 100)], {"a"})

        assert len(node.metrics.performance_history) == HISTORY_SIZE
        assert node.metrics.performance_history == pytest.approx([float(i) for i in range(2, 12)])

    def test_round_updates_every_dispatched_provider(self):
        """Test each provider is updated from its own outcome."""
        good, slow = make_node("good"), make_node("slow")

        MetricsFeedback().apply(
            [good, slow], [make_response("good", 1.0), timeout("slow")], {"good"}
        )

        assert good.metrics.successful_requests == 1
        assert slow.metrics.failed_requests == 1
        assert good.weights.combined > slow.weights.combined

    def test_response_time_weight_floor(self):
        """Test very slow providers bottom out at zero."""
        assert response_time_weight(0.0) == 100.0
        assert response_time_weight(20000.0) == 0.0
