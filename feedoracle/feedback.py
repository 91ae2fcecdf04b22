"""
Metrics Feedback Loop

After each round, folds every dispatched provider's outcome into its
running metrics and recomputes its weights.
"""

import statistics

import structlog

from feedoracle.models import (
    DispatchOutcome,
    OracleResponse,
    ProviderNode,
    utcnow,
)

logger = structlog.get_logger()

# One weight point per 100ms of average latency
MS_PER_WEIGHT_POINT = 100.0


def response_time_weight(avg_response_time_ms: float) -> float:
    return max(0.0, 100.0 - avg_response_time_ms / MS_PER_WEIGHT_POINT)


class MetricsFeedback:
    """
    Single writer of provider weights and metrics.

    ``apply`` never awaits, so within one event loop a provider's
    read-modify-write cannot interleave with another round's.
    """

    def apply(
        self,
        nodes: list[ProviderNode],
        outcomes: list[DispatchOutcome],
        clean_sources: set[str],
    ) -> None:
        """
        Update every dispatched provider.

        Args:
            nodes: Providers dispatched in the round
            outcomes: One outcome per node, same order
            clean_sources: Providers whose response contributed to the result
        """
        for node, outcome in zip(nodes, outcomes):
            self._update(node, outcome, outcome.source in clean_sources)

    def _update(self, node: ProviderNode, outcome: DispatchOutcome, clean: bool) -> None:
        # Read a snapshot, compute, then write back in one step
        metrics = node.metrics.model_copy(deep=True)
        weights = node.weights.model_copy()
        responded = isinstance(outcome, OracleResponse)

        metrics.total_requests += 1
        if clean:
            metrics.successful_requests += 1
        if not responded:
            metrics.failed_requests += 1

        metrics.avg_response_time_ms += (
            outcome.latency_ms - metrics.avg_response_time_ms
        ) / metrics.total_requests
        weights.response_time = response_time_weight(metrics.avg_response_time_ms)

        round_score = outcome.confidence * 100 if clean and responded else 0.0
        metrics.push_score(round_score)
        weights.accuracy = statistics.fmean(metrics.performance_history)
        metrics.last_update = utcnow()

        # Weights always evolve under the dynamic formula
        weights.recompute(metrics.performance_history)

        node.metrics = metrics
        node.weights = weights

        logger.debug(
            "Provider metrics updated",
            provider=node.name,
            clean=clean,
            round_score=round(round_score, 2),
            response_time=round(weights.response_time, 2),
            accuracy=round(weights.accuracy, 2),
            combined=round(weights.combined, 2),
        )
