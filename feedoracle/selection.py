"""
Selection Scorer

Turns a provider's weight vector and recent performance history into a
0-100 selection score, and picks the top providers for a round.
"""

import structlog

from feedoracle.models import (
    ProviderNode,
    SelectionCriteria,
    WeightingStrategy,
    clamp,
    dynamic_score,
)

logger = structlog.get_logger()

EQUAL_SCORE = 50.0


def score(node: ProviderNode, strategy: WeightingStrategy = WeightingStrategy.DYNAMIC) -> float:
    """
    Score a provider under a weighting strategy.

    Args:
        node: The provider to score
        strategy: Weighting strategy in effect for this round

    Returns:
        Selection score between 0 and 100
    """
    weights = node.weights

    if strategy == WeightingStrategy.EQUAL:
        return EQUAL_SCORE
    if strategy == WeightingStrategy.RELIABILITY:
        return clamp(weights.reliability)
    if strategy == WeightingStrategy.PERFORMANCE:
        return clamp((weights.response_time + weights.accuracy) / 2)
    if strategy == WeightingStrategy.STAKE:
        return clamp(weights.stake)

    # Recent rounds can move the structural score by at most five points
    return dynamic_score(weights, node.metrics.performance_history)


def rank(
    candidates: list[ProviderNode],
    strategy: WeightingStrategy = WeightingStrategy.DYNAMIC,
) -> list[tuple[ProviderNode, float]]:
    """Score and sort candidates, best first, ties broken by name."""
    scored = [(node, score(node, strategy)) for node in candidates]
    scored.sort(key=lambda item: (-item[1], item[0].name))
    return scored


def select(candidates: list[ProviderNode], criteria: SelectionCriteria) -> list[ProviderNode]:
    """
    Pick the providers to query for a round.

    Selects ``min(max(min_providers, available), max_providers)``
    providers; when fewer than ``min_providers`` are available every
    available one is queried.
    """
    available = len(candidates)
    count = min(max(criteria.min_providers, available), criteria.max_providers)

    if available < criteria.min_providers:
        logger.warning(
            "Fewer providers available than requested",
            available=available,
            min_providers=criteria.min_providers,
        )

    ranked = rank(candidates, criteria.weighting_strategy)
    selected = [node for node, _ in ranked[:count]]

    logger.debug(
        "Selected providers",
        strategy=criteria.weighting_strategy.value,
        selected=[node.name for node in selected],
        scores={node.name: round(value, 2) for node, value in ranked},
    )
    return selected
