"""
Consensus Aggregator

Combines the clean responses of a round into one value with a
confidence score and quality metrics.
"""

import json
import math
import statistics
from datetime import datetime, timezone
from typing import Any, Optional

import structlog
from pydantic import BaseModel, Field

from feedoracle.consensus.outliers import OutlierReport
from feedoracle.errors import InsufficientProviders
from feedoracle.models import (
    AggregationMethod,
    ConsensusResult,
    OracleResponse,
    QualityMetrics,
    utcnow,
)

logger = structlog.get_logger()


class AggregatorConfig(BaseModel):
    """Configuration for consensus aggregation."""

    # Responses older than this are fully stale
    freshness_window_seconds: float = Field(default=300.0, gt=0)

    # Relative tolerance for an exact half-weight crossing
    half_weight_tolerance: float = Field(default=1e-9, gt=0)


def median(values: list[float]) -> float:
    return float(statistics.median(values))


def average(values: list[float]) -> float:
    return statistics.fmean(values)


def weighted_average(values: list[float], weights: list[float]) -> float:
    total = sum(weights)
    if total <= 0:
        return average(values)
    return sum(v * w for v, w in zip(values, weights)) / total


def weighted_median(values: list[float], weights: list[float], tolerance: float = 1e-9) -> float:
    """
    Weighted median of ``values``.

    Pairs are sorted by value and weight is accumulated until it reaches
    half of the total. When the running sum lands exactly on the half, the
    result is the mean of that value and the next value carrying weight,
    so equal weights reproduce the plain median for even counts.
    """
    total = sum(weights)
    if total <= 0:
        return median(values)

    pairs = sorted(zip(values, weights), key=lambda p: p[0])
    half = total / 2
    cumulative = 0.0

    for i, (value, weight) in enumerate(pairs):
        cumulative += weight
        if math.isclose(cumulative, half, rel_tol=tolerance):
            following = [v for v, w in pairs[i + 1:] if w > 0]
            return (value + following[0]) / 2 if following else float(value)
        if cumulative > half:
            return float(value)

    return float(pairs[-1][0])


def consistency(values: list[float]) -> float:
    """``1 - coefficient of variation``, floored at 0."""
    if len(values) < 2:
        return 1.0
    mean = statistics.fmean(values)
    spread = statistics.pstdev(values)
    if mean == 0:
        return 1.0 if spread == 0 else 0.0
    return max(0.0, 1.0 - spread / abs(mean))


def _canonical(value: Any) -> str:
    return json.dumps(value, sort_keys=True, default=str)


class ConsensusAggregator:
    """
    Aggregation of clean responses under a configurable method.

    Numeric rounds use median, average, weighted average or weighted
    median (weights are the providers' combined scores snapshotted at
    selection time). Rounds carrying structured values fall back to a
    majority vote over the values.
    """

    def __init__(self, config: Optional[AggregatorConfig] = None):
        self.config = config or AggregatorConfig()

    def aggregate(
        self,
        report: OutlierReport,
        method: AggregationMethod = AggregationMethod.WEIGHTED_MEDIAN,
        weights: Optional[dict[str, float]] = None,
        *,
        data_type: str = "",
        subject: str = "",
        attempted: Optional[list[str]] = None,
        failures: Optional[dict[str, str]] = None,
        now: Optional[datetime] = None,
    ) -> ConsensusResult:
        """
        Aggregate a round.

        Args:
            report: Clean/outlier partition of the round's responses
            method: Requested aggregation method
            weights: Provider name -> combined weight
            data_type: Requested data type, for error reporting
            subject: Query subject, for error reporting
            attempted: Every provider dispatched in the round
            failures: Provider name -> reason for providers with no response
            now: Reference time for freshness

        Returns:
            ConsensusResult without round bookkeeping fields

        Raises:
            InsufficientProviders: if no clean response is available
        """
        failures = dict(failures or {})
        weights = weights or {}
        clean = report.clean

        if not clean:
            reasons = {**failures, **{s: "rejected as outlier" for s in report.outlier_sources}}
            raise InsufficientProviders(
                data_type,
                subject,
                attempted=attempted if attempted is not None else list(reasons),
                failures=reasons,
            )

        confidence = statistics.fmean(r.confidence for r in clean)
        if report.penalized:
            confidence *= report.survival_ratio
        confidence = max(0.0, min(1.0, confidence))

        if len(clean) == 1:
            only = clean[0]
            method_used = method if only.is_numeric else AggregationMethod.MAJORITY
            value, consistency_score = only.value, 1.0
        elif all(r.is_numeric for r in clean):
            value, method_used, consistency_score = self._numeric(clean, method, weights)
        else:
            value, method_used, consistency_score = self._majority(clean, weights)

        quality = QualityMetrics(
            accuracy=confidence,
            freshness=self._freshness(clean, now or utcnow()),
            consistency=consistency_score,
        )

        logger.info(
            "Consensus aggregated",
            method=method_used.value,
            contributors=len(clean),
            outliers=len(report.outliers),
            confidence=f"{confidence:.1%}",
            penalized=report.penalized,
        )

        return ConsensusResult(
            data_type=data_type,
            subject=subject,
            value=value,
            confidence=confidence,
            method=method_used,
            sources=report.clean_sources,
            outliers=report.outlier_sources,
            failures=failures,
            quality_metrics=quality,
            consensus_reached=not report.penalized,
        )

    def _numeric(
        self,
        clean: list[OracleResponse],
        method: AggregationMethod,
        weights: dict[str, float],
    ) -> tuple[float, AggregationMethod, float]:
        values = [float(r.value) for r in clean]
        provider_weights = [max(0.0, weights.get(r.source, 0.0)) for r in clean]

        if method == AggregationMethod.MEDIAN:
            value = median(values)
        elif method == AggregationMethod.AVERAGE:
            value = average(values)
        elif method == AggregationMethod.WEIGHTED_AVERAGE:
            value = weighted_average(values, provider_weights)
        else:
            method = AggregationMethod.WEIGHTED_MEDIAN
            value = weighted_median(values, provider_weights, self.config.half_weight_tolerance)

        return value, method, consistency(values)

    def _majority(
        self,
        clean: list[OracleResponse],
        weights: dict[str, float],
    ) -> tuple[Any, AggregationMethod, float]:
        """Most common value; ties go to the larger summed weight, then the first name."""
        groups: dict[str, list[OracleResponse]] = {}
        for response in clean:
            groups.setdefault(_canonical(response.value), []).append(response)

        def rank(members: list[OracleResponse]) -> tuple:
            return (
                -len(members),
                -sum(weights.get(r.source, 0.0) for r in members),
                min(r.source for r in members),
            )

        winners = min(groups.values(), key=rank)
        return winners[0].value, AggregationMethod.MAJORITY, len(winners) / len(clean)

    def _freshness(self, clean: list[OracleResponse], now: datetime) -> float:
        window = self.config.freshness_window_seconds
        scores = []
        for response in clean:
            timestamp = response.timestamp
            if timestamp.tzinfo is None:
                timestamp = timestamp.replace(tzinfo=timezone.utc)
            age = (now - timestamp).total_seconds()
            scores.append(max(0.0, min(1.0, 1.0 - age / window)))
        return statistics.fmean(scores)
