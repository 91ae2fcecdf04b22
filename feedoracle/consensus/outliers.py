"""
Outlier Detector

Flags numeric responses whose relative deviation from the median exceeds
a threshold. Structured payloads are never judged.
"""

import math
import statistics
from typing import Optional

import structlog
from pydantic import BaseModel, Field

from feedoracle.models import OracleResponse

logger = structlog.get_logger()

# Fewer numeric points than this cannot locate a robust center
MIN_POINTS = 3


class OutlierReport(BaseModel):
    """Partition of a round's responses into clean and outliers."""

    clean: list[OracleResponse] = Field(default_factory=list)
    outliers: list[OracleResponse] = Field(default_factory=list)
    center: Optional[float] = Field(None, description="Median the deviations were measured against")
    skipped: bool = Field(default=False, description="Too few numeric points to judge")
    penalized: bool = Field(default=False, description="Outliers were kept to preserve consensus")
    survival_ratio: float = Field(default=1.0, ge=0.0, le=1.0)

    @property
    def clean_sources(self) -> list[str]:
        return [r.source for r in self.clean]

    @property
    def outlier_sources(self) -> list[str]:
        return [r.source for r in self.outliers]


def relative_deviation(value: float, center: float) -> float:
    """``|value - center| / |center|``; any deviation from a zero center is infinite."""
    diff = abs(value - center)
    if center == 0:
        return 0.0 if diff == 0 else math.inf
    return diff / abs(center)


def detect(responses: list[OracleResponse], threshold: float) -> OutlierReport:
    """
    Split responses into clean and outlier sets.

    Args:
        responses: Successful responses of a round
        threshold: Maximum fractional deviation from the median

    Returns:
        OutlierReport; ``skipped`` is set when fewer than three numeric
        responses were available
    """
    numeric = [r for r in responses if r.is_numeric]
    if len(numeric) < MIN_POINTS:
        return OutlierReport(clean=list(responses), skipped=True)

    center = float(statistics.median(float(r.value) for r in numeric))
    clean: list[OracleResponse] = []
    outliers: list[OracleResponse] = []

    for response in responses:
        if response.is_numeric and relative_deviation(float(response.value), center) > threshold:
            outliers.append(response)
        else:
            clean.append(response)

    if outliers:
        logger.info(
            "Outliers detected",
            center=center,
            threshold=threshold,
            outliers={r.source: r.value for r in outliers},
        )
    return OutlierReport(clean=clean, outliers=outliers, center=center)


def apply_consensus_threshold(
    report: OutlierReport,
    consensus_threshold: float,
) -> OutlierReport:
    """
    Keep every response when too few would survive outlier removal.

    The round is not failed: all responses are treated as clean and the
    report is marked ``penalized`` with the ratio that would have survived,
    which the aggregator uses to lower confidence.
    """
    total = len(report.clean) + len(report.outliers)
    if total == 0 or not report.outliers:
        return report

    survival_ratio = len(report.clean) / total
    if survival_ratio >= consensus_threshold:
        return report.model_copy(update={"survival_ratio": survival_ratio})

    logger.warning(
        "Outlier removal would break consensus, keeping all responses",
        survival_ratio=round(survival_ratio, 3),
        consensus_threshold=consensus_threshold,
        outliers=report.outlier_sources,
    )
    kept = report.clean + report.outliers
    return report.model_copy(
        update={
            "clean": kept,
            "outliers": [],
            "penalized": True,
            "survival_ratio": survival_ratio,
        }
    )
