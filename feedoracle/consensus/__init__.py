"""
Consensus for the oracle.

Cleans a round's responses and combines the survivors into one value.

Components:
- detect / apply_consensus_threshold: Median-based outlier detection
- ConsensusAggregator: Median, average and weighted aggregation
"""

from feedoracle.consensus.aggregator import (
    AggregatorConfig,
    ConsensusAggregator,
    weighted_median,
)
from feedoracle.consensus.outliers import (
    OutlierReport,
    apply_consensus_threshold,
    detect,
)

__all__ = [
    # Outliers
    "OutlierReport",
    "detect",
    "apply_consensus_threshold",
    # Aggregation
    "ConsensusAggregator",
    "AggregatorConfig",
    "weighted_median",
]
