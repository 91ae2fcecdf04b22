"""
feedoracle - Dynamic Provider Selection & Consensus Aggregation

Aggregates one answer (a price, a weather reading, ...) from several
unreliable data providers into a consensus value with a calibrated
confidence score.

Components:
- ConsensusOracle: Round orchestrator (select, dispatch, aggregate, feed back)
- ProviderRegistry: Registered providers and their runtime state
- Dispatcher: Concurrent fan-out under per-call timeouts
- ConsensusAggregator: Outlier-aware aggregation
- MetricsFeedback: Provider weight updates after each round
- HealthMonitor: Periodic provider health checks
- ResponseCache: Per-provider TTL cache of readings

Version: 0.1.0
"""

from feedoracle.cache import ResponseCache
from feedoracle.consensus import ConsensusAggregator, OutlierReport
from feedoracle.core import ConsensusOracle, OracleConfig, query_once
from feedoracle.dispatch import Dispatcher
from feedoracle.errors import (
    InsufficientProviders,
    InvalidCriteria,
    OracleError,
    ProviderFetchError,
)
from feedoracle.events import RecentRoundsLog
from feedoracle.feedback import MetricsFeedback
from feedoracle.health import HealthMonitor
from feedoracle.models import (
    AggregationMethod,
    ConsensusResult,
    OracleResponse,
    ProviderFailure,
    ProviderInfo,
    ProviderNode,
    ProviderReading,
    ProviderSnapshot,
    RoundOutcome,
    SelectionCriteria,
    WeightingStrategy,
    WeightVector,
)
from feedoracle.providers import (
    BaseProvider,
    BinanceProvider,
    CoinGeckoProvider,
    OpenMeteoProvider,
)
from feedoracle.registry import ProviderRegistry

__version__ = "0.1.0"
__all__ = [
    # Core
    "ConsensusOracle",
    "OracleConfig",
    "query_once",
    # Engine parts
    "ProviderRegistry",
    "Dispatcher",
    "ConsensusAggregator",
    "OutlierReport",
    "MetricsFeedback",
    "HealthMonitor",
    "ResponseCache",
    "RecentRoundsLog",
    # Providers
    "BaseProvider",
    "CoinGeckoProvider",
    "BinanceProvider",
    "OpenMeteoProvider",
    # Models
    "AggregationMethod",
    "ConsensusResult",
    "OracleResponse",
    "ProviderFailure",
    "ProviderInfo",
    "ProviderNode",
    "ProviderReading",
    "ProviderSnapshot",
    "RoundOutcome",
    "SelectionCriteria",
    "WeightingStrategy",
    "WeightVector",
    # Errors
    "OracleError",
    "InvalidCriteria",
    "InsufficientProviders",
    "ProviderFetchError",
]
