"""
Data models for the consensus oracle.

These models define the provider state, selection criteria, per-round
responses and the consensus result shared across the engine.
"""

from datetime import datetime, timezone
from enum import Enum
from numbers import Real
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


# Number of round scores kept per provider
HISTORY_SIZE = 10

# Number of recent round scores that drive the dynamic bonus
RECENT_WINDOW = 5

# Dynamic strategy component weights
DYNAMIC_WEIGHTS = {
    "reliability": 0.25,
    "response_time": 0.20,
    "accuracy": 0.25,
    "reputation": 0.15,
    "stake": 0.15,
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_numeric(value: Any) -> bool:
    """True for real numbers, excluding booleans."""
    return isinstance(value, Real) and not isinstance(value, bool)


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


class WeightingStrategy(str, Enum):
    """Strategies for turning a provider's weights into a selection score."""
    EQUAL = "equal"
    RELIABILITY = "reliability"
    PERFORMANCE = "performance"
    STAKE = "stake"
    DYNAMIC = "dynamic"


class AggregationMethod(str, Enum):
    """Methods for combining clean responses into one value."""
    MEDIAN = "median"
    WEIGHTED_MEDIAN = "weightedMedian"
    AVERAGE = "average"
    WEIGHTED_AVERAGE = "weightedAverage"
    MAJORITY = "majority"           # Structured payloads only, never requested


class ProviderStatus(str, Enum):
    """Health status of a provider."""
    ACTIVE = "active"
    ERROR = "error"


class FailureKind(str, Enum):
    """Why a dispatched provider produced no response."""
    TIMEOUT = "timeout"
    ERROR = "error"


class ProviderInfo(BaseModel):
    """Identity and capability descriptor of a data provider."""

    name: str = Field(..., min_length=1, description="Unique provider name")
    data_source_kind: str = Field(..., description="Kind of upstream source, e.g. rest_api")
    capabilities: list[str] = Field(default_factory=list, description="Data types it can answer")
    reliability: float = Field(default=50.0, ge=0.0, le=100.0, description="Declared baseline reliability")
    stake: float = Field(default=50.0, ge=0.0, le=100.0, description="Economic/priority weight")
    reputation: float = Field(default=50.0, ge=0.0, le=100.0, description="Long-run trust score")
    description: str = Field(default="")

    def supports(self, data_type: str) -> bool:
        return data_type in self.capabilities


class WeightVector(BaseModel):
    """
    Five independent 0-100 scores per provider.

    ``combined`` is derived from the components and the recent performance
    history; it is only written by :meth:`recompute`.
    """

    reliability: float = Field(default=50.0, ge=0.0, le=100.0)
    response_time: float = Field(default=100.0, ge=0.0, le=100.0)
    accuracy: float = Field(default=50.0, ge=0.0, le=100.0)
    stake: float = Field(default=50.0, ge=0.0, le=100.0)
    reputation: float = Field(default=50.0, ge=0.0, le=100.0)
    combined: float = Field(default=0.0, ge=0.0, le=100.0)

    def structural_score(self) -> float:
        """Weighted sum of the five components under the dynamic strategy."""
        return sum(getattr(self, name) * weight for name, weight in DYNAMIC_WEIGHTS.items())

    def recompute(self, history: list[float]) -> float:
        """Recompute ``combined`` with the dynamic formula and return it."""
        self.combined = dynamic_score(self, history)
        return self.combined


def recent_bonus(history: list[float]) -> float:
    """Bonus/penalty of up to +/-5 points from the last five round scores."""
    recent = history[-RECENT_WINDOW:]
    if not recent:
        return 0.0
    return 0.1 * (sum(recent) / len(recent) - 50.0)


def dynamic_score(weights: WeightVector, history: list[float]) -> float:
    return clamp(weights.structural_score() + recent_bonus(history))


class PerformanceMetrics(BaseModel):
    """Running counters and bounded round-score history of a provider."""

    total_requests: int = Field(default=0, ge=0)
    successful_requests: int = Field(default=0, ge=0)
    failed_requests: int = Field(default=0, ge=0)
    avg_response_time_ms: float = Field(default=0.0, ge=0.0)
    performance_history: list[float] = Field(default_factory=list, max_length=HISTORY_SIZE)
    last_update: Optional[datetime] = Field(None)

    def push_score(self, score: float) -> None:
        self.performance_history.append(clamp(score))
        del self.performance_history[:-HISTORY_SIZE]

    @property
    def success_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.successful_requests / self.total_requests


class ProviderNode(BaseModel):
    """
    Runtime record of a registered provider.

    Identity comes from ``info``; ``weights`` and ``metrics`` are mutated only
    by the metrics feedback loop, ``status`` and ``last_health_check`` only by
    health checks.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    info: ProviderInfo
    adapter: Any = Field(default=None, exclude=True, repr=False)
    weights: WeightVector = Field(default_factory=WeightVector)
    metrics: PerformanceMetrics = Field(default_factory=PerformanceMetrics)
    status: ProviderStatus = Field(default=ProviderStatus.ACTIVE)
    last_health_check: Optional[datetime] = Field(None)

    @property
    def name(self) -> str:
        return self.info.name

    @property
    def is_active(self) -> bool:
        return self.status == ProviderStatus.ACTIVE

    @classmethod
    def from_info(cls, info: ProviderInfo, adapter: Any = None) -> "ProviderNode":
        """Create a fresh node with weights seeded from the declared info."""
        weights = WeightVector(
            reliability=info.reliability,
            accuracy=info.reliability,
            stake=info.stake,
            reputation=info.reputation,
        )
        weights.recompute([])
        return cls(info=info, adapter=adapter, weights=weights)


class SelectionCriteria(BaseModel):
    """Per-query selection and aggregation configuration."""

    model_config = ConfigDict(validate_assignment=True, populate_by_name=True)

    min_providers: int = Field(default=1, ge=1, alias="minProviders")
    max_providers: int = Field(default=5, ge=1, alias="maxProviders")
    outlier_threshold: float = Field(default=0.2, ge=0.0, alias="outlierThreshold")
    consensus_threshold: float = Field(default=0.6, ge=0.0, le=1.0, alias="consensusThreshold")
    weighting_strategy: WeightingStrategy = Field(
        default=WeightingStrategy.DYNAMIC, alias="weightingStrategy"
    )
    aggregation_method: AggregationMethod = Field(
        default=AggregationMethod.WEIGHTED_MEDIAN, alias="aggregationMethod"
    )

    @model_validator(mode="after")
    def _check_bounds(self) -> "SelectionCriteria":
        if self.max_providers < self.min_providers:
            raise ValueError(
                f"max_providers ({self.max_providers}) must be >= min_providers ({self.min_providers})"
            )
        if self.aggregation_method == AggregationMethod.MAJORITY:
            raise ValueError("majority is chosen automatically for structured values")
        return self


class ProviderReading(BaseModel):
    """What an adapter returns from a single fetch."""

    value: Any = Field(..., description="Numeric or structured answer")
    confidence: float = Field(default=0.9, ge=0.0, le=1.0)
    timestamp: Optional[datetime] = Field(None, description="Upstream observation time")


class OracleResponse(BaseModel):
    """One provider's answer within a round."""

    source: str
    value: Any
    confidence: float = Field(..., ge=0.0, le=1.0)
    timestamp: datetime = Field(default_factory=utcnow)
    latency_ms: float = Field(default=0.0, ge=0.0)

    @property
    def is_numeric(self) -> bool:
        return is_numeric(self.value)


class ProviderFailure(BaseModel):
    """A dispatched provider that produced no usable response."""

    source: str
    kind: FailureKind
    reason: str
    latency_ms: float = Field(default=0.0, ge=0.0)


DispatchOutcome = Union[OracleResponse, ProviderFailure]


class QualityMetrics(BaseModel):
    """Quality indicators of a consensus result, each 0-1."""

    accuracy: float = Field(default=0.0, ge=0.0, le=1.0)
    freshness: float = Field(default=0.0, ge=0.0, le=1.0)
    consistency: float = Field(default=0.0, ge=0.0, le=1.0)


class ConsensusResult(BaseModel):
    """Output of one query round."""

    round_id: str = Field(default="")
    data_type: str = Field(default="")
    subject: str = Field(default="")
    value: Any = Field(..., description="Aggregated answer")
    confidence: float = Field(..., ge=0.0, le=1.0)
    method: AggregationMethod
    sources: list[str] = Field(default_factory=list, description="Providers that contributed")
    outliers: list[str] = Field(default_factory=list, description="Providers rejected as outliers")
    failures: dict[str, str] = Field(default_factory=dict, description="Timed out or errored providers")
    quality_metrics: QualityMetrics = Field(default_factory=QualityMetrics)
    consensus_reached: bool = Field(default=True)
    execution_time_ms: float = Field(default=0.0, ge=0.0)
    timestamp: datetime = Field(default_factory=utcnow)


class ProviderSnapshot(BaseModel):
    """Read-only diagnostic view of a provider node."""

    name: str
    data_source_kind: str
    capabilities: list[str]
    status: ProviderStatus
    last_health_check: Optional[datetime] = None
    weights: WeightVector
    metrics: PerformanceMetrics
    selection_score: float = Field(..., ge=0.0, le=100.0)

    @classmethod
    def of(cls, node: ProviderNode) -> "ProviderSnapshot":
        return cls(
            name=node.name,
            data_source_kind=node.info.data_source_kind,
            capabilities=list(node.info.capabilities),
            status=node.status,
            last_health_check=node.last_health_check,
            weights=node.weights.model_copy(deep=True),
            metrics=node.metrics.model_copy(deep=True),
            selection_score=dynamic_score(node.weights, node.metrics.performance_history),
        )


class RoundOutcome(BaseModel):
    """Event emitted after every round for audit collaborators."""

    round_id: str
    data_type: str
    subject: str
    criteria: SelectionCriteria
    selected: list[str] = Field(default_factory=list)
    clean: list[str] = Field(default_factory=list)
    outliers: list[str] = Field(default_factory=list)
    failures: dict[str, str] = Field(default_factory=dict)
    result: Optional[ConsensusResult] = None
    error: Optional[str] = None
    timestamp: datetime = Field(default_factory=utcnow)

    @property
    def succeeded(self) -> bool:
        return self.result is not None
