"""
Consensus Oracle - Core Implementation

The main oracle class that selects providers, fans queries out to them,
aggregates a consensus and feeds the outcome back into provider weights.
"""

import os
import time
import uuid
from typing import Any, Optional, Union

import structlog
from pydantic import BaseModel, Field, ValidationError

from feedoracle.consensus import (
    AggregatorConfig,
    ConsensusAggregator,
    apply_consensus_threshold,
    detect,
)
from feedoracle.dispatch import Dispatcher
from feedoracle.errors import InsufficientProviders, InvalidCriteria
from feedoracle.events import EventEmitter, RecentRoundsLog, RoundEventSink
from feedoracle.feedback import MetricsFeedback
from feedoracle.health import HealthMonitor
from feedoracle.models import (
    ConsensusResult,
    OracleResponse,
    ProviderFailure,
    ProviderSnapshot,
    ProviderStatus,
    RoundOutcome,
    SelectionCriteria,
)
from feedoracle.providers import BaseProvider, create_default_providers
from feedoracle.registry import ProviderRegistry
from feedoracle.selection import select

logger = structlog.get_logger()

CriteriaInput = Union[SelectionCriteria, dict[str, Any], None]


class OracleConfig(BaseModel):
    """Configuration for the consensus oracle."""

    # Dispatch settings
    per_call_timeout_seconds: float = Field(default=10.0, gt=0)
    round_deadline_seconds: Optional[float] = Field(default=None, gt=0)

    # Response cache settings, per provider; a TTL of 0 disables caching
    cache_ttl_seconds: float = Field(default=60.0, ge=0)
    cache_max_entries: int = Field(default=100, ge=1)

    # Health check settings
    enable_health_monitor: bool = Field(default=True)
    health_check_interval_seconds: float = Field(default=300.0, gt=0)
    health_check_timeout_seconds: float = Field(default=3.0, gt=0)

    # Aggregation settings
    freshness_window_seconds: float = Field(default=300.0, gt=0)

    # Number of rounds kept in the in-memory round log
    recent_rounds: int = Field(default=100, ge=1)

    # Seconds close() waits for round events still being delivered
    event_flush_timeout_seconds: float = Field(default=1.0, ge=0)

    # Process-wide selection defaults
    default_criteria: SelectionCriteria = Field(default_factory=SelectionCriteria)

    @classmethod
    def from_env(cls) -> "OracleConfig":
        """Build a config from FEEDORACLE_* environment variables."""
        criteria_env = {
            "min_providers": "FEEDORACLE_MIN_PROVIDERS",
            "max_providers": "FEEDORACLE_MAX_PROVIDERS",
            "outlier_threshold": "FEEDORACLE_OUTLIER_THRESHOLD",
            "consensus_threshold": "FEEDORACLE_CONSENSUS_THRESHOLD",
            "weighting_strategy": "FEEDORACLE_WEIGHTING_STRATEGY",
            "aggregation_method": "FEEDORACLE_AGGREGATION_METHOD",
        }
        criteria = {
            field: os.environ[var] for field, var in criteria_env.items() if os.getenv(var)
        }
        return cls(
            per_call_timeout_seconds=float(os.getenv("FEEDORACLE_TIMEOUT", "10")),
            cache_ttl_seconds=float(os.getenv("FEEDORACLE_CACHE_TTL", "60")),
            enable_health_monitor=os.getenv("FEEDORACLE_HEALTH_MONITOR", "true").lower()
            not in ("0", "false", "no"),
            health_check_interval_seconds=float(os.getenv("FEEDORACLE_HEALTH_INTERVAL", "300")),
            default_criteria=SelectionCriteria.model_validate(criteria),
        )


def _criteria_field(key: str) -> str:
    for name, field in SelectionCriteria.model_fields.items():
        if key in (name, field.alias):
            return name
    raise InvalidCriteria(f"Unknown selection criterion: {key}")


class ConsensusOracle:
    """
    Dynamic provider selection and consensus aggregation.

    Each query is one round: select providers, dispatch concurrently,
    drop outliers, aggregate, update provider metrics, emit a round event.

    Usage:
        oracle = ConsensusOracle(providers=[CoinGeckoProvider(), BinanceProvider()])
        result = await oracle.query("price", "BTC")
    """

    def __init__(
        self,
        providers: Optional[list[BaseProvider]] = None,
        config: Optional[OracleConfig] = None,
        registry: Optional[ProviderRegistry] = None,
        aggregator: Optional[ConsensusAggregator] = None,
        sinks: Optional[list[RoundEventSink]] = None,
    ):
        self.config = config or OracleConfig()

        # Initialize registry
        if registry is not None:
            self.registry = registry
            for provider in providers or []:
                self.registry.register(provider)
        else:
            self.registry = ProviderRegistry(
                providers if providers is not None else create_default_providers()
            )

        self.dispatcher = Dispatcher(
            self.config.per_call_timeout_seconds,
            cache_ttl_seconds=self.config.cache_ttl_seconds,
            cache_max_entries=self.config.cache_max_entries,
        )
        self.aggregator = aggregator or ConsensusAggregator(
            AggregatorConfig(freshness_window_seconds=self.config.freshness_window_seconds)
        )
        self.feedback = MetricsFeedback()
        self.health = HealthMonitor(
            self.registry,
            interval_seconds=self.config.health_check_interval_seconds,
            check_timeout_seconds=self.config.health_check_timeout_seconds,
        )

        # Round events
        self.recent_rounds = RecentRoundsLog(self.config.recent_rounds)
        self.events = EventEmitter([self.recent_rounds, *(sinks or [])])

        self._default_criteria = self.config.default_criteria.model_copy()

        logger.info(
            "Initialized consensus oracle",
            providers=len(self.registry),
            per_call_timeout=self.config.per_call_timeout_seconds,
            strategy=self._default_criteria.weighting_strategy.value,
            method=self._default_criteria.aggregation_method.value,
        )

    @property
    def default_criteria(self) -> SelectionCriteria:
        return self._default_criteria.model_copy()

    def resolve_criteria(self, criteria: CriteriaInput = None) -> SelectionCriteria:
        """
        Merge per-call criteria onto the process-wide defaults.

        Raises:
            InvalidCriteria: if a value is out of range or unknown
        """
        if criteria is None:
            return self.default_criteria

        if isinstance(criteria, SelectionCriteria):
            overrides = criteria.model_dump()
        else:
            overrides = {_criteria_field(key): value for key, value in criteria.items()}

        try:
            return SelectionCriteria.model_validate(
                {**self._default_criteria.model_dump(), **overrides}
            )
        except ValidationError as e:
            raise InvalidCriteria(
                f"Invalid selection criteria: {e.error_count()} error(s)",
                errors=e.errors(include_url=False, include_context=False),
            ) from e

    def update_default_criteria(self, **changes: Any) -> SelectionCriteria:
        """Administrative update of the process-wide criteria defaults."""
        updated = self.resolve_criteria(changes)
        self._default_criteria = updated
        logger.info("Updated default criteria", **updated.model_dump(mode="json"))
        return updated.model_copy()

    async def query(
        self,
        data_type: str,
        subject: str,
        criteria: CriteriaInput = None,
        *,
        timeout: Optional[float] = None,
        deadline: Optional[float] = None,
    ) -> ConsensusResult:
        """
        Run one round for ``data_type`` about ``subject``.

        Args:
            data_type: Requested data type, e.g. "price"
            subject: What the data is about, e.g. "BTC"
            criteria: SelectionCriteria or a dict of overrides
            timeout: Per-provider timeout in seconds
            deadline: Overall bound on the fan-out in seconds

        Returns:
            ConsensusResult with value, confidence and quality metrics

        Raises:
            InvalidCriteria: if the criteria are out of range
            InsufficientProviders: if no usable response survived
        """
        resolved = self.resolve_criteria(criteria)
        round_id = f"round_{uuid.uuid4().hex[:12]}"
        started = time.perf_counter()

        logger.info(
            "Starting round",
            round_id=round_id,
            data_type=data_type,
            subject=subject,
            strategy=resolved.weighting_strategy.value,
        )

        selected = select(self.registry.candidates(data_type), resolved)
        names = [node.name for node in selected]
        if not selected:
            error = InsufficientProviders(data_type, subject, attempted=[])
            self._emit(round_id, data_type, subject, resolved, error=str(error))
            logger.error("No providers available", round_id=round_id, data_type=data_type)
            raise error

        # Weights used for aggregation are fixed at selection time
        weights = {node.name: node.weights.combined for node in selected}

        outcomes = await self.dispatcher.dispatch(
            data_type,
            subject,
            selected,
            per_call_timeout=timeout,
            deadline=deadline or self.config.round_deadline_seconds,
        )
        responses = [o for o in outcomes if isinstance(o, OracleResponse)]
        failures = {o.source: o.reason for o in outcomes if isinstance(o, ProviderFailure)}

        report = apply_consensus_threshold(
            detect(responses, resolved.outlier_threshold),
            resolved.consensus_threshold,
        )

        try:
            result = self.aggregator.aggregate(
                report,
                resolved.aggregation_method,
                weights,
                data_type=data_type,
                subject=subject,
                attempted=names,
                failures=failures,
            )
        except InsufficientProviders as e:
            self.feedback.apply(selected, outcomes, set())
            self._emit(
                round_id, data_type, subject, resolved,
                selected=names, outliers=report.outlier_sources,
                failures=failures, error=str(e),
            )
            logger.error("Round failed", round_id=round_id, error=str(e))
            raise

        result = result.model_copy(
            update={
                "round_id": round_id,
                "execution_time_ms": (time.perf_counter() - started) * 1000,
            }
        )

        self.feedback.apply(selected, outcomes, set(result.sources))
        self._emit(
            round_id, data_type, subject, resolved,
            selected=names, clean=result.sources, outliers=result.outliers,
            failures=failures, result=result,
        )

        logger.info(
            "Round completed",
            round_id=round_id,
            value=result.value,
            method=result.method.value,
            confidence=f"{result.confidence:.1%}",
            sources=result.sources,
            outliers=result.outliers,
            failures=list(failures),
        )
        return result

    def _emit(
        self,
        round_id: str,
        data_type: str,
        subject: str,
        criteria: SelectionCriteria,
        **fields: Any,
    ) -> None:
        self.events.emit(
            RoundOutcome(
                round_id=round_id,
                data_type=data_type,
                subject=subject,
                criteria=criteria,
                **fields,
            )
        )

    def get_provider_metrics(self) -> list[ProviderSnapshot]:
        """Read-only snapshot of every provider's weights, metrics and status."""
        return self.registry.snapshots()

    def register_provider(self, provider: BaseProvider) -> ProviderSnapshot:
        return ProviderSnapshot.of(self.registry.register(provider))

    def unregister_provider(self, name: str) -> bool:
        return self.registry.unregister(name)

    async def check_health(self) -> dict[str, bool]:
        """Run one health pass over all providers."""
        return await self.health.check_all()

    def system_stats(self) -> dict[str, Any]:
        snapshots = self.get_provider_metrics()
        active = [s for s in snapshots if s.status == ProviderStatus.ACTIVE]
        return {
            "total_providers": len(snapshots),
            "active_providers": len(active),
            "system_health": len(active) / len(snapshots) if snapshots else 0.0,
            "providers": snapshots,
        }

    def start(self) -> None:
        """Start background health checks; requires a running event loop."""
        if self.config.enable_health_monitor:
            self.health.start()

    async def close(self):
        """Clean up resources."""
        await self.health.stop()
        await self.events.close(self.config.event_flush_timeout_seconds)
        for node in self.registry.list_all():
            try:
                await node.adapter.close()
            except Exception as e:
                logger.warning("Provider close failed", provider=node.name, error=str(e))

    async def __aenter__(self) -> "ConsensusOracle":
        self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


# Convenience function for simple usage
async def query_once(
    data_type: str,
    subject: str,
    criteria: CriteriaInput = None,
) -> ConsensusResult:
    """
    Run a single round with the default providers.

    Usage:
        result = await query_once("price", "BTC")
    """
    oracle = ConsensusOracle(config=OracleConfig(enable_health_monitor=False))

    try:
        return await oracle.query(data_type, subject, criteria)
    finally:
        await oracle.close()
