"""
Pytest fixtures for consensus oracle tests.
"""

import asyncio
from datetime import datetime
from typing import Any, Optional

import pytest

from feedoracle.core import ConsensusOracle, OracleConfig
from feedoracle.models import (
    OracleResponse,
    ProviderInfo,
    ProviderNode,
    ProviderReading,
    WeightVector,
    utcnow,
)
from feedoracle.providers.base import BaseProvider


class FakeProvider(BaseProvider):
    """Scripted provider for tests."""

    data_source_kind = "test"

    def __init__(
        self,
        name: str,
        value: Any = 100.0,
        confidence: float = 0.9,
        delay: float = 0.0,
        error: Optional[Exception] = None,
        capabilities: tuple[str, ...] = ("price",),
        reliability: float = 80.0,
        stake: float = 50.0,
        reputation: float = 50.0,
        healthy: Any = True,
        timestamp: Optional[datetime] = None,
    ):
        self.name = name
        self.value = value
        self.confidence = confidence
        self.delay = delay
        self.error = error
        self.capabilities = capabilities
        self.reliability = reliability
        self.stake = stake
        self.reputation = reputation
        self.healthy = healthy
        self.timestamp = timestamp
        self.calls = 0
        self.health_calls = 0
        self.cancelled = False
        self.closed = False

    async def fetch(self, data_type: str, subject: str, timeout: float) -> ProviderReading:
        self.calls += 1
        if self.delay:
            try:
                await asyncio.sleep(self.delay)
            except asyncio.CancelledError:
                self.cancelled = True
                raise
        if self.error is not None:
            raise self.error
        return ProviderReading(value=self.value, confidence=self.confidence, timestamp=self.timestamp)

    async def health_check(self) -> bool:
        self.health_calls += 1
        if isinstance(self.healthy, Exception):
            raise self.healthy
        if isinstance(self.healthy, (int, float)) and not isinstance(self.healthy, bool):
            await asyncio.sleep(self.healthy)
            return True
        return self.healthy

    async def close(self) -> None:
        self.closed = True


def make_response(
    source: str,
    value: Any,
    confidence: float = 0.9,
    timestamp: Optional[datetime] = None,
    latency_ms: float = 50.0,
) -> OracleResponse:
    return OracleResponse(
        source=source,
        value=value,
        confidence=confidence,
        timestamp=timestamp or utcnow(),
        latency_ms=latency_ms,
    )


def make_node(name: str, capabilities: tuple[str, ...] = ("price",), **weights: float) -> ProviderNode:
    node = ProviderNode(
        info=ProviderInfo(name=name, data_source_kind="test", capabilities=list(capabilities)),
        adapter=FakeProvider(name, capabilities=capabilities),
        weights=WeightVector(**weights),
    )
    node.weights.recompute([])
    return node


@pytest.fixture
def oracle_config():
    """Oracle config without background health checks."""
    return OracleConfig(enable_health_monitor=False, per_call_timeout_seconds=1.0)


@pytest.fixture
def make_oracle(oracle_config):
    """Factory building an oracle over the given fake providers."""

    def factory(*providers: BaseProvider, **kwargs) -> ConsensusOracle:
        return ConsensusOracle(providers=list(providers), config=oracle_config, **kwargs)

    return factory


@pytest.fixture
def price_providers():
    """Three equally weighted price providers answering 100, 102 and 150."""
    return [
        FakeProvider("alpha", value=100.0, confidence=0.9),
        FakeProvider("beta", value=102.0, confidence=0.8),
        FakeProvider("gamma", value=150.0, confidence=0.95),
    ]
