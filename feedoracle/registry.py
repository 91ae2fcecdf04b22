"""
Provider Registry

Holds the registered providers and their runtime weight/metric state.
Registrations happen at startup; the scorer and dispatcher only read.
"""

from typing import Optional

import structlog

from feedoracle.models import ProviderNode, ProviderSnapshot, ProviderStatus
from feedoracle.providers.base import BaseProvider

logger = structlog.get_logger()


class ProviderRegistry:
    """
    Registry of provider nodes keyed by provider name.

    Registration is idempotent by name: registering a provider again
    replaces its adapter and capability descriptor but keeps the weights
    and metrics it has accumulated.
    """

    def __init__(self, providers: Optional[list[BaseProvider]] = None):
        self._nodes: dict[str, ProviderNode] = {}
        for provider in providers or []:
            self.register(provider)

    def register(self, provider: BaseProvider) -> ProviderNode:
        """Register an adapter, returning its node."""
        info = provider.info
        existing = self._nodes.get(info.name)

        if existing is None:
            node = ProviderNode.from_info(info, adapter=provider)
            self._nodes[info.name] = node
            logger.info(
                "Registered provider",
                provider=info.name,
                capabilities=info.capabilities,
                reliability=info.reliability,
            )
            return node

        existing.info = info
        existing.adapter = provider
        logger.info(
            "Re-registered provider",
            provider=info.name,
            capabilities=info.capabilities,
            total_requests=existing.metrics.total_requests,
        )
        return existing

    def unregister(self, name: str) -> bool:
        removed = self._nodes.pop(name, None)
        if removed is not None:
            logger.info("Unregistered provider", provider=name)
        return removed is not None

    def get(self, name: str) -> Optional[ProviderNode]:
        return self._nodes.get(name)

    def list_all(self) -> list[ProviderNode]:
        return list(self._nodes.values())

    def list_active(self) -> list[ProviderNode]:
        return [node for node in self._nodes.values() if node.status == ProviderStatus.ACTIVE]

    def list_by_capability(self, data_type: str) -> list[ProviderNode]:
        """All nodes (active or not) able to answer ``data_type``."""
        return [node for node in self._nodes.values() if node.info.supports(data_type)]

    def candidates(self, data_type: str) -> list[ProviderNode]:
        """Active nodes able to answer ``data_type``."""
        return [node for node in self.list_by_capability(data_type) if node.is_active]

    def snapshots(self) -> list[ProviderSnapshot]:
        return [ProviderSnapshot.of(node) for node in sorted(self._nodes.values(), key=lambda n: n.name)]

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, name: str) -> bool:
        return name in self._nodes
