"""
Data provider adapters.

Each adapter answers one or more data types for a subject and reports
its own confidence.

Components:
- BaseProvider: Abstract base class for adapters
- HTTPProvider: Base for REST adapters sharing an httpx client
- CoinGeckoProvider, BinanceProvider: Crypto spot prices
- OpenMeteoProvider: Current weather conditions
"""

from typing import Optional

import httpx

from feedoracle.providers.base import BaseProvider, HTTPProvider
from feedoracle.providers.crypto import BinanceProvider, CoinGeckoProvider
from feedoracle.providers.weather import OpenMeteoProvider


def create_default_providers(client: Optional[httpx.AsyncClient] = None) -> list[BaseProvider]:
    """Create the built-in set of providers."""
    return [
        CoinGeckoProvider(client),
        BinanceProvider(client),
        OpenMeteoProvider(client),
    ]


__all__ = [
    # Base
    "BaseProvider",
    "HTTPProvider",
    # Implementations
    "CoinGeckoProvider",
    "BinanceProvider",
    "OpenMeteoProvider",
    "create_default_providers",
]
