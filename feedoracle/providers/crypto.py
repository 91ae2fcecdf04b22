"""
Crypto Price Providers - Binance & CoinGecko spot prices.

Both answer the "price" data type for symbols like BTC, ETH or SOL and
return the USD price as a float. No API key required.
"""

from datetime import datetime, timezone
from typing import Optional

import structlog

from feedoracle.errors import ProviderFetchError
from feedoracle.models import ProviderReading
from feedoracle.providers.base import HTTPProvider

logger = structlog.get_logger()

BINANCE_BASE = "https://api.binance.com"
COINGECKO_BASE = "https://api.coingecko.com/api/v3"

_COINGECKO_IDS = {
    "BTC": "bitcoin", "ETH": "ethereum", "SOL": "solana",
    "BNB": "binancecoin", "XRP": "ripple", "ADA": "cardano",
    "DOGE": "dogecoin", "AVAX": "avalanche-2", "DOT": "polkadot",
    "MATIC": "matic-network", "LINK": "chainlink", "UNI": "uniswap",
    "ATOM": "cosmos", "LTC": "litecoin", "FIL": "filecoin",
}


def base_symbol(subject: str) -> str:
    """Strip quote currencies: "btcusdt" -> "BTC"."""
    symbol = subject.upper().replace("-", "").replace("/", "")
    for quote in ("USDT", "USDC", "USD"):
        if symbol.endswith(quote) and len(symbol) > len(quote):
            return symbol[: -len(quote)]
    return symbol


def coingecko_id(subject: str) -> str:
    base = base_symbol(subject)
    return _COINGECKO_IDS.get(base, base.lower())


class CoinGeckoProvider(HTTPProvider):
    """Spot USD price from CoinGecko's simple price endpoint."""

    name = "coingecko"
    capabilities = ("price",)
    reliability = 95.0
    stake = 60.0
    reputation = 80.0
    description = "Comprehensive cryptocurrency data and market info"

    async def fetch(self, data_type: str, subject: str, timeout: float) -> ProviderReading:
        coin_id = coingecko_id(subject)
        data = await self._get_json(
            f"{COINGECKO_BASE}/simple/price",
            timeout,
            params={
                "ids": coin_id,
                "vs_currencies": "usd",
                "include_market_cap": "true",
                "include_last_updated_at": "true",
            },
        )
        coin = data.get(coin_id) or {}
        if not coin.get("usd"):
            raise ProviderFetchError(self.name, f"price data not found for {subject}")

        updated_at = None
        if coin.get("last_updated_at"):
            updated_at = datetime.fromtimestamp(coin["last_updated_at"], tz=timezone.utc)

        price = float(coin["usd"])
        logger.debug("CoinGecko price fetched", symbol=subject, price=price)
        return ProviderReading(
            value=price,
            confidence=self._confidence(updated_at, coin.get("usd_market_cap")),
            timestamp=updated_at,
        )

    @staticmethod
    def _confidence(updated_at: Optional[datetime], market_cap: Optional[float]) -> float:
        confidence = 0.95
        if updated_at is not None:
            age_minutes = (datetime.now(timezone.utc) - updated_at).total_seconds() / 60
            if age_minutes < 5:
                confidence += 0.03
            elif age_minutes > 60:
                confidence -= 0.05
        if market_cap is not None:
            if market_cap > 1e9:
                confidence += 0.02
            elif market_cap < 1e6:
                confidence -= 0.03
        return max(0.1, min(1.0, confidence))

    async def health_check(self) -> bool:
        await self._get_json(f"{COINGECKO_BASE}/ping", timeout=3.0)
        return True


class BinanceProvider(HTTPProvider):
    """Last traded USDT price from the Binance ticker."""

    name = "binance"
    data_source_kind = "exchange"
    capabilities = ("price",)
    reliability = 90.0
    stake = 70.0
    reputation = 75.0
    description = "Spot ticker prices from the Binance exchange"

    async def fetch(self, data_type: str, subject: str, timeout: float) -> ProviderReading:
        symbol = f"{base_symbol(subject)}USDT"
        data = await self._get_json(
            f"{BINANCE_BASE}/api/v3/ticker/price", timeout, params={"symbol": symbol}
        )
        try:
            price = float(data["price"])
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderFetchError(self.name, f"unexpected ticker payload for {symbol}") from e
        if price <= 0:
            raise ProviderFetchError(self.name, f"non-positive price for {symbol}")

        logger.debug("Binance price fetched", symbol=symbol, price=price)
        return ProviderReading(value=price, confidence=0.95)

    async def health_check(self) -> bool:
        await self._get_json(f"{BINANCE_BASE}/api/v3/ping", timeout=3.0)
        return True
