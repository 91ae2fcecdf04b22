"""
Tests for the HTTP provider adapters.
"""

import asyncio
import time

import httpx
import pytest

from feedoracle.errors import ProviderFetchError
from feedoracle.providers import (
    BinanceProvider,
    CoinGeckoProvider,
    OpenMeteoProvider,
    create_default_providers,
)
from feedoracle.providers.crypto import base_symbol, coingecko_id


def run_with(handler, provider_cls, coro_factory):
    """Run ``coro_factory(provider)`` against a mocked transport."""

    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            provider = provider_cls(client)
            return await coro_factory(provider)

    return asyncio.run(scenario())


class TestSymbols:
    """Tests for subject normalization."""

    @pytest.mark.parametrize(
        "subject, expected",
        [("BTC", "BTC"), ("btcusdt", "BTC"), ("eth-usd", "ETH"), ("SOL/USDC", "SOL"), ("USD", "USD")],
    )
    def test_base_symbol(self, subject, expected):
        """Test quote currencies are stripped."""
        assert base_symbol(subject) == expected

    def test_coingecko_id(self):
        """Test known symbols map to CoinGecko ids."""
        assert coingecko_id("BTC") == "bitcoin"
        assert coingecko_id("avax") == "avalanche-2"
        assert coingecko_id("PEPE") == "pepe"


class TestCoinGeckoProvider:
    """Tests for CoinGeckoProvider."""

    def test_fetch_price(self):
        """Test a fresh large-cap price gets a high confidence."""
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(
                200,
                json={
                    "bitcoin": {
                        "usd": 67000.5,
                        "usd_market_cap": 1.3e12,
                        "last_updated_at": int(time.time()),
                    }
                },
            )

        reading = run_with(handler, CoinGeckoProvider, lambda p: p.fetch("price", "BTC", 5.0))

        assert reading.value == 67000.5
        assert reading.confidence == pytest.approx(1.0)
        assert reading.timestamp is not None
        assert requests[0].url.path.endswith("/simple/price")
        assert requests[0].url.params["ids"] == "bitcoin"

    def test_missing_coin(self):
        """Test an unknown coin raises a fetch error."""
        handler = lambda request: httpx.Response(200, json={})

        with pytest.raises(ProviderFetchError, match="price data not found"):
            run_with(handler, CoinGeckoProvider, lambda p: p.fetch("price", "NOPE", 5.0))

    def test_http_error(self):
        """Test upstream errors become fetch errors."""
        handler = lambda request: httpx.Response(500, text="down")

        with pytest.raises(ProviderFetchError, match="request failed"):
            run_with(handler, CoinGeckoProvider, lambda p: p.fetch("price", "BTC", 5.0))

    def test_health_check(self):
        """Test the ping endpoint is used for health."""
        handler = lambda request: httpx.Response(200, json={"gecko_says": "(V3) To the Moon!"})

        assert run_with(handler, CoinGeckoProvider, lambda p: p.health_check()) is True


class TestBinanceProvider:
    """Tests for BinanceProvider."""

    def test_fetch_price(self):
        """Test the USDT ticker is queried for the base symbol."""
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"symbol": "ETHUSDT", "price": "3120.55000000"})

        reading = run_with(handler, BinanceProvider, lambda p: p.fetch("price", "eth", 5.0))

        assert reading.value == 3120.55
        assert reading.confidence == 0.95
        assert requests[0].url.params["symbol"] == "ETHUSDT"

    def test_bad_payload(self):
        """Test an error body raises a fetch error."""
        handler = lambda request: httpx.Response(200, json={"code": -1121, "msg": "Invalid symbol."})

        with pytest.raises(ProviderFetchError, match="unexpected ticker payload"):
            run_with(handler, BinanceProvider, lambda p: p.fetch("price", "XYZ", 5.0))


class TestOpenMeteoProvider:
    """Tests for OpenMeteoProvider."""

    def test_fetch_weather_caches_location(self):
        """Test geocoding happens once per location."""
        hosts = []

        def handler(request):
            hosts.append(request.url.host)
            if request.url.host.startswith("geocoding"):
                return httpx.Response(
                    200, json={"results": [{"name": "Berlin", "latitude": 52.52, "longitude": 13.41}]}
                )
            return httpx.Response(
                200,
                json={
                    "current": {
                        "temperature_2m": 18.4,
                        "relative_humidity_2m": 61,
                        "wind_speed_10m": 11.2,
                    }
                },
            )

        async def twice(provider):
            first = await provider.fetch("weather", "Berlin", 5.0)
            second = await provider.fetch("weather", "berlin", 5.0)
            return first, second

        first, second = run_with(handler, OpenMeteoProvider, twice)

        assert first.value == {
            "location": "Berlin",
            "temperature": 18.4,
            "humidity": 61,
            "wind_speed": 11.2,
        }
        assert second.value == first.value
        assert sum(host.startswith("geocoding") for host in hosts) == 1

    def test_unknown_location(self):
        """Test a location the geocoder cannot find."""
        handler = lambda request: httpx.Response(200, json={"results": []})

        with pytest.raises(ProviderFetchError, match="unknown location"):
            run_with(handler, OpenMeteoProvider, lambda p: p.fetch("weather", "Atlantis", 5.0))


class TestDefaultProviders:
    """Tests for the built-in provider set."""

    def test_default_set(self):
        """Test the default providers cover price and weather."""
        providers = create_default_providers(httpx.AsyncClient())
        capabilities = {name for p in providers for name in p.info.capabilities}

        assert [p.name for p in providers] == ["coingecko", "binance", "open-meteo"]
        assert capabilities == {"price", "weather"}
