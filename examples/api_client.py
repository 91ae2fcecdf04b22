#!/usr/bin/env python3
"""
API Client example for the consensus oracle.

This example shows how to use the REST API to request consensus values
and inspect provider weights.

Requirements:
    - Oracle API server running (feedoracle serve --port 8090)

Usage:
    python examples/api_client.py
"""

import asyncio

import httpx

API_BASE_URL = "http://localhost:8090"


async def main():
    """Demonstrate API client usage."""

    print("🔮 feedoracle - API Client Example")
    print("=" * 50)

    async with httpx.AsyncClient(timeout=30) as client:
        # Health check
        print("\n📡 Checking API health...")
        try:
            response = await client.get(f"{API_BASE_URL}/health")
            health = response.json()
            print(f"   Status: {health['status']}")
            print(f"   Version: {health['version']}")
            print(f"   Providers: {health['providers_active']}/{health['providers_registered']} active")
        except httpx.HTTPError as e:
            print(f"❌ API not available: {e}")
            print("   Make sure the server is running: feedoracle serve --port 8090")
            return

        # Query with the default criteria
        print("\n📤 Querying BTC price...")
        response = await client.post(
            f"{API_BASE_URL}/api/v1/query",
            json={"data_type": "price", "subject": "BTC"},
        )

        if response.status_code != 200:
            print(f"❌ Query failed: {response.text}")
            return

        result = response.json()
        print(f"   Value: {result['value']}")
        print(f"   Confidence: {result['confidence']:.1%}")
        print(f"   Method: {result['method']}")
        print(f"   Sources: {', '.join(result['sources'])}")
        if result["outliers"]:
            print(f"   Outliers: {', '.join(result['outliers'])}")

        # Query with per-call criteria overrides
        print("\n📤 Querying ETH price with a plain median...")
        response = await client.post(
            f"{API_BASE_URL}/api/v1/query",
            json={
                "data_type": "price",
                "subject": "ETH",
                "criteria": {"aggregationMethod": "median", "weightingStrategy": "reliability"},
                "timeout_seconds": 5,
            },
        )

        if response.status_code == 200:
            result = response.json()
            print(f"   Value: {result['value']}")
            print(f"   Consistency: {result['quality_metrics']['consistency']:.2f}")
        else:
            print(f"   Failed: {response.json()['detail']}")

        # Provider weights after the rounds
        print("\n⚖️  Provider weights...")
        response = await client.get(f"{API_BASE_URL}/api/v1/providers")
        for provider in response.json():
            metrics = provider["metrics"]
            print(
                f"   {provider['name']:<12} {provider['status']:<7} "
                f"score={provider['selection_score']:5.1f} "
                f"requests={metrics['successful_requests']}/{metrics['total_requests']}"
            )

    print("\n✨ Done!")


if __name__ == "__main__":
    asyncio.run(main())
