#!/usr/bin/env python3
"""
Basic usage example for the consensus oracle.

Queries the built-in providers for a BTC price and a weather reading,
then prints how each provider's weights moved.

Usage:
    python examples/basic_usage.py
"""

import asyncio

from dotenv import load_dotenv

load_dotenv()

from feedoracle import ConsensusOracle, OracleConfig
from feedoracle.errors import InsufficientProviders


async def main():
    """Run two rounds against live providers."""

    print("🔮 feedoracle consensus example")
    print("=" * 50)

    config = OracleConfig(enable_health_monitor=False, per_call_timeout_seconds=5)

    async with ConsensusOracle(config=config) as oracle:
        for data_type, subject in [("price", "BTC"), ("weather", "Berlin")]:
            try:
                result = await oracle.query(data_type, subject)
            except InsufficientProviders as e:
                print(f"\n❌ {data_type}/{subject}: {e}")
                continue

            print(f"\n📊 {data_type}/{subject}")
            print(f"   Value:      {result.value}")
            print(f"   Confidence: {result.confidence:.1%} ({result.method.value})")
            print(f"   Sources:    {', '.join(result.sources)}")
            if result.outliers:
                print(f"   Outliers:   {', '.join(result.outliers)}")
            for name, reason in result.failures.items():
                print(f"   ✗ {name}: {reason}")

        print("\n⚖️  Provider weights after these rounds:")
        for snapshot in oracle.get_provider_metrics():
            print(
                f"   {snapshot.name:<12} score={snapshot.selection_score:5.1f} "
                f"requests={snapshot.metrics.total_requests} "
                f"avg={snapshot.metrics.avg_response_time_ms:.0f}ms"
            )


if __name__ == "__main__":
    asyncio.run(main())
