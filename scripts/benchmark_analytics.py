#!/usr/bin/env python3
"""
Benchmark Script for Slot Telemetry API

Times the query endpoints against whatever the server currently retains.

Usage:
    python scripts/benchmark_analytics.py [base_url]
"""

import sys
import time
import requests
import statistics


def benchmark_queries(base_url: str, runs: int = 5):
    """Benchmark analytics queries"""
    print(f"\n{'=' * 60}")
    print(f"BENCHMARK: Query Performance")
    print(f"{'=' * 60}")

    queries = [
        ("Stats", f"{base_url}/stats"),
        ("Sessions (50)", f"{base_url}/sessions"),
        ("Sessions (200)", f"{base_url}/sessions?limit=200"),
        ("Spins page 1", f"{base_url}/spins?page=1&limit=50"),
        ("Spins page 100", f"{base_url}/spins?page=100&limit=200"),
        ("Big wins (50)", f"{base_url}/bigwins"),
    ]

    results = []

    for name, url in queries:
        times = []

        for _ in range(runs):
            start = time.time()
            try:
                response = requests.get(url, timeout=30)
                elapsed = (time.time() - start) * 1000  # Convert to ms

                if response.status_code == 200:
                    times.append(elapsed)
                else:
                    print(f"Error in {name}: Status {response.status_code}")
            except requests.RequestException as e:
                print(f"Error in {name}: {e}")

        if times:
            results.append({
                "name": name,
                "p50": statistics.median(times),
                "p95": sorted(times)[int(len(times) * 0.95)] if len(times) > 1 else times[0],
                "p99": sorted(times)[int(len(times) * 0.99)] if len(times) > 1 else times[0],
                "avg": statistics.mean(times),
                "min": min(times),
                "max": max(times)
            })

    print(f"\n{'Query':<25} {'P50':>10} {'P95':>10} {'P99':>10} {'Avg':>10}")
    print(f"{'-' * 70}")
    for r in results:
        print(f"{r['name']:<25} {r['p50']:>9.0f}ms {r['p95']:>9.0f}ms "
              f"{r['p99']:>9.0f}ms {r['avg']:>9.0f}ms")

    print(f"{'=' * 60}\n")

    return results


def main():
    base_url = sys.argv[1] if len(sys.argv) > 1 else "http://localhost:3777"

    print("\n" + "=" * 60)
    print("SLOT TELEMETRY API - QUERY BENCHMARK")
    print("=" * 60)
    print(f"Target: {base_url}")
    print("=" * 60)

    # Test connection
    try:
        response = requests.get(f"{base_url}/health", timeout=5)
        if response.status_code != 200:
            print("Error: API is not healthy")
            sys.exit(1)
    except requests.RequestException as e:
        print(f"Error: Cannot connect to API: {e}")
        sys.exit(1)

    benchmark_queries(base_url)

    print("\n" + "=" * 60)
    print("BENCHMARK COMPLETE")
    print("=" * 60)


if __name__ == "__main__":
    main()
