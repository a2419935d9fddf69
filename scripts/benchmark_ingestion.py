#!/usr/bin/env python3
"""
Benchmark Script for Slot Telemetry API

Posts a mix of visit/spin/freeSpins/bigWin events to /track and reports
throughput. The server's per-IP rate limit applies, so raise
RATE_LIMIT_REQUESTS on the server before running large counts.

Usage:
    python scripts/benchmark_ingestion.py [base_url] [total_events]
"""

import random
import sys
import time
import requests
from uuid import uuid4
import statistics

SYMBOLS = ["burger", "fries", "shake", "pickle", "cheese", "bacon", "onion", "wild", "scatter"]
TIERS = ["big", "mega", "epic"]


def generate_event(session_id: str, i: int) -> dict:
    """Generate one test event; mostly spins, like real traffic"""
    roll = i % 50

    if roll == 0:
        return {
            "eventType": "visit",
            "data": {
                "sessionId": session_id,
                "userAgent": "Mozilla/5.0 (iPhone) Mobile" if i % 3 == 0 else "Mozilla/5.0 (X11; Linux)",
                "screenSize": "390x844",
                "referrer": "https://example.com/"
            }
        }
    if roll == 1:
        return {
            "eventType": "freeSpins",
            "data": {"sessionId": session_id, "mode": "standard", "totalWin": 120.5, "spinsCount": 10}
        }
    if roll == 2:
        return {
            "eventType": "bigWin",
            "data": {"sessionId": session_id, "tier": random.choice(TIERS), "amount": 2500}
        }

    bet = random.choice([0.2, 0.5, 1, 2, 5])
    return {
        "eventType": "spin",
        "data": {
            "sessionId": session_id,
            "bet": bet,
            "win": bet * random.choice([0, 0, 0, 0.5, 2, 10]),
            "symbols": random.choices(SYMBOLS, k=15)
        }
    }


def benchmark_ingestion(base_url: str, total_events: int = 10000, sessions: int = 100):
    """Benchmark event ingestion"""
    print(f"\n{'=' * 60}")
    print(f"BENCHMARK: Ingesting {total_events:,} events")
    print(f"{'=' * 60}")

    session_ids = [str(uuid4()) for _ in range(sessions)]

    accepted = 0
    rejected = 0
    throttled = 0
    request_times = []

    start_time = time.time()

    with requests.Session() as http:
        for i in range(total_events):
            event = generate_event(session_ids[i % sessions], i)
            request_start = time.time()

            try:
                response = http.post(f"{base_url}/track", json=event, timeout=30)

                if response.status_code == 200:
                    accepted += 1
                elif response.status_code == 429:
                    throttled += 1
                else:
                    rejected += 1
                    print(f"Error on event {i}: Status {response.status_code} {response.text}")

            except requests.RequestException as e:
                rejected += 1
                print(f"Error on event {i}: {e}")

            request_times.append(time.time() - request_start)

            if i % 1000 == 0:
                print(f"Progress: {i:,} / {total_events:,} events")

    total_time = time.time() - start_time

    print(f"\n{'=' * 60}")
    print(f"INGESTION RESULTS")
    print(f"{'=' * 60}")
    print(f"Total events:        {total_events:,}")
    print(f"Accepted:            {accepted:,}")
    print(f"Rejected:            {rejected:,}")
    print(f"Rate limited:        {throttled:,}")
    print(f"Total time:          {total_time:.2f}s")
    print(f"Events/sec:          {total_events / total_time:,.0f}")
    print(f"Avg request time:    {statistics.mean(request_times) * 1000:.1f}ms")
    print(f"Max request time:    {max(request_times) * 1000:.1f}ms")
    print(f"{'=' * 60}\n")

    return total_time


def main():
    base_url = sys.argv[1] if len(sys.argv) > 1 else "http://localhost:3777"
    total_events = int(sys.argv[2]) if len(sys.argv) > 2 else 10000

    print("\n" + "=" * 60)
    print("SLOT TELEMETRY API - BENCHMARK")
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

    benchmark_ingestion(base_url, total_events=total_events)

    print("\n" + "=" * 60)
    print("BENCHMARK COMPLETE")
    print("=" * 60)


if __name__ == "__main__":
    main()
