#!/usr/bin/env python3
"""Benchmark item reads: latency (p50, p95, p99) and QPS.

Usage:
  export API_URL=http://localhost:8000 KEYCLOAK_URL=http://localhost:8080
  export KEYCLOAK_REALM=querygate KEYCLOAK_CLIENT_ID=querygate-api KEYCLOAK_CLIENT_SECRET=...
  export BENCH_USER=testuser BENCH_PASSWORD=testpass
  uv run python scripts/bench_read.py --collection posts [--num-queries 200]

Without BENCH_USER the requests are anonymous and run under the public role.
"""
from __future__ import annotations

import argparse
import json
import os
import statistics
import sys
import time

import httpx


def get_token(
    keycloak_url: str,
    realm: str,
    client_id: str,
    client_secret: str,
    username: str,
    password: str,
) -> str:
    url = f"{keycloak_url.rstrip('/')}/realms/{realm}/protocol/openid-connect/token"
    r = httpx.post(
        url,
        data={
            "grant_type": "password",
            "client_id": client_id,
            "client_secret": client_secret,
            "username": username,
            "password": password,
        },
        headers={"Content-Type": "application/x-www-form-urlencoded"},
        timeout=30.0,
    )
    r.raise_for_status()
    return r.json()["access_token"]


def main() -> int:
    parser = argparse.ArgumentParser(description="Benchmark item reads")
    parser.add_argument("--collection", type=str, default="posts", help="Collection to query")
    parser.add_argument("--num-queries", type=int, default=100, help="Number of read requests")
    parser.add_argument("--filter", type=str, default="{}", help="JSON filter sent with every request")
    parser.add_argument("--fields", type=str, default="*", help="Comma separated field list")
    parser.add_argument("--limit", type=int, default=25, help="Page size")
    parser.add_argument("--output", type=str, default="/results/bench_read.txt", help="Output file path")
    args = parser.parse_args()

    try:
        json.loads(args.filter)
    except json.JSONDecodeError:
        print("--filter must be valid JSON")
        return 2

    api_url = os.environ.get("API_URL", "http://localhost:8000").rstrip("/")
    user = os.environ.get("BENCH_USER")
    headers: dict[str, str] = {}
    if user:
        print("Getting token...")
        token = get_token(
            os.environ.get("KEYCLOAK_URL", "http://localhost:8080"),
            os.environ.get("KEYCLOAK_REALM", "querygate"),
            os.environ.get("KEYCLOAK_CLIENT_ID", "querygate-api"),
            os.environ.get("KEYCLOAK_CLIENT_SECRET", ""),
            user,
            os.environ.get("BENCH_PASSWORD", ""),
        )
        headers["Authorization"] = f"Bearer {token}"

    params = {"filter": args.filter, "fields": args.fields, "limit": str(args.limit)}
    latencies: list[float] = []
    errors = 0
    total_count = None
    print(f"Running {args.num_queries} read requests on {args.collection}...")
    start_total = time.perf_counter()
    with httpx.Client(timeout=30.0) as client:
        for _ in range(args.num_queries):
            t0 = time.perf_counter()
            r = client.get(f"{api_url}/v1/items/{args.collection}", params=params, headers=headers)
            elapsed = time.perf_counter() - t0
            if r.status_code == 200:
                latencies.append(elapsed)
                total_count = r.json().get("totalCount")
            else:
                errors += 1
    total_elapsed = time.perf_counter() - start_total

    n = len(latencies)
    if n == 0:
        print("No successful reads.")
        return 1

    qps = n / total_elapsed
    p50 = statistics.median(latencies) * 1000
    p95 = sorted(latencies)[int(n * 0.95) - 1] * 1000 if n >= 20 else p50
    p99 = sorted(latencies)[int(n * 0.99) - 1] * 1000 if n >= 100 else p95

    summary = (
        f"Read benchmark (collection={args.collection}, totalCount={total_count}, "
        f"queries={n}, errors={errors})\n"
        f"  QPS: {qps:.2f}\n"
        f"  Latency: p50={p50:.1f} ms, p95={p95:.1f} ms, p99={p99:.1f} ms\n"
        f"  Total time: {total_elapsed:.2f} s\n"
    )
    print(summary)

    try:
        os.makedirs(os.path.dirname(args.output) or ".", exist_ok=True)
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(summary)
        print(f"Wrote {args.output}")
    except OSError as e:
        print(f"Could not write {args.output}: {e}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
