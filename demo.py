#!/usr/bin/env python3
"""
Analytics Client Demo Script

Demonstrates the event pipeline:
- Producers call track() and return immediately
- A background dispatcher batches envelopes by size and by timer
- Batches go to the ingestion service (or the console)

Run against a local ingestion service:
    pip install -e .
    ANALYTICS_URL=http://localhost:8094 python demo.py

Or print batches instead of sending them:
    python demo.py --console [--payload]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import uuid

from analytics_core import (
    AnalyticsClient,
    ApiRequest,
    AuthLoginAttempt,
    ClientConfig,
    TaskCompleted,
    TaskCreated,
)
from analytics_core.sinks import ConsoleSink


def header(text: str) -> None:
    print(f"\n{'=' * 60}")
    print(f"  {text}")
    print("=" * 60)


async def demo(config: ClientConfig, sink: ConsoleSink | None = None) -> None:
    client = AnalyticsClient(config=config, sink=sink)
    user_id = uuid.uuid4()

    header("TRACKING (non-blocking)")
    client.track(AuthLoginAttempt(user_id=user_id, email="demo@example.com", success=True))

    task_id = uuid.uuid4()
    client.track(TaskCreated(task_id=task_id, user_id=user_id, command="make build"))
    client.track(TaskCompleted(task_id=task_id, user_id=user_id, duration_ms=1830, exit_code=0))
    print(f"  queued 3 events for user {user_id}")

    header(f"SIZE-TRIGGERED FLUSH (batch_size={config.batch_size})")
    for i in range(config.batch_size):
        client.track(ApiRequest(
            service="demo",
            endpoint=f"/items/{i}",
            method="GET",
            status_code=200,
            duration_ms=i % 17,
        ))
    await asyncio.sleep(0.1)
    print(f"  stats: {client.stats}")

    header("SHUTDOWN (final flush)")
    await client.aclose()
    print(f"  stats: {client.stats}")


def main():
    parser = argparse.ArgumentParser(description="Analytics client demo")
    parser.add_argument("--console", action="store_true", help="Print batches instead of POSTing them")
    parser.add_argument("--payload", action="store_true", help="With --console, print the raw JSON bodies")
    parser.add_argument("--config", help="YAML config file with an 'analytics' section")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)

    config = ClientConfig.from_yaml(args.config) if args.config else ClientConfig()
    if args.console:
        config.sink_type = "console"

    sink = ConsoleSink(payload=True) if args.console and args.payload else None
    asyncio.run(demo(config, sink))


if __name__ == "__main__":
    main()
