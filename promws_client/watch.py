#!/usr/bin/env python3
"""
prom-ws watch client

Connects to a prom-ws bridge, starts one subscription per query and prints
every received point as a JSON line. Reconnects (and re-subscribes) when the
connection drops.

Queries are given as "query" (id q0, q1, ...) or "id=query".
"""

import argparse
import asyncio
import json
import logging
import re
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, TextIO

import websockets

from .config import WatchConfig

logger = logging.getLogger("promws.client")

SUBSCRIPTION_ID = re.compile(r"^[A-Za-z0-9_.:-]+$")


def build_start_messages(config: WatchConfig) -> List[Dict[str, Any]]:
    """Start messages for every configured query."""
    messages = []
    for index, entry in enumerate(config.queries):
        sub_id, sep, query = entry.partition("=")
        if not sep or not SUBSCRIPTION_ID.match(sub_id) or query.startswith("="):
            # Not an "id=query" pair (PromQL itself may contain "=")
            sub_id, query = f"q{index}", entry

        message: Dict[str, Any] = {"type": "start", "id": sub_id, "query": query}
        if config.metrics:
            message["metrics"] = list(config.metrics)
        if config.step is not None:
            message["step"] = config.step
        if config.history is not None:
            message["history"] = config.history
        messages.append(message)
    return messages


async def watch(config: WatchConfig, out: TextIO = sys.stdout) -> int:
    """
    Stream points until interrupted (or until config.once points were printed).

    Returns:
        Number of points printed
    """
    starts = build_start_messages(config)
    received = 0

    # Reconnection loop
    while True:
        try:
            async with websockets.connect(config.server) as websocket:
                logger.info(f"Connected to {config.server}")
                for message in starts:
                    await websocket.send(json.dumps(message))

                async for raw in websocket:
                    try:
                        point = json.loads(raw)
                    except json.JSONDecodeError as e:
                        logger.error(f"Invalid JSON received: {e}")
                        continue

                    out.write(json.dumps(point) + "\n")
                    out.flush()
                    received += 1
                    if config.once is not None and received >= config.once:
                        await websocket.send(json.dumps({"type": "reset"}))
                        return received

                logger.warning("WebSocket connection closed by server")

        except (OSError, websockets.exceptions.WebSocketException) as e:
            logger.error(f"WebSocket connection failed: {e}")

        logger.info(f"Reconnecting in {config.reconnect_delay} seconds...")
        await asyncio.sleep(config.reconnect_delay)


def main(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(description="prom-ws watch client")
    parser.add_argument("--config", "-c", type=Path, default=Path("watch.yml"),
                        help="YAML configuration file (default: watch.yml)")
    parser.add_argument("--server", help="bridge WebSocket URL (e.g., ws://localhost:8080)")
    parser.add_argument("--query", "-q", action="append",
                        help="PromQL query, optionally as id=query (repeatable)")
    parser.add_argument("--metric", "-m", action="append",
                        help="label to copy into each point (repeatable)")
    parser.add_argument("--step", type=float, help="poll cadence in seconds")
    parser.add_argument("--history", type=float, help="catch-up window in seconds")
    parser.add_argument("--once", type=int, help="exit after this many points")
    parser.add_argument("--log-level", dest="log_level",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="logging level")
    args = parser.parse_args(argv)

    # Load config: YAML first, then CLI overrides
    config = WatchConfig.from_file(args.config).override_with_args(args)
    logging.basicConfig(level=getattr(logging, config.log_level), stream=sys.stderr)

    if not config.queries:
        parser.error("at least one --query is required")

    try:
        asyncio.run(watch(config))
    except KeyboardInterrupt:
        print("\nInterrupted. Bye!", file=sys.stderr)


if __name__ == "__main__":
    main()
