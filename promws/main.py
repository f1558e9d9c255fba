#!/usr/bin/env python3
"""
prom-ws bridge server

Streams PromQL query results to WebSocket clients: each connection starts
named subscriptions, gets a backfill of recent history, then live points
every step seconds.
"""

import argparse
import logging
import os

import uvicorn

from .core.config import load_config
from .core.server import create_app


def log_level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)


def main():
    """Main entry point for the prom-ws bridge."""
    parser = argparse.ArgumentParser(description="prom-ws bridge server")
    parser.add_argument("-c", "--config", help="Path to YAML config", default="config.yaml")
    parser.add_argument("--port", type=int, help="listening port")
    parser.add_argument("--api", help="metrics backend base URL (e.g., http://prometheus:9090)")
    parser.add_argument("--log-level", dest="log_level",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="logging level")
    args = parser.parse_args()

    # Configure logging; the level is settled again once the config is loaded
    logging.basicConfig(level=log_level(args.log_level or os.environ.get("LOG_LEVEL", "INFO")))

    # Load configuration: YAML, then environment, then CLI
    config = load_config(args.config)
    overrides = {k: v for k, v in vars(args).items() if k != "config" and v is not None}
    if overrides:
        config = config.model_copy(update=overrides)
    logging.getLogger().setLevel(log_level(config.log_level))

    app = create_app(config)

    uvicorn.run(app, host=config.host, port=config.port, reload=False, access_log=False)


if __name__ == "__main__":
    main()
