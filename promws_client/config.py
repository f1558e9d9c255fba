import argparse
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import yaml

logger = logging.getLogger("promws.client")


@dataclass
class WatchConfig:
    """Watch client configuration with defaults"""
    server: str = "ws://127.0.0.1:8080"
    queries: List[str] = field(default_factory=list)
    metrics: List[str] = field(default_factory=list)
    step: Optional[float] = None
    history: Optional[float] = None
    log_level: str = "WARNING"
    once: Optional[int] = None          # exit after this many points
    reconnect_delay: int = 10

    @classmethod
    def from_file(cls, config_path: Path) -> "WatchConfig":
        """Load configuration from YAML file"""
        if not config_path.exists():
            logger.debug(f"Config file not found: {config_path}, using defaults")
            return cls()

        try:
            with open(config_path, "r") as f:
                data = yaml.safe_load(f) or {}
            logger.debug(f"Loaded config from {config_path}: {data}")
            return cls(**data)
        except Exception as e:
            logger.warning(f"Failed to load config from {config_path}: {e}, using defaults")
            return cls()

    def override_with_args(self, args: argparse.Namespace) -> "WatchConfig":
        """Override config with command line arguments if provided"""
        # Only override if explicitly provided - preserves config file values
        self.server = args.server if args.server is not None else self.server
        self.queries = args.query if args.query else self.queries
        self.metrics = args.metric if args.metric else self.metrics
        self.step = args.step if args.step is not None else self.step
        self.history = args.history if args.history is not None else self.history
        self.log_level = args.log_level if args.log_level is not None else self.log_level
        self.once = args.once if args.once is not None else self.once
        return self
