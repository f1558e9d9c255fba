#!/usr/bin/env python3
"""
prom-ws Bridge Configuration Management

Policy:
- YAML file first (optional; missing file means defaults)
- Environment variables override the file (.env is loaded when present)
- The resulting BridgeConfig is built once at startup and passed explicitly
  to the query client and the request signer
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

logger = logging.getLogger("promws.server")

# Environment variable -> config field
ENV_OVERRIDES = {
    "HOST": "host",
    "PORT": "port",
    "API": "api",
    "LOG_LEVEL": "log_level",
    "AWS_ACCESS_KEY_ID": "aws_access_key_id",
    "AWS_SECRET_ACCESS_KEY": "aws_secret_access_key",
    "AWS_SESSION_TOKEN": "aws_session_token",
    "AWS_REGION": "aws_region",
}


class BridgeConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8080
    api: str = "http://localhost:30000"
    log_level: str = "INFO"
    user_agent: str = "prom-ws"
    # Subscription defaults
    default_step: float = Field(5, gt=0)
    default_history: float = Field(60, ge=0)
    alignment_margin: float = Field(0.4, ge=0)
    # Backend HTTP behaviour
    request_timeout: Optional[float] = None   # None = wait for the backend indefinitely
    verify_tls: bool = True
    # SigV4 signing (enabled when an access key is present)
    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""
    aws_session_token: str = ""
    aws_region: str = "us-east-1"
    aws_service: str = "aps"

    @property
    def auth_mode(self) -> str:
        return "AWS" if self.aws_access_key_id else "None"


def read_env_overrides(environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """Collect config values from environment variables that are set and non-empty."""
    environ = os.environ if environ is None else environ
    return {field: environ[var] for var, field in ENV_OVERRIDES.items() if environ.get(var)}


def load_config(path: Optional[str] = None, environ: Optional[Dict[str, str]] = None) -> BridgeConfig:
    """
    Load bridge configuration.

    Args:
        path: Optional YAML config file; skipped if None or missing
        environ: Environment mapping (defaults to os.environ after load_dotenv)

    Returns:
        Validated BridgeConfig

    Raises:
        pydantic.ValidationError: On invalid values
        yaml.YAMLError: On an unparsable config file
    """
    data: Dict[str, Any] = {}

    if path:
        config_file = Path(path)
        if config_file.exists():
            logger.info("Loading configuration from: %s", config_file)
            with open(config_file, "r") as f:
                data = yaml.safe_load(f) or {}
        else:
            logger.debug("Config file not found: %s, using defaults", config_file)

    if environ is None:
        load_dotenv()
    data.update(read_env_overrides(environ))

    return BridgeConfig(**data)
