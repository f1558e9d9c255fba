#!/usr/bin/env python3
"""
prom-ws FastAPI application factory
"""

import logging
from typing import Optional

from fastapi import FastAPI

from ..api.prometheus_client import PrometheusClient
from ..api.routes.stream_routes import create_stream_routes
from ..api.signing import RequestSigner
from ..tasks.subscription_scheduler import SubscriptionScheduler
from .audit import StreamAuditLogger, audit_logger
from .config import BridgeConfig

logger = logging.getLogger("promws.server")


def create_app(config: BridgeConfig, client=None, audit: Optional[StreamAuditLogger] = None) -> FastAPI:
    """
    Build the bridge application.

    Args:
        config: Bridge configuration
        client: Query client; a signed PrometheusClient for config.api if None
        audit: Audit hook; the module-level audit_logger if None
    """
    audit = audit or audit_logger
    if client is None:
        client = PrometheusClient(config, RequestSigner(config))

    scheduler = SubscriptionScheduler(
        client,
        audit=audit,
        default_step=config.default_step,
        default_history=config.default_history,
        margin=config.alignment_margin,
    )

    app = FastAPI(title="prom-ws", docs_url=None, redoc_url=None)
    app.include_router(create_stream_routes(scheduler, audit))
    app.state.config = config
    app.state.scheduler = scheduler

    logger.info("Listening on: %s", config.port)
    logger.info("Endpoint: %s", config.api)
    logger.info("Auth: %s", config.auth_mode)

    return app
