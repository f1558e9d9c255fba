"""prom-ws: stream PromQL query results to WebSocket subscribers."""

__version__ = "1.0.0"
