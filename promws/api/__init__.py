"""
Backend and wire-facing modules:
- prometheus_client.py: range/instant queries against the Prometheus HTTP API
- signing.py: optional SigV4 request signing
- schemas.py: inbound control message models
- routes/: WebSocket and status routes
"""
