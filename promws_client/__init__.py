"""prom-ws watch client: subscribe to a bridge and print points as JSON lines."""
