"""Prometheus HTTP API client for range and instant queries."""

import json
import logging
import ssl
import urllib.request
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import quote, urlencode

from ..core.config import BridgeConfig
from .signing import RequestSigner

logger = logging.getLogger("promws.server")


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 UTC with millisecond precision, e.g. 2022-11-10T00:00:00.000Z"""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def format_step(step: float) -> str:
    """Range query resolution: "5s" for whole seconds, plain float seconds otherwise."""
    if float(step).is_integer():
        return f"{int(step)}s"
    return repr(float(step))


class PrometheusClient:
    """Client for the Prometheus query API."""

    def __init__(self, config: BridgeConfig, signer: Optional[RequestSigner] = None):
        """
        Initialize query client.

        Args:
            config: Bridge configuration (backend base URL, user agent, timeout, TLS)
            signer: Request signer; built from config if None
        """
        self.base_url = config.api.rstrip("/")
        self.user_agent = config.user_agent
        self.timeout = config.request_timeout
        self.signer = signer or RequestSigner(config)
        self._ssl_context = None if config.verify_tls else self._create_ssl_context()

    def _create_ssl_context(self) -> ssl.SSLContext:
        """Create SSL context for HTTPS that skips certificate verification."""
        ssl_context = ssl.create_default_context()
        ssl_context.check_hostname = False
        ssl_context.verify_mode = ssl.CERT_NONE
        return ssl_context

    def _query_api(self, endpoint: str, params: Dict[str, str]) -> Dict[str, Any]:
        """
        GET a query endpoint and return the parsed JSON envelope.

        Args:
            endpoint: API endpoint path (e.g., "/api/v1/query")
            params: Query string parameters

        Returns:
            Parsed JSON response

        Raises:
            urllib.error.HTTPError: On HTTP errors
            urllib.error.URLError: On connection errors
            json.JSONDecodeError: On a non-JSON body
        """
        url = f"{self.base_url}{endpoint}?{urlencode(params, quote_via=quote)}"
        headers = self.signer.sign("GET", url, {"User-Agent": self.user_agent})
        req = urllib.request.Request(url, headers=headers, method="GET")
        logger.debug("GET %s", url)

        kwargs: Dict[str, Any] = {}
        if self.timeout is not None:
            kwargs["timeout"] = self.timeout
        if self._ssl_context is not None and url.startswith("https://"):
            kwargs["context"] = self._ssl_context

        with urllib.request.urlopen(req, **kwargs) as response:
            return json.loads(response.read())

    @staticmethod
    def _result(body: Dict[str, Any]) -> List[Dict[str, Any]]:
        # KeyError/TypeError on a malformed envelope is left to the caller
        result = body["data"]["result"]
        if not isinstance(result, list):
            raise ValueError(f"unexpected result type: {type(result).__name__}")
        return result

    def query_range(self, query: str, start: datetime, end: datetime, step: float) -> List[Dict[str, Any]]:
        """
        Run a range query.

        Returns:
            Result rows, each {"metric": {...labels}, "values": [[ts, "val"], ...]}
        """
        body = self._query_api("/api/v1/query_range", {
            "query": query,
            "start": format_timestamp(start),
            "end": format_timestamp(end),
            "step": format_step(step),
        })
        return self._result(body)

    def query_instant(self, query: str) -> List[Dict[str, Any]]:
        """
        Run an instant query evaluated at the backend's current time.

        Returns:
            Result rows, each {"metric": {...labels}, "value": [ts, "val"]}
        """
        body = self._query_api("/api/v1/query", {"query": query})
        return self._result(body)
