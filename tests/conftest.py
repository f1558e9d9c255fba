"""Pytest configuration and shared fixtures"""
import asyncio
import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from promws.core.audit import StreamAuditLogger
from promws.core.config import BridgeConfig


class FakeQueryClient:
    """Stands in for PrometheusClient; records calls and replays canned responses.

    Each entry in range_responses / instant_responses is either a list of rows
    or an exception instance to raise. The last instant response repeats.
    """

    def __init__(self, range_responses=None, instant_responses=None):
        self.range_responses = list(range_responses or [])
        self.instant_responses = list(instant_responses or [])
        self.range_calls = []
        self.instant_calls = []

    def _next(self, responses):
        if not responses:
            return []
        response = responses.pop(0) if len(responses) > 1 else responses[0]
        if isinstance(response, Exception):
            raise response
        return response

    def query_range(self, query, start, end, step):
        self.range_calls.append((query, start, end, step))
        return self._next(self.range_responses)

    def query_instant(self, query):
        self.instant_calls.append(query)
        return self._next(self.instant_responses)


class RecordingSender:
    """Transport send primitive that keeps every text frame."""

    def __init__(self):
        self.frames = []

    async def __call__(self, text):
        self.frames.append(text)


class FakeSleep:
    """Records requested delays instead of waiting.

    Sleeps return immediately until `max_calls` have been requested; from
    then on every sleep parks until its task is cancelled, so a test can hold
    the schedule at a known point.
    """

    def __init__(self, max_calls=2):
        self.max_calls = max_calls
        self.delays = []
        self._changed = None

    def _event(self):
        if self._changed is None:
            self._changed = asyncio.Event()
        return self._changed

    async def __call__(self, delay):
        self.delays.append(delay)
        self._event().set()
        if len(self.delays) >= self.max_calls:
            await asyncio.Event().wait()
        await asyncio.sleep(0)

    async def wait(self, count=None, timeout=5):
        """Wait until `count` sleeps (default max_calls) have been requested."""
        count = self.max_calls if count is None else count

        async def reached():
            while len(self.delays) < count:
                event = self._event()
                event.clear()
                await event.wait()

        await asyncio.wait_for(reached(), timeout)


@pytest.fixture
def bridge_config():
    """Config pointing at a local backend with signing disabled"""
    return BridgeConfig(api="http://prometheus.test:9090")


@pytest.fixture
def signed_config():
    """Config with AWS credentials so requests get SigV4 headers"""
    return BridgeConfig(
        api="https://aps-workspaces.us-east-1.amazonaws.com/workspaces/ws-123",
        aws_access_key_id="AKIDEXAMPLE",
        aws_secret_access_key="wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY",
        aws_region="us-east-1",
    )


@pytest.fixture
def audit():
    """Fresh audit hook so counters start at zero"""
    return StreamAuditLogger()


@pytest.fixture
def sender():
    return RecordingSender()


# Backend rows as returned by /api/v1/query_range
RANGE_ROWS = [
    {
        "metric": {"__name__": "up", "namespace": "prod", "pod": "api-0", "job": "api"},
        "values": [[100, "1"], [105, "1"]]
    }
]

# Backend rows as returned by /api/v1/query
INSTANT_ROWS = [
    {
        "metric": {"__name__": "up", "namespace": "prod", "pod": "api-0", "job": "api"},
        "value": [115, "1"]
    }
]
