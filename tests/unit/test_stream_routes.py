"""Unit tests for the WebSocket stream routes

Drives the real app (FastAPI TestClient) against a fake query backend:
- catch-up points followed by the first live poll
- text and binary control frames
- status and health endpoints
- teardown when the connection closes or the receive loop fails
"""
import json
import time

import pytest
from fastapi.testclient import TestClient

from conftest import FakeQueryClient, RANGE_ROWS, INSTANT_ROWS
from promws.core.server import create_app
from promws.tasks.session import ConnectionSession


def wait_for(predicate, timeout=3.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


@pytest.fixture
def backend():
    return FakeQueryClient(range_responses=[RANGE_ROWS], instant_responses=[INSTANT_ROWS])


@pytest.fixture
def app(bridge_config, backend, audit):
    return create_app(bridge_config, client=backend, audit=audit)


class TestStreamWebSocket:
    """Test the streaming endpoint"""

    def test_catch_up_then_poll(self, app, backend):
        with TestClient(app) as client:
            with client.websocket_connect("/") as ws:
                ws.send_text(json.dumps({"type": "start", "id": "a", "query": "up",
                                         "metrics": ["job"], "step": 5, "history": 10}))
                points = [json.loads(ws.receive_text()) for _ in range(3)]

        assert [p["t"] for p in points] == [100, 105, 115]
        assert all(p["id"] == "a" for p in points)
        assert all(p["k"] == "prod/api-0" for p in points)
        assert all(p["job"] == "api" for p in points)
        assert points[2]["v"] == "1"
        assert backend.range_calls[0][3] == 5

    def test_binary_control_frame(self, app):
        with TestClient(app) as client:
            with client.websocket_connect("/") as ws:
                ws.send_bytes(b'{"type": "start", "id": "bin", "query": "up"}')
                point = json.loads(ws.receive_text())

        assert point["id"] == "bin"
        assert point["t"] == 100

    def test_malformed_messages_get_no_reply(self, app):
        with TestClient(app) as client:
            with client.websocket_connect("/") as ws:
                ws.send_text("not json")
                ws.send_text('{"type": "stop", "id": "missing"}')
                ws.send_text('{"type": "start", "id": "a", "query": "up"}')
                point = json.loads(ws.receive_text())

        # The first frame back belongs to the valid start
        assert point["id"] == "a"

    def test_stop_and_status(self, app, audit):
        with TestClient(app) as client:
            with client.websocket_connect("/") as ws:
                ws.send_text('{"type": "start", "id": "a", "query": "up"}')
                for _ in range(3):
                    ws.receive_text()

                status = client.get("/api/streams/status").json()
                assert status["sessions"] == 1
                assert status["subscriptions"] == 1
                assert status["states"] == {"polling": 1}

                ws.send_text('{"type": "stop", "id": "a"}')
                assert wait_for(lambda: client.get("/api/streams/status").json()["subscriptions"] == 0)

            assert wait_for(lambda: client.get("/api/streams/status").json()["sessions"] == 0)

        assert audit.started == 1
        assert audit.stopped == 1

    def test_disconnect_resets_session(self, app, audit):
        with TestClient(app) as client:
            with client.websocket_connect("/") as ws:
                ws.send_text('{"type": "start", "id": "a", "query": "up"}')
                ws.send_text('{"type": "start", "id": "b", "query": "up"}')
                for _ in range(4):
                    ws.receive_text()

            assert wait_for(lambda: audit.stopped == 2)
            status = client.get("/api/streams/status").json()

        assert status["subscriptions"] == 0
        assert status["audit"]["started"] == 2

    def test_receive_error_resets_session(self, app, audit, monkeypatch, caplog):
        handle_message = ConnectionSession.handle_message

        def handle_or_fail(self, raw):
            if raw == "fail":
                raise RuntimeError("frame handler failed")
            return handle_message(self, raw)

        monkeypatch.setattr(ConnectionSession, "handle_message", handle_or_fail)

        with TestClient(app) as client:
            with client.websocket_connect("/") as ws:
                ws.send_text('{"type": "start", "id": "a", "query": "up"}')
                ws.send_text('{"type": "start", "id": "b", "query": "up"}')
                for _ in range(4):
                    ws.receive_text()

                ws.send_text("fail")
                assert wait_for(lambda: audit.stopped == 2)
                status = client.get("/api/streams/status").json()

        assert status["sessions"] == 0
        assert status["subscriptions"] == 0
        assert "frame handler failed" in caplog.text


class TestHttpRoutes:
    """Test plain HTTP routes"""

    def test_health(self, app):
        with TestClient(app) as client:
            assert client.get("/health").json() == {"status": "ok"}

    def test_status_reports_failures(self, bridge_config, audit):
        backend = FakeQueryClient(range_responses=[ValueError("bad envelope")])
        app = create_app(bridge_config, client=backend, audit=audit)

        with TestClient(app) as client:
            with client.websocket_connect("/") as ws:
                ws.send_text('{"type": "start", "id": "a", "query": "up"}')
                assert wait_for(lambda: audit.failures["catch_up"] == 1)
                status = client.get("/api/streams/status").json()

        assert status["audit"]["failures"]["catch_up"] == 1
        assert status["subscriptions"] == 1
