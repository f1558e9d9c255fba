#!/usr/bin/env python3
"""
WebSocket Stream Routes - Subscription Streaming

Each WebSocket connection gets its own ConnectionSession; the session is reset
whenever the connection ends, however it ends.
"""

import logging
from collections import Counter
from typing import Set

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ...core.audit import StreamAuditLogger
from ...tasks.session import ConnectionSession
from ...tasks.subscription_scheduler import SubscriptionScheduler

logger = logging.getLogger("promws.server")


def create_stream_routes(scheduler: SubscriptionScheduler, audit: StreamAuditLogger) -> APIRouter:
    """Create WebSocket streaming and status routes."""
    router = APIRouter()

    # Sessions of currently open connections
    active_sessions: Set[ConnectionSession] = set()

    @router.websocket("/")
    async def stream_websocket(websocket: WebSocket):
        """WebSocket endpoint where clients send start/stop/reset and receive points."""
        await websocket.accept()

        session = ConnectionSession(scheduler, websocket.send_text)
        active_sessions.add(session)
        logger.debug("Connection opened; active sessions: %d", len(active_sessions))

        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break

                raw = message.get("text")
                if raw is None:
                    raw = message.get("bytes") or b""
                session.handle_message(raw)

        except WebSocketDisconnect:
            logger.debug("Client disconnected")
        except Exception as e:
            logger.error(f"Stream WebSocket error: {e}")
        finally:
            active_sessions.discard(session)
            await session.close()
            logger.debug("Connection closed; active sessions: %d", len(active_sessions))

    @router.get("/health")
    def health():
        return {"status": "ok"}

    @router.get("/api/streams/status")
    def stream_status():
        """Open sessions, subscriptions per state and cycle failure counters."""
        states = Counter(
            handle.state.value
            for session in active_sessions
            for handle in session.subscriptions.values()
        )
        return {
            "sessions": len(active_sessions),
            "subscriptions": sum(states.values()),
            "states": dict(states),
            "audit": audit.snapshot()
        }

    return router
