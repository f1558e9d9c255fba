"""Connection session: the subscriptions of one client connection."""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Union

from fastapi import WebSocketDisconnect

from ..api.schemas import ResetRequest, StartRequest, StopRequest, parse_control_message
from .subscription_scheduler import ScheduleHandle, SubscriptionScheduler

logger = logging.getLogger("promws.server")


class ConnectionSession:
    """Routes control messages for one connection and tears everything down on close."""

    def __init__(self, scheduler: SubscriptionScheduler, send_text: Callable[[str], Awaitable[Any]]):
        """
        Args:
            scheduler: Shared subscription scheduler
            send_text: Transport send primitive for one text frame
        """
        self.scheduler = scheduler
        self.subscriptions: Dict[str, ScheduleHandle] = {}
        self._send_text = send_text
        self.closed = False

    def handle_message(self, raw: Union[str, bytes]) -> None:
        """Dispatch one inbound frame. Anything unrecognized is dropped."""
        request = parse_control_message(raw)
        if request is None:
            return

        if isinstance(request, StartRequest):
            self.scheduler.start_subscription(self, request)
        elif isinstance(request, StopRequest):
            self.scheduler.stop_subscription(self, request.id)
        elif isinstance(request, ResetRequest):
            self.scheduler.reset_session(self)

    async def send(self, point: Dict[str, Any]) -> None:
        """Send one point; writes after the transport has gone away are dropped."""
        if self.closed:
            return
        try:
            await self._send_text(json.dumps(point))
        except (WebSocketDisconnect, RuntimeError, OSError) as e:
            logger.debug("dropping point for closed connection: %s", e)

    async def close(self) -> None:
        """Stop all subscriptions and wait for their tasks to unwind."""
        self.closed = True
        tasks = [handle.task for handle in self.subscriptions.values() if handle.task is not None]
        self.scheduler.reset_session(self)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
