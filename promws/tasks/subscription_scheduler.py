"""
Subscription scheduler.

Each subscription runs as one asyncio task:
    CREATED -> CATCHING_UP -> ALIGNING -> POLLING -> STOPPED

Catch-up backfills `history` seconds with a range query, the first live poll
is delayed so it lands just after the backend's next refresh, and from then
on an instant query runs every `step` seconds. Failed cycles emit nothing and
the schedule carries on.
"""

import asyncio
import functools
import logging
import math
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..core.audit import StreamAuditLogger, audit_logger
from .points import to_point

logger = logging.getLogger("promws.server")

DEFAULT_STEP = 5
DEFAULT_HISTORY = 60
# Added to every alignment delay so the first poll does not race the backend refresh
ALIGNMENT_MARGIN = 0.4


class SubscriptionState(str, Enum):
    CREATED = "created"
    CATCHING_UP = "catching_up"
    ALIGNING = "aligning"
    POLLING = "polling"
    STOPPED = "stopped"


@dataclass
class Subscription:
    id: str
    query: str
    metrics: List[str] = field(default_factory=list)
    step: float = DEFAULT_STEP
    history: float = DEFAULT_HISTORY


@dataclass
class ScheduleHandle:
    """Owned, cancelable schedule of one subscription. Mutated only by the scheduler."""
    subscription: Subscription
    state: SubscriptionState = SubscriptionState.CREATED
    task: Optional[asyncio.Task] = None


def _positive(value) -> bool:
    return value is not None and math.isfinite(value) and value > 0


def build_subscription(request, default_step: float = DEFAULT_STEP,
                       default_history: float = DEFAULT_HISTORY) -> Subscription:
    """
    Build a Subscription from a start request.

    Missing, zero, negative or non-finite step/history fall back to the
    defaults; fractional seconds are kept. A missing or empty id is replaced
    with a random UUID.
    """
    step = request.step if _positive(request.step) else default_step
    history = request.history if _positive(request.history) else default_history

    return Subscription(
        id=request.id or str(uuid.uuid4()),
        query=request.query,
        metrics=list(request.metrics or []),
        step=step,
        history=history,
    )


def alignment_delay(step: float, last_timestamp: Optional[float], now: float,
                    margin: float = ALIGNMENT_MARGIN) -> float:
    """
    Seconds to wait before the first live poll.

    Args:
        step: Poll cadence in seconds
        last_timestamp: Newest sample timestamp seen during catch-up, or None
        now: Wall-clock time (epoch seconds) when catch-up completed
        margin: Safety margin added after clamping

    Returns:
        max(step - (now - last_timestamp), 0) + margin; a full step + margin
        when catch-up saw no samples
    """
    elapsed = 0.0 if last_timestamp is None else now - last_timestamp
    return max(step - elapsed, 0.0) + margin


class SubscriptionScheduler:
    """Runs catch-up, alignment and polling for subscriptions on connection sessions."""

    def __init__(
        self,
        client,
        audit: Optional[StreamAuditLogger] = None,
        default_step: float = DEFAULT_STEP,
        default_history: float = DEFAULT_HISTORY,
        margin: float = ALIGNMENT_MARGIN,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Args:
            client: Query client exposing blocking query_range/query_instant
            audit: Observability hook; the module-level audit_logger if None
            default_step: Poll cadence when a request gives none
            default_history: Catch-up window when a request gives none (0 disables catch-up)
            margin: Alignment safety margin in seconds
            clock: Wall-clock source in epoch seconds
            sleep: Coroutine function used for every timer wait
        """
        self.client = client
        self.audit = audit or audit_logger
        self.default_step = default_step
        self.default_history = default_history
        self.margin = margin
        self._clock = clock
        self._sleep = sleep

    # ---------------- Public contract ----------------

    def start_subscription(self, session, request) -> Optional[ScheduleHandle]:
        """
        Start a subscription on the session unless its id is already active.

        Must be called from within the running event loop.

        Returns:
            The new handle, or None when the id was already subscribed
        """
        subscription = build_subscription(request, self.default_step, self.default_history)

        if subscription.id in session.subscriptions:
            logger.info("Already subscribed: %s", subscription.id)
            return None

        handle = ScheduleHandle(subscription=subscription)
        session.subscriptions[subscription.id] = handle

        handle.state = SubscriptionState.CATCHING_UP
        handle.task = asyncio.get_running_loop().create_task(self._run(session, handle))
        handle.task.add_done_callback(functools.partial(self._on_task_done, subscription.id))

        self.audit.subscription_started(subscription.id, subscription.query,
                                        subscription.step, subscription.history)
        return handle

    def stop_subscription(self, session, subscription_id: str) -> bool:
        """
        Cancel and remove a subscription. Unknown ids are ignored.

        Returns:
            True if a subscription was stopped
        """
        handle = session.subscriptions.pop(subscription_id, None)
        if handle is None:
            return False

        previous = handle.state
        handle.state = SubscriptionState.STOPPED
        if handle.task is not None:
            handle.task.cancel()

        logger.info("Stopped subscription %s (was %s)", subscription_id, previous.value)
        self.audit.subscription_stopped(subscription_id, previous.value)
        return True

    def reset_session(self, session) -> None:
        """Stop every subscription on the session."""
        for subscription_id in list(session.subscriptions):
            self.stop_subscription(session, subscription_id)

    # ---------------- Lifecycle ----------------

    async def _run(self, session, handle: ScheduleHandle) -> None:
        subscription = handle.subscription
        loop = asyncio.get_running_loop()

        last_timestamp = await self._catch_up(session, handle)
        delay = alignment_delay(subscription.step, last_timestamp, self._clock(), self.margin)

        handle.state = SubscriptionState.ALIGNING
        logger.info("Adding subscribe for %s (%s) step=%ss delay=%.3fs",
                    subscription.id, subscription.query, subscription.step, delay)

        # Run once just after the data should have updated
        await self._sleep(delay)

        # Then repeatedly every step seconds
        handle.state = SubscriptionState.POLLING
        next_tick = loop.time()
        while True:
            await self._poll(session, handle)

            next_tick += subscription.step
            now = loop.time()
            while next_tick < now:
                # Slow poll: skip missed ticks instead of bursting
                next_tick += subscription.step
            await self._sleep(next_tick - now)

    async def _catch_up(self, session, handle: ScheduleHandle) -> Optional[float]:
        """Backfill the history window. Returns the newest sample timestamp, or None."""
        subscription = handle.subscription
        if subscription.history <= 0:
            return None

        now = self._clock()
        start = datetime.fromtimestamp(now - subscription.history, tz=timezone.utc)
        end = datetime.fromtimestamp(now, tz=timezone.utc)

        try:
            rows = await self._call(self.client.query_range, subscription.query,
                                    start, end, subscription.step)
            points = [to_point(sample, row, subscription) for row in rows for sample in row["values"]]
            last_timestamp = max((float(point["t"]) for point in points), default=None)
        except Exception as e:
            logger.warning("catch-up failed for %s: %s", subscription.id, e)
            self.audit.cycle_failed(subscription.id, "catch_up", e)
            return None

        logger.debug("catch-up for %s returned %d points", subscription.id, len(points))
        await self._emit(session, handle, points)
        return last_timestamp

    async def _poll(self, session, handle: ScheduleHandle) -> None:
        """One instant query; one point per returned row."""
        subscription = handle.subscription

        try:
            rows = await self._call(self.client.query_instant, subscription.query)
            points = [to_point(row["value"], row, subscription) for row in rows]
        except Exception as e:
            logger.warning("poll failed for %s: %s", subscription.id, e)
            self.audit.cycle_failed(subscription.id, "poll", e)
            return

        await self._emit(session, handle, points)

    async def _emit(self, session, handle: ScheduleHandle, points: List[Dict[str, Any]]) -> None:
        for point in points:
            if handle.state is SubscriptionState.STOPPED:
                return
            await session.send(point)

    async def _call(self, fn, *args):
        # Blocking HTTP runs in the default executor so other subscriptions keep going
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(fn, *args))

    @staticmethod
    def _on_task_done(subscription_id: str, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("subscription %s task crashed: %r", subscription_id, error)
