#!/usr/bin/env python3
"""
prom-ws Stream Audit Logger

Structured logging for subscription lifecycle events plus failure counters
for catch-up and poll cycles. Counters are informational only.
"""

import json
import logging
import time
from typing import Any, Dict, Optional


class StreamAuditLogger:
    """Centralized audit logging for subscription events."""

    def __init__(self):
        self.logger = logging.getLogger("promws.audit")
        self.failures: Dict[str, int] = {"catch_up": 0, "poll": 0}
        self.started = 0
        self.stopped = 0

    def _log_event(self, event_type: str, details: Dict[str, Any]):
        """Log a structured audit event."""
        audit_record = {
            "timestamp": int(time.time()),
            "event_type": event_type,
            "details": details
        }
        # Log as JSON for structured parsing
        self.logger.info(json.dumps(audit_record, default=str))

    def subscription_started(self, subscription_id: str, query: str, step: int, history: int):
        """Log a new subscription schedule."""
        self.started += 1
        self._log_event(
            event_type="subscription_started",
            details={
                "id": subscription_id,
                "query": query,
                "step": step,
                "history": history
            }
        )

    def subscription_stopped(self, subscription_id: str, state: str):
        """Log a cancelled subscription, with the state it was in."""
        self.stopped += 1
        self._log_event(
            event_type="subscription_stopped",
            details={"id": subscription_id, "state": state}
        )

    def cycle_failed(self, subscription_id: str, cycle: str, error: Optional[BaseException] = None):
        """Count and log a failed catch-up or poll cycle."""
        self.failures[cycle] = self.failures.get(cycle, 0) + 1
        self._log_event(
            event_type="cycle_failed",
            details={
                "id": subscription_id,
                "cycle": cycle,  # "catch_up" or "poll"
                "error": repr(error) if error is not None else None
            }
        )

    def snapshot(self) -> Dict[str, Any]:
        """Current counters."""
        return {
            "started": self.started,
            "stopped": self.stopped,
            "failures": dict(self.failures)
        }


# Global audit logger instance
audit_logger = StreamAuditLogger()
