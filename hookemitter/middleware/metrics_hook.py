"""
Metrics middleware: chain, listener and error counting per event type.

``MetricsCollector.record`` has the diagnostic sink signature, so it can be
attached to any emitter next to its existing sink with ``install``.
"""

import time
from collections import Counter
from typing import Any, Dict, Optional

from hookemitter.middleware import logging_hook


class MetricsCollector:
    """Collects dispatch metrics reported by one or more emitters."""

    def __init__(self):
        self.chains_total: int = 0
        self.listener_calls_total: int = 0
        self.listener_errors_total: int = 0
        self.hook_calls_total: int = 0
        self.chain_counts: Dict[str, int] = {}
        self.error_counts: Dict[str, int] = {}
        self.next_ignored: Counter = Counter()
        self.start_time: Optional[float] = None
        self.end_time: Optional[float] = None

    def reset(self) -> None:
        """Reset all counters."""
        self.chains_total = 0
        self.listener_calls_total = 0
        self.listener_errors_total = 0
        self.hook_calls_total = 0
        self.chain_counts.clear()
        self.error_counts.clear()
        self.next_ignored.clear()
        self.start_time = None
        self.end_time = None

    def record(self, message: str, fields: Optional[Dict[str, Any]] = None) -> None:
        handler = getattr(self, f"on_{message}", None)
        if handler is not None:
            handler(fields or {})

    def on_chain_start(self, data: Dict[str, Any]) -> None:
        if self.start_time is None:
            self.start_time = time.time()
        event = data.get("type", "unknown")
        self.chains_total += 1
        self.chain_counts[event] = self.chain_counts.get(event, 0) + 1

    def on_chain_end(self, data: Dict[str, Any]) -> None:
        self.end_time = time.time()

    def on_listener_call(self, data: Dict[str, Any]) -> None:
        self.listener_calls_total += 1

    def on_listener_error(self, data: Dict[str, Any]) -> None:
        event = data.get("type", "unknown")
        self.listener_errors_total += 1
        self.error_counts[event] = self.error_counts.get(event, 0) + 1

    def on_next_ignored(self, data: Dict[str, Any]) -> None:
        self.next_ignored[data.get("type", "unknown")] += 1

    def on_hook_call(self, data: Dict[str, Any]) -> None:
        self.hook_calls_total += 1

    def summary(self) -> Dict[str, Any]:
        """Return a summary dict of everything recorded since the last reset."""
        result: Dict[str, Any] = {
            "chains_total": self.chains_total,
            "listener_calls_total": self.listener_calls_total,
            "listener_errors_total": self.listener_errors_total,
            "hook_calls_total": self.hook_calls_total,
            "chain_counts": dict(self.chain_counts),
            "error_counts": dict(self.error_counts),
        }
        if self.start_time and self.end_time:
            result["duration_seconds"] = round(self.end_time - self.start_time, 2)
        if self.next_ignored:
            result["next_ignored"] = dict(self.next_ignored)
        return result


def install(emitter: Any, collector: Optional[MetricsCollector] = None) -> MetricsCollector:
    """Attach a collector to ``emitter`` alongside its current sink and return it."""
    collector = collector or MetricsCollector()
    previous = emitter.sink

    def sink(message: str, fields: Optional[Dict[str, Any]] = None) -> None:
        if previous is None:
            logging_hook.log_event(message, fields)
        else:
            previous(message, fields)
        collector.record(message, fields)

    emitter.sink = sink
    return collector
