"""
Logging middleware: writes JSONL records for engine diagnostics and emissions.

``log_event`` is the default diagnostic sink of every ``HookEmitter``. Like the
rest of this module it writes nothing until a log path is set, so emitters
are silent by default. ``install`` additionally registers an observer listener
on chosen events that records each emission and a preview of its arguments.
"""

import json
import os
import re
import time
from typing import Any, Callable, Dict, Iterable, Optional

# Module state
_log_path: Optional[str] = None
_run_context: Dict[str, Any] = {}

# Observers run before every other listener
OBSERVER_PRIORITY = float("inf")

_PREVIEW_CHARS = 200


def get_log_path() -> Optional[str]:
    """Return current log path (for use by other modules)."""
    return _log_path


def set_log_path(path: Optional[str]) -> None:
    """Set log path explicitly. ``None`` turns logging off."""
    global _log_path
    _log_path = path


def _write_event(event_type: str, payload: Optional[Dict[str, Any]] = None) -> None:
    """Write a single JSONL log entry."""
    if not _log_path:
        return
    rec: Dict[str, Any] = {"ts": time.strftime("%Y-%m-%dT%H:%M:%S"), "event": event_type}
    # Enrich with run context
    for key, val in _run_context.items():
        if val is not None:
            rec[key] = val
    if payload:
        rec.update(payload)
    log_dir = os.path.dirname(_log_path)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
    with open(_log_path, "a", encoding="utf-8") as f:
        f.write(json.dumps(rec, ensure_ascii=False, default=str) + "\n")


def _preview(value: Any) -> str:
    text = repr(value)
    if len(text) > _PREVIEW_CHARS:
        return text[:_PREVIEW_CHARS] + "..."
    return text


def _on_event(event_name: str) -> Callable[..., None]:
    """Create an observer listener that logs the emission."""
    def observer(*args: Any) -> None:
        values = args[:-1]  # drop the continuation
        _write_event("emit", {
            "type": event_name,
            "argc": len(values),
            "args": [_preview(v) for v in values],
        })
    return observer


def log_event(event_type: str, payload: Optional[Dict[str, Any]] = None) -> None:
    """Diagnostic sink: ``sink(message, fields)``."""
    _write_event(event_type, payload)


def init_logging(log_dir: str, name: Optional[str] = None) -> str:
    """Initialize logging, create log file path. Returns the log path."""
    global _log_path
    if _log_path:
        return _log_path
    os.makedirs(log_dir, exist_ok=True)
    timestamp = time.strftime("%Y-%m-%d_%H-%M-%S")
    safe_name = re.sub(r"[^A-Za-z0-9_.-]", "_", name or "emitter")
    _log_path = os.path.join(log_dir, f"hookemitter_{safe_name}_{timestamp}.jsonl")
    return _log_path


def update_run_context(context: Dict[str, Any]) -> None:
    """Update run context fields written on every record."""
    _run_context.update(context)


def install(
    emitter: Any,
    events: Iterable[str],
    log_path: Optional[str] = None,
    run_context: Optional[Dict[str, Any]] = None,
) -> Dict[str, Callable[..., None]]:
    """Register observers for ``events`` on ``emitter``. Returns them by event name."""
    global _log_path
    if log_path:
        _log_path = log_path
    if run_context:
        _run_context.update(run_context)

    observers: Dict[str, Callable[..., None]] = {}
    for event in events:
        observer = _on_event(event)
        emitter.on(event, OBSERVER_PRIORITY, observer)
        observers[event] = observer
    return observers


def uninstall(emitter: Any, observers: Dict[str, Callable[..., None]]) -> None:
    """Remove observers previously returned by ``install``."""
    for event, observer in observers.items():
        emitter.off(event, observer)
