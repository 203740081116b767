"""
Default middleware for hookemitter.

Call install_defaults() on an emitter to attach JSONL logging and metrics.
"""

from typing import Any, Dict, List, Optional

from hookemitter.middleware import logging_hook, metrics_hook


def install_defaults(
    emitter: Any,
    settings: Optional[Dict[str, Any]] = None,
    argv: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """Attach the default middleware to ``emitter``. Returns installed components.

    Args:
        emitter: The HookEmitter to instrument.
        settings: Dict as returned by ``config.load_settings`` (defaults when None).
        argv: ``--key value`` overrides applied on top of ``settings``,
            e.g. ``["--log-dir", "logs", "--log-events", "save,load"]``.

    Returns:
        Dict with references to installed components (metrics collector, observers).
    """
    from hookemitter import config

    if settings is None:
        settings = config.load_settings(argv=argv)
    else:
        settings = config.apply_overrides(config.normalize_settings(settings), argv or [])

    log_path = settings.get("log_path")
    if not log_path and settings.get("log_dir"):
        log_path = logging_hook.init_logging(settings["log_dir"], settings.get("name"))

    observers = logging_hook.install(
        emitter,
        settings.get("log_events") or [],
        log_path=log_path,
        run_context=settings.get("run_context") or {},
    )
    collector = metrics_hook.install(emitter) if settings.get("metrics") else None

    return {
        "metrics": collector,
        "observers": observers,
    }
