"""Settings loading & override parsing for the default middleware.

Pure functions with no dependencies on emitter state.
"""

import json
from typing import Any, Callable, Dict, List, Optional

DEFAULT_SETTINGS: Dict[str, Any] = {
    "log_path": None,
    "log_dir": None,
    "name": "emitter",
    "run_context": {},
    "log_events": [],
    "metrics": True,
}


def load_json(path: str) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def normalize_bool(value: Any, field_name: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in {"true", "false"}:
        return value.strip().lower() == "true"
    raise ValueError(f"Setting '{field_name}' must be a boolean")


def _normalize_optional_str(value: Any, field_name: str) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip() or None
    raise ValueError(f"Setting '{field_name}' must be a string")


def _normalize_events(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    if isinstance(value, (list, tuple)) and all(isinstance(item, str) for item in value):
        return [item.strip() for item in value if item.strip()]
    raise ValueError("Setting 'log_events' must be a list of event names")


def normalize_settings(settings: Dict[str, Any]) -> Dict[str, Any]:
    """Validate ``settings`` and fill in defaults. Returns a new dict."""
    unknown = sorted(set(settings) - set(DEFAULT_SETTINGS))
    if unknown:
        raise ValueError(f"Unknown setting(s): {', '.join(unknown)}")

    merged = dict(DEFAULT_SETTINGS)
    merged.update(settings)

    run_context = merged.get("run_context")
    if run_context is None:
        run_context = {}
    if not isinstance(run_context, dict):
        raise ValueError("Setting 'run_context' must be an object")

    return {
        "log_path": _normalize_optional_str(merged["log_path"], "log_path"),
        "log_dir": _normalize_optional_str(merged["log_dir"], "log_dir"),
        "name": _normalize_optional_str(merged["name"], "name") or DEFAULT_SETTINGS["name"],
        "run_context": dict(run_context),
        "log_events": _normalize_events(merged["log_events"]),
        "metrics": normalize_bool(merged["metrics"], "metrics"),
    }


def load_settings(path: Optional[str] = None, argv: Optional[List[str]] = None) -> Dict[str, Any]:
    """Load a JSON settings object from ``path`` over the defaults, then apply ``argv`` overrides."""
    data: Any = {}
    if path:
        data = load_json(path)
        if not isinstance(data, dict):
            raise ValueError(f"Settings file must contain a JSON object: {path}")
    return apply_overrides(normalize_settings(data), argv or [])


def _parse_text(raw: str, key: str) -> str:
    return raw


def _parse_flag(raw: str, key: str) -> bool:
    lowered = raw.lower()
    if lowered not in {"true", "false"}:
        raise SystemExit(f"Invalid boolean for --{key}: {raw}")
    return lowered == "true"


def _parse_events(raw: str, key: str) -> List[Any]:
    if not raw.startswith("["):
        return [name.strip() for name in raw.split(",") if name.strip()]
    try:
        names = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise SystemExit(f"Invalid JSON array for --{key}: {raw}") from exc
    if not isinstance(names, list):
        raise SystemExit(f"Expected JSON array for --{key}: {raw}")
    return names


def _parse_context(raw: str, key: str) -> Dict[str, Any]:
    try:
        context = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise SystemExit(f"Invalid JSON object for --{key}: {raw}") from exc
    if not isinstance(context, dict):
        raise SystemExit(f"Expected JSON object for --{key}: {raw}")
    return context


# settings missing here are taken as text
_PARSERS: Dict[str, Callable[[str, str], Any]] = {
    "metrics": _parse_flag,
    "log_events": _parse_events,
    "run_context": _parse_context,
}


def apply_overrides(settings: Dict[str, Any], argv: List[str]) -> Dict[str, Any]:
    """Apply ``--key value`` pairs from ``argv`` to ``settings``.

    Dashes in a key map to underscores. ``none``/``null`` clears a setting.
    Malformed input exits with a message, as a command line would.
    """
    if not argv:
        return settings

    overrides: Dict[str, Any] = {}
    pairs = iter(argv)
    for flag in pairs:
        if not flag.startswith("--"):
            raise SystemExit(f"Unexpected argument: {flag}")
        key = flag[2:].replace("-", "_")
        if key not in DEFAULT_SETTINGS:
            raise SystemExit(f"Unknown setting: {flag}")
        raw = next(pairs, None)
        if raw is None or raw.startswith("--"):
            raise SystemExit(f"Missing value for {flag}")
        raw = raw.strip()
        if raw.lower() in {"none", "null"}:
            overrides[key] = None
        else:
            overrides[key] = _PARSERS.get(key, _parse_text)(raw, key)

    merged = dict(settings)
    merged.update(overrides)
    return normalize_settings(merged)
