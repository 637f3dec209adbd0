from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

from .poller import CountMethod
from .transport import DeliveryMode

DEFAULT_ENDPOINT = (
    "https://script.google.com/macros/s/"
    "AKfycbxSKL04akfo3W_XiUfQJQg0dg3ded6EwsbEEg6VsW1SD5eVoEDV-3EoxH-IgZy-ccEMsQ/exec"
)
CONFIG_ENV = "VISITOR_BEACON_CONFIG"


@dataclass(frozen=True)
class TrackerConfig:
    endpoint: str = DEFAULT_ENDPOINT
    delivery_mode: DeliveryMode = DeliveryMode.OBSERVABLE
    count_method: CountMethod = CountMethod.GET
    request_timeout_s: Optional[float] = 10.0
    live_count_interval_s: float = 30.0
    heartbeat_interval_s: float = 60.0
    # Extra widget refresh cadence; None disables it.
    fast_refresh_interval_s: Optional[float] = None
    initial_refresh_delay_s: float = 1.0
    # One more poll shortly after start; None disables it.
    early_refresh_delay_s: Optional[float] = None
    refresh_on_return: bool = False
    return_refresh_delay_s: float = 1.0
    scroll_thresholds: Tuple[int, ...] = (25, 50, 75, 90, 100)
    time_thresholds_s: Tuple[int, ...] = (10, 30, 60, 120, 300)
    click_sample_every: int = 5
    scroll_sample_every: int = 10
    shadow_log_limit: int = 1000


# The two deployed flavours of the tracker.
PRESETS: Dict[str, Dict[str, Any]] = {
    "fire_and_forget": {
        "delivery_mode": DeliveryMode.BEST_EFFORT,
        "count_method": CountMethod.POST,
        "fast_refresh_interval_s": 10.0,
        "early_refresh_delay_s": 0.5,
        "refresh_on_return": True,
    },
    "observable": {
        "delivery_mode": DeliveryMode.OBSERVABLE,
        "count_method": CountMethod.GET,
        "fast_refresh_interval_s": None,
        "early_refresh_delay_s": None,
        "refresh_on_return": False,
    },
}

_ENV_OVERRIDES = {
    "VB_ENDPOINT": "endpoint",
    "VB_DELIVERY_MODE": "delivery_mode",
    "VB_COUNT_METHOD": "count_method",
    "VB_TIMEOUT_S": "request_timeout_s",
}


def _positive(v: Any, *, key: str, allow_none: bool = False) -> Optional[float]:
    if v is None and allow_none:
        return None
    try:
        n = float(v)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid number for '{key}': {v!r}") from e
    if n <= 0:
        raise ValueError(f"'{key}' must be > 0, got {n}")
    return n


def _non_negative(v: Any, *, key: str, allow_none: bool = False) -> Optional[float]:
    if v is None and allow_none:
        return None
    try:
        n = float(v)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid number for '{key}': {v!r}") from e
    if n < 0:
        raise ValueError(f"'{key}' must be >= 0, got {n}")
    return n


def _count(v: Any, *, key: str) -> int:
    # Whole numbers only; fractions are rejected rather than truncated.
    if isinstance(v, bool):
        raise ValueError(f"Invalid integer for '{key}': {v!r}")
    if isinstance(v, float):
        if not v.is_integer():
            raise ValueError(f"'{key}' must be a whole number, got {v!r}")
        n = int(v)
    else:
        try:
            n = int(v)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid integer for '{key}': {v!r}") from e
    if n < 1:
        raise ValueError(f"'{key}' must be >= 1, got {n}")
    return n


def _int_tuple(v: Any, *, key: str) -> Tuple[int, ...]:
    if not isinstance(v, (list, tuple)) or not v:
        raise ValueError(f"'{key}' must be a non-empty list")
    try:
        return tuple(sorted(int(x) for x in v))
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid integer in '{key}': {v!r}") from e


def _coerce(key: str, v: Any) -> Any:
    if key == "endpoint":
        s = str(v or "").strip()
        if not s.startswith(("http://", "https://")):
            raise ValueError(f"'endpoint' must be an http(s) URL, got {v!r}")
        return s
    if key == "delivery_mode":
        try:
            return DeliveryMode(str(v).strip().lower())
        except ValueError as e:
            raise ValueError(f"Invalid delivery_mode: {v!r}") from e
    if key == "count_method":
        try:
            return CountMethod(str(v).strip().lower())
        except ValueError as e:
            raise ValueError(f"Invalid count_method: {v!r}") from e
    if key in ("request_timeout_s", "fast_refresh_interval_s"):
        return _positive(v, key=key, allow_none=True)
    if key in ("live_count_interval_s", "heartbeat_interval_s"):
        return _positive(v, key=key)
    if key in ("initial_refresh_delay_s", "return_refresh_delay_s"):
        return _non_negative(v, key=key)
    if key == "early_refresh_delay_s":
        return _non_negative(v, key=key, allow_none=True)
    if key == "refresh_on_return":
        if isinstance(v, str):
            return v.strip().lower() in ("1", "true", "yes", "on")
        return bool(v)
    if key in ("scroll_thresholds", "time_thresholds_s"):
        return _int_tuple(v, key=key)
    if key in ("click_sample_every", "scroll_sample_every", "shadow_log_limit"):
        return _count(v, key=key)
    raise ValueError(f"Unknown config key: {key!r}")


def config_from_mapping(raw: Mapping[str, Any]) -> TrackerConfig:
    raw = dict(raw or {})
    cfg = TrackerConfig()

    preset = str(raw.pop("preset", "observable")).strip().lower()
    if preset not in PRESETS:
        raise ValueError(f"Unknown preset: {preset!r} (expected one of {sorted(PRESETS)})")
    cfg = replace(cfg, **PRESETS[preset])

    known = {f.name for f in fields(TrackerConfig)}
    updates: Dict[str, Any] = {}
    for key, value in raw.items():
        if key not in known:
            raise ValueError(f"Unknown config key: {key!r}")
        updates[key] = _coerce(key, value)
    return replace(cfg, **updates)


def load_config(path: Optional[str | Path] = None, *, environ: Optional[Mapping[str, str]] = None) -> TrackerConfig:
    """
    YAML file (explicit path, else $VISITOR_BEACON_CONFIG, else defaults),
    then VB_* environment overrides on top.
    """
    env = os.environ if environ is None else environ
    cfg_path = path or env.get(CONFIG_ENV)

    raw: Dict[str, Any] = {}
    if cfg_path:
        p = Path(cfg_path)
        if not p.exists():
            raise FileNotFoundError(str(p))
        with open(p, "r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Config root must be a mapping: {p}")
        raw.update(loaded)

    for env_key, cfg_key in _ENV_OVERRIDES.items():
        v = (env.get(env_key) or "").strip()
        if v:
            raw[cfg_key] = v

    return config_from_mapping(raw)
