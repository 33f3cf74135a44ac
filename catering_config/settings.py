"""
Settings loader (``catering_config.settings``).

Responsibility
--------------
Builds the frozen ``Settings`` the composition root and CLI consume.
Layers, lowest precedence first:

1. ``defaults.yaml`` shipped with this package.
2. A YAML file given explicitly or through ``CATERING_CONFIG``.
3. ``CATERING_*`` environment variables.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown key, bad value or bad type  -> ``ValueError``.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

from catering_batch.domain.schedule import parse_cron

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"
CONFIG_PATH_ENV = "CATERING_CONFIG"
ENV_PREFIX = "CATERING_"

LOCK_BACKENDS = ("advisory", "lease")


@dataclass(frozen=True)
class Settings:
    database_url: str
    pool_size: int
    echo_sql: bool
    lock_backend: str
    lock_ttl_seconds: int
    generation_horizon_days: int
    generation_cron: str
    fallback_cron: str
    outbox_cron: str
    tick_interval_seconds: int
    run_generation_on_startup: bool
    outbox_batch_size: int
    outbox_max_retries: int
    outbox_stale_after_seconds: int
    log_level: str

    def __post_init__(self) -> None:
        if self.lock_backend not in LOCK_BACKENDS:
            raise ValueError(
                f"lock_backend must be one of {LOCK_BACKENDS}, got {self.lock_backend!r}"
            )
        for name in (
            "pool_size",
            "lock_ttl_seconds",
            "tick_interval_seconds",
            "outbox_batch_size",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        if self.generation_horizon_days < 0:
            raise ValueError(
                f"generation_horizon_days must be >= 0, got {self.generation_horizon_days}"
            )
        if self.outbox_max_retries < 0:
            raise ValueError(
                f"outbox_max_retries must be >= 0, got {self.outbox_max_retries}"
            )
        for name in ("generation_cron", "fallback_cron", "outbox_cron"):
            try:
                parse_cron(getattr(self, name))
            except Exception as exc:
                raise ValueError(f"{name}: {exc}") from exc


_FIELD_TYPES: dict[str, type] = {
    "database_url": str,
    "pool_size": int,
    "echo_sql": bool,
    "lock_backend": str,
    "lock_ttl_seconds": int,
    "generation_horizon_days": int,
    "generation_cron": str,
    "fallback_cron": str,
    "outbox_cron": str,
    "tick_interval_seconds": int,
    "run_generation_on_startup": bool,
    "outbox_batch_size": int,
    "outbox_max_retries": int,
    "outbox_stale_after_seconds": int,
    "log_level": str,
}

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load one YAML mapping.  An empty file yields ``{}``."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return data


def _coerce(name: str, value: Any) -> Any:
    expected = _FIELD_TYPES[name]
    if expected is bool:
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
        raise ValueError(f"{name}: expected a boolean, got {value!r}")
    if expected is int:
        if isinstance(value, bool):
            raise ValueError(f"{name}: expected an integer, got {value!r}")
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ValueError(f"{name}: expected an integer, got {value!r}") from None
    return str(value)


def _merge(target: dict[str, Any], layer: Mapping[str, Any], source: str) -> None:
    unknown = sorted(set(layer) - set(_FIELD_TYPES))
    if unknown:
        raise ValueError(f"Unknown configuration keys in {source}: {unknown}")
    for name, value in layer.items():
        target[name] = _coerce(name, value)


def _env_layer(environ: Mapping[str, str]) -> dict[str, str]:
    layer: dict[str, str] = {}
    for name in _FIELD_TYPES:
        key = ENV_PREFIX + name.upper()
        if key in environ:
            layer[name] = environ[key]
    return layer


def load_settings(
    path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """
    Resolve settings from defaults, an optional YAML file and the environment.

    Args:
        path: YAML file to layer over the defaults.  Falls back to
            ``$CATERING_CONFIG`` when None.
        environ: Environment mapping (defaults to ``os.environ``).
    """
    env = os.environ if environ is None else environ
    values: dict[str, Any] = {}

    _merge(values, load_yaml_file(DEFAULTS_PATH), str(DEFAULTS_PATH))

    config_path = path if path is not None else env.get(CONFIG_PATH_ENV)
    if config_path:
        _merge(values, load_yaml_file(Path(config_path)), str(config_path))

    _merge(values, _env_layer(env), "environment")

    missing = [f.name for f in fields(Settings) if f.name not in values]
    if missing:
        raise ValueError(f"Missing configuration keys: {missing}")
    return Settings(**values)
