"""
Module: inventory_kernel.config
Responsibility: Runtime settings for the ledger, the services and the event
    consumer.
Architecture position: Kernel.  Imported by inventory_services,
    inventory_ingestion and scripts; imports nothing from them.

Sources, later wins:
    1. Defaults on LedgerSettings.
    2. A YAML mapping, from ``path`` or the INVENTORY_CONFIG variable.
    3. INVENTORY_* environment variables (see ENV_VARS).

Failure modes:
    - FileNotFoundError if the YAML path does not exist.
    - yaml.YAMLError on malformed YAML.
    - ValueError on an unknown key, a wrongly typed value, or an
      out-of-range number.  Nothing is silently ignored.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml

CONFIG_PATH_ENV = "INVENTORY_CONFIG"

ENV_VARS: dict[str, str] = {
    "INVENTORY_DATABASE_URL": "database_url",
    "INVENTORY_LOCK_TIMEOUT_MS": "lock_timeout_ms",
    "INVENTORY_LOG_LEVEL": "log_level",
    "INVENTORY_POOL_SIZE": "pool_size",
    "INVENTORY_CONSUMER_MAX_RETRIES": "consumer_max_retries",
    "INVENTORY_CONSUMER_POLL_INTERVAL": "consumer_poll_interval",
    "INVENTORY_CONSUMER_TOPIC": "consumer_topic",
    "INVENTORY_CONSUMER_GROUP_ID": "consumer_group_id",
}

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class LedgerSettings:
    """
    Immutable settings snapshot.

    Guarantees:
        - lock_timeout_ms, pool_size and consumer_batch_size are >= 1.
        - consumer_max_retries >= 0 and consumer_poll_interval > 0.
        - log_level is a standard level name in upper case.
    """

    database_url: str = "sqlite:///inventory.db"
    echo_sql: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    lock_timeout_ms: int = 5000
    log_level: str = "INFO"
    consumer_topic: str = "inventory-events"
    consumer_group_id: str = "inventory-ledger"
    consumer_max_retries: int = 3
    consumer_poll_interval: float = 0.1
    consumer_batch_size: int = 100

    def __post_init__(self) -> None:
        if not self.database_url:
            raise ValueError("database_url must not be empty")
        for name in ("lock_timeout_ms", "pool_size", "consumer_batch_size"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be >= 1, got {getattr(self, name)}")
        if self.max_overflow < 0:
            raise ValueError(f"max_overflow must be >= 0, got {self.max_overflow}")
        if self.consumer_max_retries < 0:
            raise ValueError(
                f"consumer_max_retries must be >= 0, got {self.consumer_max_retries}"
            )
        if self.consumer_poll_interval <= 0:
            raise ValueError(
                f"consumer_poll_interval must be > 0, got {self.consumer_poll_interval}"
            )
        if self.log_level not in _LOG_LEVELS:
            raise ValueError(
                f"log_level must be one of {', '.join(_LOG_LEVELS)}, got {self.log_level!r}"
            )

    @property
    def log_level_number(self) -> int:
        return logging.getLevelName(self.log_level)


_FIELD_TYPES: dict[str, type] = {
    "database_url": str,
    "echo_sql": bool,
    "pool_size": int,
    "max_overflow": int,
    "lock_timeout_ms": int,
    "log_level": str,
    "consumer_topic": str,
    "consumer_group_id": str,
    "consumer_max_retries": int,
    "consumer_poll_interval": float,
    "consumer_batch_size": int,
}


def _coerce(name: str, value: Any) -> Any:
    """Convert a YAML or environment value to the field's type."""
    expected = _FIELD_TYPES[name]

    if expected is bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ("1", "true", "yes", "on"):
            return True
        if isinstance(value, str) and value.strip().lower() in ("0", "false", "no", "off"):
            return False
        raise ValueError(f"{name} must be a boolean, got {value!r}")

    if expected is int:
        if isinstance(value, bool):
            raise ValueError(f"{name} must be an integer, got {value!r}")
        if isinstance(value, int):
            return value
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                raise ValueError(f"{name} must be an integer, got {value!r}") from None
        raise ValueError(f"{name} must be an integer, got {value!r}")

    if expected is float:
        if isinstance(value, bool):
            raise ValueError(f"{name} must be a number, got {value!r}")
        if isinstance(value, (int, float)):
            return float(value)
        if isinstance(value, str):
            try:
                return float(value.strip())
            except ValueError:
                raise ValueError(f"{name} must be a number, got {value!r}") from None
        raise ValueError(f"{name} must be a number, got {value!r}")

    if not isinstance(value, str):
        raise ValueError(f"{name} must be a string, got {value!r}")
    if name == "log_level":
        return value.strip().upper()
    return value


def load_yaml_settings(path: Path) -> dict[str, Any]:
    """
    Read a YAML settings file.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping or has unknown keys.
    """
    with open(path) as f:
        data = yaml.safe_load(f)

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at top level")

    unknown = sorted(set(data) - set(_FIELD_TYPES))
    if unknown:
        raise ValueError(f"{path}: unknown settings: {', '.join(unknown)}")
    return data


def load_settings(
    path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> LedgerSettings:
    """
    Build LedgerSettings from defaults, YAML and the environment.

    Args:
        path: YAML file.  Falls back to $INVENTORY_CONFIG when None.
        environ: Environment mapping.  Defaults to os.environ.
    """
    env = os.environ if environ is None else environ
    overrides: dict[str, Any] = {}

    config_path = path if path is not None else env.get(CONFIG_PATH_ENV)
    if config_path:
        for key, value in load_yaml_settings(Path(config_path)).items():
            overrides[key] = _coerce(key, value)

    for var, name in ENV_VARS.items():
        if var in env:
            overrides[name] = _coerce(name, env[var])

    return replace(LedgerSettings(), **overrides)


def settings_as_dict(settings: LedgerSettings) -> dict[str, Any]:
    """Settings as a plain mapping, with credentials masked in database_url."""
    out = {f.name: getattr(settings, f.name) for f in fields(settings)}
    out["database_url"] = _mask_url(settings.database_url)
    return out


def _mask_url(url: str) -> str:
    scheme, sep, rest = url.partition("://")
    if not sep or "@" not in rest:
        return url
    creds, _, host = rest.rpartition("@")
    user = creds.split(":", 1)[0]
    return f"{scheme}://{user}:***@{host}"
