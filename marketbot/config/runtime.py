from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from marketbot.config.settings import (
    ANNOUNCEMENT_CHANNEL_ID,
    AUTO_ROTATE_DAYS,
    CATALOG_CACHE_TTL,
    DEFAULT_CURRENCY,
    DISPLAY_TIMEZONE,
    MAX_TRADE_QUANTITY,
    ROTATION_SIZE,
)
from marketbot.db.database import get_connection


@dataclass(frozen=True)
class AppConfigSpec:
    default: Any
    cast: Callable[[str], Any]
    description: str


APP_CONFIG_SPECS: dict[str, AppConfigSpec] = {
    "ROTATION_SIZE": AppConfigSpec(
        default=int(ROTATION_SIZE),
        cast=int,
        description="Number of items buffed by each market rotation.",
    ),
    "DEFAULT_CURRENCY": AppConfigSpec(
        default=str(DEFAULT_CURRENCY),
        cast=str,
        description="Payment type used when a base price has none.",
    ),
    "MAX_TRADE_QUANTITY": AppConfigSpec(
        default=int(MAX_TRADE_QUANTITY),
        cast=int,
        description="Largest quantity a buffed trade may offer.",
    ),
    "CATALOG_CACHE_TTL": AppConfigSpec(
        default=int(CATALOG_CACHE_TTL),
        cast=int,
        description="Seconds the bot reuses a parsed catalog; read at startup, 0 disables caching.",
    ),
    "DISPLAY_TIMEZONE": AppConfigSpec(
        default=str(DISPLAY_TIMEZONE),
        cast=str,
        description="Timezone used to date rotations.",
    ),
    "AUTO_ROTATE_DAYS": AppConfigSpec(
        default=int(AUTO_ROTATE_DAYS),
        cast=int,
        description="Rotate automatically after this many days; 0 means manual only.",
    ),
    "ANNOUNCEMENT_CHANNEL_ID": AppConfigSpec(
        default=int(ANNOUNCEMENT_CHANNEL_ID),
        cast=int,
        description="Discord channel ID used for rotation announcements; 0 means auto-pick.",
    ),
}


def _state_key(name: str) -> str:
    return f"config:{name}"


def _normalize(name: str, value: Any) -> Any:
    if name == "ROTATION_SIZE":
        return max(0, int(value))
    if name == "DEFAULT_CURRENCY":
        text = str(value).strip().upper()
        return text or str(DEFAULT_CURRENCY)
    if name == "MAX_TRADE_QUANTITY":
        return max(1, int(value))
    if name == "CATALOG_CACHE_TTL":
        return max(0, int(value))
    if name == "DISPLAY_TIMEZONE":
        text = str(value).strip()
        return text or str(DISPLAY_TIMEZONE)
    if name == "AUTO_ROTATE_DAYS":
        return max(0, int(value))
    if name == "ANNOUNCEMENT_CHANNEL_ID":
        return max(0, int(value))
    return value


def _to_string(value: Any) -> str:
    if isinstance(value, float):
        return f"{value:.12g}"
    return str(value)


def ensure_app_config_defaults(*, connection_factory: Callable = get_connection) -> None:
    with connection_factory() as conn:
        for name, spec in APP_CONFIG_SPECS.items():
            row = conn.execute(
                "SELECT value FROM app_state WHERE key = ?",
                (_state_key(name),),
            ).fetchone()
            if row is None:
                conn.execute(
                    """
                    INSERT INTO app_state (key, value)
                    VALUES (?, ?)
                    """,
                    (_state_key(name), _to_string(_normalize(name, spec.default))),
                )


def get_app_config(name: str, *, connection_factory: Callable = get_connection) -> Any:
    spec = APP_CONFIG_SPECS.get(name)
    if spec is None:
        raise KeyError(f"Unknown app config: {name}")
    with connection_factory() as conn:
        row = conn.execute(
            "SELECT value FROM app_state WHERE key = ?",
            (_state_key(name),),
        ).fetchone()
    if row is None:
        return _normalize(name, spec.default)
    raw = str(row["value"])
    try:
        parsed = spec.cast(raw)
    except (TypeError, ValueError):
        parsed = spec.default
    return _normalize(name, parsed)


def set_app_config(name: str, value: Any, *, connection_factory: Callable = get_connection) -> Any:
    spec = APP_CONFIG_SPECS.get(name)
    if spec is None:
        raise KeyError(f"Unknown app config: {name}")
    normalized = _normalize(name, value)
    with connection_factory() as conn:
        conn.execute(
            """
            INSERT INTO app_state (key, value)
            VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value
            """,
            (_state_key(name), _to_string(normalized)),
        )
    return normalized


def get_all_app_configs(*, connection_factory: Callable = get_connection) -> list[dict[str, Any]]:
    rows: list[dict[str, Any]] = []
    for name, spec in APP_CONFIG_SPECS.items():
        value = get_app_config(name, connection_factory=connection_factory)
        rows.append(
            {
                "name": name,
                "value": value,
                "default": _normalize(name, spec.default),
                "type": spec.cast.__name__,
                "description": spec.description,
            }
        )
    return rows
