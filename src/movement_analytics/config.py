# Movement Analytics - Financial movement analytics engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Configuration helpers for Movement Analytics.

This module is responsible for:
- loading the application configuration from a TOML file,
- exposing typed dataclasses used by the rest of the application.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:  # pragma: no cover - fallback for older Python
    import tomli as tomllib  # type: ignore[import]

from .db import DatabaseConfig

DEFAULT_CONFIG_FILE = "movement_analytics_config.toml"


@dataclass(frozen=True)
class AnalyticsSettings:
    """
    Tunables of the aggregation functions.

    Attributes
    ----------
    recent_limit:
        Maximum number of movements listed in itemized detail.
    trend_window_months:
        Length of the default trailing window of the cash-flow trend, in
        calendar months, used when no date range is given.
    default_currency_symbol:
        Symbol shown when movements carry no currency symbol.
    """

    recent_limit: int = 15
    trend_window_months: int = 3
    default_currency_symbol: str = "$"


DEFAULT_SETTINGS = AnalyticsSettings()


@dataclass(frozen=True)
class AppConfig:
    """
    Application-wide configuration for Movement Analytics.

    This aggregates:
    - the database configuration (where movements are stored),
    - the analytics tunables,
    - the default organization used by the CLI,
    - the logging level.
    """

    database: DatabaseConfig
    analytics: AnalyticsSettings = field(default_factory=AnalyticsSettings)
    organization_id: Optional[str] = None
    log_level: str = "INFO"


def _load_toml(path: Path) -> dict[str, Any]:
    """
    Load a TOML file and return its content as a dictionary.

    Raises:
        FileNotFoundError: if the file does not exist.
        ValueError: if the TOML content cannot be parsed or is not a table.
    """
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except Exception as exc:  # noqa: BLE001
        raise ValueError(f"Failed to parse TOML config file: {path}") from exc

    if not isinstance(data, dict):
        raise ValueError(f"Invalid TOML root type in {path}, expected a table.")

    return data


def _section(raw: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    section = raw.get(name) or {}
    if not isinstance(section, Mapping):
        return {}
    return section


def _positive_int(section: Mapping[str, Any], key: str, default: int) -> int:
    raw_value = section.get(key, default)
    try:
        value = int(raw_value)
    except (TypeError, ValueError) as exc:
        raise ValueError(
            f"Invalid value for 'analytics.{key}' in the configuration. "
            "Expected an integer."
        ) from exc
    if value <= 0:
        raise ValueError(
            f"Invalid value for 'analytics.{key}' in the configuration. "
            "Expected a positive integer."
        )
    return value


def _parse_analytics(config_data: Mapping[str, Any]) -> AnalyticsSettings:
    """
    Extract the [analytics] section, falling back to defaults.

    Raises:
        ValueError: if a numeric option is not a positive integer.
    """
    section = _section(config_data, "analytics")

    return AnalyticsSettings(
        recent_limit=_positive_int(
            section, "recent_limit", DEFAULT_SETTINGS.recent_limit
        ),
        trend_window_months=_positive_int(
            section, "trend_window_months", DEFAULT_SETTINGS.trend_window_months
        ),
        default_currency_symbol=str(
            section.get("default_currency_symbol")
            or DEFAULT_SETTINGS.default_currency_symbol
        ),
    )


def load_app_config(config_path: Optional[str] = None) -> AppConfig:
    """
    Load the Movement Analytics configuration from a TOML file.

    Expected top-level sections in the TOML file
    --------------------------------------------
    [database]
        Database engine and SQLite file path (relative paths are resolved
        against the directory of the TOML file).

    [analytics]
        Optional tunables: recent_limit, trend_window_months,
        default_currency_symbol.

    [organization]
        Optional default organization id used by the CLI (key ``id``).

    [logging]
        Optional logging level (key ``level``).

    Parameters
    ----------
    config_path:
        Path to the TOML configuration file. Defaults to
        ``movement_analytics_config.toml`` in the current directory.

    Returns
    -------
    AppConfig
        Parsed and validated application configuration.
    """
    if config_path is None:
        config_file = Path(DEFAULT_CONFIG_FILE).resolve()
    else:
        config_file = Path(config_path).resolve()

    raw = _load_toml(config_file)
    base_dir = config_file.parent

    # 1) Database section
    database_section = _section(raw, "database")
    db_engine = str(database_section.get("engine") or "sqlite")
    db_path_raw = database_section.get("path") or "data/db/movements.sqlite"
    db_path = (base_dir / str(db_path_raw)).resolve()

    # 2) Analytics options
    analytics = _parse_analytics(raw)

    # 3) Default organization
    organization_section = _section(raw, "organization")
    organization_raw = organization_section.get("id")
    organization_id = str(organization_raw) if organization_raw else None

    # 4) Logging
    logging_section = _section(raw, "logging")
    log_level = str(logging_section.get("level") or "INFO").upper()

    return AppConfig(
        database=DatabaseConfig(engine=db_engine, path=db_path),
        analytics=analytics,
        organization_id=organization_id,
        log_level=log_level,
    )
