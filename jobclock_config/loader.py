"""
Configuration Loader (``jobclock_config.loader``).

Responsibility
--------------
Loads a YAML settings file and parses it into a frozen ``EngineSettings``.
This is internal tooling; the single public entry point for runtime
config is ``jobclock_config.get_active_config()``.

Invariants enforced
-------------------
* Every section is optional, but a value that is present must be valid:
  parse errors raise ``ValueError`` with a descriptive message.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the
  effective settings for change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Out-of-range values or unknown timezone  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from jobclock_config.schema import EngineSettings


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    canonical = json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"Section '{name}' must be a mapping")
    return section


def parse_engine_settings(
    data: dict[str, Any],
    database_url_override: str | None = None,
) -> EngineSettings:
    """
    Parse a settings document.

    Args:
        data: The loaded YAML mapping.
        database_url_override: Replaces ``database.url`` when given.

    Raises:
        ValueError: On a missing database URL or an out-of-range value.
    """
    database = _section(data, "database")
    lifecycle = _section(data, "lifecycle")
    reconciliation = _section(data, "reconciliation")
    locking = _section(data, "locking")

    database_url = database_url_override or database.get("url")
    if not database_url:
        raise ValueError("database.url is required")

    lead = int(lifecycle.get("clock_in_lead_minutes", 15))
    if lead < 0:
        raise ValueError(f"clock_in_lead_minutes must be >= 0, got {lead}")

    timezone_name = str(lifecycle.get("display_timezone", "UTC"))
    try:
        ZoneInfo(timezone_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown display_timezone: {timezone_name}") from exc

    places = int(reconciliation.get("quantity_display_places", 2))
    if not 0 <= places <= 9:
        raise ValueError(f"quantity_display_places must be 0..9, got {places}")

    lock_timeout = float(locking.get("lock_timeout_seconds", 10))
    if lock_timeout <= 0:
        raise ValueError(f"lock_timeout_seconds must be > 0, got {lock_timeout}")

    busy_timeout = float(database.get("sqlite_busy_timeout_seconds", 30))

    effective = {
        "config_id": str(data.get("config_id", "jobclock")),
        "version": int(data.get("version", 1)),
        "database_url": database_url,
        "database_echo": bool(database.get("echo", False)),
        "sqlite_busy_timeout_seconds": busy_timeout,
        "clock_in_lead_minutes": lead,
        "display_timezone": timezone_name,
        "quantity_display_places": places,
        "abort_on_invalid_quantity": bool(
            reconciliation.get("abort_on_invalid_quantity", False)
        ),
        "lock_timeout_seconds": lock_timeout,
    }
    return EngineSettings(checksum=compute_checksum(effective), **effective)
