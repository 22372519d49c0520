"""
Configuration schema (``jobclock_config.schema``).

Frozen dataclasses describing the engine settings.  Parsed by
``jobclock_config.loader``; translated into kernel constructor arguments by
``jobclock_config.bridges``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta, tzinfo
from zoneinfo import ZoneInfo


@dataclass(frozen=True)
class EngineSettings:
    """Runtime settings for the time-tracking and reconciliation engine."""

    config_id: str
    version: int
    database_url: str
    checksum: str
    database_echo: bool = False
    sqlite_busy_timeout_seconds: float = 30.0
    clock_in_lead_minutes: int = 15
    display_timezone: str = "UTC"
    quantity_display_places: int = 2
    abort_on_invalid_quantity: bool = False
    lock_timeout_seconds: float = 10.0

    @property
    def clock_in_lead(self) -> timedelta:
        return timedelta(minutes=self.clock_in_lead_minutes)

    @property
    def display_tz(self) -> tzinfo:
        return ZoneInfo(self.display_timezone)
