"""
Config -> Kernel Bridges.

Functions that turn EngineSettings into configured kernel objects.  These
live in jobclock_config (the producer) because the kernel must NEVER
import jobclock_config.

Usage:
    from jobclock_config import get_active_config
    from jobclock_config.bridges import build_lifecycle_controller, init_engine

    settings = get_active_config()
    init_engine(settings)
    controller = build_lifecycle_controller(settings)
"""

from __future__ import annotations

from typing import Callable

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from jobclock_config.schema import EngineSettings
from jobclock_kernel.db.engine import init_engine_from_url
from jobclock_kernel.domain.clock import Clock
from jobclock_kernel.services.lifecycle_controller import JobLifecycleController
from jobclock_kernel.services.lock_registry import KeyedLockRegistry
from jobclock_kernel.services.transaction_coordinator import TransactionCoordinator


def init_engine(settings: EngineSettings) -> Engine:
    return init_engine_from_url(
        settings.database_url,
        echo=settings.database_echo,
        sqlite_busy_timeout=settings.sqlite_busy_timeout_seconds,
    )


def build_lock_registry(settings: EngineSettings) -> KeyedLockRegistry:
    return KeyedLockRegistry(timeout_seconds=settings.lock_timeout_seconds)


def build_lifecycle_controller(
    settings: EngineSettings,
    session_factory: Callable[[], Session] | None = None,
    clock: Clock | None = None,
    lock_registry: KeyedLockRegistry | None = None,
) -> JobLifecycleController:
    """Wire a controller and its coordinator from settings.

    ``session_factory`` defaults to the kernel's global factory, so
    ``init_engine()`` must have run first when it is omitted.
    """
    coordinator = TransactionCoordinator(
        session_factory=session_factory,
        clock=clock,
        lock_registry=lock_registry or build_lock_registry(settings),
    )
    return JobLifecycleController(
        coordinator,
        clock=clock,
        clock_in_lead=settings.clock_in_lead,
        abort_on_invalid_quantity=settings.abort_on_invalid_quantity,
        display_places=settings.quantity_display_places,
        display_timezone=settings.display_tz,
    )
