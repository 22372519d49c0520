"""
KeyedLockRegistry -- in-process per-key mutual exclusion.

Responsibility:
    Serializes callers that touch the same job or the same worker+product
    inventory row within one process, alongside the database row locks.

Architecture position:
    Kernel > Services -- infrastructure used by the TransactionCoordinator.

Invariants enforced:
    - Distinct keys never block one another.
    - Keys passed to one ``hold()`` call are acquired in sorted order; the
      coordinator always holds the job key before any inventory key, so
      lock order is global and deadlock-free.
    - Lock entries are reference counted and dropped when unused.

Failure modes:
    - LockTimeoutError if a key cannot be acquired before the timeout.
      Keys already taken by the failing call are released first.
"""

import threading
import time
from contextlib import contextmanager
from typing import Iterator
from uuid import UUID

from jobclock_kernel.exceptions import LockTimeoutError
from jobclock_kernel.logging_config import get_logger

logger = get_logger("services.lock_registry")

DEFAULT_LOCK_TIMEOUT_SECONDS = 10.0


def job_lock_key(job_id: UUID) -> str:
    return f"job:{job_id}"


def inventory_lock_key(worker_id: UUID, product_id: UUID) -> str:
    return f"inventory:{worker_id}:{product_id}"


class _Entry:
    __slots__ = ("lock", "refs")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.refs = 0


class KeyedLockRegistry:
    """
    A registry of named, non-reentrant locks.

    Contract:
        Use ``hold()`` as a context manager.  A thread must not request a
        key it already holds.
    """

    def __init__(self, timeout_seconds: float = DEFAULT_LOCK_TIMEOUT_SECONDS):
        self._timeout = timeout_seconds
        self._mutex = threading.Lock()
        self._entries: dict[str, _Entry] = {}

    def _checkout(self, key: str) -> _Entry:
        with self._mutex:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _Entry()
            entry.refs += 1
            return entry

    def _checkin(self, key: str, entry: _Entry) -> None:
        with self._mutex:
            entry.refs -= 1
            if entry.refs == 0:
                del self._entries[key]

    @contextmanager
    def hold(self, *keys: str, timeout: float | None = None) -> Iterator[None]:
        """
        Acquire every key (sorted, de-duplicated) for the duration of the block.

        Raises:
            LockTimeoutError: If any key is not acquired before the deadline.
        """
        limit = self._timeout if timeout is None else timeout
        deadline = time.monotonic() + limit
        acquired: list[tuple[str, _Entry]] = []
        try:
            for key in sorted(set(keys)):
                entry = self._checkout(key)
                remaining = max(deadline - time.monotonic(), 0.0)
                if not entry.lock.acquire(timeout=remaining):
                    self._checkin(key, entry)
                    logger.warning(
                        "lock_timeout",
                        extra={"lock_key": key, "timeout_seconds": limit},
                    )
                    raise LockTimeoutError(key, limit)
                acquired.append((key, entry))
            yield
        finally:
            for key, entry in reversed(acquired):
                entry.lock.release()
                self._checkin(key, entry)

    def is_held(self, key: str) -> bool:
        """True while some caller holds ``key``."""
        with self._mutex:
            entry = self._entries.get(key)
            return entry is not None and entry.lock.locked()

    def __len__(self) -> int:
        with self._mutex:
            return len(self._entries)
