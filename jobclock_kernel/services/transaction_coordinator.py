"""
TransactionCoordinator -- atomic, per-job serialized application of mutations.

Responsibility:
    Owns the transaction boundary for clock-in and clock-out.  Takes the
    job lock (registry key + ``SELECT ... FOR UPDATE``), optionally the
    worker+product inventory locks, applies a pre-built list of mutation
    intents in order, and commits once.

Architecture position:
    Kernel > Services -- imperative shell.  The only component in the
    kernel that calls ``session.commit()``; every other service flushes
    within the session it is handed.

Invariants enforced:
    - All-or-nothing: every mutation applied inside ``job_transaction()``
      commits together or is rolled back together.
    - Mutations apply in the order supplied, flushing after each so later
      mutations observe earlier ones.
    - UpdateJob is the last data mutation of a batch (``run_atomic``
      rejects any other ordering).
    - Calls for the same job serialize; calls for different jobs only share
      inventory keys when the same worker reconciles the same product.

Failure modes:
    - TransactionFailedError: any SQLAlchemyError, lock timeout, or ledger
      guard violation; the transaction is rolled back first.
    - Domain errors (JobClockError subclasses) raised by the caller's block
      are rolled back and re-raised unchanged.

Audit relevance:
    AppendLog mutations are routed through JobAuditLogger, so the audit
    trail and the data it describes commit in the same transaction.
"""

import time
from contextlib import ExitStack, contextmanager
from typing import Callable, Iterable, Iterator, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from jobclock_kernel.db.engine import get_session_factory
from jobclock_kernel.domain.clock import Clock, SystemClock
from jobclock_kernel.domain.dtos import AtomicResult, InventoryHolding, JobState
from jobclock_kernel.domain.mutations import (
    DATA_MUTATIONS,
    AppendLog,
    Mutation,
    UpdateInventory,
    UpdateJob,
    UpsertUsage,
)
from jobclock_kernel.exceptions import (
    ErrorKind,
    ImmutabilityError,
    InventoryNotAssignedError,
    JobClockError,
    JobNotFoundError,
    StorageError,
    TransactionFailedError,
)
from jobclock_kernel.logging_config import LogContext, get_logger
from jobclock_kernel.models.inventory import EmployeeProductInventory, JobProductUsage
from jobclock_kernel.models.job import Job
from jobclock_kernel.services.audit_logger import JobAuditLogger
from jobclock_kernel.services.lock_registry import (
    KeyedLockRegistry,
    inventory_lock_key,
    job_lock_key,
)

logger = get_logger("services.transaction_coordinator")


class JobTransaction:
    """
    Handle yielded by ``TransactionCoordinator.job_transaction()``.

    Contract:
        Valid only inside the ``with`` block that produced it.  The job key
        is already held; ``lock_inventory()`` may be called at most once.
    """

    def __init__(
        self,
        session: Session,
        job_id: UUID,
        actor_id: UUID,
        clock: Clock,
        locks: KeyedLockRegistry,
        stack: ExitStack,
    ):
        self.session = session
        self.job_id = job_id
        self.actor_id = actor_id
        self._locks = locks
        self._stack = stack
        self._audit = JobAuditLogger(session, clock)
        self._job: Job | None = None
        self._inventory: dict[tuple[UUID, UUID], EmployeeProductInventory] = {}
        self._inventory_locked = False
        self.applied = 0

    # -- reads under lock -------------------------------------------------

    def lock_job(self) -> Job | None:
        """Load the job row with ``FOR UPDATE`` (None if it does not exist)."""
        if self._job is None:
            self._job = self.session.execute(
                select(Job)
                .where(Job.id == self.job_id)
                .with_for_update(of=Job)
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
        return self._job

    def job_state(self) -> JobState | None:
        """Frozen snapshot of the locked job for the lifecycle rules."""
        job = self.lock_job()
        if job is None:
            return None
        return JobState(
            job_id=job.id,
            primary_worker_id=job.primary_worker_id,
            secondary_worker_ids=job.secondary_worker_ids,
            status=job.current_status,
            scheduled_start=job.scheduled_start,
            clock_in_at=job.clock_in_at,
            clock_out_at=job.clock_out_at,
        )

    def lock_inventory(
        self, pairs: Iterable[tuple[UUID, UUID]]
    ) -> dict[tuple[UUID, UUID], EmployeeProductInventory]:
        """
        Lock the (worker, product) inventory rows for the rest of the transaction.

        Rows that do not exist are simply absent from the result.

        Raises:
            RuntimeError: If called twice in one transaction.
            LockTimeoutError: If a registry key cannot be acquired.
        """
        if self._inventory_locked:
            raise RuntimeError("Inventory already locked for this transaction")
        self._inventory_locked = True

        wanted = set(pairs)
        if not wanted:
            return {}
        # Job row first: fixes the lock order and opens the DB transaction.
        self.lock_job()
        self._stack.enter_context(
            self._locks.hold(*(inventory_lock_key(w, p) for w, p in wanted))
        )

        for worker_id in sorted({w for w, _ in wanted}, key=str):
            product_ids = sorted((p for w, p in wanted if w == worker_id), key=str)
            rows = self.session.execute(
                select(EmployeeProductInventory)
                .where(
                    EmployeeProductInventory.worker_id == worker_id,
                    EmployeeProductInventory.product_id.in_(product_ids),
                )
                .order_by(EmployeeProductInventory.product_id)
                .with_for_update(of=EmployeeProductInventory)
                .execution_options(populate_existing=True)
            ).unique().scalars().all()
            for row in rows:
                self._inventory[(row.worker_id, row.product_id)] = row
        return dict(self._inventory)

    def holdings(self, worker_id: UUID) -> dict[UUID, InventoryHolding]:
        """The locked inventory rows of one worker as domain snapshots."""
        return {
            product_id: InventoryHolding(
                worker_id=row.worker_id,
                product_id=row.product_id,
                product_name=row.product.name,
                unit=row.product.unit,
                quantity=row.quantity,
            )
            for (owner, product_id), row in self._inventory.items()
            if owner == worker_id
        }

    # -- writes -----------------------------------------------------------

    def apply_update_job(self, mutation: UpdateJob) -> None:
        job = self.lock_job()
        if job is None:
            raise JobNotFoundError(str(mutation.job_id))
        job.status = mutation.status.value
        if mutation.clock_in_at is not None:
            job.clock_in_at = mutation.clock_in_at
        if mutation.clock_out_at is not None:
            job.clock_out_at = mutation.clock_out_at
        job.updated_by_id = self.actor_id
        self.session.flush()

    def apply_upsert_usage(self, mutation: UpsertUsage) -> None:
        usage = self.session.execute(
            select(JobProductUsage).where(
                JobProductUsage.job_id == mutation.job_id,
                JobProductUsage.product_id == mutation.product_id,
            )
        ).unique().scalar_one_or_none()
        if usage is None:
            usage = JobProductUsage(
                job_id=mutation.job_id,
                product_id=mutation.product_id,
                quantity=mutation.used,
                inventory_before=mutation.inventory_before,
                inventory_after=mutation.inventory_after,
                created_by_id=self.actor_id,
            )
            self.session.add(usage)
        else:
            usage.quantity = usage.quantity + mutation.used
            usage.inventory_before = mutation.inventory_before
            usage.inventory_after = mutation.inventory_after
            usage.updated_by_id = self.actor_id
        self.session.flush()

    def apply_update_inventory(self, mutation: UpdateInventory) -> None:
        row = self._inventory.get((mutation.worker_id, mutation.product_id))
        if row is None:
            raise InventoryNotAssignedError(
                str(mutation.worker_id), str(mutation.product_id)
            )
        row.quantity = mutation.quantity
        row.updated_by_id = self.actor_id
        self.session.flush()

    def apply_append_log(self, mutation: AppendLog) -> None:
        self._audit.append(
            job_id=mutation.job_id,
            actor_id=mutation.actor_id,
            action=mutation.action,
            description=mutation.description,
            field=mutation.field,
            old_value=mutation.old_value,
            new_value=mutation.new_value,
        )

    def apply(self, mutation: Mutation) -> None:
        """Apply one mutation and flush."""
        if isinstance(mutation, UpdateJob):
            self.apply_update_job(mutation)
        elif isinstance(mutation, UpsertUsage):
            self.apply_upsert_usage(mutation)
        elif isinstance(mutation, UpdateInventory):
            self.apply_update_inventory(mutation)
        elif isinstance(mutation, AppendLog):
            self.apply_append_log(mutation)
        else:
            raise TypeError(f"Unknown mutation: {type(mutation).__name__}")
        self.applied += 1

    def apply_all(self, mutations: Sequence[Mutation]) -> int:
        for mutation in mutations:
            self.apply(mutation)
        return self.applied


class TransactionCoordinator:
    """
    Runs per-job transactions.

    Contract:
        Each ``job_transaction()`` uses its own session from the factory, so
        one coordinator may be shared across threads.

    Guarantees:
        - No partial writes are ever visible: on any failure the session is
          rolled back before the error leaves the block.
        - Nothing is retried; retry policy belongs to the caller.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] | None = None,
        clock: Clock | None = None,
        lock_registry: KeyedLockRegistry | None = None,
    ):
        self._session_factory = session_factory or get_session_factory()
        self._clock = clock or SystemClock()
        self._locks = lock_registry or KeyedLockRegistry()

    @property
    def locks(self) -> KeyedLockRegistry:
        return self._locks

    @contextmanager
    def job_transaction(self, job_id: UUID, actor_id: UUID) -> Iterator[JobTransaction]:
        """
        Open a transaction holding the job's lock.

        Postconditions:
            - On normal exit the session is committed.
            - On any exception it is rolled back; storage and guard failures
              surface as TransactionFailedError, domain errors unchanged.
        """
        start = time.monotonic()
        with LogContext.bind(job_id=str(job_id), actor_id=str(actor_id)):
            stack = ExitStack()
            session: Session | None = None
            try:
                stack.enter_context(self._locks.hold(job_lock_key(job_id)))
                session = self._session_factory()
                txn = JobTransaction(session, job_id, actor_id, self._clock, self._locks, stack)
                yield txn
                session.commit()
                logger.info(
                    "job_transaction_committed",
                    extra={
                        "mutations_applied": txn.applied,
                        "duration_ms": round((time.monotonic() - start) * 1000, 2),
                    },
                )
            except (SQLAlchemyError, StorageError, ImmutabilityError) as exc:
                if session is not None:
                    session.rollback()
                logger.error(
                    "job_transaction_failed",
                    extra={"error_code": getattr(exc, "code", type(exc).__name__)},
                    exc_info=True,
                )
                if isinstance(exc, TransactionFailedError):
                    raise
                raise TransactionFailedError(str(job_id), str(exc)) from exc
            except Exception:
                if session is not None:
                    session.rollback()
                logger.info("job_transaction_rolled_back")
                raise
            finally:
                if session is not None:
                    session.close()
                stack.close()

    def run_atomic(
        self,
        job_id: UUID,
        mutations: Sequence[Mutation],
        actor_id: UUID | None = None,
    ) -> AtomicResult:
        """
        Apply a pre-built list of mutations as one atomic unit.

        Inventory rows named by UpdateInventory mutations are locked before
        anything is written.

        Raises:
            ValueError: If a mutation targets another job, or a data
                mutation follows the UpdateJob.
        """
        _validate_batch(job_id, mutations)
        actor = actor_id or _first_actor(mutations)
        pairs = [
            (m.worker_id, m.product_id)
            for m in mutations
            if isinstance(m, UpdateInventory)
        ]
        try:
            with self.job_transaction(job_id, actor) as txn:
                txn.lock_inventory(pairs)
                applied = txn.apply_all(mutations)
        except JobClockError as exc:
            kind = exc.error_kind or ErrorKind.TRANSACTION_FAILED
            logger.warning(
                "run_atomic_failed",
                extra={"job_id": str(job_id), "error_code": exc.code},
            )
            return AtomicResult(success=False, error_kind=kind, message=str(exc))
        return AtomicResult(success=True, applied=applied)


def _validate_batch(job_id: UUID, mutations: Sequence[Mutation]) -> None:
    job_update_seen = False
    for mutation in mutations:
        target = getattr(mutation, "job_id", job_id)
        if target != job_id:
            raise ValueError(f"Mutation {mutation!r} targets job {target}, not {job_id}")
        if isinstance(mutation, DATA_MUTATIONS):
            if job_update_seen:
                raise ValueError("UpdateJob must be the last data mutation")
            if isinstance(mutation, UpdateJob):
                job_update_seen = True


def _first_actor(mutations: Sequence[Mutation]) -> UUID:
    for mutation in mutations:
        if isinstance(mutation, AppendLog):
            return mutation.actor_id
    raise ValueError("actor_id is required when no AppendLog names an actor")
