"""
Module: jobclock_kernel.models.job
Responsibility: ORM persistence for scheduled cleaning jobs and their
    secondary-worker assignments.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced (ORM guards in db/immutability.py):
    - clock_in_at is write-once.
    - clock_out_at is write-once and may only be set after clock_in_at.
    - COMPLETED jobs carry both timestamps or neither.
    - log_seq only ever increases; it is the per-job JobLog ordering counter.

Failure modes:
    - ImmutabilityViolationError / LedgerInvariantError on flush when a
      guard above is violated.

Audit relevance:
    Job is the aggregate root for time tracking.  Every change made by the
    lifecycle controller is mirrored by JobLog rows appended in the same
    transaction.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from jobclock_kernel.db.base import TrackedBase, UTCDateTime, UUIDString, Base


class JobStatus(str, Enum):
    """Lifecycle status of a job.

    Contract: CREATED -> SCHEDULED -> IN_PROGRESS -> COMPLETED, with
    CANCELLED reachable from any non-terminal state.  IN_PROGRESS is entered
    only by clock-in and COMPLETED only by clock-out on the time-tracking path.
    """

    CREATED = "CREATED"
    SCHEDULED = "SCHEDULED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class Job(TrackedBase):
    """
    One scheduled cleaning engagement.

    Contract:
        Assigned to exactly one primary worker and zero or more secondary
        workers.  Worker ids reference the external user directory (no FK).

    Guarantees:
        - clock_in_at / clock_out_at are timezone-aware UTC or None.
        - log_seq equals the seq of the last JobLog appended for this job.

    Non-goals:
        - Monetary fields are carried for the surrounding application only;
          the kernel never computes with them.
    """

    __tablename__ = "jobs"

    __table_args__ = (
        Index("idx_job_primary_worker", "primary_worker_id"),
        Index("idx_job_status", "status"),
        Index("idx_job_scheduled_start", "scheduled_start"),
        CheckConstraint("log_seq >= 0", name="ck_job_log_seq_non_negative"),
    )

    primary_worker_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    client_name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    location: Mapped[str | None] = mapped_column(String(500), nullable=True)

    scheduled_start: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
    )
    scheduled_end: Mapped[datetime | None] = mapped_column(
        UTCDateTime(),
        nullable=True,
    )

    status: Mapped[JobStatus] = mapped_column(
        String(20),
        default=JobStatus.SCHEDULED.value,
        nullable=False,
    )

    clock_in_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(),
        nullable=True,
        active_history=True,
    )
    clock_out_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(),
        nullable=True,
        active_history=True,
    )

    log_seq: Mapped[int] = mapped_column(
        BigInteger,
        default=0,
        nullable=False,
        active_history=True,
    )

    # Display-only money fields
    price: Mapped[Decimal | None] = mapped_column(nullable=True)
    employee_pay: Mapped[Decimal | None] = mapped_column(nullable=True)
    total_tip: Mapped[Decimal | None] = mapped_column(nullable=True)
    parking: Mapped[Decimal | None] = mapped_column(nullable=True)

    secondary_workers: Mapped[list["JobSecondaryWorker"]] = relationship(
        back_populates="job",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Job {self.id} status={self.current_status.value}>"

    @property
    def current_status(self) -> JobStatus:
        return JobStatus(self.status)

    @property
    def secondary_worker_ids(self) -> frozenset[UUID]:
        return frozenset(sw.worker_id for sw in self.secondary_workers)


class JobSecondaryWorker(Base):
    """Association row: a secondary worker (cleaner) assigned to a job."""

    __tablename__ = "job_secondary_workers"

    __table_args__ = (
        UniqueConstraint("job_id", "worker_id", name="uq_job_secondary_worker"),
        Index("idx_job_secondary_worker", "worker_id"),
    )

    job_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("jobs.id"),
        nullable=False,
    )
    worker_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    job: Mapped["Job"] = relationship(back_populates="secondary_workers")
