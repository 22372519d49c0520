"""
Module: jobclock_kernel.models.job_log
Responsibility: ORM persistence for the append-only, per-job audit trail.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Append-only: no UPDATE or DELETE (ORM guard in db/immutability.py).
    - (job_id, seq) is unique; seq is allocated from Job.log_seq under the
      job row lock, so entries order by creation within a job.
    - hash = H(job_id | seq | action | actor | description | field |
      old_value | new_value | prev_hash), validated by JobAuditLogger.

Failure modes:
    - ImmutabilityViolationError on any UPDATE/DELETE attempt.
    - IntegrityError if two writers allocate the same seq (prevented by
      the job lock).
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import BigInteger, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from jobclock_kernel.db.base import Base, UTCDateTime, UUIDString


class JobLogAction(str, Enum):
    """Kinds of job history entries.

    The lifecycle controller writes CLOCKED_IN, CLOCKED_OUT, STATUS_CHANGED
    and PRODUCT_USED; job scheduling writes CREATED.  The remaining members
    are written by the surrounding editing flows.
    """

    CREATED = "CREATED"
    UPDATED = "UPDATED"
    CLOCKED_IN = "CLOCKED_IN"
    CLOCKED_OUT = "CLOCKED_OUT"
    STATUS_CHANGED = "STATUS_CHANGED"
    PAYMENT_RECEIVED = "PAYMENT_RECEIVED"
    INVOICE_SENT = "INVOICE_SENT"
    PRODUCT_USED = "PRODUCT_USED"
    NOTE_ADDED = "NOTE_ADDED"
    CLEANER_ADDED = "CLEANER_ADDED"
    CLEANER_REMOVED = "CLEANER_REMOVED"


class JobLog(Base):
    """
    One immutable entry in a job's history.

    Guarantees:
        - Never updated or deleted once flushed.
        - prev_hash is None only for the first entry of a job.
    """

    __tablename__ = "job_logs"

    __table_args__ = (
        UniqueConstraint("job_id", "seq", name="uq_job_log_seq"),
        Index("idx_job_log_job", "job_id"),
        Index("idx_job_log_action", "action"),
    )

    job_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("jobs.id"),
        nullable=False,
    )
    seq: Mapped[int] = mapped_column(BigInteger, nullable=False)

    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    action: Mapped[JobLogAction] = mapped_column(String(30), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    field: Mapped[str | None] = mapped_column(String(50), nullable=True)
    old_value: Mapped[str | None] = mapped_column(String(255), nullable=True)
    new_value: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    prev_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    hash: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return f"<JobLog {self.job_id}#{self.seq} {JobLogAction(self.action).value}>"
