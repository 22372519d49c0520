"""
JobAuditLogger -- append-only, hash-chained job history.

Responsibility:
    Appends immutable JobLog entries describing each state transition and
    each inventory consumption event, and reads them back in creation order.
    Provides chain validation for tamper detection.

Architecture position:
    Kernel > Services -- imperative shell, invoked by the
    TransactionCoordinator when it applies an AppendLog mutation, and by
    JobService when a job is scheduled.  Never invoked directly by UI code.

Invariants enforced:
    - Append-only: there is no update or delete method; the JobLog model is
      additionally protected by ORM guards.
    - Per-job ordering: seq = Job.log_seq + 1, allocated while the caller
      holds the job row lock, so entries are retrievable in creation order.
    - Chain integrity: hash = H(job_id, seq, action, payload_hash, prev_hash).

Failure modes:
    - JobNotFoundError if the job does not exist.
    - SQLAlchemyError on storage failure (propagated, never swallowed).
    - AuditChainBrokenError from validate_chain() on any mismatch.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from jobclock_kernel.domain.clock import Clock, SystemClock
from jobclock_kernel.domain.dtos import JobLogEntry
from jobclock_kernel.exceptions import AuditChainBrokenError, JobNotFoundError
from jobclock_kernel.logging_config import get_logger
from jobclock_kernel.models.job import Job
from jobclock_kernel.models.job_log import JobLog, JobLogAction
from jobclock_kernel.services.base import BaseService
from jobclock_kernel.utils.hashing import hash_job_log

logger = get_logger("services.audit_logger")


def _action_value(action: JobLogAction | str) -> str:
    return action.value if isinstance(action, JobLogAction) else action


class JobAuditLogger(BaseService[JobLog]):
    """
    Writer and reader of the per-job audit trail.

    Contract:
        ``append()`` must be called inside a transaction that holds the
        job's lock; it bumps ``Job.log_seq`` and flushes the new entry.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def _last_hash(self, job_id: UUID, seq: int) -> str | None:
        if seq == 0:
            return None
        return self.session.execute(
            select(JobLog.hash).where(JobLog.job_id == job_id, JobLog.seq == seq)
        ).scalar_one_or_none()

    def append(
        self,
        job_id: UUID,
        actor_id: UUID,
        action: JobLogAction,
        description: str,
        field: str | None = None,
        old_value: str | None = None,
        new_value: str | None = None,
    ) -> JobLog:
        """
        Append one entry to a job's history.

        Postconditions:
            - A new JobLog row is flushed with seq one greater than the
              previous entry for the job, linked to its hash.

        Raises:
            JobNotFoundError: If the job does not exist.
        """
        job = self.session.get(Job, job_id)
        if job is None:
            raise JobNotFoundError(str(job_id))

        prev_seq = job.log_seq or 0
        seq = prev_seq + 1
        prev_hash = self._last_hash(job_id, prev_seq)
        action_value = _action_value(action)

        entry_hash = hash_job_log(
            job_id=job_id,
            seq=seq,
            action=action_value,
            actor_id=actor_id,
            description=description,
            field=field,
            old_value=old_value,
            new_value=new_value,
            prev_hash=prev_hash,
        )

        entry = JobLog(
            job_id=job_id,
            seq=seq,
            actor_id=actor_id,
            action=action_value,
            description=description,
            field=field,
            old_value=old_value,
            new_value=new_value,
            created_at=self._clock.now_utc(),
            prev_hash=prev_hash,
            hash=entry_hash,
        )
        job.log_seq = seq
        self.session.add(entry)
        self.session.flush()

        logger.info(
            "job_log_appended",
            extra={
                "job_id": str(job_id),
                "seq": seq,
                "action": action_value,
            },
        )
        return entry

    def trail(self, job_id: UUID) -> tuple[JobLogEntry, ...]:
        """All entries for a job in creation order."""
        rows = self.session.execute(
            select(JobLog).where(JobLog.job_id == job_id).order_by(JobLog.seq)
        ).scalars().all()
        return tuple(
            JobLogEntry(
                job_id=row.job_id,
                seq=row.seq,
                actor_id=row.actor_id,
                action=JobLogAction(row.action),
                description=row.description,
                field=row.field,
                old_value=row.old_value,
                new_value=row.new_value,
                created_at=row.created_at,
                hash=row.hash,
            )
            for row in rows
        )

    def validate_chain(self, job_id: UUID) -> bool:
        """
        Recompute every hash in a job's trail.

        Returns:
            True when the chain is intact (an empty trail is intact).

        Raises:
            AuditChainBrokenError: On the first entry whose stored hash,
                prev_hash link, or seq does not match.
        """
        rows = self.session.execute(
            select(JobLog).where(JobLog.job_id == job_id).order_by(JobLog.seq)
        ).scalars().all()

        prev_hash: str | None = None
        for expected_seq, row in enumerate(rows, start=1):
            if row.seq != expected_seq:
                logger.critical(
                    "audit_chain_broken",
                    extra={"job_id": str(job_id), "seq": row.seq, "reason": "gap"},
                )
                raise AuditChainBrokenError(
                    str(job_id), row.seq, f"seq {expected_seq}", f"seq {row.seq}"
                )
            if row.prev_hash != prev_hash:
                logger.critical(
                    "audit_chain_broken",
                    extra={"job_id": str(job_id), "seq": row.seq, "reason": "link"},
                )
                raise AuditChainBrokenError(
                    str(job_id), row.seq, prev_hash or "None", row.prev_hash or "None"
                )

            expected_hash = hash_job_log(
                job_id=row.job_id,
                seq=row.seq,
                action=_action_value(row.action),
                actor_id=row.actor_id,
                description=row.description,
                field=row.field,
                old_value=row.old_value,
                new_value=row.new_value,
                prev_hash=row.prev_hash,
            )
            if row.hash != expected_hash:
                logger.critical(
                    "audit_chain_broken",
                    extra={"job_id": str(job_id), "seq": row.seq, "reason": "hash"},
                )
                raise AuditChainBrokenError(str(job_id), row.seq, expected_hash, row.hash)
            prev_hash = row.hash

        return True
