"""
JobService -- job scheduling writes.

Responsibility:
    Creates jobs with their primary and secondary workers so they can be
    clocked in and out, and records the CREATED history entry.

Architecture position:
    Kernel > Services -- imperative shell, flush-only.

Failure modes:
    - ValueError if the schedule is inconsistent or the initial status is
      not CREATED or SCHEDULED.
"""

from datetime import datetime
from typing import Iterable
from uuid import UUID

from sqlalchemy.orm import Session

from jobclock_kernel.domain.clock import Clock, SystemClock
from jobclock_kernel.logging_config import get_logger
from jobclock_kernel.models.job import Job, JobSecondaryWorker, JobStatus
from jobclock_kernel.models.job_log import JobLogAction
from jobclock_kernel.services.audit_logger import JobAuditLogger
from jobclock_kernel.services.base import BaseService

logger = get_logger("services.job")

_INITIAL_STATUSES = (JobStatus.CREATED, JobStatus.SCHEDULED)


class JobService(BaseService[Job]):
    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._audit = JobAuditLogger(session, clock or SystemClock())

    def schedule_job(
        self,
        primary_worker_id: UUID,
        scheduled_start: datetime,
        actor_id: UUID,
        client_name: str = "",
        secondary_worker_ids: Iterable[UUID] = (),
        scheduled_end: datetime | None = None,
        description: str | None = None,
        location: str | None = None,
        status: JobStatus = JobStatus.SCHEDULED,
    ) -> Job:
        """
        Create a job and append its CREATED log entry.

        The primary worker is never duplicated into the secondary set.
        """
        if status not in _INITIAL_STATUSES:
            raise ValueError(f"New jobs start as CREATED or SCHEDULED, not {status.value}")
        if scheduled_end is not None and scheduled_end < scheduled_start:
            raise ValueError("scheduled_end precedes scheduled_start")

        job = Job(
            primary_worker_id=primary_worker_id,
            client_name=client_name,
            description=description,
            location=location,
            scheduled_start=scheduled_start,
            scheduled_end=scheduled_end,
            status=status.value,
            log_seq=0,
            created_by_id=actor_id,
        )
        seen = {primary_worker_id}
        for worker_id in secondary_worker_ids:
            if worker_id in seen:
                continue
            seen.add(worker_id)
            job.secondary_workers.append(JobSecondaryWorker(worker_id=worker_id))

        self.session.add(job)
        self.session.flush()

        self._audit.append(
            job_id=job.id,
            actor_id=actor_id,
            action=JobLogAction.CREATED,
            description=f"Job created for {client_name}" if client_name else "Job created",
        )

        logger.info(
            "job_scheduled",
            extra={
                "job_id": str(job.id),
                "primary_worker_id": str(primary_worker_id),
                "secondary_worker_count": len(seen) - 1,
                "scheduled_start": scheduled_start,
            },
        )
        return job
