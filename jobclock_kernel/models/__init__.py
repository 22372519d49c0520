"""ORM models for the jobclock kernel ledger store."""

from jobclock_kernel.models.inventory import EmployeeProductInventory, JobProductUsage
from jobclock_kernel.models.job import Job, JobSecondaryWorker, JobStatus
from jobclock_kernel.models.job_log import JobLog, JobLogAction
from jobclock_kernel.models.product import Product

__all__ = [
    "EmployeeProductInventory",
    "Job",
    "JobLog",
    "JobLogAction",
    "JobProductUsage",
    "JobSecondaryWorker",
    "JobStatus",
    "Product",
]
