"""
Module: jobclock_kernel.selectors.job_selector
Responsibility: Read-only queries over jobs, usage and worker inventory,
    returning frozen DTOs for callers that render clock-in / clock-out
    results.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Read-only; never flushes or commits.
    - Usage and inventory lists are ordered by product name so repeated
      reads are stable.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from jobclock_kernel.domain.dtos import InventoryHolding, JobView, UsageView
from jobclock_kernel.models.inventory import EmployeeProductInventory, JobProductUsage
from jobclock_kernel.models.job import Job
from jobclock_kernel.models.product import Product


class JobSelector:
    """
    Queries backing the job detail and worker inventory screens.

    The caller owns the session and its transaction; results are frozen
    DTOs, never ORM instances.
    """

    def __init__(self, session: Session):
        self.session = session

    def get_job(self, job_id: UUID) -> JobView | None:
        job = self.session.get(Job, job_id, populate_existing=True)
        if job is None:
            return None
        return JobView(
            job_id=job.id,
            primary_worker_id=job.primary_worker_id,
            secondary_worker_ids=job.secondary_worker_ids,
            client_name=job.client_name,
            status=job.current_status,
            scheduled_start=job.scheduled_start,
            scheduled_end=job.scheduled_end,
            clock_in_at=job.clock_in_at,
            clock_out_at=job.clock_out_at,
        )

    def usage_for_job(self, job_id: UUID) -> tuple[UsageView, ...]:
        rows = self.session.execute(
            select(JobProductUsage)
            .join(Product, JobProductUsage.product_id == Product.id)
            .where(JobProductUsage.job_id == job_id)
            .order_by(Product.name, JobProductUsage.product_id)
        ).unique().scalars().all()
        return tuple(
            UsageView(
                job_id=row.job_id,
                product_id=row.product_id,
                product_name=row.product.name,
                unit=row.product.unit,
                quantity=row.quantity,
                inventory_before=row.inventory_before,
                inventory_after=row.inventory_after,
            )
            for row in rows
        )

    def inventory_for_worker(self, worker_id: UUID) -> tuple[InventoryHolding, ...]:
        rows = self.session.execute(
            select(EmployeeProductInventory)
            .join(Product, EmployeeProductInventory.product_id == Product.id)
            .where(EmployeeProductInventory.worker_id == worker_id)
            .order_by(Product.name, EmployeeProductInventory.product_id)
        ).unique().scalars().all()
        return tuple(
            InventoryHolding(
                worker_id=row.worker_id,
                product_id=row.product_id,
                product_name=row.product.name,
                unit=row.product.unit,
                quantity=row.quantity,
            )
            for row in rows
        )

    def inventory_quantity(self, worker_id: UUID, product_id: UUID) -> Decimal | None:
        """On-hand quantity, or None when the worker was never assigned the product."""
        return self.session.execute(
            select(EmployeeProductInventory.quantity).where(
                EmployeeProductInventory.worker_id == worker_id,
                EmployeeProductInventory.product_id == product_id,
            )
        ).scalar_one_or_none()
