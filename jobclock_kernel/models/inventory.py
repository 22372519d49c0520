"""
Module: jobclock_kernel.models.inventory
Responsibility: ORM persistence for the two quantity ledgers written by
    reconciliation: the per-worker on-hand inventory and the per-job
    cumulative usage.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - EmployeeProductInventory.quantity >= 0 (CHECK + ORM guard).
    - One inventory row per (worker, product); one usage row per (job, product).
    - JobProductUsage.quantity never decreases (ORM guard).

Failure modes:
    - IntegrityError on a duplicate (worker, product) or (job, product) row.
    - LedgerInvariantError on flush of a negative inventory quantity or a
      decreasing usage quantity.

Audit relevance:
    Each positive reconciliation that touches these rows is paired with a
    PRODUCT_USED JobLog in the same transaction.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from jobclock_kernel.db.base import TrackedBase, UUIDString, non_negative
from jobclock_kernel.models.product import Product


class EmployeeProductInventory(TrackedBase):
    """
    Quantity of one product currently held by one worker.

    Contract:
        The single source of truth for how much a worker carries.  Created by
        product assignment; decremented only by clock-out reconciliation.
    """

    __tablename__ = "employee_product_inventory"

    __table_args__ = (
        UniqueConstraint("worker_id", "product_id", name="uq_inventory_worker_product"),
        Index("idx_inventory_worker", "worker_id"),
        non_negative("quantity", "ck_inventory_quantity_non_negative"),
    )

    worker_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=False,
    )
    quantity: Mapped[Decimal] = mapped_column(nullable=False)

    product: Mapped[Product] = relationship(lazy="joined")

    def __repr__(self) -> str:
        return f"<EmployeeProductInventory worker={self.worker_id} product={self.product_id} qty={self.quantity}>"


class JobProductUsage(TrackedBase):
    """
    Cumulative consumption of one product on one job.

    Contract:
        quantity only accumulates.  inventory_before / inventory_after hold
        the worker's on-hand snapshot from the latest reconciliation.
    """

    __tablename__ = "job_product_usage"

    __table_args__ = (
        UniqueConstraint("job_id", "product_id", name="uq_usage_job_product"),
        Index("idx_usage_job", "job_id"),
        non_negative("quantity", "ck_usage_quantity_non_negative"),
    )

    job_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("jobs.id"),
        nullable=False,
    )
    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=False,
    )
    quantity: Mapped[Decimal] = mapped_column(nullable=False, active_history=True)
    inventory_before: Mapped[Decimal | None] = mapped_column(nullable=True)
    inventory_after: Mapped[Decimal | None] = mapped_column(nullable=True)

    product: Mapped[Product] = relationship(lazy="joined")

    def __repr__(self) -> str:
        return f"<JobProductUsage job={self.job_id} product={self.product_id} qty={self.quantity}>"
