"""
InventoryAssignmentService -- hands products to workers.

Responsibility:
    Creates or resets a worker's on-hand quantity of a product.  This is the
    only writer of EmployeeProductInventory besides clock-out
    reconciliation, and the only one that may raise a quantity.

Architecture position:
    Kernel > Services -- imperative shell, flush-only.  Takes the same row
    lock (``FOR UPDATE``) that clock-out takes on the inventory row.

Failure modes:
    - ProductNotFoundError if the product does not exist.
    - InvalidQuantityError if the quantity is malformed or negative.
"""

from uuid import UUID

from sqlalchemy import select

from jobclock_kernel.db.types import ZERO, parse_quantity
from jobclock_kernel.exceptions import InvalidQuantityError, ProductNotFoundError
from jobclock_kernel.logging_config import get_logger
from jobclock_kernel.models.inventory import EmployeeProductInventory
from jobclock_kernel.models.product import Product
from jobclock_kernel.services.base import BaseService

logger = get_logger("services.inventory")


class InventoryAssignmentService(BaseService[EmployeeProductInventory]):
    """Assignment path for per-worker inventory."""

    def assign(
        self,
        worker_id: UUID,
        product_id: UUID,
        quantity: object,
        actor_id: UUID | None = None,
    ) -> EmployeeProductInventory:
        """
        Set the quantity of ``product_id`` the worker holds.

        Creates the inventory row on first assignment; afterwards the
        quantity is replaced, not added to.
        """
        parsed = parse_quantity(quantity)
        if parsed is None or parsed < ZERO:
            raise InvalidQuantityError(str(product_id), quantity)

        if self.session.get(Product, product_id) is None:
            raise ProductNotFoundError(str(product_id))

        actor = actor_id or worker_id
        row = self.session.execute(
            select(EmployeeProductInventory)
            .where(
                EmployeeProductInventory.worker_id == worker_id,
                EmployeeProductInventory.product_id == product_id,
            )
            .with_for_update(of=EmployeeProductInventory)
        ).unique().scalar_one_or_none()

        previous = None
        if row is None:
            row = EmployeeProductInventory(
                worker_id=worker_id,
                product_id=product_id,
                quantity=parsed,
                created_by_id=actor,
            )
            self.session.add(row)
        else:
            previous = row.quantity
            row.quantity = parsed
            row.updated_by_id = actor
        self.session.flush()

        logger.info(
            "inventory_assigned",
            extra={
                "worker_id": str(worker_id),
                "product_id": str(product_id),
                "previous_quantity": previous,
                "quantity": parsed,
            },
        )
        return row
