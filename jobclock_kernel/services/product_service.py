"""
ProductService -- product catalog writes.

Responsibility:
    Creates the consumable products that workers carry.  Products are the
    rows JobProductUsage and EmployeeProductInventory reference, and their
    name and unit appear in PRODUCT_USED descriptions.

Architecture position:
    Kernel > Services -- imperative shell, flush-only.

Invariants enforced:
    - Product names are unique case-insensitively.
    - name and unit are required; numeric fields are non-negative.

Failure modes:
    - InvalidProductError for missing or negative fields.
    - DuplicateProductError if the name is already taken.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from jobclock_kernel.db.types import ZERO, parse_quantity
from jobclock_kernel.exceptions import DuplicateProductError, InvalidProductError
from jobclock_kernel.logging_config import get_logger
from jobclock_kernel.models.product import Product
from jobclock_kernel.services.base import BaseService

logger = get_logger("services.product")


def _non_negative(value: object) -> Decimal:
    parsed = parse_quantity(value)
    if parsed is None:
        raise InvalidProductError("Please fill in all required fields with valid values.")
    if parsed < ZERO:
        raise InvalidProductError("Numeric values cannot be negative.")
    return parsed


class ProductService(BaseService[Product]):
    """Write path for the product catalog."""

    def create_product(
        self,
        name: str,
        unit: str,
        actor_id: UUID,
        description: str | None = None,
        cost_per_unit: object = ZERO,
        stock_level: object = ZERO,
        min_stock: object = ZERO,
    ) -> Product:
        """
        Create a product.

        Raises:
            InvalidProductError: If name or unit is blank, or a numeric field
                is malformed or negative.
            DuplicateProductError: If a product with the same name exists,
                ignoring case.
        """
        name = (name or "").strip()
        unit = (unit or "").strip()
        if not name or not unit:
            raise InvalidProductError("Please fill in all required fields with valid values.")

        cost = _non_negative(cost_per_unit)
        stock = _non_negative(stock_level)
        minimum = _non_negative(min_stock)

        existing = self.session.execute(
            select(Product.id).where(func.lower(Product.name) == name.lower())
        ).first()
        if existing is not None:
            raise DuplicateProductError(name)

        product = Product(
            name=name,
            unit=unit,
            description=description or None,
            cost_per_unit=cost,
            stock_level=stock,
            min_stock=minimum,
            created_by_id=actor_id,
        )
        self.session.add(product)
        self.session.flush()

        logger.info(
            "product_created",
            extra={"product_id": str(product.id), "product_name": name, "unit": unit},
        )
        return product
