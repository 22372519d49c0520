"""
Module: jobclock_kernel.models.product
Responsibility: ORM persistence for consumable products (cleaning supplies).
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - name is unique case-insensitively (enforced by ProductService).
    - cost_per_unit, stock_level and min_stock are non-negative (CHECK).
"""

from decimal import Decimal

from sqlalchemy import Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from jobclock_kernel.db.base import TrackedBase, non_negative


class Product(TrackedBase):
    """
    A consumable product that workers carry and use on jobs.

    Guarantees:
        - unit is the display unit used in PRODUCT_USED log descriptions
          (e.g. "bottles", "L").
    """

    __tablename__ = "products"

    __table_args__ = (
        Index("idx_product_name", "name"),
        non_negative("cost_per_unit", "ck_product_cost_non_negative"),
        non_negative("stock_level", "ck_product_stock_non_negative"),
        non_negative("min_stock", "ck_product_min_stock_non_negative"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    unit: Mapped[str] = mapped_column(String(50), nullable=False)

    cost_per_unit: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    stock_level: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    min_stock: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    def __repr__(self) -> str:
        return f"<Product {self.name} ({self.unit})>"
