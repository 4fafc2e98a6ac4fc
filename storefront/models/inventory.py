# storefront/models/inventory.py
from sqlalchemy import Column, Integer, ForeignKey, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import relationship

from storefront.database import Base, TimestampMixin

DEFAULT_MIN_STOCK = 10
DEFAULT_MAX_STOCK = 1000


class Inventory(TimestampMixin, Base):
    """
    Stock record: available quantity of one product at one warehouse.

    Rows are never deleted, only zeroed. Quantity changes go through
    conditional UPDATEs in InventoryService; version_id is bumped on every
    write so readers can tell a row moved underneath them.
    """
    __tablename__ = "inventories"
    __table_args__ = (
        UniqueConstraint("product_id", "warehouse_id", name="uq_inventories_product_warehouse"),
        CheckConstraint("quantity >= 0", name="ck_inventories_quantity"),
        CheckConstraint("min_stock >= 0", name="ck_inventories_min_stock"),
        CheckConstraint("max_stock > min_stock", name="ck_inventories_max_stock"),
    )

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    warehouse_id = Column(Integer, ForeignKey("warehouses.id"), nullable=False, index=True)

    quantity = Column(Integer, nullable=False, default=0)
    min_stock = Column(Integer, nullable=False, default=DEFAULT_MIN_STOCK)  # low-stock threshold
    max_stock = Column(Integer, nullable=False, default=DEFAULT_MAX_STOCK)  # high-stock threshold
    version_id = Column(Integer, nullable=False, default=1)

    product = relationship("Product", back_populates="inventories")
    warehouse = relationship("Warehouse", back_populates="inventories")

    def __repr__(self) -> str:
        return (
            f"<Inventory product={self.product_id} warehouse={self.warehouse_id} "
            f"quantity={self.quantity}>"
        )
