"""
Catalog product model.

The catalog itself is maintained elsewhere; this service only reads product
metadata (name, active flag, list and discount price) when pricing carts and
snapshotting order lines.
"""

from sqlalchemy import Column, Integer, String, Boolean, Numeric
from sqlalchemy.orm import relationship

from ..database import Base, TimestampMixin


class Product(TimestampMixin, Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    sku = Column(String(50), unique=True, nullable=False)
    name = Column(String(200), nullable=False)

    # Pricing Fields
    price = Column(Numeric(18, 2), nullable=False)
    discount_price = Column(Numeric(18, 2), nullable=True)
    cost = Column(Numeric(18, 2), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False, index=True)

    inventories = relationship("Inventory", back_populates="product")

    @property
    def effective_price(self):
        """Price a customer pays today: the discount price when one is set."""
        return self.discount_price if self.discount_price is not None else self.price

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku} active={self.is_active}>"
