# storefront/models/warehouse.py
from sqlalchemy import Column, Integer, String, Boolean
from sqlalchemy.orm import relationship

from storefront.database import Base, TimestampMixin


class Warehouse(TimestampMixin, Base):
    """A physical or logical stock location"""
    __tablename__ = "warehouses"

    id = Column(Integer, primary_key=True)
    code = Column(String(20), unique=True, nullable=False)
    name = Column(String(100), nullable=False)
    address = Column(String(500), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    inventories = relationship("Inventory", back_populates="warehouse")
