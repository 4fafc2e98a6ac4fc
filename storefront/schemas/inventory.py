"""
Schemas for the stock ledger endpoints.
"""
from datetime import datetime
from typing import Optional

from pydantic import Field, model_validator

from storefront.core.enums import StockAlertType
from .base import BaseSchema


class WarehouseRead(BaseSchema):
    id: int
    code: str
    name: str


class InventoryRead(BaseSchema):
    id: int
    product_id: int
    warehouse_id: int
    quantity: int
    min_stock: int
    max_stock: int
    updated_at: Optional[datetime] = None
    warehouse: Optional[WarehouseRead] = None


class AvailabilityRead(BaseSchema):
    product_id: int
    available: int


class StockAdjustRequest(BaseSchema):
    product_id: int
    warehouse_id: int
    quantity: int = Field(..., ge=0)
    min_stock: Optional[int] = Field(None, ge=0)
    max_stock: Optional[int] = Field(None, gt=0)


class StockTransferRequest(BaseSchema):
    product_id: int
    from_warehouse_id: int
    to_warehouse_id: int
    quantity: int = Field(..., gt=0)

    @model_validator(mode='after')
    def check_distinct_warehouses(self):
        if self.from_warehouse_id == self.to_warehouse_id:
            raise ValueError('Source and destination warehouses must differ')
        return self


class StockAlertRead(BaseSchema):
    product_id: int
    product_name: Optional[str] = None
    sku: Optional[str] = None
    warehouse_id: int
    warehouse_name: Optional[str] = None
    current_stock: int
    min_stock: int
    alert_type: StockAlertType
