"""
Base schemas with common functionality.
"""
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Generic, List, TypeVar

from pydantic import BaseModel, ConfigDict, PlainSerializer

ItemT = TypeVar('ItemT')

# Money is Decimal in Python and a plain JSON number on the wire
Money = Annotated[Decimal, PlainSerializer(lambda v: float(v), return_type=float, when_used='json')]


class BaseSchema(BaseModel):
    """Base schema with common functionality for all schemas"""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True
    )


class TimestampedSchema(BaseSchema):
    """Base schema for models with timestamp fields"""
    created_at: datetime
    updated_at: datetime


class PaginatedResponse(BaseSchema, Generic[ItemT]):
    items: List[ItemT]
    page: int
    page_size: int
    total_items: int
    total_pages: int
