"""
Utility functions for the application.
"""
import math
import random
from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy import func, select
from sqlalchemy.sql import Select
from sqlalchemy.ext.asyncio import AsyncSession


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the TIMESTAMP(timezone=False) columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def generate_reference(prefix: str, date_format: str, low: int, high: int) -> str:
    """Human-readable reference: prefix + UTC timestamp + random suffix.

    Examples:
        generate_reference("ORD", "%Y%m%d%H%M%S", 1000, 9999) -> ORD202610181530124821
        generate_reference("TRK", "%Y%m%d", 100000, 999999) -> TRK20261018583920
    """
    return f"{prefix}{utcnow().strftime(date_format)}{random.randint(low, high)}"


async def paginate_query(
    query: Select,
    db: AsyncSession,
    page: int = 1,
    page_size: int = 20
) -> Dict[str, Any]:
    """
    Paginate a SQLAlchemy select.

    Args:
        query: SQLAlchemy select statement
        db: Database session
        page: Page number (1-indexed)
        page_size: Number of items per page

    Returns:
        Dictionary with pagination information and items
    """
    count_query = select(func.count()).select_from(query.order_by(None).subquery())
    total = await db.scalar(count_query) or 0

    offset = (page - 1) * page_size
    result = await db.execute(query.offset(offset).limit(page_size))
    items = result.scalars().all()

    return {
        "items": items,
        "page": page,
        "page_size": page_size,
        "total_items": total,
        "total_pages": math.ceil(total / page_size) if page_size else 0,
    }
