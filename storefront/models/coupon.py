# storefront/models/coupon.py
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Numeric, Enum as SAEnum

from storefront.core.enums import DiscountType
from storefront.core.utils import utcnow
from storefront.database import Base


class Coupon(Base):
    """Coupon definitions. Managed elsewhere; read here and redemption counted."""
    __tablename__ = "coupons"

    id = Column(Integer, primary_key=True)
    code = Column(String(50), unique=True, nullable=False, index=True)
    description = Column(String(500), nullable=True)
    discount_type = Column(SAEnum(DiscountType, name="discounttype", native_enum=False, length=20), nullable=False)
    discount_value = Column(Numeric(18, 2), nullable=False)
    min_order_amount = Column(Numeric(18, 2), nullable=False, default=0)
    max_discount_amount = Column(Numeric(18, 2), nullable=True)
    usage_limit = Column(Integer, nullable=True)
    used_count = Column(Integer, nullable=False, default=0)
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
