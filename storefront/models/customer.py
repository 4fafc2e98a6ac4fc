# storefront/models/customer.py
from sqlalchemy import Column, Integer, String, Numeric, CheckConstraint, Enum as SAEnum

from storefront.core.enums import LoyaltyTier
from storefront.database import Base, TimestampMixin


class Customer(TimestampMixin, Base):
    """
    Customer ledger entry, created lazily at a user's first checkout.

    total_purchased and points move only when orders are placed or cancelled.
    """
    __tablename__ = "customers"
    __table_args__ = (
        CheckConstraint("total_purchased >= 0", name="ck_customers_total_purchased"),
        CheckConstraint("points >= 0", name="ck_customers_points"),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, unique=True, nullable=False, index=True)
    customer_code = Column(String(20), unique=True, nullable=False)
    email = Column(String(255), nullable=True)

    total_purchased = Column(Numeric(18, 2), nullable=False, default=0)
    points = Column(Integer, nullable=False, default=0)
    membership_level = Column(
        SAEnum(LoyaltyTier, name="loyaltytier", native_enum=False, length=20),
        nullable=False,
        default=LoyaltyTier.BRONZE,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<Customer user={self.user_id} level={self.membership_level} total={self.total_purchased}>"
