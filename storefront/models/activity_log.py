# storefront/models/activity_log.py
from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.dialects.postgresql import JSONB

from storefront.core.utils import utcnow
from storefront.database import Base


class ActivityLog(Base):
    """
    Records order and stock movements for auditing.

    This includes:
    - Order placement and every status change
    - Stock reservations, releases, transfers and manual adjustments
    """
    __tablename__ = "activity_log"

    id = Column(Integer, primary_key=True)
    action = Column(String(50), nullable=False, index=True)  # 'order_placed', 'reserve', 'release', ...
    entity_type = Column(String(50), nullable=False, index=True)  # 'order', 'product'
    entity_id = Column(String(100), nullable=False, index=True)

    # Store additional details in JSON format
    details = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=True)

    user_id = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<ActivityLog {self.action} {self.entity_type} {self.entity_id}>"
