# storefront/services/activity_logger.py
import logging
from typing import Dict, Any, Optional
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.enums import StockMovement
from storefront.core.utils import utcnow
from storefront.models.activity_log import ActivityLog

logger = logging.getLogger(__name__)


class ActivityLogger:
    """
    Service for recording order and stock activity.

    Entries are added to the caller's session and land in the same
    transaction as the change they describe, so a rolled-back checkout
    leaves no audit trail behind.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    def log_activity(
        self,
        action: str,
        entity_type: str,
        entity_id: Any,
        details: Optional[Dict[str, Any]] = None,
        user_id: Optional[int] = None
    ) -> ActivityLog:
        """
        Log an activity in the system.

        Args:
            action: The action performed (order_placed, order_status_changed, reserve, ...)
            entity_type: The type of entity affected (order, product)
            entity_id: The ID of the affected entity
            details: Optional additional details as a dictionary
            user_id: Optional ID of the user who performed the action

        Returns:
            The pending ActivityLog instance
        """
        log_entry = ActivityLog(
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id),  # Convert to string for consistency
            details=details,
            user_id=user_id,
            created_at=utcnow()
        )
        self.db.add(log_entry)

        logger.debug("Activity logged: %s %s %s", action, entity_type, entity_id)
        return log_entry

    def log_stock_movement(
        self,
        movement: StockMovement,
        product_id: int,
        details: Dict[str, Any],
    ) -> ActivityLog:
        return self.log_activity(
            action=movement.value,
            entity_type="product",
            entity_id=product_id,
            details=details,
        )

    def log_order_event(
        self,
        action: str,
        order_id: int,
        details: Dict[str, Any],
        user_id: Optional[int] = None,
    ) -> ActivityLog:
        return self.log_activity(
            action=action,
            entity_type="order",
            entity_id=order_id,
            details=details,
            user_id=user_id,
        )
