"""Email notifications for order events."""

from __future__ import annotations

import asyncio
import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr
from typing import List, Optional, Sequence

from storefront.core.config import Settings

logger = logging.getLogger(__name__)

STATUS_MESSAGES = {
    "PENDING": "Your order has been received and is awaiting confirmation.",
    "CONFIRMED": "Your order has been confirmed and is being prepared.",
    "PROCESSING": "Your order is being processed at our warehouse.",
    "SHIPPED": "Your order is on its way.",
    "DELIVERED": "Your order has been delivered. Thank you for shopping with us!",
    "CANCELLED": "Your order has been cancelled.",
}


class EmailNotificationService:
    """Lightweight SMTP helper for customer notifications.

    Sending is best-effort: every public method returns False instead of
    raising, so a mail outage never fails an order.
    """

    def __init__(self, settings: Settings):
        self._settings = settings

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    async def notify_order_placed(self, email: Optional[str], order) -> bool:
        """Send the order confirmation email.

        Args:
            email: Customer address; nothing is sent when it is empty.
            order: Order model with its items loaded.
        """
        if not self._can_send(email, order):
            return False

        store = self._settings.STORE_NAME
        subject = f"{store}: order {order.order_number} received"

        lines: List[str] = [
            f"Thank you for your order {order.order_number}.",
            "",
        ]
        for item in order.items:
            lines.append(f"{item.quantity} x {item.product_name} ({item.sku}): {item.total_price:,.2f}")
        lines.extend([
            "",
            f"Subtotal: {order.subtotal:,.2f}",
            f"Shipping: {order.shipping_fee:,.2f}",
            f"Tax: {order.tax:,.2f}",
        ])
        if order.discount:
            lines.append(f"Discount: -{order.discount:,.2f}")
        lines.append(f"Total: {order.total_amount:,.2f}")
        if order.shipping_address:
            lines.append(f"Ship to: {order.shipping_address}")

        message = self._build_message(subject, [email], lines)
        return await self._dispatch(message, "order confirmation")

    async def notify_order_status_changed(self, email: Optional[str], order) -> bool:
        """Tell the customer their order moved to a new status."""
        if not self._can_send(email, order):
            return False

        status = getattr(order.status, "value", order.status)
        subject = f"{self._settings.STORE_NAME}: order {order.order_number} is {status.lower()}"

        lines: List[str] = [
            f"Order {order.order_number}: {STATUS_MESSAGES.get(status, status)}",
        ]
        if order.tracking_number:
            lines.append(f"Tracking number: {order.tracking_number}")
        if order.cancel_reason:
            lines.append(f"Reason: {order.cancel_reason}")

        message = self._build_message(subject, [email], lines)
        return await self._dispatch(message, "status update")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _ready(self) -> bool:
        settings = self._settings
        return bool(settings.SMTP_HOST and settings.SMTP_USERNAME and settings.SMTP_PASSWORD)

    def _can_send(self, email: Optional[str], order) -> bool:
        if not self._ready():
            logger.warning("SMTP configuration incomplete; email skipped for order %s", order.order_number)
            return False
        if not email:
            logger.warning("No email address for order %s; email skipped", order.order_number)
            return False
        return True

    def _build_message(
        self,
        subject: str,
        to_addresses: Sequence[str],
        lines: Sequence[str],
    ) -> EmailMessage:
        body_text = "\n".join(list(lines) + ["", f"Sent automatically by {self._settings.STORE_NAME}"])
        body_html = "".join(f"<p>{line}</p>" for line in lines if line)

        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = self._formatted_from_address
        message["To"] = ", ".join(sorted(set(to_addresses)))
        message.set_content(body_text)
        message.add_alternative(body_html, subtype="html")
        return message

    @property
    def _formatted_from_address(self) -> str:
        from_email = self._settings.SMTP_FROM_EMAIL or self._settings.SMTP_USERNAME
        from_name = self._settings.SMTP_FROM_NAME or self._settings.STORE_NAME
        return formataddr((from_name, from_email))

    async def _dispatch(self, message: EmailMessage, kind: str) -> bool:
        try:
            await asyncio.to_thread(self._send_sync, message)
            logger.info("Sent %s email to %s", kind, message["To"])
            return True
        except Exception as exc:  # pragma: no cover - logged for observability
            logger.error("Failed to send %s email: %s", kind, exc, exc_info=True)
            return False

    def _send_sync(self, message: EmailMessage) -> None:
        settings = self._settings
        host = settings.SMTP_HOST
        port = settings.SMTP_PORT or (465 if settings.SMTP_USE_SSL else 587)
        timeout = settings.SMTP_TIMEOUT

        if settings.SMTP_USE_SSL:
            smtp = smtplib.SMTP_SSL(host=host, port=port, timeout=timeout)
        else:
            smtp = smtplib.SMTP(host=host, port=port, timeout=timeout)
        try:
            if settings.SMTP_USE_TLS and not settings.SMTP_USE_SSL:
                smtp.starttls()

            smtp.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
            smtp.send_message(message)
        finally:
            try:
                smtp.quit()
            except smtplib.SMTPException:
                smtp.close()

