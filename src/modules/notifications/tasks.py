"""Asynchronous merchant notification tasks."""

import structlog
from celery import shared_task

from modules.notifications.models import MerchantNotification, NotificationKind

logger = structlog.get_logger(__name__)


@shared_task(name="notifications.notify_merchant_new_order")
def notify_merchant_new_order(merchant_id: str, order_id: str, total: str) -> dict:
    """Write the "new order" inbox entry for a merchant.

    Re-delivery of the same task is a no-op (one entry per order and kind).
    """
    notification, created = MerchantNotification.objects.get_or_create(
        order_id=order_id,
        kind=NotificationKind.NEW_ORDER,
        defaults={
            "merchant_id": merchant_id,
            "title": "New Order Received",
            "message": f"Order #{order_id[-6:].upper()} - total {total}",
        },
    )
    logger.info(
        "notification.merchant_new_order",
        merchant_id=merchant_id,
        order_id=order_id,
        notification_id=str(notification.id),
        created=created,
    )
    return {"status": "sent" if created else "duplicate", "order_id": order_id}
