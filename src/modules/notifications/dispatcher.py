"""Post-commit dispatch of merchant notifications.

Notifications are best effort: they are queued only after the order
transaction commits, and a broker failure is logged rather than raised,
so it can never undo a checkout.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from django.db import transaction

from modules.notifications.tasks import notify_merchant_new_order

if TYPE_CHECKING:
    from modules.orders.models import Order

logger = structlog.get_logger(__name__)


class MerchantNotifier:
    def notify_new_order(self, order: Order) -> None:
        merchant_id = str(order.merchant_id)
        order_id = str(order.id)
        total = str(order.total)
        transaction.on_commit(
            lambda: self._enqueue_new_order(merchant_id, order_id, total)
        )

    def _enqueue_new_order(self, merchant_id: str, order_id: str, total: str) -> None:
        try:
            notify_merchant_new_order.delay(merchant_id, order_id, total)
        except Exception:
            logger.exception(
                "notification.dispatch_failed",
                merchant_id=merchant_id,
                order_id=order_id,
            )
