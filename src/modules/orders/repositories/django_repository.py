"""Django ORM implementation of the Order repository.

Satisfies ``IOrderRepository`` using Django's QuerySet API.
All write operations are wrapped in ``transaction.atomic()`` to ensure
the Order aggregate (Order + OrderItems) is persisted atomically.

Concurrency control on status updates uses ``select_for_update()``
to prevent race conditions (no ``version`` field exists on the model).
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

import structlog
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Q, QuerySet
from django.utils import timezone

from modules.orders.constants import ACTIVE_DELIVERY_STATES, OrderStatus, PaymentStatus
from modules.orders.models import Order, OrderItem, OrderStatusHistory, Payment
from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)

_TRANSITION_FIELDS = [
    "status",
    "driver",
    "pickup_code",
    "driver_start_latitude",
    "driver_start_longitude",
    "last_known_latitude",
    "last_known_longitude",
    "driver_total_distance_km",
    "on_time_delivery",
    "completed_at",
]


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    # ------------------------------------------------------------------
    # Create (aggregate root + children)
    # ------------------------------------------------------------------

    @transaction.atomic
    def create(self, data: Dict[str, Any]) -> Order:
        items = data.pop("items", [])
        order = Order(**data)
        order.save()

        OrderItem.objects.bulk_create(
            [
                OrderItem(
                    order=order,
                    product_id=item["product_id"],
                    quantity=item["quantity"],
                    unit_price=item["unit_price"],
                    subtotal=item["quantity"] * item["unit_price"],
                )
                for item in items
            ]
        )

        logger.info("order.persisted", order_id=str(order.id), item_count=len(items))
        return order

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve an order by primary key.

        Returns ``None`` for non-existent or invalid IDs.
        """
        try:
            return (
                Order.objects.select_related("merchant", "delivery_zone")
                .prefetch_related("items__product", "status_history")
                .filter(id=id)
                .first()
            )
        except (ValueError, ValidationError):
            return None

    def get_for_update(self, id: str) -> Optional[Order]:
        try:
            return Order.objects.select_for_update().filter(id=id).first()
        except (ValueError, ValidationError):
            return None

    def list_visible_to(self, user_id: Any) -> QuerySet:
        return (
            Order.objects.filter(
                Q(user_id=user_id) | Q(driver_id=user_id) | Q(merchant__managers__pk=user_id)
            )
            .distinct()
            .order_by("-created_at", "-id")
        )

    def list_available_to_driver(self, driver_id: Any) -> QuerySet:
        return (
            Order.objects.filter(
                Q(status=OrderStatus.READY_TO_DELIVER, driver__isnull=True)
                | Q(driver_id=driver_id, status__in=ACTIVE_DELIVERY_STATES)
            )
            .select_related("merchant")
            .order_by("-created_at", "-id")
        )

    def item_lines(self, order_id: str) -> List[Tuple[str, int]]:
        return list(
            OrderItem.objects.filter(order_id=order_id).values_list("product_id", "quantity")
        )

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def save_transition(self, order: Order, history: OrderStatusHistory) -> None:
        order.save(update_fields=_TRANSITION_FIELDS)
        history.save()

    def add_history(
        self,
        order: Order,
        new_status: str,
        actor_id: Any = None,
        notes: str = "",
    ) -> OrderStatusHistory:
        return OrderStatusHistory.objects.create(
            order=order,
            old_status=None,
            new_status=new_status,
            actor_id=actor_id,
            notes=notes,
        )

    # ------------------------------------------------------------------
    # Payment
    # ------------------------------------------------------------------

    def create_payment(self, order: Order, method: str) -> Payment:
        return Payment.objects.create(order=order, amount=order.total, method=method)

    def complete_payment(self, order_id: str) -> bool:
        updated = Payment.objects.filter(order_id=order_id).update(
            status=PaymentStatus.COMPLETED,
            updated_at=timezone.now(),
        )
        return bool(updated)
