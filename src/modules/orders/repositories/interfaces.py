"""Order repository interface.

Methods required by the Order aggregate: atomic creation with items,
row-locked loading for transitions, status history tracking and the
payment record.

The Service Layer depends exclusively on this contract (DIP).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

if TYPE_CHECKING:
    from django.db.models import QuerySet

    from modules.orders.models import Order, OrderStatusHistory, Payment


class IOrderRepository(ABC):
    """Repository contract for the Order aggregate root.

    The Order aggregate includes OrderItem children, OrderStatusHistory
    records and the optional Payment.  Mutations must be atomic.
    """

    @abstractmethod
    def create(self, data: Dict[str, Any]) -> Order:
        """Create an order with its items atomically.

        ``data`` holds the order fields plus ``items``: a list of dicts
        with ``product_id``, ``quantity`` and ``unit_price``.
        """

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[Order]:
        """Retrieve an order with prefetched items and status history."""

    @abstractmethod
    def get_for_update(self, id: str) -> Optional[Order]:
        """Retrieve and row-lock an order (``SELECT ... FOR UPDATE``)."""

    @abstractmethod
    def list_visible_to(self, user_id: Any) -> QuerySet:
        """Orders the user placed, delivers, or whose merchant they manage."""

    @abstractmethod
    def list_available_to_driver(self, driver_id: Any) -> QuerySet:
        """Orders waiting for pickup plus the driver's own active deliveries."""

    @abstractmethod
    def save_transition(self, order: Order, history: OrderStatusHistory) -> None:
        """Persist a transitioned order together with its history record."""

    @abstractmethod
    def add_history(
        self,
        order: Order,
        new_status: str,
        actor_id: Any = None,
        notes: str = "",
    ) -> OrderStatusHistory:
        """Record the creation entry in the order's audit trail."""

    @abstractmethod
    def item_lines(self, order_id: str) -> List[Tuple[str, int]]:
        """``(product_id, quantity)`` for every item of the order."""

    @abstractmethod
    def create_payment(self, order: Order, method: str) -> Payment:
        """Create the pending payment for an order."""

    @abstractmethod
    def complete_payment(self, order_id: str) -> bool:
        """Mark the order's payment ``COMPLETED``.  ``False`` if it has none."""
