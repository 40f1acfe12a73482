"""Order, OrderItem, OrderStatusHistory and Payment models.

Business rules implemented:
- Status changes only through ``Order.apply_transition``, which validates
  against ``VALID_TRANSITIONS`` and returns the history record to persist.
- Each status change generates exactly one history record; the creation
  record has ``old_status=None``.
- ``total`` is always ``subtotal + delivery_fee - discount`` (recomputed on save).
- ``driver_total_distance_km`` never decreases.
- Merchant and user FKs use PROTECT to preserve financial history.
- OrderItem snapshots product price at creation time (``unit_price``).
- OrderItem subtotal is always ``quantity * unit_price`` (calculated on save).
"""

from __future__ import annotations

import secrets
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from modules.core.models import BaseModel
from modules.orders.constants import (
    CODE_ALPHABET,
    CODE_LENGTH,
    ORDER_NUMBER_MAX_RETRIES,
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    LocationSource,
    OrderStatus,
    PaymentStatus,
)
from modules.orders.exceptions import InvalidTransition
from shared.domain.geo import Coordinates

ZERO = Decimal("0.00")
KM_QUANT = Decimal("0.001")
COORD_QUANT = Decimal("0.000001")


def generate_code() -> str:
    """Random 6-character upper-case alphanumeric pickup/delivery code."""
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def _coord(value: float) -> Decimal:
    return Decimal(str(value)).quantize(COORD_QUANT)


class Order(BaseModel):
    """Order aggregate root.

    ``order_number`` is a human-readable identifier auto-generated on first
    save (format: ``ORD-YYYYMMDD-XXXXXX``).  The UUIDv7 ``id`` is used for
    all internal references and API lookups.

    The aggregate performs no I/O: callers resolve distances and lock the
    row, then call ``apply_transition`` and save the order together with
    the returned history record.
    """

    order_number: models.CharField = models.CharField(
        max_length=20, unique=True, editable=False
    )
    status: models.CharField = models.CharField(
        max_length=30,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
    )
    user: models.ForeignKey = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="orders",
    )
    merchant: models.ForeignKey = models.ForeignKey(
        "merchants.Merchant",
        on_delete=models.PROTECT,
        related_name="orders",
    )
    driver: models.ForeignKey = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="deliveries",
    )
    pickup_code: models.CharField = models.CharField(max_length=CODE_LENGTH, blank=True, default="")
    delivery_code: models.CharField = models.CharField(max_length=CODE_LENGTH, blank=True, default="")

    # Prices
    subtotal: models.DecimalField = models.DecimalField(max_digits=10, decimal_places=2)
    delivery_fee: models.DecimalField = models.DecimalField(max_digits=10, decimal_places=2)
    discount: models.DecimalField = models.DecimalField(
        max_digits=10, decimal_places=2, default=ZERO
    )
    total: models.DecimalField = models.DecimalField(
        max_digits=10, decimal_places=2, editable=False
    )

    # Delivery info
    delivery_zone: models.ForeignKey = models.ForeignKey(
        "zones.DeliveryZone",
        on_delete=models.PROTECT,
        related_name="orders",
    )
    delivery_address: models.CharField = models.CharField(max_length=500)
    delivery_contact: models.CharField = models.CharField(max_length=32)
    delivery_notes: models.TextField = models.TextField(blank=True, default="")
    delivery_latitude: models.DecimalField = models.DecimalField(
        max_digits=9, decimal_places=6, null=True, blank=True
    )
    delivery_longitude: models.DecimalField = models.DecimalField(
        max_digits=9, decimal_places=6, null=True, blank=True
    )
    location_source: models.CharField = models.CharField(
        max_length=10,
        choices=LocationSource.choices,
        default=LocationSource.MANUAL,
    )
    resolved_location: models.JSONField = models.JSONField(null=True, blank=True)
    estimated_delivery_at: models.DateTimeField = models.DateTimeField(null=True, blank=True)

    # Driver tracking
    driver_start_latitude: models.DecimalField = models.DecimalField(
        max_digits=9, decimal_places=6, null=True, blank=True
    )
    driver_start_longitude: models.DecimalField = models.DecimalField(
        max_digits=9, decimal_places=6, null=True, blank=True
    )
    last_known_latitude: models.DecimalField = models.DecimalField(
        max_digits=9, decimal_places=6, null=True, blank=True
    )
    last_known_longitude: models.DecimalField = models.DecimalField(
        max_digits=9, decimal_places=6, null=True, blank=True
    )
    driver_total_distance_km: models.DecimalField = models.DecimalField(
        max_digits=10, decimal_places=3, default=Decimal("0.000")
    )
    on_time_delivery: models.BooleanField = models.BooleanField(null=True, blank=True)
    completed_at: models.DateTimeField = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
            models.Index(fields=["-created_at"], name="orders_created_idx"),
            models.Index(fields=["merchant", "status"], name="orders_merchant_status_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(subtotal__gte=0),
                name="orders_subtotal_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(delivery_fee__gte=0),
                name="orders_delivery_fee_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(discount__gte=0),
                name="orders_discount_non_negative",
            ),
            models.CheckConstraint(
                condition=models.Q(driver_total_distance_km__gte=0),
                name="orders_distance_non_negative",
            ),
        ]

    # ------------------------------------------------------------------
    # State Machine helpers
    # ------------------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        """Return ``True`` if the order is in a terminal state."""
        return self.status in TERMINAL_STATES

    def can_transition_to(self, new_status: str) -> bool:
        """Check whether transitioning to *new_status* is valid."""
        allowed = VALID_TRANSITIONS.get(self.status, set())
        return new_status in allowed

    def apply_transition(
        self,
        new_status: str,
        actor_id: Any,
        timestamp: datetime,
        *,
        distance_km: Decimal = Decimal("0"),
        position: Optional[Coordinates] = None,
        notes: str = "",
    ) -> OrderStatusHistory:
        """Move the order to *new_status* and return the unsaved history record.

        *distance_km* is the leg just travelled; it is added to the
        accumulated distance.  *position* becomes the last known driver
        position (and the start position on driver acceptance).

        Raises:
            InvalidTransition: *new_status* is not reachable from the
                current status.  Nothing is mutated.
        """
        if not self.can_transition_to(new_status):
            raise InvalidTransition(
                f"Cannot transition order from {self.status} to {new_status}."
            )
        if distance_km < 0:
            raise ValueError("Distance cannot be negative.")

        history = OrderStatusHistory(
            order=self,
            old_status=self.status,
            new_status=new_status,
            actor_id=actor_id,
            notes=notes,
        )
        self.status = new_status

        if new_status == OrderStatus.ACCEPTED_BY_DRIVER:
            self.driver_id = actor_id
            if position is not None:
                self.driver_start_latitude = _coord(position.lat)
                self.driver_start_longitude = _coord(position.lng)
        elif new_status == OrderStatus.READY_TO_DELIVER and not self.pickup_code:
            self.pickup_code = generate_code()
        elif new_status == OrderStatus.COMPLETED:
            self.completed_at = timestamp
            self.on_time_delivery = (
                timestamp <= self.estimated_delivery_at
                if self.estimated_delivery_at is not None
                else None
            )

        if distance_km:
            self.driver_total_distance_km = (
                Decimal(self.driver_total_distance_km) + distance_km
            ).quantize(KM_QUANT)
        if position is not None:
            self.last_known_latitude = _coord(position.lat)
            self.last_known_longitude = _coord(position.lng)

        return history

    # ------------------------------------------------------------------
    # Positions
    # ------------------------------------------------------------------

    @property
    def last_known_position(self) -> Optional[Coordinates]:
        return Coordinates.from_pair(self.last_known_latitude, self.last_known_longitude)

    @property
    def destination(self) -> Optional[Coordinates]:
        return Coordinates.from_pair(self.delivery_latitude, self.delivery_longitude)

    # ------------------------------------------------------------------
    # Order number generation
    # ------------------------------------------------------------------

    @staticmethod
    def generate_order_number() -> str:
        """Generate a human-readable order number: ``ORD-YYYYMMDD-XXXXXX``."""
        now = timezone.now()
        suffix = secrets.token_hex(3).upper()
        return f"ORD-{now:%Y%m%d}-{suffix}"

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self.order_number:
            for attempt in range(ORDER_NUMBER_MAX_RETRIES):
                candidate = self.generate_order_number()
                if not Order.objects.filter(order_number=candidate).exists():
                    self.order_number = candidate
                    break
            else:
                raise RuntimeError(
                    f"Failed to generate unique order_number after "
                    f"{ORDER_NUMBER_MAX_RETRIES} attempts"
                )
        self.total = (
            Decimal(self.subtotal) + Decimal(self.delivery_fee) - Decimal(self.discount or ZERO)
        )
        super().save(*args, **kwargs)

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def __str__(self) -> str:
        return f"{self.order_number} ({self.status})"


class OrderItem(BaseModel):
    """Line item linking an Order to a Product.

    ``unit_price`` is a **snapshot** of the product price at the time of
    purchase; it never changes even if the product price is updated later.
    ``subtotal`` is always ``quantity * unit_price``, recalculated on every save.
    """

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="items",
    )
    product: models.ForeignKey = models.ForeignKey(
        "products.Product",
        on_delete=models.PROTECT,
        related_name="order_items",
    )
    quantity: models.PositiveIntegerField = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)],
    )
    unit_price: models.DecimalField = models.DecimalField(
        max_digits=10,
        decimal_places=2,
    )
    subtotal: models.DecimalField = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        editable=False,
    )

    class Meta:
        db_table = "order_items"
        ordering = ["created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gte=1),
                name="order_items_quantity_positive",
            ),
        ]

    def clean(self) -> None:
        super().clean()
        if self.quantity is not None and self.quantity < 1:
            raise ValidationError({"quantity": "Quantity must be at least 1."})

    def save(self, *args: Any, **kwargs: Any) -> None:
        self.subtotal = self.quantity * self.unit_price
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.product_id} x{self.quantity} ({self.subtotal})"


class OrderStatusHistory(BaseModel):
    """Append-only audit trail for order status transitions.

    ``actor`` is nullable: ``None`` means the change was performed by the
    system.
    """

    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="status_history",
    )
    old_status: models.CharField = models.CharField(  # noqa: DJ01
        max_length=30,
        choices=OrderStatus.choices,
        null=True,
        blank=True,
    )
    new_status: models.CharField = models.CharField(
        max_length=30,
        choices=OrderStatus.choices,
    )
    actor: models.ForeignKey = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
    )
    notes: models.TextField = models.TextField(blank=True, default="")

    class Meta:
        db_table = "order_status_history"
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["order", "-created_at"],
                name="osh_order_created_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.order_id} : {self.old_status} -> {self.new_status}"


class Payment(BaseModel):
    """Payment record for an order; settled when the order completes."""

    order: models.OneToOneField = models.OneToOneField(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="payment",
    )
    amount: models.DecimalField = models.DecimalField(max_digits=10, decimal_places=2)
    method: models.CharField = models.CharField(max_length=30, default="CASH")
    status: models.CharField = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
    )

    class Meta:
        db_table = "payments"

    def __str__(self) -> str:
        return f"Payment {self.amount} [{self.status}] order={self.order_id}"
