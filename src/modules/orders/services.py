"""Order service layer (Use Cases).

Orchestrates checkout and the order state machine.  All write operations
are atomic: the service defines the unit-of-work boundary.

Business rules enforced:
- Checkout re-validates the zone, delivery fee, delivery location,
  product availability and subtotal against current data.
- Stock is reserved for every item before the order row is written.
- Every transition locks the order row, checks actor, state and code,
  and appends exactly one history record.
- Merchant rejection or cancellation returns stock.
- Completion settles the payment and credits the driver exactly once.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Optional

import structlog
from django.db import transaction
from django.db.models import QuerySet
from django.utils import timezone

from modules.orders.constants import (
    DRIVER_ACTIONS,
    DRIVER_EARNINGS_RATE,
    MERCHANT_ACTIONS,
    STOCK_RELEASING_STATES,
    OrderStatus,
)
from modules.orders.exceptions import (
    ActorNotAllowed,
    InvalidCode,
    InvalidTransition,
    OrderNotFound,
    OrderValidationError,
)
from modules.orders.models import generate_code
from modules.products.exceptions import InactiveProduct, ProductNotFound
from modules.products.services import InventoryService
from modules.zones.exceptions import ZoneNotFound
from shared.domain.geo import Coordinates

if TYPE_CHECKING:
    from modules.drivers.repository import DriverDjangoRepository
    from modules.merchants.repository import MerchantDjangoRepository
    from modules.notifications.dispatcher import MerchantNotifier
    from modules.orders.dtos import CreateOrderDTO, TransitionCodesDTO
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.products.repositories.interfaces import IProductRepository
    from modules.wallets.models import Transaction
    from modules.wallets.services import LedgerService
    from modules.zones.repositories.interfaces import IDeliveryZoneRepository
    from shared.infrastructure.routing import RouteDistanceResolver

logger = structlog.get_logger(__name__)

CENT = Decimal("0.01")
KM = Decimal("0.001")

_NOT_REACHABLE_MESSAGES = {
    OrderStatus.ACCEPTED_BY_DRIVER: "Order is not ready for pickup.",
    OrderStatus.ON_THE_WAY: "Order must be accepted by a driver first.",
    OrderStatus.COMPLETED: "Order is not out for delivery.",
    OrderStatus.CANCELED_BY_DRIVER: "Order is not assigned to a driver.",
}


class OrderService:
    """Application service for checkout and order reads.

    Receives repositories via constructor injection (DIP).
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        product_repository: IProductRepository,
        zone_repository: IDeliveryZoneRepository,
        notifier: MerchantNotifier,
        inventory: Optional[InventoryService] = None,
    ) -> None:
        self._order_repo = order_repository
        self._product_repo = product_repository
        self._zone_repo = zone_repository
        self._notifier = notifier
        self._inventory = inventory or InventoryService(product_repository)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    @transaction.atomic
    def create_order(self, user_id: Any, dto: CreateOrderDTO) -> Order:
        """Create a new order with atomic stock reservation.

        Steps:
        1. Validate the delivery zone, its fee and the delivery location.
        2. Validate products (exist, active, single merchant) and subtotal.
        3. Reserve stock for every item (conditional updates).
        4. Persist order + items, the creation history record and the payment.
        5. Queue the merchant notification for after commit.

        Raises:
            ZoneNotFound: the zone does not exist.
            ProductNotFound: a product does not exist.
            InactiveProduct: a product is inactive.
            OrderValidationError: stale or inconsistent checkout data.
            InsufficientStock: not enough stock for an item.
        """
        log = logger.bind(user_id=str(user_id))
        log.info("order.creation_started", item_count=len(dto.items))

        zone = self._zone_repo.get_by_id(str(dto.delivery_zone_id))
        if zone is None:
            raise ZoneNotFound(f"Delivery zone {dto.delivery_zone_id} not found.")
        if not zone.is_active:
            raise OrderValidationError("Delivery zone is not currently served.")
        if zone.delivery_fee != dto.delivery_fee:
            log.warning(
                "order.stale_delivery_fee",
                quoted=str(dto.delivery_fee),
                current=str(zone.delivery_fee),
            )
            raise OrderValidationError(
                "Delivery fee has changed. Please review your order and try again."
            )

        point = dto.delivery_point
        if dto.location_source == "manual" and point is not None and not zone.contains(point):
            if self._zone_repo.find_active_containing(point) is None:
                raise OrderValidationError("Delivery location is outside our delivery zones.")
            log.warning("order.zone_mismatch", zone_id=str(zone.id))
            raise OrderValidationError(
                "Delivery location is in a different delivery zone. "
                "Please review your order and try again."
            )

        products = {p.id: p for p in self._product_repo.get_many(i.product_id for i in dto.items)}
        for item in dto.items:
            product = products.get(item.product_id)
            if product is None:
                raise ProductNotFound(f"Product {item.product_id} not found.")
            if not product.is_active:
                raise InactiveProduct(f"Product {product.name} is not available.")

        merchant_ids = {p.merchant_id for p in products.values()}
        if len(merchant_ids) != 1:
            raise OrderValidationError("All items must come from the same merchant.")
        merchant = next(iter(products.values())).merchant
        if not merchant.is_active:
            raise OrderValidationError("This merchant is not accepting orders.")

        subtotal = sum(
            (products[i.product_id].price * i.quantity for i in dto.items), Decimal("0.00")
        )
        if subtotal != dto.subtotal:
            log.warning("order.stale_subtotal", quoted=str(dto.subtotal), current=str(subtotal))
            raise OrderValidationError(
                "Item prices have changed. Please review your order and try again."
            )

        self._inventory.reserve_all((i.product_id, i.quantity) for i in dto.items)

        order = self._order_repo.create(
            {
                "user_id": user_id,
                "merchant_id": merchant.id,
                "delivery_zone_id": zone.id,
                "subtotal": subtotal,
                "delivery_fee": dto.delivery_fee,
                "discount": dto.discount,
                "delivery_address": dto.delivery_address,
                "delivery_contact": dto.delivery_contact,
                "delivery_notes": dto.delivery_notes,
                "delivery_latitude": dto.delivery_latitude,
                "delivery_longitude": dto.delivery_longitude,
                "location_source": dto.location_source,
                "resolved_location": dto.resolved_location,
                "estimated_delivery_at": dto.estimated_delivery_at,
                "pickup_code": dto.pickup_code or generate_code(),
                "delivery_code": dto.delivery_code or generate_code(),
                "items": [
                    {
                        "product_id": i.product_id,
                        "quantity": i.quantity,
                        "unit_price": products[i.product_id].price,
                    }
                    for i in dto.items
                ],
            }
        )
        self._order_repo.add_history(order, OrderStatus.PENDING, actor_id=user_id, notes="Order placed")
        self._order_repo.create_payment(order, method=dto.payment_method)
        self._notifier.notify_new_order(order)

        log.info(
            "order.created",
            order_id=str(order.id),
            merchant_id=str(merchant.id),
            total=str(order.total),
        )
        return order

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, order_id: str, viewer_id: Any = None) -> Order:
        """Return the order, hiding it from viewers who are not a party to it."""
        order = self._order_repo.get_by_id(order_id)
        if order is None:
            raise OrderNotFound(f"Order {order_id} not found.")
        if viewer_id is not None and not (
            order.user_id == viewer_id
            or order.driver_id == viewer_id
            or order.merchant.is_managed_by(viewer_id)
        ):
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    def list_orders(self, user_id: Any) -> QuerySet:
        return self._order_repo.list_visible_to(user_id)


@dataclass(frozen=True)
class TransitionResult:
    order: Order
    earnings: Optional[Transaction] = None


class OrderTransitionService:
    """Application service for the order state machine.

    One call is one database transaction: the order row is locked before
    any check, so concurrent attempts on the same order serialise and the
    loser observes the new status.
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        merchant_repository: MerchantDjangoRepository,
        driver_repository: DriverDjangoRepository,
        inventory: InventoryService,
        ledger: LedgerService,
        route_resolver: RouteDistanceResolver,
    ) -> None:
        self._order_repo = order_repository
        self._merchant_repo = merchant_repository
        self._driver_repo = driver_repository
        self._inventory = inventory
        self._ledger = ledger
        self._routes = route_resolver

    @transaction.atomic
    def transition_order(
        self,
        order_id: str,
        actor_id: Any,
        action: str,
        codes: TransitionCodesDTO,
    ) -> TransitionResult:
        """Move an order to the status named by *action*.

        Raises:
            OrderNotFound: the order does not exist.
            ActorNotAllowed: the caller may not perform *action* on this order.
            InvalidTransition: *action* is unknown or not reachable now.
            InvalidCode: pickup/delivery code mismatch.
            InsufficientBalance, WalletNotFound: ledger failure (rolls back).
        """
        target = (action or "").strip().upper()
        if target not in MERCHANT_ACTIONS and target not in DRIVER_ACTIONS:
            raise InvalidTransition(f"Unknown action: {action}.")

        order = self._order_repo.get_for_update(order_id)
        if order is None:
            raise OrderNotFound(f"Order {order_id} not found.")

        log = logger.bind(order_id=str(order.id), actor_id=str(actor_id), target=target)

        self._authorize(order, actor_id, target)

        if not order.can_transition_to(target):
            log.warning("order.transition_rejected", current=order.status)
            raise InvalidTransition(
                _NOT_REACHABLE_MESSAGES.get(
                    target, f"Cannot transition order from {order.status} to {target}."
                )
            )

        if target == OrderStatus.ACCEPTED_BY_DRIVER and not _codes_match(
            order.pickup_code, codes.pickup_code
        ):
            log.warning("order.invalid_pickup_code")
            raise InvalidCode("Invalid pickup code.")
        if target == OrderStatus.COMPLETED and not _codes_match(
            order.delivery_code, codes.delivery_code
        ):
            log.warning("order.invalid_delivery_code")
            raise InvalidCode("Invalid delivery code.")

        distance_km = Decimal("0")
        position = None
        if target == OrderStatus.ACCEPTED_BY_DRIVER:
            position = codes.position
        elif target == OrderStatus.ON_THE_WAY:
            position = self._merchant_position(order)
            distance_km = self._leg_km(order.last_known_position, position)
        elif target == OrderStatus.COMPLETED:
            position = order.destination
            distance_km = self._leg_km(order.last_known_position, position)

        previous = order.status
        history = order.apply_transition(
            target,
            actor_id,
            timezone.now(),
            distance_km=distance_km,
            position=position,
            notes=codes.notes,
        )
        self._order_repo.save_transition(order, history)

        if target in STOCK_RELEASING_STATES:
            self._inventory.release_all(self._order_repo.item_lines(order.id))

        earnings = None
        if target == OrderStatus.COMPLETED:
            earnings = self._settle(order)

        log.info(
            "order.transitioned",
            previous=previous,
            distance_km=str(distance_km),
            earnings=str(earnings.amount) if earnings else None,
        )
        return TransitionResult(order=order, earnings=earnings)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def available_for_driver(self, driver_id: Any) -> QuerySet:
        """Orders ready for pickup plus the driver's own active deliveries.

        Raises:
            ActorNotAllowed: the caller is not an approved driver.
        """
        if not self._driver_repo.is_approved(driver_id):
            raise ActorNotAllowed("You must be an approved driver to view available orders.")
        return self._order_repo.list_available_to_driver(driver_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _authorize(self, order: Order, actor_id: Any, target: str) -> None:
        if target in MERCHANT_ACTIONS:
            if self._merchant_repo.get_managed(str(order.merchant_id), actor_id) is None:
                raise ActorNotAllowed("Only the merchant's managers can perform this action.")
        elif target == OrderStatus.ACCEPTED_BY_DRIVER:
            if not self._driver_repo.is_approved(actor_id):
                raise ActorNotAllowed("Only approved drivers can accept deliveries.")
        elif order.driver_id is None or str(order.driver_id) != str(actor_id):
            raise ActorNotAllowed("Only the assigned driver can update this order.")

    def _merchant_position(self, order: Order) -> Optional[Coordinates]:
        merchant = self._merchant_repo.get_by_id(str(order.merchant_id))
        if merchant is None:
            return None
        return Coordinates.from_pair(merchant.latitude, merchant.longitude)

    def _leg_km(
        self, origin: Optional[Coordinates], destination: Optional[Coordinates]
    ) -> Decimal:
        if origin is None or destination is None:
            return Decimal("0")
        estimate = self._routes.route_distance(origin, destination)
        return Decimal(str(estimate.km)).quantize(KM)

    def _settle(self, order: Order) -> Optional[Transaction]:
        self._order_repo.complete_payment(order.id)
        amount = (Decimal(order.delivery_fee) * DRIVER_EARNINGS_RATE).quantize(CENT)
        if amount <= 0:
            return None
        return self._ledger.credit_user(
            order.driver_id,
            amount,
            description=f"Delivery earnings for order #{str(order.id)[-6:]}",
            idempotency_key=f"{order.id}:earnings",
            order_id=order.id,
        )


def _codes_match(expected: str, supplied: Optional[str]) -> bool:
    if not expected or not supplied:
        return False
    return expected.strip().upper() == supplied.strip().upper()
