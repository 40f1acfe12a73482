"""Unit tests for OrderService (checkout and reads).

Covers:
- Checkout with stock reservation, creation history and payment record.
- Stale quote rejection (fee, subtotal) and zone/location checks, including
  a manual location that falls in a different zone than the quoted one.
- Product and merchant validation.
- Atomicity: a failing checkout leaves stock and tables untouched.
- Visibility of orders to the parties of the order only.
"""

from __future__ import annotations

import re
from decimal import Decimal
from unittest.mock import MagicMock
from uuid import uuid4

import pytest
from django.contrib.auth import get_user_model

from modules.merchants.models import Merchant
from modules.orders.constants import OrderStatus, PaymentStatus
from modules.orders.dtos import CreateOrderItemDTO
from modules.orders.exceptions import OrderNotFound, OrderValidationError
from modules.orders.models import Order, OrderStatusHistory, Payment
from modules.orders.services import OrderService
from modules.products.exceptions import InactiveProduct, InsufficientStock, ProductNotFound
from modules.products.models import Product, ProductStatus
from modules.zones.exceptions import ZoneNotFound
from modules.zones.models import DeliveryZone, ZoneStatus

pytestmark = pytest.mark.unit


# ---------------------------------------------------------------------------
# Isolated (mocked repositories)
# ---------------------------------------------------------------------------


class TestCreateOrderIsolated:
    @pytest.fixture()
    def repos(self):
        return {
            "order_repository": MagicMock(),
            "product_repository": MagicMock(),
            "zone_repository": MagicMock(),
            "notifier": MagicMock(),
        }

    def test_unknown_zone_raises_before_any_write(self, repos, zone, product, checkout_dto):
        repos["zone_repository"].get_by_id.return_value = None
        service = OrderService(**repos)

        with pytest.raises(ZoneNotFound):
            OrderService.create_order.__wrapped__(service, 1, checkout_dto(zone, product))

        repos["product_repository"].reserve_stock.assert_not_called()
        repos["order_repository"].create.assert_not_called()
        repos["notifier"].notify_new_order.assert_not_called()

    def test_stale_fee_raises_before_product_lookup(self, repos, zone, product, checkout_dto):
        current = MagicMock(is_active=True, delivery_fee=Decimal("7.00"))
        repos["zone_repository"].get_by_id.return_value = current
        service = OrderService(**repos)

        with pytest.raises(OrderValidationError, match="Delivery fee has changed"):
            OrderService.create_order.__wrapped__(service, 1, checkout_dto(zone, product))

        repos["product_repository"].get_many.assert_not_called()


# ---------------------------------------------------------------------------
# Checkout against the database
# ---------------------------------------------------------------------------


class TestCreateOrder:
    def test_creates_pending_order(self, place_order, customer, merchant, zone):
        order = place_order(quantity=2)

        assert order.status == OrderStatus.PENDING
        assert order.user_id == customer.id
        assert order.merchant_id == merchant.id
        assert order.delivery_zone_id == zone.id
        assert order.subtotal == Decimal("20.00")
        assert order.total == Decimal("25.00")
        assert order.pickup_code == "PICK12"
        assert order.delivery_code == "DROP34"

    def test_reserves_stock(self, place_order, product):
        place_order(quantity=3)
        product.refresh_from_db()
        assert product.stock_quantity == 7

    def test_snapshots_unit_price(self, place_order, product):
        order = place_order(quantity=2)
        Product.objects.filter(id=product.id).update(price=Decimal("99.00"))

        item = order.items.get()
        assert item.unit_price == Decimal("10.00")
        assert item.subtotal == Decimal("20.00")

    def test_records_creation_history(self, place_order, customer):
        order = place_order()
        history = OrderStatusHistory.objects.get(order=order)
        assert history.old_status is None
        assert history.new_status == OrderStatus.PENDING
        assert history.actor_id == customer.id
        assert history.notes == "Order placed"

    def test_creates_pending_payment(self, place_order):
        order = place_order()
        payment = Payment.objects.get(order=order)
        assert payment.amount == order.total
        assert payment.method == "CASH"
        assert payment.status == PaymentStatus.PENDING

    def test_generates_codes_when_absent(self, place_order):
        order = place_order(pickup_code=None, delivery_code=None)
        assert re.fullmatch(r"[A-Z0-9]{6}", order.pickup_code)
        assert re.fullmatch(r"[A-Z0-9]{6}", order.delivery_code)

    def test_queues_merchant_notification_after_commit(
        self, place_order, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks() as callbacks:
            place_order()
        assert len(callbacks) == 1

    def test_geocoded_location_outside_zones_allowed(self, place_order):
        order = place_order(
            location_source="geocoded",
            delivery_latitude=Decimal("0.0"),
            delivery_longitude=Decimal("0.0"),
        )
        assert order.location_source == "geocoded"


class TestCreateOrderValidation:
    @pytest.fixture()
    def east_zone(self):
        return DeliveryZone.objects.create(
            name="Nairobi East",
            status=ZoneStatus.ACTIVE,
            delivery_fee=Decimal("3.00"),
            polygon=[[[37.10, -1.45], [37.40, -1.45], [37.40, -1.10], [37.10, -1.10], [37.10, -1.45]]],
        )

    def _assert_nothing_written(self, product, stock=10):
        product.refresh_from_db()
        assert product.stock_quantity == stock
        assert Order.objects.count() == 0
        assert Payment.objects.count() == 0

    def test_unknown_zone(self, place_order, product):
        with pytest.raises(ZoneNotFound):
            place_order(delivery_zone_id=uuid4())
        self._assert_nothing_written(product)

    def test_inactive_zone(self, place_order, zone, product):
        zone.status = ZoneStatus.INACTIVE
        zone.save()
        with pytest.raises(OrderValidationError, match="not currently served"):
            place_order()
        self._assert_nothing_written(product)

    def test_stale_delivery_fee(self, place_order, zone, product):
        zone.delivery_fee = Decimal("6.00")
        zone.save()
        with pytest.raises(OrderValidationError, match="Delivery fee has changed"):
            place_order(delivery_fee=Decimal("5.00"), total=Decimal("15.00"))
        self._assert_nothing_written(product)

    def test_manual_location_outside_zones(self, place_order, product):
        with pytest.raises(OrderValidationError, match="outside our delivery zones"):
            place_order(delivery_latitude=Decimal("0.0"), delivery_longitude=Decimal("0.0"))
        self._assert_nothing_written(product)

    def test_manual_location_in_another_zone(self, place_order, product, east_zone):
        with pytest.raises(OrderValidationError, match="different delivery zone"):
            place_order(delivery_latitude=Decimal("-1.300000"), delivery_longitude=Decimal("37.200000"))
        self._assert_nothing_written(product)

    def test_manual_location_matching_quoted_zone(
        self, order_service, customer, product, east_zone, checkout_dto
    ):
        dto = checkout_dto(
            east_zone,
            product,
            delivery_latitude=Decimal("-1.300000"),
            delivery_longitude=Decimal("37.200000"),
        )
        order = order_service.create_order(customer.id, dto)
        assert order.delivery_zone_id == east_zone.id
        assert order.total == Decimal("13.00")

    def test_unknown_product(self, order_service, customer, zone, product, checkout_dto):
        dto = checkout_dto(
            zone,
            product,
            items=[CreateOrderItemDTO(product_id=uuid4(), quantity=1)],
        )
        with pytest.raises(ProductNotFound):
            order_service.create_order(customer.id, dto)
        self._assert_nothing_written(product)

    def test_inactive_product(self, place_order, product):
        product.status = ProductStatus.INACTIVE
        product.save()
        with pytest.raises(InactiveProduct, match="Fish Fry is not available"):
            place_order()
        self._assert_nothing_written(product)

    def test_items_from_two_merchants(self, order_service, customer, zone, product, checkout_dto):
        other = Product.objects.create(
            merchant=Merchant.objects.create(name="Other Grill"),
            name="Nyama Choma",
            price=Decimal("15.00"),
            stock_quantity=5,
        )
        dto = checkout_dto(
            zone,
            product,
            items=[
                CreateOrderItemDTO(product_id=product.id, quantity=1),
                CreateOrderItemDTO(product_id=other.id, quantity=1),
            ],
            subtotal=Decimal("25.00"),
            total=Decimal("30.00"),
        )
        with pytest.raises(OrderValidationError, match="same merchant"):
            order_service.create_order(customer.id, dto)
        self._assert_nothing_written(product)

    def test_inactive_merchant(self, place_order, merchant, product):
        merchant.is_active = False
        merchant.save()
        with pytest.raises(OrderValidationError, match="not accepting orders"):
            place_order()
        self._assert_nothing_written(product)

    def test_stale_subtotal(self, place_order, product):
        Product.objects.filter(id=product.id).update(price=Decimal("12.00"))
        product.refresh_from_db()
        with pytest.raises(OrderValidationError, match="Item prices have changed"):
            place_order(subtotal=Decimal("10.00"), total=Decimal("15.00"))
        self._assert_nothing_written(product)

    def test_insufficient_stock(self, place_order, product):
        with pytest.raises(InsufficientStock):
            place_order(quantity=11)
        self._assert_nothing_written(product)

    def test_partial_reservation_rolled_back(
        self, order_service, customer, merchant, zone, product, checkout_dto
    ):
        scarce = Product.objects.create(
            merchant=merchant, name="Ugali", price=Decimal("3.00"), stock_quantity=1
        )
        dto = checkout_dto(
            zone,
            product,
            items=[
                CreateOrderItemDTO(product_id=product.id, quantity=2),
                CreateOrderItemDTO(product_id=scarce.id, quantity=2),
            ],
            subtotal=Decimal("26.00"),
            total=Decimal("31.00"),
        )
        with pytest.raises(InsufficientStock):
            order_service.create_order(customer.id, dto)
        self._assert_nothing_written(product)
        scarce.refresh_from_db()
        assert scarce.stock_quantity == 1


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


class TestGetOrder:
    def test_visible_to_customer_and_manager(self, order_service, place_order, customer, manager):
        order = place_order()
        assert order_service.get_order(order.id, viewer_id=customer.id).id == order.id
        assert order_service.get_order(order.id, viewer_id=manager.id).id == order.id

    def test_hidden_from_strangers(self, order_service, place_order):
        order = place_order()
        stranger = get_user_model().objects.create_user(username="stranger", password="x")
        with pytest.raises(OrderNotFound):
            order_service.get_order(order.id, viewer_id=stranger.id)

    def test_without_viewer_skips_visibility(self, order_service, place_order):
        order = place_order()
        assert order_service.get_order(order.id).id == order.id

    @pytest.mark.parametrize("order_id", ["not-a-uuid", str(uuid4())])
    def test_missing_or_invalid_id(self, order_service, order_id):
        with pytest.raises(OrderNotFound):
            order_service.get_order(order_id)

    def test_list_orders_scoped_to_parties(self, order_service, place_order, customer, manager):
        order = place_order()
        stranger = get_user_model().objects.create_user(username="stranger", password="x")
        assert list(order_service.list_orders(customer.id)) == [order]
        assert list(order_service.list_orders(manager.id)) == [order]
        assert list(order_service.list_orders(stranger.id)) == []
