"""Unit tests for Order/OrderItem persistence rules."""

from __future__ import annotations

import re
from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError
from django.db import IntegrityError

from modules.orders.constants import PaymentStatus
from modules.orders.models import Order, OrderItem, Payment

pytestmark = pytest.mark.unit


@pytest.fixture()
def order(customer, merchant, zone):
    return Order.objects.create(
        user=customer,
        merchant=merchant,
        delivery_zone=zone,
        subtotal=Decimal("20.00"),
        delivery_fee=Decimal("5.00"),
        discount=Decimal("2.50"),
        delivery_address="Moi Avenue 3",
        delivery_contact="0712345678",
    )


class TestOrderModel:
    def test_total_derived_on_save(self, order):
        order.refresh_from_db()
        assert order.total == Decimal("22.50")

    def test_total_rederived_when_fee_changes(self, order):
        order.delivery_fee = Decimal("0.00")
        order.save()
        order.refresh_from_db()
        assert order.total == Decimal("17.50")

    def test_order_number_format(self, order):
        assert re.fullmatch(r"ORD-\d{8}-[0-9A-F]{6}", order.order_number)

    def test_order_number_not_regenerated(self, order):
        number = order.order_number
        order.save()
        assert order.order_number == number

    def test_new_order_starts_pending_without_driver(self, order):
        assert order.status == "PENDING"
        assert order.driver_id is None
        assert order.driver_total_distance_km == Decimal("0.000")
        assert order.is_terminal is False

    def test_str(self, order):
        assert str(order) == f"{order.order_number} (PENDING)"


class TestOrderItemModel:
    def test_subtotal_calculated(self, order, product):
        item = OrderItem.objects.create(
            order=order, product=product, quantity=3, unit_price=Decimal("10.00")
        )
        assert item.subtotal == Decimal("30.00")

    def test_clean_rejects_zero_quantity(self, order, product):
        item = OrderItem(order=order, product=product, quantity=0, unit_price=Decimal("1.00"))
        with pytest.raises(ValidationError):
            item.clean()


class TestPaymentModel:
    def test_defaults(self, order):
        payment = Payment.objects.create(order=order, amount=order.total)
        assert payment.method == "CASH"
        assert payment.status == PaymentStatus.PENDING

    def test_one_payment_per_order(self, order):
        Payment.objects.create(order=order, amount=order.total)
        with pytest.raises(IntegrityError):
            Payment.objects.create(order=order, amount=order.total)
