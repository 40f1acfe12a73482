"""Integration tests for the order endpoints.

Covers:
- Checkout 201 and its error mapping (400/404/409).
- Listing and retrieval restricted to the parties of an order.
- Code visibility per party.
- The transition action end to end, including driver earnings.
- The driver pickup board.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import uuid4

import pytest
from django.contrib.auth import get_user_model

from modules.drivers.models import DriverProfile, DriverStatus
from modules.orders.constants import OrderStatus
from modules.orders.dtos import TransitionCodesDTO
from modules.orders.models import Order

pytestmark = pytest.mark.integration

User = get_user_model()

ORDERS_URL = "/api/v1/orders/"


def _detail_url(order_id):
    return f"{ORDERS_URL}{order_id}/"


def _transition_url(order_id):
    return f"{ORDERS_URL}{order_id}/transition/"


@pytest.fixture()
def payload(zone, product):
    return {
        "items": [{"product_id": str(product.id), "quantity": 2}],
        "delivery_zone_id": str(zone.id),
        "subtotal": "20.00",
        "delivery_fee": "5.00",
        "discount": "0.00",
        "total": "25.00",
        "delivery_address": "Kimathi Street 4",
        "delivery_contact": "+254712345678",
        "delivery_latitude": "-1.285000",
        "delivery_longitude": "36.822000",
        "pickup_code": "PICK12",
        "delivery_code": "DROP34",
    }


@pytest.fixture()
def stranger():
    return User.objects.create_user(username="stranger", password="testpass123")


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------


class TestCreateOrder:
    def test_creates_order(self, client_for, customer, payload, product):
        response = client_for(customer).post(ORDERS_URL, payload, format="json")

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == OrderStatus.PENDING
        assert data["total"] == "25.00"
        assert data["order_number"].startswith("ORD-")
        assert data["delivery_code"] == "DROP34"
        assert data["pickup_code"] is None
        assert len(data["items"]) == 1
        assert data["items"][0]["product_name"] == "Fish Fry"
        assert len(data["status_history"]) == 1

        product.refresh_from_db()
        assert product.stock_quantity == 8

    def test_requires_authentication(self, api_client, payload):
        response = api_client.post(ORDERS_URL, payload, format="json")
        assert response.status_code == 401

    def test_empty_items_rejected(self, client_for, customer, payload):
        payload["items"] = []
        response = client_for(customer).post(ORDERS_URL, payload, format="json")
        assert response.status_code == 400

    def test_inconsistent_total(self, client_for, customer, payload):
        payload["total"] = "30.00"
        response = client_for(customer).post(ORDERS_URL, payload, format="json")
        assert response.status_code == 400
        assert response.json()["detail"] == "Total must equal subtotal + delivery fee - discount."

    def test_stale_delivery_fee(self, client_for, customer, payload):
        payload.update(delivery_fee="4.00", total="24.00")
        response = client_for(customer).post(ORDERS_URL, payload, format="json")
        assert response.status_code == 400
        assert "Delivery fee has changed" in response.json()["detail"]
        assert Order.objects.count() == 0

    def test_unknown_zone(self, client_for, customer, payload):
        payload["delivery_zone_id"] = str(uuid4())
        response = client_for(customer).post(ORDERS_URL, payload, format="json")
        assert response.status_code == 404
        assert response.json() == {"detail": "Delivery zone not found."}

    def test_unknown_product(self, client_for, customer, payload):
        payload["items"] = [{"product_id": str(uuid4()), "quantity": 1}]
        response = client_for(customer).post(ORDERS_URL, payload, format="json")
        assert response.status_code == 404

    def test_insufficient_stock(self, client_for, customer, payload):
        payload["items"][0]["quantity"] = 50
        payload.update(subtotal="500.00", total="505.00")
        response = client_for(customer).post(ORDERS_URL, payload, format="json")
        assert response.status_code == 409
        assert "Insufficient stock" in response.json()["detail"]

    def test_location_outside_zones(self, client_for, customer, payload):
        payload.update(delivery_latitude="0.500000", delivery_longitude="0.500000")
        response = client_for(customer).post(ORDERS_URL, payload, format="json")
        assert response.status_code == 400
        assert response.json()["detail"] == "Delivery location is outside our delivery zones."


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


class TestReadOrders:
    def test_list_only_own_orders(self, client_for, customer, manager, stranger, place_order):
        order = place_order()

        data = client_for(customer).get(ORDERS_URL).json()
        assert data["count"] == 1
        assert data["results"][0]["id"] == str(order.id)

        assert client_for(manager).get(ORDERS_URL).json()["count"] == 1
        assert client_for(stranger).get(ORDERS_URL).json()["count"] == 0

    def test_list_filters_by_status(self, client_for, customer, place_order, advance):
        advance(place_order(), "ACCEPTED_BY_MERCHANT")
        place_order()

        client = client_for(customer)
        assert client.get(ORDERS_URL, {"status": "pending"}).json()["count"] == 1
        assert client.get(ORDERS_URL, {"status": "ACCEPTED_BY_MERCHANT"}).json()["count"] == 1

    def test_retrieve_as_manager_shows_pickup_code_only(self, client_for, manager, place_order):
        order = place_order()
        response = client_for(manager).get(_detail_url(order.id))

        assert response.status_code == 200
        data = response.json()
        assert data["pickup_code"] == "PICK12"
        assert data["delivery_code"] is None

    def test_retrieve_hidden_from_stranger(self, client_for, stranger, place_order):
        order = place_order()
        response = client_for(stranger).get(_detail_url(order.id))
        assert response.status_code == 404
        assert response.json() == {"detail": "Order not found."}

    def test_retrieve_invalid_id(self, client_for, customer):
        response = client_for(customer).get(_detail_url("not-a-uuid"))
        assert response.status_code == 404


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


class TestTransitionEndpoint:
    def test_merchant_accepts(self, client_for, manager, place_order):
        order = place_order()
        response = client_for(manager).post(
            _transition_url(order.id), {"action": "ACCEPTED_BY_MERCHANT"}, format="json"
        )

        assert response.status_code == 200
        body = response.json()
        assert body["order"]["status"] == OrderStatus.ACCEPTED_BY_MERCHANT
        assert body["earnings"] is None
        assert len(body["order"]["status_history"]) == 2

    def test_customer_forbidden(self, client_for, customer, place_order):
        order = place_order()
        response = client_for(customer).post(
            _transition_url(order.id), {"action": "ACCEPTED_BY_MERCHANT"}, format="json"
        )
        assert response.status_code == 403

    def test_not_reachable(self, client_for, manager, place_order):
        order = place_order()
        response = client_for(manager).post(
            _transition_url(order.id), {"action": "READY_TO_DELIVER"}, format="json"
        )
        assert response.status_code == 400
        assert "Cannot transition order from PENDING" in response.json()["detail"]

    def test_unknown_order(self, client_for, manager):
        response = client_for(manager).post(
            _transition_url(uuid4()), {"action": "ACCEPTED_BY_MERCHANT"}, format="json"
        )
        assert response.status_code == 404

    def test_missing_action(self, client_for, manager, place_order):
        order = place_order()
        response = client_for(manager).post(_transition_url(order.id), {}, format="json")
        assert response.status_code == 400

    def test_wrong_pickup_code(self, client_for, driver, place_order, advance):
        order = place_order()
        advance(order, "ACCEPTED_BY_MERCHANT", "IN_PREPARATION", "READY_TO_DELIVER")

        response = client_for(driver).post(
            _transition_url(order.id),
            {"action": "ACCEPTED_BY_DRIVER", "pickup_code": "NOPE00"},
            format="json",
        )
        assert response.status_code == 400
        assert response.json() == {"detail": "Invalid pickup code."}

    def test_driver_delivers_and_is_paid(self, client_for, driver, place_order, advance):
        order = place_order()
        advance(order, "ACCEPTED_BY_MERCHANT", "IN_PREPARATION", "READY_TO_DELIVER")
        client = client_for(driver)

        accepted = client.post(
            _transition_url(order.id),
            {
                "action": "ACCEPTED_BY_DRIVER",
                "pickup_code": "pick12",
                "latitude": "-1.280000",
                "longitude": "36.810000",
            },
            format="json",
        )
        assert accepted.status_code == 200
        assert accepted.json()["order"]["driver_id"] == driver.id

        completed = client.post(
            _transition_url(order.id),
            {"action": "COMPLETED", "delivery_code": "DROP34"},
            format="json",
        )
        assert completed.status_code == 200
        body = completed.json()
        assert body["order"]["status"] == OrderStatus.COMPLETED
        assert body["earnings"] == "4.00"
        assert Decimal(body["order"]["driver_total_distance_km"]) > 0

        wallet = client.get("/api/v1/wallet/").json()
        assert wallet["balance"] == "4.00"


# ---------------------------------------------------------------------------
# Driver pickup board
# ---------------------------------------------------------------------------

AVAILABLE_URL = f"{ORDERS_URL}available/"
PREPARED = ("ACCEPTED_BY_MERCHANT", "IN_PREPARATION", "READY_TO_DELIVER")


@pytest.fixture()
def other_driver():
    user = User.objects.create_user(username="other-driver", password="testpass123")
    DriverProfile.objects.create(user=user, status=DriverStatus.APPROVED)
    return user


class TestAvailableOrders:
    def test_lists_ready_orders_without_codes(self, client_for, driver, place_order, advance):
        ready = place_order()
        advance(ready, *PREPARED)
        place_order()
        advance(place_order(), "ACCEPTED_BY_MERCHANT")

        response = client_for(driver).get(AVAILABLE_URL)

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 1
        entry = data["results"][0]
        assert entry["id"] == str(ready.id)
        assert entry["status"] == OrderStatus.READY_TO_DELIVER
        assert entry["merchant_name"] == "Mama Oliech"
        assert entry["delivery_address"] == ready.delivery_address
        assert "pickup_code" not in entry
        assert "delivery_code" not in entry

    def test_includes_own_active_deliveries_only(
        self, client_for, driver, other_driver, place_order, advance, transition_service
    ):
        mine = place_order()
        advance(mine, *PREPARED, "ACCEPTED_BY_DRIVER", pickup_code="PICK12")
        theirs = place_order()
        advance(theirs, *PREPARED)
        transition_service.transition_order(
            theirs.id, other_driver.id, "ACCEPTED_BY_DRIVER", TransitionCodesDTO(pickup_code="PICK12")
        )
        delivered = place_order()
        advance(
            delivered,
            *PREPARED,
            "ACCEPTED_BY_DRIVER",
            "COMPLETED",
            pickup_code="PICK12",
            delivery_code="DROP34",
        )

        data = client_for(driver).get(AVAILABLE_URL).json()

        assert [entry["id"] for entry in data["results"]] == [str(mine.id)]
        assert data["results"][0]["status"] == OrderStatus.ACCEPTED_BY_DRIVER

    def test_unapproved_driver_forbidden(self, client_for, place_order, advance):
        pending = User.objects.create_user(username="applicant", password="testpass123")
        DriverProfile.objects.create(user=pending, status=DriverStatus.PENDING)
        advance(place_order(), *PREPARED)

        response = client_for(pending).get(AVAILABLE_URL)

        assert response.status_code == 403
        assert response.json() == {
            "detail": "You must be an approved driver to view available orders."
        }

    def test_non_driver_forbidden(self, client_for, customer, manager):
        assert client_for(customer).get(AVAILABLE_URL).status_code == 403
        assert client_for(manager).get(AVAILABLE_URL).status_code == 403

    def test_requires_authentication(self, api_client):
        assert api_client.get(AVAILABLE_URL).status_code == 401
