from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from django.core.cache import cache
from rest_framework.test import APIClient

from modules.drivers.models import DriverProfile, DriverStatus
from modules.drivers.repository import DriverDjangoRepository
from modules.merchants.models import Merchant
from modules.merchants.repository import MerchantDjangoRepository
from modules.notifications.dispatcher import MerchantNotifier
from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO, TransitionCodesDTO
from modules.orders.repositories import OrderDjangoRepository
from modules.orders.services import OrderService, OrderTransitionService
from modules.products.models import Product, ProductStatus
from modules.products.repositories import ProductDjangoRepository
from modules.products.services import InventoryService
from modules.wallets.repositories import WalletDjangoRepository
from modules.wallets.services import LedgerService
from modules.zones.models import DeliveryZone, ZoneStatus
from modules.zones.repositories import DeliveryZoneDjangoRepository
from shared.infrastructure.routing import RouteDistanceResolver

User = get_user_model()

# Rough Nairobi bounding box, GeoJSON [lng, lat]
NAIROBI_POLYGON = [
    [
        [36.60, -1.45],
        [37.10, -1.45],
        [37.10, -1.10],
        [36.60, -1.10],
        [36.60, -1.45],
    ]
]
MERCHANT_LAT, MERCHANT_LNG = Decimal("-1.286400"), Decimal("36.817200")
DELIVERY_LAT, DELIVERY_LNG = Decimal("-1.300000"), Decimal("36.780000")


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture(autouse=True)
def _clear_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture()
def api_client():
    """DRF APIClient for testing API endpoints."""
    return APIClient()


@pytest.fixture()
def api_client_with_correlation(api_client):
    """APIClient pre-configured with a known correlation ID header."""
    cid = "test-correlation-id-fixture"
    api_client.defaults["HTTP_X_REQUEST_ID"] = cid
    return api_client, cid


# ---------------------------------------------------------------------------
# Parties
# ---------------------------------------------------------------------------


@pytest.fixture()
def customer():
    return User.objects.create_user(username="customer", password="testpass123")


@pytest.fixture()
def manager():
    return User.objects.create_user(username="manager", password="testpass123")


@pytest.fixture()
def merchant(manager):
    merchant = Merchant.objects.create(
        name="Mama Oliech",
        latitude=MERCHANT_LAT,
        longitude=MERCHANT_LNG,
    )
    merchant.managers.add(manager)
    return merchant


@pytest.fixture()
def driver():
    user = User.objects.create_user(username="driver", password="testpass123")
    DriverProfile.objects.create(user=user, status=DriverStatus.APPROVED, vehicle_type="motorbike")
    return user


@pytest.fixture()
def zone():
    return DeliveryZone.objects.create(
        name="Nairobi CBD",
        status=ZoneStatus.ACTIVE,
        delivery_fee=Decimal("5.00"),
        polygon=NAIROBI_POLYGON,
    )


@pytest.fixture()
def product(merchant):
    return Product.objects.create(
        merchant=merchant,
        name="Fish Fry",
        price=Decimal("10.00"),
        stock_quantity=10,
        status=ProductStatus.ACTIVE,
    )


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


@pytest.fixture()
def order_service():
    return OrderService(
        order_repository=OrderDjangoRepository(),
        product_repository=ProductDjangoRepository(),
        zone_repository=DeliveryZoneDjangoRepository(),
        notifier=MerchantNotifier(),
    )


@pytest.fixture()
def transition_service():
    return OrderTransitionService(
        order_repository=OrderDjangoRepository(),
        merchant_repository=MerchantDjangoRepository(),
        driver_repository=DriverDjangoRepository(),
        inventory=InventoryService(ProductDjangoRepository()),
        ledger=LedgerService(WalletDjangoRepository()),
        route_resolver=RouteDistanceResolver(base_url=""),
    )


def _checkout_dto(zone, product, quantity=1, **overrides):
    subtotal = product.price * quantity
    fields = {
        "items": [CreateOrderItemDTO(product_id=product.id, quantity=quantity)],
        "delivery_zone_id": zone.id,
        "subtotal": subtotal,
        "delivery_fee": zone.delivery_fee,
        "discount": Decimal("0.00"),
        "total": subtotal + zone.delivery_fee,
        "delivery_address": "Kenyatta Avenue 12",
        "delivery_contact": "0712345678",
        "delivery_latitude": DELIVERY_LAT,
        "delivery_longitude": DELIVERY_LNG,
        "pickup_code": "PICK12",
        "delivery_code": "DROP34",
    }
    fields.update(overrides)
    return CreateOrderDTO(**fields)


@pytest.fixture()
def checkout_dto():
    """Build a checkout DTO that matches current catalogue prices."""
    return _checkout_dto


@pytest.fixture()
def place_order(order_service, customer, zone, product):
    """Factory: create a PENDING order for ``customer``."""

    def _place(quantity=1, **overrides):
        return order_service.create_order(customer.id, _checkout_dto(zone, product, quantity, **overrides))

    return _place


@pytest.fixture()
def advance(transition_service, manager, driver):
    """Factory: drive an order through a list of actions with the right actors."""

    def _advance(order, *actions, **codes):
        result = None
        for action in actions:
            actor = driver if action in {
                "ACCEPTED_BY_DRIVER", "ON_THE_WAY", "COMPLETED", "CANCELED_BY_DRIVER"
            } else manager
            result = transition_service.transition_order(
                order.id, actor.id, action, TransitionCodesDTO(**codes)
            )
            order = result.order
        return result

    return _advance


@pytest.fixture()
def client_for():
    """Factory: APIClient force-authenticated as the given user."""

    def _client(user):
        client = APIClient()
        client.force_authenticate(user=user)
        return client

    return _client
