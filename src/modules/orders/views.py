"""Order API views.

Exposes ``OrderService`` and ``OrderTransitionService`` via HTTP using
DRF ViewSets.  Domain exceptions are caught and translated into
appropriate HTTP status codes; the view never swallows generic exceptions.
"""

from __future__ import annotations

from django_filters.rest_framework import DjangoFilterBackend
from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import BaseThrottle
from rest_framework.viewsets import GenericViewSet

from modules.core.pagination import StandardResultsSetPagination
from modules.drivers.repository import DriverDjangoRepository
from modules.merchants.repository import MerchantDjangoRepository
from modules.notifications.dispatcher import MerchantNotifier
from modules.orders.dtos import CreateOrderDTO, CreateOrderItemDTO, TransitionCodesDTO
from modules.orders.exceptions import (
    ActorNotAllowed,
    InvalidCode,
    InvalidTransition,
    OrderNotFound,
    OrderValidationError,
)
from modules.orders.filters import OrderFilter
from modules.orders.models import Order
from modules.orders.repositories import OrderDjangoRepository
from modules.orders.serializers import (
    AvailableOrderSerializer,
    CreateOrderSerializer,
    OrderListSerializer,
    OrderSerializer,
    TransitionSerializer,
)
from modules.orders.services import OrderService, OrderTransitionService
from modules.products.exceptions import InactiveProduct, InsufficientStock, ProductNotFound
from modules.products.repositories import ProductDjangoRepository
from modules.products.services import InventoryService
from modules.wallets.exceptions import InsufficientBalance, WalletNotFound
from modules.wallets.repositories import WalletDjangoRepository
from modules.wallets.services import LedgerService
from modules.zones.exceptions import ZoneNotFound
from modules.zones.repositories import DeliveryZoneDjangoRepository
from shared.infrastructure.routing import RouteDistanceResolver


def _validation_detail(exc: PydanticValidationError) -> str:
    return exc.errors()[0]["msg"].removeprefix("Value error, ")


class OrderViewSet(GenericViewSet):
    """ViewSet for Order operations.

    Uses ``OrderService`` / ``OrderTransitionService`` with injected
    repositories (DIP).  Does **not** extend ``ModelViewSet``: all ORM
    access goes through the service/repository layer.
    """

    queryset = Order.objects.all()
    filterset_class = OrderFilter
    ordering_fields = ["created_at", "total", "status"]
    ordering = ["-created_at", "-id"]
    filter_backends = [DjangoFilterBackend, OrderingFilter]

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        order_repo = OrderDjangoRepository()
        product_repo = ProductDjangoRepository()
        wallet_repo = WalletDjangoRepository()
        inventory = InventoryService(product_repo)
        self._service = OrderService(
            order_repository=order_repo,
            product_repository=product_repo,
            zone_repository=DeliveryZoneDjangoRepository(),
            notifier=MerchantNotifier(),
            inventory=inventory,
        )
        self._transitions = OrderTransitionService(
            order_repository=order_repo,
            merchant_repository=MerchantDjangoRepository(),
            driver_repository=DriverDjangoRepository(),
            inventory=inventory,
            ledger=LedgerService(wallet_repo),
            route_resolver=RouteDistanceResolver(),
        )

    def get_throttles(self) -> list[BaseThrottle]:
        """Per-action throttle scopes."""
        throttle_scope: str | None
        if self.action == "create":
            throttle_scope = "order_creation"
        elif self.action == "transition":
            throttle_scope = "order_transition"
        elif self.action in {"list", "retrieve", "available"}:
            throttle_scope = "order_listing"
        else:
            throttle_scope = None
        self.throttle_scope = throttle_scope
        return super().get_throttles()

    # ------------------------------------------------------------------
    # Create (checkout)
    # ------------------------------------------------------------------

    def create(self, request: Request) -> Response:
        """POST /api/v1/orders/"""
        create_serializer = CreateOrderSerializer(data=request.data)
        create_serializer.is_valid(raise_exception=True)
        data = create_serializer.validated_data

        try:
            dto = CreateOrderDTO(
                items=[
                    CreateOrderItemDTO(
                        product_id=item["product_id"],
                        quantity=item["quantity"],
                    )
                    for item in data["items"]
                ],
                delivery_zone_id=data["delivery_zone_id"],
                subtotal=data["subtotal"],
                delivery_fee=data["delivery_fee"],
                discount=data["discount"],
                total=data["total"],
                delivery_address=data["delivery_address"],
                delivery_contact=data["delivery_contact"],
                delivery_notes=data["delivery_notes"],
                delivery_latitude=data.get("delivery_latitude"),
                delivery_longitude=data.get("delivery_longitude"),
                location_source=data["location_source"],
                resolved_location=data.get("resolved_location"),
                estimated_delivery_at=data.get("estimated_delivery_at"),
                pickup_code=data.get("pickup_code"),
                delivery_code=data.get("delivery_code"),
                payment_method=data["payment_method"],
            )
        except PydanticValidationError as exc:
            return Response(
                {"detail": _validation_detail(exc)},
                status=status.HTTP_400_BAD_REQUEST,
            )

        try:
            order = self._service.create_order(request.user.pk, dto)
        except ZoneNotFound:
            return Response(
                {"detail": "Delivery zone not found."},
                status=status.HTTP_404_NOT_FOUND,
            )
        except ProductNotFound as exc:
            return Response(
                {"detail": str(exc)},
                status=status.HTTP_404_NOT_FOUND,
            )
        except InactiveProduct as exc:
            return Response(
                {"detail": str(exc)},
                status=status.HTTP_400_BAD_REQUEST,
            )
        except OrderValidationError as exc:
            return Response(
                {"detail": str(exc)},
                status=status.HTTP_400_BAD_REQUEST,
            )
        except InsufficientStock as exc:
            return Response(
                {"detail": str(exc)},
                status=status.HTTP_409_CONFLICT,
            )

        order = self._service.get_order(order.id)
        out = OrderSerializer(order, context={"request": request})
        return Response(out.data, status=status.HTTP_201_CREATED)

    # ------------------------------------------------------------------
    # List / Retrieve
    # ------------------------------------------------------------------

    def get_queryset(self):
        return self._service.list_orders(self.request.user.pk)

    def list(self, request: Request) -> Response:
        """GET /api/v1/orders/

        Only orders the caller placed, delivers, or whose merchant they
        manage.  Filtering (status, merchant, date range) is handled by
        ``OrderFilter``; results are paginated.
        """
        queryset = self.filter_queryset(self.get_queryset())

        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(queryset, request)
        serializer = OrderListSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/"""
        try:
            order = self._service.get_order(pk, viewer_id=request.user.pk)
        except OrderNotFound:
            return Response(
                {"detail": "Order not found."},
                status=status.HTTP_404_NOT_FOUND,
            )
        serializer = OrderSerializer(order, context={"request": request})
        return Response(serializer.data)

    @action(detail=False, methods=["get"])
    def available(self, request: Request) -> Response:
        """GET /api/v1/orders/available/

        Pickup board for approved drivers: unassigned orders that are
        ready to deliver plus the caller's own active deliveries.  The
        response carries no codes.
        """
        try:
            queryset = self._transitions.available_for_driver(request.user.pk)
        except ActorNotAllowed as exc:
            return Response(
                {"detail": str(exc)},
                status=status.HTTP_403_FORBIDDEN,
            )

        paginator = StandardResultsSetPagination()
        page = paginator.paginate_queryset(queryset, request)
        serializer = AvailableOrderSerializer(page, many=True)
        return paginator.get_paginated_response(serializer.data)

    # ------------------------------------------------------------------
    # Transition
    # ------------------------------------------------------------------

    @action(detail=True, methods=["post"])
    def transition(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/transition/

        Body: ``{action, pickup_code?, delivery_code?, latitude?, longitude?, notes?}``.
        """
        serializer = TransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            codes = TransitionCodesDTO(
                pickup_code=data.get("pickup_code"),
                delivery_code=data.get("delivery_code"),
                latitude=data.get("latitude"),
                longitude=data.get("longitude"),
                notes=data["notes"],
            )
        except PydanticValidationError as exc:
            return Response(
                {"detail": _validation_detail(exc)},
                status=status.HTTP_400_BAD_REQUEST,
            )

        try:
            result = self._transitions.transition_order(
                order_id=pk,
                actor_id=request.user.pk,
                action=data["action"],
                codes=codes,
            )
        except OrderNotFound:
            return Response(
                {"detail": "Order not found."},
                status=status.HTTP_404_NOT_FOUND,
            )
        except ActorNotAllowed as exc:
            return Response(
                {"detail": str(exc)},
                status=status.HTTP_403_FORBIDDEN,
            )
        except (InvalidTransition, InvalidCode) as exc:
            return Response(
                {"detail": str(exc)},
                status=status.HTTP_400_BAD_REQUEST,
            )
        except (InsufficientBalance, WalletNotFound) as exc:
            return Response(
                {"detail": str(exc)},
                status=status.HTTP_400_BAD_REQUEST,
            )

        order = self._service.get_order(result.order.id)
        body = {
            "order": OrderSerializer(order, context={"request": request}).data,
            "earnings": str(result.earnings.amount) if result.earnings else None,
        }
        return Response(body)
