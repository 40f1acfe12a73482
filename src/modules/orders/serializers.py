"""Order DRF serializers for API input/output.

The serializer operates at the Interface layer (API Views).
Business logic lives in the Service Layer, which receives
Pydantic DTOs from ``dtos.py``.
"""

from __future__ import annotations

from rest_framework import serializers

from modules.orders.constants import LocationSource
from modules.orders.models import Order, OrderItem, OrderStatusHistory

# ---------------------------------------------------------------------------
# Input Serializers
# ---------------------------------------------------------------------------


class CreateOrderItemSerializer(serializers.Serializer):
    """Validates a single item in a checkout request."""

    product_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)


class CreateOrderSerializer(serializers.Serializer):
    """Validates the checkout request payload."""

    items = CreateOrderItemSerializer(many=True, allow_empty=False)
    delivery_zone_id = serializers.UUIDField()
    subtotal = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0)
    delivery_fee = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0)
    discount = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=0, required=False, default="0.00"
    )
    total = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0)
    delivery_address = serializers.CharField(max_length=500)
    delivery_contact = serializers.CharField(max_length=32)
    delivery_notes = serializers.CharField(required=False, default="", allow_blank=True)
    delivery_latitude = serializers.DecimalField(
        max_digits=9, decimal_places=6, required=False, allow_null=True
    )
    delivery_longitude = serializers.DecimalField(
        max_digits=9, decimal_places=6, required=False, allow_null=True
    )
    location_source = serializers.ChoiceField(
        choices=LocationSource.choices, required=False, default=LocationSource.MANUAL
    )
    resolved_location = serializers.JSONField(required=False, allow_null=True)
    estimated_delivery_at = serializers.DateTimeField(required=False, allow_null=True)
    pickup_code = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    delivery_code = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    payment_method = serializers.CharField(required=False, default="CASH", max_length=30)


class TransitionSerializer(serializers.Serializer):
    """Validates the transition request payload."""

    action = serializers.CharField(max_length=30)
    pickup_code = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    delivery_code = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    latitude = serializers.DecimalField(
        max_digits=9, decimal_places=6, required=False, allow_null=True
    )
    longitude = serializers.DecimalField(
        max_digits=9, decimal_places=6, required=False, allow_null=True
    )
    notes = serializers.CharField(required=False, default="", allow_blank=True)


# ---------------------------------------------------------------------------
# Output Serializers (Read)
# ---------------------------------------------------------------------------


class OrderItemSerializer(serializers.ModelSerializer):
    """Read serializer for order items with product snapshot."""

    product_name = serializers.CharField(source="product.name", read_only=True)

    class Meta:
        model = OrderItem
        fields = [
            "id",
            "product_id",
            "product_name",
            "quantity",
            "unit_price",
            "subtotal",
        ]
        read_only_fields = fields


class StatusHistorySerializer(serializers.ModelSerializer):
    """Read serializer for order status history records."""

    class Meta:
        model = OrderStatusHistory
        fields = [
            "id",
            "old_status",
            "new_status",
            "actor_id",
            "notes",
            "created_at",
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """Read serializer for orders with nested items and history.

    Codes are shown only to the party that hands them over: the
    ``delivery_code`` to the customer, the ``pickup_code`` to the
    merchant's managers.  Pass the request in the serializer context.
    """

    items = OrderItemSerializer(many=True, read_only=True)
    status_history = StatusHistorySerializer(many=True, read_only=True)
    pickup_code = serializers.SerializerMethodField()
    delivery_code = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "status",
            "user_id",
            "merchant_id",
            "driver_id",
            "delivery_zone_id",
            "pickup_code",
            "delivery_code",
            "subtotal",
            "delivery_fee",
            "discount",
            "total",
            "delivery_address",
            "delivery_contact",
            "delivery_notes",
            "delivery_latitude",
            "delivery_longitude",
            "location_source",
            "estimated_delivery_at",
            "driver_total_distance_km",
            "on_time_delivery",
            "completed_at",
            "created_at",
            "updated_at",
            "items",
            "status_history",
        ]
        read_only_fields = fields

    def _viewer_id(self):
        request = self.context.get("request")
        return getattr(getattr(request, "user", None), "pk", None)

    def get_pickup_code(self, obj: Order):
        viewer_id = self._viewer_id()
        if viewer_id is not None and obj.merchant.is_managed_by(viewer_id):
            return obj.pickup_code
        return None

    def get_delivery_code(self, obj: Order):
        viewer_id = self._viewer_id()
        if viewer_id is not None and obj.user_id == viewer_id:
            return obj.delivery_code
        return None


class OrderListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for order list (no nested relations)."""

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "merchant_id",
            "status",
            "total",
            "created_at",
        ]
        read_only_fields = fields


class AvailableOrderSerializer(serializers.ModelSerializer):
    """Pickup board entry for drivers: where to collect and where to deliver.

    Carries no verification codes.
    """

    merchant_name = serializers.CharField(source="merchant.name", read_only=True)
    merchant_latitude = serializers.DecimalField(
        source="merchant.latitude", max_digits=9, decimal_places=6, read_only=True
    )
    merchant_longitude = serializers.DecimalField(
        source="merchant.longitude", max_digits=9, decimal_places=6, read_only=True
    )

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "status",
            "merchant_id",
            "merchant_name",
            "merchant_latitude",
            "merchant_longitude",
            "delivery_address",
            "delivery_latitude",
            "delivery_longitude",
            "delivery_fee",
            "total",
            "created_at",
        ]
        read_only_fields = fields
