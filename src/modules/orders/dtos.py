"""Order DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.
These are the contracts between the API layer (DRF Serializers)
and the Service layer.  DTOs are immutable (``frozen=True``).

- ``CreateOrderItemDTO``: input for a single order line item.
- ``CreateOrderDTO``: checkout input (items, quoted prices, delivery info).
- ``TransitionCodesDTO``: optional codes and driver position sent with a
  status transition.
"""

from __future__ import annotations

import re
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from shared.domain.geo import Coordinates

CODE_RE = re.compile(r"^[A-Z0-9]{6}$")


def _normalize_code(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    v = v.strip().upper()
    return v or None


def _check_position(lat: Optional[Decimal], lng: Optional[Decimal]) -> None:
    if (lat is None) != (lng is None):
        raise ValueError("Latitude and longitude must be provided together.")
    if lat is not None and not -90 <= lat <= 90:
        raise ValueError("Latitude must be between -90 and 90.")
    if lng is not None and not -180 <= lng <= 180:
        raise ValueError("Longitude must be between -180 and 180.")


# ---------------------------------------------------------------------------
# Input DTOs
# ---------------------------------------------------------------------------


class CreateOrderItemDTO(BaseModel):
    """Immutable DTO for a single order item in a checkout request.

    ``unit_price`` is resolved by the Service Layer from the product catalog.
    """

    model_config = ConfigDict(frozen=True)

    product_id: UUID
    quantity: int

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantity must be at least 1.")
        return v


class CreateOrderDTO(BaseModel):
    """Immutable DTO for checkout requests.

    The client echoes the prices it was shown (``subtotal``,
    ``delivery_fee``, ``discount``, ``total``); the service compares them
    with current data to reject stale quotes.

    Validates:
    - ``items`` must contain at least one item, without duplicate products.
    - A delivery contact and address are present.
    - ``total == subtotal + delivery_fee - discount``.
    - Supplied codes are 6 upper-case alphanumeric characters.
    """

    model_config = ConfigDict(frozen=True)

    items: List[CreateOrderItemDTO]
    delivery_zone_id: UUID
    subtotal: Decimal
    delivery_fee: Decimal
    discount: Decimal = Decimal("0.00")
    total: Decimal
    delivery_address: str
    delivery_contact: str
    delivery_notes: str = ""
    delivery_latitude: Optional[Decimal] = None
    delivery_longitude: Optional[Decimal] = None
    location_source: Literal["manual", "geocoded", "landmark"] = "manual"
    resolved_location: Optional[Dict[str, Any]] = None
    estimated_delivery_at: Optional[datetime] = None
    pickup_code: Optional[str] = None
    delivery_code: Optional[str] = None
    payment_method: str = "CASH"

    @field_validator("items")
    @classmethod
    def items_must_not_be_empty(
        cls, v: List[CreateOrderItemDTO]
    ) -> List[CreateOrderItemDTO]:
        if not v:
            raise ValueError("Order must have at least one item.")
        return v

    @field_validator("delivery_address", "delivery_contact")
    @classmethod
    def must_not_be_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Delivery contact and address are required.")
        return v

    @field_validator("subtotal", "delivery_fee", "discount", "total")
    @classmethod
    def amounts_must_not_be_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("Amounts cannot be negative.")
        return v.quantize(Decimal("0.01"))

    @field_validator("pickup_code", "delivery_code")
    @classmethod
    def code_format(cls, v: Optional[str]) -> Optional[str]:
        v = _normalize_code(v)
        if v is not None and not CODE_RE.match(v):
            raise ValueError("Codes must be 6 letters or digits.")
        return v

    @model_validator(mode="after")
    def validate_consistency(self):
        product_ids = [item.product_id for item in self.items]
        if len(product_ids) != len(set(product_ids)):
            raise ValueError("Duplicate product IDs are not allowed in the same order.")
        if self.total != self.subtotal + self.delivery_fee - self.discount:
            raise ValueError("Total must equal subtotal + delivery fee - discount.")
        _check_position(self.delivery_latitude, self.delivery_longitude)
        return self

    @property
    def delivery_point(self) -> Optional[Coordinates]:
        return Coordinates.from_pair(self.delivery_latitude, self.delivery_longitude)


class TransitionCodesDTO(BaseModel):
    """Immutable DTO for the optional payload of a status transition."""

    model_config = ConfigDict(frozen=True)

    pickup_code: Optional[str] = None
    delivery_code: Optional[str] = None
    latitude: Optional[Decimal] = None
    longitude: Optional[Decimal] = None
    notes: str = ""

    @field_validator("pickup_code", "delivery_code")
    @classmethod
    def normalize_code(cls, v: Optional[str]) -> Optional[str]:
        return _normalize_code(v)

    @model_validator(mode="after")
    def validate_position(self):
        _check_position(self.latitude, self.longitude)
        return self

    @property
    def position(self) -> Optional[Coordinates]:
        return Coordinates.from_pair(self.latitude, self.longitude)
