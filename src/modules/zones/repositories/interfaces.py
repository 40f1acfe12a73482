"""Delivery zone repository interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from modules.zones.models import DeliveryZone
    from shared.domain.geo import Coordinates


class IDeliveryZoneRepository(ABC):
    """Read-only contract consumed by checkout."""

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[DeliveryZone]:
        """Retrieve a zone by primary key, active or not."""

    @abstractmethod
    def find_active_containing(self, point: Coordinates) -> Optional[DeliveryZone]:
        """Return the first active zone whose polygon contains *point*."""
