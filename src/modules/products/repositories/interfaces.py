"""Product repository interface.

The stock reader/writer contract consumed by checkout and by merchant
rejections.  Stock mutations must be atomic with respect to concurrent
callers on the same product.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Iterable, List, Optional

if TYPE_CHECKING:
    from modules.products.models import Product


class IProductRepository(ABC):
    """Repository contract for the Product aggregate."""

    @abstractmethod
    def get_by_id(self, id: str) -> Optional[Product]:
        """Retrieve a product by primary key."""

    @abstractmethod
    def get_many(self, ids: Iterable[str]) -> List[Product]:
        """Retrieve every product whose id is in *ids* (missing ids are skipped)."""

    @abstractmethod
    def reserve_stock(self, id: str, quantity: int) -> bool:
        """Decrement stock by *quantity* if at least that much is available.

        Returns ``False`` (and changes nothing) when stock is insufficient
        or the product does not exist.
        """

    @abstractmethod
    def release_stock(self, id: str, quantity: int) -> bool:
        """Return *quantity* units to stock. ``False`` if the product is gone."""
