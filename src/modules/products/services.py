"""Inventory service (stock store).

``reserve`` is the only way stock goes down; ``release`` is its inverse,
used when a merchant rejects or cancels an order.  It distinguishes a missing
product from an exhausted one so callers can report the right error, but
the decision itself is a single conditional UPDATE in the repository.

``reserve_all`` must run inside the caller's ``transaction.atomic`` block:
a failure on any line raises, and the enclosing rollback restores the
lines already reserved.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Tuple

import structlog

from modules.products.exceptions import InsufficientStock, ProductNotFound

if TYPE_CHECKING:
    from modules.products.repositories.interfaces import IProductRepository

logger = structlog.get_logger(__name__)


class InventoryService:
    """Application service for stock reservations.

    Receives an ``IProductRepository`` via constructor injection (DIP).
    """

    def __init__(self, repository: IProductRepository) -> None:
        self._repo = repository

    def reserve(self, product_id: str, quantity: int) -> None:
        """Atomically take *quantity* units of *product_id* out of stock.

        Raises:
            ProductNotFound: the product does not exist.
            InsufficientStock: fewer than *quantity* units are available.
        """
        if self._repo.reserve_stock(product_id, quantity):
            return

        product = self._repo.get_by_id(product_id)
        if product is None:
            raise ProductNotFound(f"Product {product_id} not found.")
        logger.warning(
            "inventory.insufficient_stock",
            product_id=str(product_id),
            requested=quantity,
            available=product.stock_quantity,
        )
        raise InsufficientStock(
            f"Insufficient stock for {product.name}: requested {quantity}, "
            f"available {product.stock_quantity}."
        )

    def reserve_all(self, lines: Iterable[Tuple[str, int]]) -> None:
        """Reserve every ``(product_id, quantity)`` line or raise on the first failure.

        Lines are processed in product-id order so concurrent checkouts
        touching the same products lock rows in the same order.
        """
        for product_id, quantity in sorted(lines, key=lambda line: str(line[0])):
            self.reserve(product_id, quantity)

    def release(self, product_id: str, quantity: int) -> bool:
        """Put *quantity* units back; ``False`` if the product no longer exists."""
        if self._repo.release_stock(product_id, quantity):
            return True
        logger.warning(
            "inventory.release_skipped_missing_product",
            product_id=str(product_id),
            quantity=quantity,
        )
        return False

    def release_all(self, lines: Iterable[Tuple[str, int]]) -> None:
        """Return stock for every ``(product_id, quantity)`` line."""
        for product_id, quantity in sorted(lines, key=lambda line: str(line[0])):
            self.release(product_id, quantity)
