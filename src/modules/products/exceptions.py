"""Product and inventory exceptions.

Raised by the inventory service; the order API translates them into
HTTP responses.
"""

from __future__ import annotations


class ProductNotFound(Exception):
    """The requested product does not exist."""


class InactiveProduct(Exception):
    """The product exists but is not available for sale."""


class InsufficientStock(Exception):
    """Not enough stock to satisfy a reservation."""
