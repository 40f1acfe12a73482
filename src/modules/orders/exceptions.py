"""Order domain exceptions.

Raised by the Service Layer when business rules are violated.
The API layer (Views) catches these and translates them into
appropriate HTTP responses.
"""

from __future__ import annotations


class OrderNotFound(Exception):
    """The requested order does not exist."""


class OrderValidationError(Exception):
    """Checkout input is inconsistent with current zone, product or price data."""


class InvalidTransition(Exception):
    """The requested status is not reachable from the order's current status."""


class InvalidCode(Exception):
    """The pickup or delivery code does not match the order."""


class ActorNotAllowed(Exception):
    """The caller may not perform this transition on this order."""
