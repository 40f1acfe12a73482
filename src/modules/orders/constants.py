"""Order domain constants.

Defines status choices, valid status transitions and the side-effect
groups of the order state machine.
"""

from decimal import Decimal

from django.db import models


class OrderStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    ACCEPTED_BY_MERCHANT = "ACCEPTED_BY_MERCHANT", "Accepted by merchant"
    IN_PREPARATION = "IN_PREPARATION", "In preparation"
    READY_TO_DELIVER = "READY_TO_DELIVER", "Ready to deliver"
    ACCEPTED_BY_DRIVER = "ACCEPTED_BY_DRIVER", "Accepted by driver"
    ON_THE_WAY = "ON_THE_WAY", "On the way"
    COMPLETED = "COMPLETED", "Completed"
    REJECTED_BY_MERCHANT = "REJECTED_BY_MERCHANT", "Rejected by merchant"
    REJECTED_BY_DRIVER = "REJECTED_BY_DRIVER", "Rejected by driver"
    CANCELED_BY_MERCHANT = "CANCELED_BY_MERCHANT", "Canceled by merchant"
    CANCELED_BY_DRIVER = "CANCELED_BY_DRIVER", "Canceled by driver"


class LocationSource(models.TextChoices):
    MANUAL = "manual", "Manual"
    GEOCODED = "geocoded", "Geocoded"
    LANDMARK = "landmark", "Landmark"


class PaymentStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    COMPLETED = "COMPLETED", "Completed"
    FAILED = "FAILED", "Failed"


VALID_TRANSITIONS: dict[str, set[str]] = {
    OrderStatus.PENDING: {
        OrderStatus.ACCEPTED_BY_MERCHANT,
        OrderStatus.REJECTED_BY_MERCHANT,
    },
    OrderStatus.ACCEPTED_BY_MERCHANT: {
        OrderStatus.IN_PREPARATION,
        OrderStatus.CANCELED_BY_MERCHANT,
    },
    OrderStatus.IN_PREPARATION: {
        OrderStatus.READY_TO_DELIVER,
        OrderStatus.CANCELED_BY_MERCHANT,
    },
    OrderStatus.READY_TO_DELIVER: {
        OrderStatus.ACCEPTED_BY_DRIVER,
        OrderStatus.CANCELED_BY_MERCHANT,
    },
    OrderStatus.ACCEPTED_BY_DRIVER: {
        OrderStatus.ON_THE_WAY,
        OrderStatus.COMPLETED,
        OrderStatus.CANCELED_BY_DRIVER,
    },
    OrderStatus.ON_THE_WAY: {
        OrderStatus.COMPLETED,
        OrderStatus.CANCELED_BY_DRIVER,
    },
    OrderStatus.COMPLETED: set(),
    OrderStatus.REJECTED_BY_MERCHANT: set(),
    OrderStatus.REJECTED_BY_DRIVER: set(),
    OrderStatus.CANCELED_BY_MERCHANT: set(),
    OrderStatus.CANCELED_BY_DRIVER: set(),
}

TERMINAL_STATES: set[str] = {
    OrderStatus.COMPLETED,
    OrderStatus.REJECTED_BY_MERCHANT,
    OrderStatus.REJECTED_BY_DRIVER,
    OrderStatus.CANCELED_BY_MERCHANT,
    OrderStatus.CANCELED_BY_DRIVER,
}

# Targets reachable by each actor kind.
MERCHANT_ACTIONS: set[str] = {
    OrderStatus.ACCEPTED_BY_MERCHANT,
    OrderStatus.REJECTED_BY_MERCHANT,
    OrderStatus.IN_PREPARATION,
    OrderStatus.READY_TO_DELIVER,
    OrderStatus.CANCELED_BY_MERCHANT,
}
DRIVER_ACTIONS: set[str] = {
    OrderStatus.ACCEPTED_BY_DRIVER,
    OrderStatus.ON_THE_WAY,
    OrderStatus.COMPLETED,
    OrderStatus.CANCELED_BY_DRIVER,
}

STOCK_RELEASING_STATES: set[str] = {
    OrderStatus.REJECTED_BY_MERCHANT,
    OrderStatus.CANCELED_BY_MERCHANT,
}

# Deliveries a driver is still carrying.
ACTIVE_DELIVERY_STATES: set[str] = {
    OrderStatus.ACCEPTED_BY_DRIVER,
    OrderStatus.ON_THE_WAY,
}

DRIVER_EARNINGS_RATE = Decimal("0.80")

CODE_LENGTH = 6
CODE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"

ORDER_NUMBER_MAX_RETRIES = 5
