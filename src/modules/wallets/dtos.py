"""Wallet DTOs for the Service Layer.

- ``RequestWithdrawalDTO``: input for a payout request.  Phone numbers
  are normalised to ``+254XXXXXXXXX`` here so services and storage only
  ever see one format.
"""

from __future__ import annotations

import re
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator

KENYAN_MSISDN_RE = re.compile(r"^(\+254|254|0)([17]\d{8})$")


def normalize_phone_number(raw: str) -> str:
    """Return *raw* as ``+254XXXXXXXXX`` or raise ``ValueError``."""
    compact = re.sub(r"\s+", "", raw or "")
    match = KENYAN_MSISDN_RE.match(compact)
    if not match:
        raise ValueError("Invalid phone number format. Use 07XXXXXXXX or +2547XXXXXXXX.")
    return f"+254{match.group(2)}"


class RequestWithdrawalDTO(BaseModel):
    """Immutable DTO for withdrawal requests.

    ``merchant_id`` selects the merchant wallet the caller manages;
    without it the caller's own wallet is used.
    """

    model_config = ConfigDict(frozen=True)

    user_id: int
    amount: Decimal
    phone_number: str
    merchant_id: Optional[UUID] = None

    @field_validator("amount")
    @classmethod
    def amount_must_be_positive(cls, v: Decimal) -> Decimal:
        if v <= 0:
            raise ValueError("Amount must be greater than zero.")
        return v.quantize(Decimal("0.01"))

    @field_validator("phone_number")
    @classmethod
    def phone_must_be_kenyan_msisdn(cls, v: str) -> str:
        return normalize_phone_number(v)
