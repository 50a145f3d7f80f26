# =============================================================================
# core/models/settlement.py - Commission Split & Settlement Schemas
# =============================================================================
# These models define how one customer payment is divided and tracked:
# - PaymentStatus: Lifecycle of the payment behind a sale
# - CommissionSplit: The consultant/store division of a gross amount
# - SettlementRecord: One row per sale in sale_settlements
# - CreatePaymentRequest / CreatePaymentResponse: HTTP payloads
#
# Amounts are integers in minor currency units (centavos for BRL).
# =============================================================================

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from lib.utils import parse_timestamp

TIMESTAMPS = ("created_at", "paid_at", "settled_at", "updated_at")


class PaymentStatus(str, Enum):
    """
    Payment lifecycle.

    PENDING -> AWAITING_PAYMENT -> PAID | CANCELED | FAILED
    PAID -> REFUNDED
    """
    PENDING = "pending"
    AWAITING_PAYMENT = "awaiting_payment"
    PAID = "paid"
    CANCELED = "canceled"
    FAILED = "failed"
    REFUNDED = "refunded"


class CommissionSource(str, Enum):
    """Where the applied commission rate came from."""
    PRODUCT = "product"
    STORE = "store"


class CommissionSplit(BaseModel):
    """
    Division of a gross amount between consultant and store.

    consultant_amount + store_gross_amount == gross_amount, always.
    """
    gross_amount: int = Field(..., gt=0)
    commission_rate: Decimal = Field(..., ge=0, le=100)
    consultant_amount: int = Field(..., ge=0)
    store_gross_amount: int = Field(..., ge=0)


class SettlementRecord(BaseModel):
    """A sale's split, its payment and the transfers made from it."""

    sale_id: str
    product_id: str | None = None
    store_id: str
    consultant_id: str
    gross_amount: int
    currency: str = "brl"
    commission_rate: Decimal
    commission_source: CommissionSource
    consultant_amount: int
    store_gross_amount: int
    consultant_account_id: str
    store_account_id: str
    payment_id: str
    status: PaymentStatus = PaymentStatus.AWAITING_PAYMENT
    consultant_transfer_id: str | None = None
    store_transfer_id: str | None = None
    needs_manual_review: bool = False
    review_reason: str | None = None
    created_at: datetime | None = None
    paid_at: datetime | None = None
    # Set once both transfers were attempted and the sale was marked paid
    settled_at: datetime | None = None
    updated_at: datetime | None = None

    def to_row(self) -> dict[str, Any]:
        row = self.model_dump(mode="json", exclude=set(TIMESTAMPS))
        row["commission_rate"] = float(self.commission_rate)
        return row

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "SettlementRecord":
        data = dict(row)
        for key in TIMESTAMPS:
            data[key] = parse_timestamp(data.get(key))
        data["commission_rate"] = Decimal(str(data["commission_rate"]))
        return cls.model_validate(data)


# =============================================================================
# HTTP Payloads
# =============================================================================

class CreatePaymentRequest(BaseModel):
    """
    Request to open a split payment for a sale.

    Example:
        {
            "sale_id": "550e8400-...",
            "product_id": "6ba7b810-...",
            "store_id": "6ba7b811-...",
            "consultant_id": "6ba7b812-...",
            "amount": 10000
        }
    """
    sale_id: str = Field(..., min_length=1)
    product_id: str | None = None
    store_id: str = Field(..., min_length=1)
    consultant_id: str = Field(..., min_length=1)
    amount: int = Field(..., gt=0, description="Gross amount in minor currency units")


class CreatePaymentResponse(BaseModel):
    payment_id: str
    client_secret: str | None
    amount: int
    commission_rate: float
    commission_source: CommissionSource
    consultant_amount: int
    store_gross_amount: int


class RefundRequest(BaseModel):
    amount: int | None = Field(
        default=None,
        gt=0,
        description="Partial refund amount; omit for a full refund"
    )
