# =============================================================================
# core/commission.py - Commission Rules
# =============================================================================
# Pure rules for splitting a payment:
# - resolve_commission_rate: product rate, else store default, else 10%
# - split_amount: consultant share rounded half-up, store gets the remainder
# - Payment status transitions
#
# No I/O here; SettlementService loads the rates and persists the results.
# =============================================================================

from __future__ import annotations

from decimal import Decimal

from app.config import settings
from app.exceptions import ConflictError, ValidationError
from core.models.settlement import CommissionSource, CommissionSplit, PaymentStatus
from lib.utils import round_half_up


# Valid transitions: {from_status: {allowed_to_statuses}}
_TRANSITIONS: dict[PaymentStatus, set[PaymentStatus]] = {
    PaymentStatus.PENDING: {PaymentStatus.AWAITING_PAYMENT},
    PaymentStatus.AWAITING_PAYMENT: {
        PaymentStatus.PAID,
        PaymentStatus.CANCELED,
        PaymentStatus.FAILED,
    },
    PaymentStatus.PAID: {PaymentStatus.REFUNDED},
    # Terminal states
    PaymentStatus.CANCELED: set(),
    PaymentStatus.FAILED: set(),
    PaymentStatus.REFUNDED: set(),
}


def _as_rate(value: float | Decimal | str | None) -> Decimal | None:
    if value is None or value == "":
        return None
    return Decimal(str(value))


def resolve_commission_rate(
    product_rate: float | Decimal | str | None,
    store_default_rate: float | Decimal | str | None,
) -> tuple[Decimal, CommissionSource]:
    """
    Pick the commission rate for a sale.

    A product rate (even 0) wins. Otherwise the store default applies when
    it is set and non-zero, and failing that DEFAULT_COMMISSION_RATE, both
    reported as source "store".
    """
    rate = _as_rate(product_rate)
    if rate is not None:
        return rate, CommissionSource.PRODUCT

    rate = _as_rate(store_default_rate)
    if rate:
        return rate, CommissionSource.STORE

    return Decimal(str(settings.DEFAULT_COMMISSION_RATE)), CommissionSource.STORE


def split_amount(gross: int, rate: float | Decimal) -> CommissionSplit:
    """
    Split a gross amount (minor units) by a percentage rate.

    Example:
        split_amount(10000, 8)  # consultant 800, store 9200

    Raises:
        ValidationError: If gross isn't a positive int or rate is outside 0-100
    """
    if isinstance(gross, bool) or not isinstance(gross, int) or gross <= 0:
        raise ValidationError(
            message="Amount must be a positive integer in minor units",
            details={"amount": gross},
        )

    rate = Decimal(str(rate))
    if rate < 0 or rate > 100:
        raise ValidationError(
            message="Commission rate must be between 0 and 100",
            details={"commission_rate": float(rate)},
        )

    consultant = int(round_half_up(Decimal(gross) * rate / 100))
    return CommissionSplit(
        gross_amount=gross,
        commission_rate=rate,
        consultant_amount=consultant,
        store_gross_amount=gross - consultant,
    )


# =============================================================================
# Payment Status Transitions
# =============================================================================

def can_transition(current: PaymentStatus | str, target: PaymentStatus | str) -> bool:
    return PaymentStatus(target) in _TRANSITIONS.get(PaymentStatus(current), set())


def validate_transition(current: PaymentStatus | str, target: PaymentStatus | str) -> PaymentStatus:
    """
    Check a payment status change.

    Returns:
        The target status

    Raises:
        ConflictError: If the transition is not allowed
    """
    current = PaymentStatus(current)
    target = PaymentStatus(target)
    if target not in _TRANSITIONS[current]:
        allowed = ", ".join(sorted(s.value for s in _TRANSITIONS[current]))
        raise ConflictError(
            message=f"Invalid payment transition: {current.value} -> {target.value}",
            details={"current": current.value, "target": target.value, "allowed": allowed},
        )
    return target
