# =============================================================================
# core/models/ - Pydantic Data Models
# =============================================================================
# This package contains Pydantic schemas for data validation:
# - score.py: Consultant score, its components and reporting shapes
# - settlement.py: Commission split, settlement record, payment payloads
#
# These models define the "contract" between API and clients.
# =============================================================================

# -----------------------------------------------------------------------------
# Score Models - Consultant reputation
# -----------------------------------------------------------------------------
from .score import (
    ConsultantScore,
    PublicMetrics,
    RecalculationSummary,
    SalesComponent,
    ScoreComponents,
    ScoreSource,
    ScoreStatistics,
    ServiceComponent,
    Tier,
    TrainingComponent,
)

# -----------------------------------------------------------------------------
# Settlement Models - Split payments
# -----------------------------------------------------------------------------
from .settlement import (
    CommissionSource,
    CommissionSplit,
    CreatePaymentRequest,
    CreatePaymentResponse,
    PaymentStatus,
    RefundRequest,
    SettlementRecord,
)

# -----------------------------------------------------------------------------
# __all__ - Explicit public API
# -----------------------------------------------------------------------------
__all__ = [
    # Score
    "ConsultantScore",
    "PublicMetrics",
    "RecalculationSummary",
    "SalesComponent",
    "ScoreComponents",
    "ScoreSource",
    "ScoreStatistics",
    "ServiceComponent",
    "Tier",
    "TrainingComponent",
    # Settlement
    "CommissionSource",
    "CommissionSplit",
    "CreatePaymentRequest",
    "CreatePaymentResponse",
    "PaymentStatus",
    "RefundRequest",
    "SettlementRecord",
]
