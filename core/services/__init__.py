# =============================================================================
# core/services/__init__.py - Service Layer Exports
# =============================================================================

from .score_service import ScoreService
from .settlement_service import SettlementService
from .verification_service import VerificationService

__all__ = [
    "ScoreService",
    "SettlementService",
    "VerificationService",
]
