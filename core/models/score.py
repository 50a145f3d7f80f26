# =============================================================================
# core/models/score.py - Consultant Score Schemas
# =============================================================================
# These models define the stored and API shape of a consultant score:
# - Tier: Discrete reputation label derived from the total score
# - ServiceComponent / SalesComponent / TrainingComponent: weighted sub-scores
# - ConsultantScore: One row per consultant, overwritten on recalculation
#
# The database keeps the components as flat columns (service_score,
# sales_total, ...); to_row()/from_row() translate between the two shapes.
# =============================================================================

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from lib.utils import parse_timestamp


class Tier(str, Enum):
    """
    Reputation tiers, highest first.

    Thresholds live in core.scoring.TIER_THRESHOLDS.
    """
    DIAMOND = "Diamond"
    GOLD = "Gold"
    SILVER = "Silver"
    BRONZE = "Bronze"
    BEGINNER = "Beginner"


class ScoreSource(str, Enum):
    """Who triggered the calculation that produced a stored score."""
    AUTO = "auto"
    ADMIN = "admin"


# =============================================================================
# Components
# =============================================================================

class ServiceComponent(BaseModel):
    """Customer-rating component (weight 40)."""
    score: float = Field(..., ge=0, le=10)
    weight: int = Field(default=40)
    average_stars: float = Field(default=0.0, ge=0, le=5)
    rating_count: int = Field(default=0, ge=0)
    satisfaction_rate: float = Field(
        default=0.0,
        ge=0,
        le=100,
        description="Share of ratings with 4 or more stars"
    )
    percentage: int = Field(default=0, ge=0, le=100)


class SalesComponent(BaseModel):
    """Sales-activity component (weight 35)."""
    score: float = Field(..., ge=0, le=10)
    weight: int = Field(default=35)
    total_sales: int = Field(default=0, ge=0)
    last_30_days_sales: int = Field(default=0, ge=0)
    average_ticket: float = Field(default=0.0, ge=0)
    percentage: int = Field(default=0, ge=0, le=100)


class TrainingComponent(BaseModel):
    """Training-completion component (weight 25)."""
    score: float = Field(..., ge=0, le=10)
    weight: int = Field(default=25)
    total: int = Field(default=0, ge=0)
    completed: int = Field(default=0, ge=0)
    mandatory_completed: bool = Field(default=False)
    percentage: int = Field(default=0, ge=0, le=100)


class ScoreComponents(BaseModel):
    service: ServiceComponent
    sales: SalesComponent
    training: TrainingComponent


# =============================================================================
# Consultant Score
# =============================================================================

class ConsultantScore(BaseModel):
    """
    A consultant's reputation score.

    Example:
        {
            "consultant_id": "550e8400-...",
            "total_score": 7.8,
            "tier": "Gold",
            "rank": "Top 15%",
            "components": {"service": {...}, "sales": {...}, "training": {...}},
            "last_updated": "2024-01-15T03:00:00Z"
        }
    """

    consultant_id: str
    total_score: float = Field(..., ge=0, le=10)
    tier: Tier
    rank: str | None = None
    components: ScoreComponents
    last_updated: datetime
    calculation_version: str = "1.0.0"
    calculation_ms: int | None = None
    source: ScoreSource = ScoreSource.AUTO

    def to_row(self) -> dict[str, Any]:
        """Flatten into the consultant_scores column layout."""
        service = self.components.service
        sales = self.components.sales
        training = self.components.training
        return {
            "consultant_id": self.consultant_id,
            "total_score": self.total_score,
            "tier": self.tier.value,
            "rank": self.rank,
            "service_score": service.score,
            "service_weight": service.weight,
            "service_average_stars": service.average_stars,
            "service_rating_count": service.rating_count,
            "service_satisfaction_rate": service.satisfaction_rate,
            "service_percentage": service.percentage,
            "sales_score": sales.score,
            "sales_weight": sales.weight,
            "sales_total": sales.total_sales,
            "sales_last_30_days": sales.last_30_days_sales,
            "sales_average_ticket": sales.average_ticket,
            "sales_percentage": sales.percentage,
            "training_score": training.score,
            "training_weight": training.weight,
            "training_total": training.total,
            "training_completed": training.completed,
            "training_mandatory_completed": training.mandatory_completed,
            "training_percentage": training.percentage,
            "calculation_version": self.calculation_version,
            "calculation_ms": self.calculation_ms,
            "source": self.source.value,
            "last_updated": self.last_updated.isoformat(),
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "ConsultantScore":
        """Rebuild from a consultant_scores row."""
        return cls(
            consultant_id=str(row["consultant_id"]),
            total_score=float(row["total_score"]),
            tier=Tier(row["tier"]),
            rank=row.get("rank"),
            components=ScoreComponents(
                service=ServiceComponent(
                    score=float(row["service_score"]),
                    weight=row.get("service_weight", 40),
                    average_stars=float(row.get("service_average_stars") or 0),
                    rating_count=row.get("service_rating_count") or 0,
                    satisfaction_rate=float(row.get("service_satisfaction_rate") or 0),
                    percentage=row.get("service_percentage") or 0,
                ),
                sales=SalesComponent(
                    score=float(row["sales_score"]),
                    weight=row.get("sales_weight", 35),
                    total_sales=row.get("sales_total") or 0,
                    last_30_days_sales=row.get("sales_last_30_days") or 0,
                    average_ticket=float(row.get("sales_average_ticket") or 0),
                    percentage=row.get("sales_percentage") or 0,
                ),
                training=TrainingComponent(
                    score=float(row["training_score"]),
                    weight=row.get("training_weight", 25),
                    total=row.get("training_total") or 0,
                    completed=row.get("training_completed") or 0,
                    mandatory_completed=bool(row.get("training_mandatory_completed")),
                    percentage=row.get("training_percentage") or 0,
                ),
            ),
            last_updated=parse_timestamp(row["last_updated"]),
            calculation_version=row.get("calculation_version") or "1.0.0",
            calculation_ms=row.get("calculation_ms"),
            source=ScoreSource(row.get("source") or "auto"),
        )


class PublicMetrics(BaseModel):
    """
    Activity metrics a consultant may see about themselves.

    Deliberately carries no score, tier or rank.
    """
    consultant_id: str
    average_stars: float
    rating_count: int
    total_sales: int
    last_30_days_sales: int
    trainings_total: int
    trainings_completed: int
    mandatory_completed: bool


class RecalculationSummary(BaseModel):
    """Outcome of a bulk recalculation."""
    succeeded: int = 0
    failed: int = 0
    failed_ids: list[str] = Field(default_factory=list)
    ranks_refreshed: bool = False


class ScoreStatistics(BaseModel):
    """Platform-wide score aggregates for admins."""
    total_consultants: int
    average_score: float
    tier_distribution: dict[str, int]
    component_averages: dict[str, float]
    top: list[dict[str, Any]] = Field(default_factory=list)
