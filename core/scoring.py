# =============================================================================
# core/scoring.py - Consultant Score Calculation
# =============================================================================
# Pure functions that turn raw activity into a bounded 0-10 score.
# Nothing here touches the database; ScoreService fetches the inputs and
# persists the result.
#
# Components and weights:
#   service  (40%) - star ratings, damped below 10 ratings
#   sales    (35%) - volume, recent activity and average ticket vs benchmarks
#   training (25%) - completion ratio, halved while mandatory ones are pending
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Iterable

from core.models.score import (
    ConsultantScore,
    SalesComponent,
    ScoreComponents,
    ScoreSource,
    ServiceComponent,
    Tier,
    TrainingComponent,
)
from lib.utils import parse_timestamp, round1, round_half_up

CALCULATION_VERSION = "1.0.0"

SERVICE_WEIGHT = 0.40
SALES_WEIGHT = 0.35
TRAINING_WEIGHT = 0.25

# Ratings needed before the service score reaches full confidence
FULL_CONFIDENCE_RATINGS = 10

# Fixed reference points for the sales score
TOTAL_SALES_BENCHMARK = 100
RECENT_SALES_BENCHMARK = 20
AVERAGE_TICKET_BENCHMARK = 300
RECENT_WINDOW_DAYS = 30

# Evaluated high to low; first threshold reached wins
TIER_THRESHOLDS: list[tuple[float, Tier]] = [
    (9.0, Tier.DIAMOND),
    (7.5, Tier.GOLD),
    (6.0, Tier.SILVER),
    (4.0, Tier.BRONZE),
]


def _clamp(value: float, low: float = 0.0, high: float = 10.0) -> float:
    return max(low, min(value, high))


# =============================================================================
# Inputs
# =============================================================================

@dataclass
class ConsultantMetrics:
    """Aggregated activity for one consultant."""

    average_stars: float = 0.0
    rating_count: int = 0
    positive_ratings: int = 0
    total_sales: int = 0
    last_30_days_sales: int = 0
    average_ticket: float = 0.0
    trainings_total: int = 0
    trainings_completed: int = 0
    mandatory_completed: bool = False

    @property
    def satisfaction_rate(self) -> float:
        """Percent of ratings with 4 or more stars."""
        if self.rating_count == 0:
            return 0.0
        return self.positive_ratings / self.rating_count * 100

    @classmethod
    def from_rows(
        cls,
        ratings: Iterable[dict[str, Any]],
        sales: Iterable[dict[str, Any]],
        trainings: Iterable[dict[str, Any]],
        now: datetime,
    ) -> "ConsultantMetrics":
        """
        Aggregate raw database rows.

        Args:
            ratings: rows with "stars"
            sales: completed-sale rows with "total_amount" and "created_at"
            trainings: rows with "completed" and "mandatory"
            now: reference time for the 30-day window (timezone-aware)
        """
        stars = [int(r["stars"]) for r in ratings]
        sales = list(sales)
        trainings = list(trainings)

        cutoff = now - timedelta(days=RECENT_WINDOW_DAYS)
        recent = [
            s for s in sales
            if s.get("created_at") and parse_timestamp(s["created_at"]) >= cutoff
        ]
        amounts = [float(s.get("total_amount") or 0) for s in sales]

        mandatory = [t for t in trainings if t.get("mandatory")]

        return cls(
            average_stars=sum(stars) / len(stars) if stars else 0.0,
            rating_count=len(stars),
            positive_ratings=sum(1 for s in stars if s >= 4),
            total_sales=len(sales),
            last_30_days_sales=len(recent),
            average_ticket=sum(amounts) / len(amounts) if amounts else 0.0,
            trainings_total=len(trainings),
            trainings_completed=sum(1 for t in trainings if t.get("completed")),
            # No mandatory trainings assigned counts as not satisfied
            mandatory_completed=bool(mandatory) and all(t.get("completed") for t in mandatory),
        )


# =============================================================================
# Sub-scores
# =============================================================================

def service_score(average_stars: float, rating_count: int) -> float:
    """
    Star average on a 0-10 scale, damped by a confidence factor.

    The factor grows linearly until FULL_CONFIDENCE_RATINGS ratings, so a
    perfect average over 3 ratings scores 3.0, not 10.0.
    """
    if rating_count <= 0:
        return 0.0
    base = (average_stars / 5.0) * 10
    confidence = min(rating_count / FULL_CONFIDENCE_RATINGS, 1.0)
    return _clamp(base * confidence)


def sales_score(total_sales: int, last_30_days_sales: int, average_ticket: float) -> float:
    """Weighted blend of volume (40%), recent activity (40%) and ticket size (20%)."""
    volume = min(total_sales / TOTAL_SALES_BENCHMARK, 1.0) * 10
    activity = min(last_30_days_sales / RECENT_SALES_BENCHMARK, 1.0) * 10
    ticket = min(average_ticket / AVERAGE_TICKET_BENCHMARK, 1.0) * 10
    return _clamp(volume * 0.4 + activity * 0.4 + ticket * 0.2)


def training_score(completed: int, total: int, mandatory_completed: bool) -> float:
    """Completion ratio on a 0-10 scale; halved while mandatory trainings are pending."""
    if total == 0:
        return 0.0
    score = (completed / total) * 10
    if not mandatory_completed:
        score *= 0.5
    return _clamp(score)


def total_score(service: float, sales: float, training: float) -> float:
    """Weighted sum of the three sub-scores, rounded to one decimal."""
    weighted = (
        service * SERVICE_WEIGHT
        + sales * SALES_WEIGHT
        + training * TRAINING_WEIGHT
    )
    return round1(_clamp(weighted))


def tier_for(score: float) -> Tier:
    for threshold, tier in TIER_THRESHOLDS:
        if score >= threshold:
            return tier
    return Tier.BEGINNER


# =============================================================================
# Full Calculation
# =============================================================================

@dataclass
class ScoreBreakdown:
    """Unrounded sub-scores plus the derived total and tier."""

    metrics: ConsultantMetrics
    service: float
    sales: float
    training: float
    total: float
    tier: Tier

    def to_score(
        self,
        consultant_id: str,
        calculated_at: datetime,
        rank: str | None = None,
        calculation_ms: int | None = None,
        source: ScoreSource = ScoreSource.AUTO,
    ) -> ConsultantScore:
        """Build the persisted score, rounding display values."""
        m = self.metrics
        training_pct = (
            int(round_half_up(m.trainings_completed / m.trainings_total * 100))
            if m.trainings_total else 0
        )
        return ConsultantScore(
            consultant_id=consultant_id,
            total_score=self.total,
            tier=self.tier,
            rank=rank,
            components=ScoreComponents(
                service=ServiceComponent(
                    score=round1(self.service),
                    average_stars=round1(m.average_stars),
                    rating_count=m.rating_count,
                    satisfaction_rate=round1(m.satisfaction_rate),
                    percentage=int(round_half_up(m.average_stars / 5.0 * 100)),
                ),
                sales=SalesComponent(
                    score=round1(self.sales),
                    total_sales=m.total_sales,
                    last_30_days_sales=m.last_30_days_sales,
                    average_ticket=float(round_half_up(m.average_ticket, 2)),
                    percentage=int(round_half_up(self.sales / 10 * 100)),
                ),
                training=TrainingComponent(
                    score=round1(self.training),
                    total=m.trainings_total,
                    completed=m.trainings_completed,
                    mandatory_completed=m.mandatory_completed,
                    percentage=training_pct,
                ),
            ),
            last_updated=calculated_at,
            calculation_version=CALCULATION_VERSION,
            calculation_ms=calculation_ms,
            source=source,
        )


def calculate(metrics: ConsultantMetrics) -> ScoreBreakdown:
    """Compute every component, the total and the tier for one consultant."""
    service = service_score(metrics.average_stars, metrics.rating_count)
    sales = sales_score(metrics.total_sales, metrics.last_30_days_sales, metrics.average_ticket)
    training = training_score(
        metrics.trainings_completed,
        metrics.trainings_total,
        metrics.mandatory_completed,
    )
    total = total_score(service, sales, training)
    return ScoreBreakdown(
        metrics=metrics,
        service=service,
        sales=sales,
        training=training,
        total=total,
        tier=tier_for(total),
    )
