# =============================================================================
# tests/test_scoring.py - Score Calculation Tests
# =============================================================================
# This module contains tests for:
# - Each sub-score formula and its bounds
# - Tier thresholds at their boundaries
# - Aggregation of raw rows into ConsultantMetrics
# - The full calculation and the persisted score shape
#
# Everything here is pure; no database is involved.
# =============================================================================

from datetime import datetime, timedelta, timezone

import pytest

from core.models.score import ConsultantScore, ScoreSource, Tier
from core.scoring import (
    ConsultantMetrics,
    calculate,
    sales_score,
    service_score,
    tier_for,
    total_score,
    training_score,
)

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# Service Score Tests
# =============================================================================

class TestServiceScore:
    """Test the rating-based component."""

    def test_zero_ratings_scores_zero(self):
        """No ratings means no service score, whatever the average says."""
        assert service_score(0.0, 0) == 0.0
        assert service_score(5.0, 0) == 0.0

    def test_ten_perfect_ratings_score_ten(self):
        """Test 10 ratings averaging 5 stars reach the maximum."""
        metrics = ConsultantMetrics.from_rows(
            ratings=[{"stars": 5}] * 10, sales=[], trainings=[], now=NOW
        )
        assert service_score(metrics.average_stars, metrics.rating_count) == pytest.approx(10.0)

    @pytest.mark.parametrize("count", range(1, 10))
    def test_few_ratings_scale_linearly(self, count):
        """Below 10 ratings a perfect average is damped by count/10."""
        assert service_score(5.0, count) == pytest.approx(count)

    def test_confidence_caps_at_ten_ratings(self):
        """More than 10 ratings don't push the score past the star average."""
        assert service_score(4.0, 50) == pytest.approx(8.0)

    @pytest.mark.parametrize("stars,count", [(1.0, 1), (3.3, 7), (5.0, 100), (0.0, 4)])
    def test_bounded(self, stars, count):
        """Service score always stays within 0-10."""
        assert 0.0 <= service_score(stars, count) <= 10.0


# =============================================================================
# Sales Score Tests
# =============================================================================

class TestSalesScore:
    """Test the sales-activity component."""

    def test_half_of_every_benchmark(self):
        """Test 50 sales, 10 recent, 150 ticket score 5.0."""
        assert sales_score(50, 10, 150) == pytest.approx(5.0)

    def test_no_sales(self):
        assert sales_score(0, 0, 0) == 0.0

    def test_benchmarks_cap_each_part(self):
        """Exceeding every benchmark can't go past 10."""
        assert sales_score(1000, 500, 10000) == pytest.approx(10.0)

    def test_weights(self):
        """Volume and activity weigh 40% each, ticket 20%."""
        assert sales_score(100, 0, 0) == pytest.approx(4.0)
        assert sales_score(0, 20, 0) == pytest.approx(4.0)
        assert sales_score(0, 0, 300) == pytest.approx(2.0)


# =============================================================================
# Training Score Tests
# =============================================================================

class TestTrainingScore:
    """Test the training-completion component."""

    def test_no_trainings_scores_exactly_zero(self):
        """Zero trainings is a 0 score, not an error."""
        assert training_score(0, 0, False) == 0.0
        assert training_score(0, 0, True) == 0.0

    def test_mandatory_pending_halves_score(self):
        """Test 4 trainings, 2 completed, one mandatory pending score 2.5."""
        trainings = [
            {"completed": True, "mandatory": False},
            {"completed": True, "mandatory": False},
            {"completed": False, "mandatory": True},
            {"completed": False, "mandatory": False},
        ]
        metrics = ConsultantMetrics.from_rows([], [], trainings, NOW)

        assert metrics.mandatory_completed is False
        assert training_score(
            metrics.trainings_completed, metrics.trainings_total, metrics.mandatory_completed
        ) == pytest.approx(2.5)

    def test_all_mandatory_done(self):
        assert training_score(3, 4, True) == pytest.approx(7.5)

    def test_full_completion(self):
        assert training_score(4, 4, True) == pytest.approx(10.0)


# =============================================================================
# Total / Tier Tests
# =============================================================================

class TestTotalAndTier:
    """Test the weighted total and tier mapping."""

    def test_weighted_total(self):
        """Total is 40/35/25 weighted and rounded to one decimal."""
        assert total_score(10.0, 5.0, 2.5) == pytest.approx(6.4)

    def test_total_rounds_half_up(self):
        """0.25 * 0.2 lands on x.x5 and rounds up."""
        assert total_score(0.0, 0.0, 0.2) == pytest.approx(0.1)

    def test_total_uses_unrounded_components(self):
        """Rounding happens once, on the weighted sum."""
        assert total_score(3.33, 3.33, 3.33) == pytest.approx(3.3)

    @pytest.mark.parametrize("score,tier", [
        (10.0, Tier.DIAMOND),
        (9.0, Tier.DIAMOND),
        (8.999, Tier.GOLD),
        (7.5, Tier.GOLD),
        (7.499, Tier.SILVER),
        (6.0, Tier.SILVER),
        (5.999, Tier.BRONZE),
        (4.0, Tier.BRONZE),
        (3.999, Tier.BEGINNER),
        (0.0, Tier.BEGINNER),
    ])
    def test_tier_boundaries(self, score, tier):
        """Thresholds are inclusive and evaluated high to low."""
        assert tier_for(score) == tier


# =============================================================================
# Metrics Aggregation Tests
# =============================================================================

class TestConsultantMetrics:
    """Test aggregation of raw rows."""

    def test_aggregates_ratings(self):
        metrics = ConsultantMetrics.from_rows(
            ratings=[{"stars": 5}, {"stars": 4}, {"stars": 3}, {"stars": 2}],
            sales=[], trainings=[], now=NOW,
        )
        assert metrics.rating_count == 4
        assert metrics.average_stars == pytest.approx(3.5)
        assert metrics.satisfaction_rate == pytest.approx(50.0)

    def test_recent_sales_window(self):
        """Only sales within the last 30 days count as recent."""
        now = NOW
        sales = [
            {"total_amount": 100, "created_at": (now - timedelta(days=1)).isoformat()},
            {"total_amount": 200, "created_at": (now - timedelta(days=29)).isoformat()},
            {"total_amount": 300, "created_at": (now - timedelta(days=31)).isoformat()},
        ]
        metrics = ConsultantMetrics.from_rows([], sales, [], now)

        assert metrics.total_sales == 3
        assert metrics.last_30_days_sales == 2
        assert metrics.average_ticket == pytest.approx(200.0)

    def test_accepts_zulu_timestamps(self):
        metrics = ConsultantMetrics.from_rows(
            [], [{"total_amount": "99.90", "created_at": "2024-06-14T10:00:00Z"}], [], NOW
        )
        assert metrics.last_30_days_sales == 1

    def test_no_mandatory_trainings_is_not_satisfied(self):
        """With no mandatory trainings assigned the halving still applies."""
        metrics = ConsultantMetrics.from_rows(
            [], [], [{"completed": True, "mandatory": False}], NOW
        )
        assert metrics.mandatory_completed is False


# =============================================================================
# Full Calculation Tests
# =============================================================================

class TestCalculate:
    """Test the end-to-end calculation."""

    def test_empty_activity(self):
        """A consultant with no activity still gets a (zero) score."""
        breakdown = calculate(ConsultantMetrics())

        assert breakdown.total == 0.0
        assert breakdown.tier == Tier.BEGINNER

    def test_to_score_shape(self):
        metrics = ConsultantMetrics(
            average_stars=5.0,
            rating_count=10,
            positive_ratings=10,
            total_sales=50,
            last_30_days_sales=10,
            average_ticket=150.0,
            trainings_total=4,
            trainings_completed=2,
            mandatory_completed=False,
        )
        now = NOW
        score = calculate(metrics).to_score("consultant-1", now, rank="1", source=ScoreSource.ADMIN)

        assert score.total_score == pytest.approx(6.4)
        assert score.tier == Tier.SILVER
        assert score.components.service.score == pytest.approx(10.0)
        assert score.components.service.percentage == 100
        assert score.components.sales.score == pytest.approx(5.0)
        assert score.components.sales.percentage == 50
        assert score.components.training.score == pytest.approx(2.5)
        assert score.components.training.percentage == 50
        assert score.source == ScoreSource.ADMIN
        assert score.last_updated == now

    def test_row_round_trip_keeps_components(self):
        """Flattening to columns and back preserves the score."""
        score = calculate(ConsultantMetrics(average_stars=4.2, rating_count=5, positive_ratings=4)).to_score(
            "consultant-1", NOW
        )
        row = score.to_row()

        assert row["service_score"] == score.components.service.score
        assert row["tier"] == score.tier.value

        assert ConsultantScore.from_row(row) == score
