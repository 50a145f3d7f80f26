# =============================================================================
# core/services/score_service.py - Consultant Score Business Logic
# =============================================================================
# Cache-aside access to consultant scores:
# - get_score: return the stored score while fresh, recompute when stale
# - recalculate: force a recomputation (admin corrections)
# - recalculate_all: nightly batch over every active consultant
#
# Metric inputs come from Supabase; the arithmetic lives in core.scoring.
# =============================================================================

import logging
import time
from datetime import datetime, timedelta
from typing import Any, Callable
from uuid import UUID

from app.config import settings
from app.exceptions import ScoreUnavailableError
from core.models.score import (
    ConsultantScore,
    PublicMetrics,
    RecalculationSummary,
    ScoreSource,
    ScoreStatistics,
    Tier,
)
from core.scoring import ConsultantMetrics, calculate
from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.utils import normalize_id, round_half_up, utcnow

logger = logging.getLogger(__name__)

UNRANKED = "N/A"


class ScoreService:
    """
    Service for consultant score operations.

    Recalculation is pure apart from the final upsert, so the same inputs
    always produce the same stored row.
    """

    # -------------------------------------------------------------------------
    # Inputs
    # -------------------------------------------------------------------------

    @staticmethod
    def fetch_metrics(
        consultant_id: str | UUID,
        now: datetime | None = None,
    ) -> ConsultantMetrics:
        """
        Load and aggregate a consultant's ratings, sales and trainings.

        Raises:
            ScoreUnavailableError: If any metric source can't be read
        """
        consultant_id_str = normalize_id(consultant_id)
        try:
            ratings = SupabaseClient.fetch_ratings(consultant_id_str)
            sales = SupabaseClient.fetch_completed_sales(consultant_id_str)
            trainings = SupabaseClient.fetch_trainings(consultant_id_str)
        except SupabaseClientError as e:
            logger.error(f"Metric fetch failed for consultant {consultant_id_str}: {e}")
            raise ScoreUnavailableError(consultant_id_str, e.message)

        return ConsultantMetrics.from_rows(ratings, sales, trainings, now or utcnow())

    @staticmethod
    def _rank(consultant_id: str) -> str:
        """Position among all consultants; the score is still usable without it."""
        try:
            rank = SupabaseClient.fetch_consultant_rank(consultant_id)
        except SupabaseClientError as e:
            logger.warning(f"Rank unavailable for consultant {consultant_id}: {e}")
            return UNRANKED
        return str(rank) if rank is not None else UNRANKED

    # -------------------------------------------------------------------------
    # Read / Recalculate
    # -------------------------------------------------------------------------

    @staticmethod
    def is_stale(score: ConsultantScore, now: datetime | None = None) -> bool:
        """A stored score expires SCORE_TTL_HOURS after its calculation."""
        now = now or utcnow()
        return score.last_updated < now - timedelta(hours=settings.SCORE_TTL_HOURS)

    @staticmethod
    def get_score(consultant_id: str | UUID) -> ConsultantScore:
        """
        Get a consultant's score, recomputing it if missing or stale.

        Args:
            consultant_id: The consultant id

        Returns:
            The current ConsultantScore

        Raises:
            ScoreUnavailableError: If recomputation can't read its inputs
        """
        consultant_id_str = normalize_id(consultant_id)
        row = SupabaseClient.fetch_consultant_score(consultant_id_str)

        if row:
            score = ConsultantScore.from_row(row)
            if not ScoreService.is_stale(score):
                return score
            logger.info(f"Score for consultant {consultant_id_str} is stale, recalculating")

        return ScoreService.recalculate(consultant_id_str, source=ScoreSource.AUTO)

    @staticmethod
    def recalculate(
        consultant_id: str | UUID,
        source: ScoreSource = ScoreSource.ADMIN,
    ) -> ConsultantScore:
        """
        Recompute and persist a consultant's score regardless of staleness.

        Returns:
            The stored ConsultantScore

        Raises:
            ScoreUnavailableError: If metric sources can't be read
            SupabaseClientError: If the upsert fails
        """
        consultant_id_str = normalize_id(consultant_id)
        started = time.perf_counter()
        now = utcnow()

        metrics = ScoreService.fetch_metrics(consultant_id_str, now=now)
        breakdown = calculate(metrics)
        rank = ScoreService._rank(consultant_id_str)

        score = breakdown.to_score(
            consultant_id=consultant_id_str,
            calculated_at=now,
            rank=rank,
            calculation_ms=int((time.perf_counter() - started) * 1000),
            source=source,
        )
        stored = SupabaseClient.upsert_consultant_score(score.to_row())

        logger.info(
            f"Score calculated: consultant {consultant_id_str} = "
            f"{score.total_score} ({score.tier.value})"
        )
        return ConsultantScore.from_row(stored)

    @staticmethod
    def recalculate_all(
        batch_size: int | None = None,
        pause_seconds: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
        on_progress: Callable[[int, int], None] | None = None,
    ) -> RecalculationSummary:
        """
        Recalculate every active consultant in small batches.

        One consultant's failure is counted and logged but never aborts the
        run. Ranks are refreshed once at the end.

        Args:
            batch_size: Consultants per batch (default SCORE_BATCH_SIZE)
            pause_seconds: Pause between batches (default SCORE_BATCH_PAUSE_SECONDS)
            sleep: Injected for tests
            on_progress: Called with (processed, total) after each batch

        Returns:
            RecalculationSummary with success/failure counts
        """
        batch_size = batch_size or settings.SCORE_BATCH_SIZE
        if pause_seconds is None:
            pause_seconds = settings.SCORE_BATCH_PAUSE_SECONDS

        consultant_ids = SupabaseClient.fetch_active_consultant_ids()
        logger.info(f"Recalculating scores for {len(consultant_ids)} consultants")

        summary = RecalculationSummary()
        for start in range(0, len(consultant_ids), batch_size):
            batch = consultant_ids[start:start + batch_size]

            for consultant_id in batch:
                try:
                    ScoreService.recalculate(consultant_id, source=ScoreSource.AUTO)
                    summary.succeeded += 1
                except Exception as e:
                    logger.error(f"Failed to recalculate score for consultant {consultant_id}: {e}")
                    summary.failed += 1
                    summary.failed_ids.append(consultant_id)

            if on_progress:
                on_progress(start + len(batch), len(consultant_ids))

            if start + batch_size < len(consultant_ids):
                sleep(pause_seconds)

        try:
            SupabaseClient.refresh_consultant_ranks()
            summary.ranks_refreshed = True
        except SupabaseClientError as e:
            logger.error(f"Rank refresh failed after recalculation: {e}")

        logger.info(
            f"Recalculation finished: {summary.succeeded} succeeded, {summary.failed} failed"
        )
        return summary

    # -------------------------------------------------------------------------
    # Reporting
    # -------------------------------------------------------------------------

    @staticmethod
    def get_top_consultants(limit: int = 10) -> list[dict[str, Any]]:
        return SupabaseClient.fetch_top_scores(limit)

    @staticmethod
    def get_statistics() -> ScoreStatistics | None:
        """
        Aggregate all stored scores.

        Returns:
            ScoreStatistics, or None when no score has been calculated yet
        """
        rows = SupabaseClient.fetch_all_scores()
        if not rows:
            return None

        count = len(rows)

        def mean(column: str) -> float:
            return float(round_half_up(sum(float(r.get(column) or 0) for r in rows) / count, 2))

        distribution = {tier.value: 0 for tier in Tier}
        for row in rows:
            distribution[row["tier"]] = distribution.get(row["tier"], 0) + 1

        top = sorted(rows, key=lambda r: float(r["total_score"]), reverse=True)[:10]

        return ScoreStatistics(
            total_consultants=count,
            average_score=mean("total_score"),
            tier_distribution=distribution,
            component_averages={
                "service": mean("service_score"),
                "sales": mean("sales_score"),
                "training": mean("training_score"),
            },
            top=[
                {
                    "consultant_id": r["consultant_id"],
                    "total_score": r["total_score"],
                    "tier": r["tier"],
                    "rank": r.get("rank"),
                }
                for r in top
            ],
        )

    @staticmethod
    def get_public_metrics(consultant_id: str | UUID) -> PublicMetrics:
        """Activity figures safe to show the consultant themselves (no score)."""
        consultant_id_str = normalize_id(consultant_id)
        metrics = ScoreService.fetch_metrics(consultant_id_str)
        return PublicMetrics(
            consultant_id=consultant_id_str,
            average_stars=float(round_half_up(metrics.average_stars, 1)),
            rating_count=metrics.rating_count,
            total_sales=metrics.total_sales,
            last_30_days_sales=metrics.last_30_days_sales,
            trainings_total=metrics.trainings_total,
            trainings_completed=metrics.trainings_completed,
            mandatory_completed=metrics.mandatory_completed,
        )

    @staticmethod
    def list_applications_with_scores(store_id: str | UUID) -> list[dict[str, Any]]:
        """
        Pending applications to a store, best-scored applicants first.

        An applicant whose score can't be computed is still listed, with a
        null score and an error marker, at the end of the list.
        """
        applications = SupabaseClient.fetch_pending_applications(store_id)

        results = []
        for application in applications:
            consultant = dict(application.get("consultant") or {})
            try:
                score = ScoreService.get_score(consultant["id"])
                consultant["score"] = score.model_dump(mode="json")
            except Exception as e:
                logger.error(f"Score lookup failed for applicant {consultant.get('id')}: {e}")
                consultant["score"] = None
                consultant["score_error"] = "Score unavailable"

            results.append({
                "id": application["id"],
                "status": application["status"],
                "message": application.get("message"),
                "applied_at": application.get("created_at"),
                "consultant": consultant,
            })

        results.sort(
            key=lambda a: (a["consultant"]["score"] or {}).get("total_score", 0),
            reverse=True,
        )
        return results
