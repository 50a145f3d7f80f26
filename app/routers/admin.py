# =============================================================================
# app/routers/admin.py - Admin Score Endpoints
# =============================================================================
# Platform-wide score reporting and bulk recalculation.
# Every endpoint here is admin only.
# =============================================================================

import logging
from typing import Annotated

from fastapi import APIRouter, Query

from app.dependencies import CurrentUser
from app.exceptions import AuthorizationError, UpstreamError
from core.policy import can_recalculate, can_view_statistics
from core.services.score_service import ScoreService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/scores/statistics")
async def get_score_statistics(user: CurrentUser):
    """
    Aggregate score statistics.

    Returns counts per tier, the mean total and per-component means, and
    the top 10. `statistics` is null until the first score is calculated.
    """
    if not can_view_statistics(user.role):
        raise AuthorizationError("Admin access required")

    stats = ScoreService.get_statistics()
    return {
        "success": True,
        "statistics": stats.model_dump() if stats else None,
    }


@router.get("/scores/top")
async def get_top_consultants(
    user: CurrentUser,
    limit: Annotated[int, Query(ge=1, le=100, description="How many consultants")] = 10,
):
    """Best-scored consultants, highest first."""
    if not can_view_statistics(user.role):
        raise AuthorizationError("Admin access required")

    consultants = ScoreService.get_top_consultants(limit)
    return {"success": True, "consultants": consultants}


@router.post("/scores/recalculate", status_code=202)
async def recalculate_all_scores(user: CurrentUser):
    """
    Queue a recalculation of every active consultant.

    Runs in the background; poll GET /api/v1/tasks/{task_id} for progress.
    """
    if not can_recalculate(user.role):
        raise AuthorizationError("Admin access required")

    try:
        from workers.tasks import recalculate_all_scores as recalculate_task

        result = recalculate_task.delay()

    except Exception as e:
        logger.error(f"Error submitting recalculation task: {e}")
        raise UpstreamError(
            message=f"Failed to submit task: {e}",
            code="TASK_SUBMIT_FAILED",
            suggestion="Check that Redis is running",
            status_code=503,
        )

    logger.info(f"Admin {user.id} queued full recalculation [{result.id}]")
    return {
        "success": True,
        "task_id": result.id,
        "message": "Recalculation started. Use GET /api/v1/tasks/{task_id} to check status.",
    }
