# =============================================================================
# app/routers/scores.py - Consultant Score Endpoints
# =============================================================================
# Per-consultant score access.
# All endpoints require authentication; who sees what is decided in
# core.policy.
# =============================================================================

import logging
from typing import Annotated

from fastapi import APIRouter, Path

from app.dependencies import CurrentUser
from app.exceptions import AuthorizationError
from core.policy import can_recalculate, can_view_score
from core.services.score_service import ScoreService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/{consultant_id}/score")
async def get_consultant_score(
    consultant_id: Annotated[str, Path(description="Consultant id")],
    user: CurrentUser,
):
    """
    Get a consultant's score.

    Store owners and admins only. A consultant can never read their own
    score; use /public-metrics instead. The stored score is returned while
    fresh and recalculated when older than a day.
    """
    if not can_view_score(user.role, user.id, consultant_id):
        logger.warning(f"User {user.id} ({user.role.value}) denied score of {consultant_id}")
        raise AuthorizationError("You are not allowed to view this score")

    score = ScoreService.get_score(consultant_id)
    return {"success": True, "score": score.model_dump(mode="json")}


@router.post("/{consultant_id}/score/recalculate")
async def recalculate_consultant_score(
    consultant_id: Annotated[str, Path(description="Consultant id")],
    user: CurrentUser,
):
    """Force a recalculation, ignoring freshness. Admin only."""
    if not can_recalculate(user.role):
        raise AuthorizationError("Admin access required")

    score = ScoreService.recalculate(consultant_id)
    return {
        "success": True,
        "message": "Score recalculated",
        "score": score.model_dump(mode="json"),
    }


@router.get("/{consultant_id}/public-metrics")
async def get_public_metrics(
    consultant_id: Annotated[str, Path(description="Consultant id")],
    user: CurrentUser,
):
    """
    Activity metrics without score, tier or rank.

    Open to any authenticated user, including the consultant themselves.
    """
    metrics = ScoreService.get_public_metrics(consultant_id)
    return {"success": True, "metrics": metrics.model_dump()}
