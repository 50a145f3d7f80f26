# =============================================================================
# app/routers/applications.py - Store Application Endpoints
# =============================================================================
# Lets a store owner review consultants who applied to sell for the store,
# ranked by score.
# =============================================================================

import logging
from typing import Annotated

from fastapi import APIRouter, Path

from app.dependencies import CurrentUser
from app.exceptions import AuthorizationError
from core.policy import can_view_applications
from core.services.score_service import ScoreService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/{store_id}/applications")
async def list_store_applications(
    store_id: Annotated[str, Path(description="Store id")],
    user: CurrentUser,
):
    """
    Pending applications to a store, best-scored consultants first.

    Only the owning store (or an admin) may list them.
    """
    if not can_view_applications(user.role, user.id, store_id):
        raise AuthorizationError("You are not allowed to view this store's applications")

    applications = ScoreService.list_applications_with_scores(store_id)
    return {
        "success": True,
        "total": len(applications),
        "applications": applications,
    }
