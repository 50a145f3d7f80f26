# =============================================================================
# workers/tasks.py - Celery Task Definitions
# =============================================================================
# Defines background tasks for consultant score maintenance.
#
# Tasks:
# - recalculate_all_scores: Nightly batch over every active consultant,
#   also enqueued on demand by admins
# =============================================================================

import logging
from typing import Any

from celery import current_task, shared_task

logger = logging.getLogger(__name__)


# =============================================================================
# Task State Updates
# =============================================================================

def update_progress(current: int, total: int, message: str = "Processing..."):
    """
    Update task progress for polling.

    Args:
        current: Current step number
        total: Total steps
        message: Status message
    """
    if current_task and total:
        current_task.update_state(
            state="PROGRESS",
            meta={
                "current": current,
                "total": total,
                "percent": int((current / total) * 100),
                "message": message,
            }
        )


# =============================================================================
# Score Tasks
# =============================================================================

@shared_task(bind=True, name="workers.tasks.recalculate_all_scores")
def recalculate_all_scores(self) -> dict[str, Any]:
    """
    Recalculate every active consultant's score.

    Scheduled nightly by beat and enqueued on demand by admins.
    Individual failures are counted, not raised.

    Returns:
        Dict with succeeded, failed, failed_ids and ranks_refreshed
    """
    from core.services.score_service import ScoreService

    logger.info("Starting nightly score recalculation")

    summary = ScoreService.recalculate_all(
        on_progress=lambda done, total: update_progress(
            done, total, f"Recalculated {done}/{total} consultants"
        ),
    )
    return summary.model_dump()

