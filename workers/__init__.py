# =============================================================================
# workers/ - Celery Background Task Workers
# =============================================================================
# This package contains the Celery configuration and task definitions for
# background score recalculation.
#
# Components:
# - celery_app.py: Celery application configuration
# - tasks.py: Task definitions (nightly score recalculation)
# - config.py: Worker-specific settings and the beat schedule
#
# Usage:
#   # Start worker with the embedded beat scheduler
#   celery -A workers.celery_app worker --beat --loglevel=info
#
#   # Submit task (from API)
#   from workers.tasks import recalculate_all_scores
#   result = recalculate_all_scores.delay()
# =============================================================================

from .celery_app import celery_app
from . import tasks

__all__ = [
    "celery_app",
    "tasks",
]
