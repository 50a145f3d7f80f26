# =============================================================================
# workers/celery_app.py - Celery Application
# =============================================================================
# Creates the Celery app that runs score maintenance off the request path.
# Broker, result backend, queues and the nightly beat entry all come from
# workers.config, which reads app.config settings.
#
# Usage:
#   # Worker with the embedded beat scheduler
#   celery -A workers.celery_app worker --beat --loglevel=info
#
#   # Only consume the scores queue
#   celery -A workers.celery_app worker -Q scores --loglevel=info
# =============================================================================

import logging

from celery import Celery
from celery.signals import task_failure, task_postrun, task_prerun, worker_ready

from app.config import settings

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def _redacted(url: str) -> str:
    """Drop credentials from a Redis URL before logging it."""
    return url.split("@")[-1] if "@" in url else url


def create_celery_app() -> Celery:
    """
    Create the worker app.

    Returns:
        Celery app configured from workers.config.CeleryConfig
    """
    app = Celery("marketplace_worker", include=["workers.tasks"])
    app.config_from_object("workers.config:CeleryConfig")

    logger.info(f"Celery app created with broker: {_redacted(settings.REDIS_URL)}")
    return app


celery_app = create_celery_app()


# =============================================================================
# Celery Signals (Lifecycle Hooks)
# =============================================================================

@worker_ready.connect
def worker_ready_handler(sender=None, **extra):
    """Log the nightly schedule once the worker accepts tasks."""
    logger.info(
        f"Worker ready; nightly score recalculation at "
        f"{settings.SCORE_RECALC_HOUR:02d}:00 {settings.SCORE_RECALC_TIMEZONE}"
    )


@task_prerun.connect
def task_prerun_handler(sender=None, task_id=None, task=None, args=None, kwargs=None, **extra):
    """Log when a task starts."""
    logger.info(f"Task started: {task.name} [{task_id}]")


@task_postrun.connect
def task_postrun_handler(sender=None, task_id=None, task=None, retval=None, state=None, **extra):
    """Log when a task completes, with the batch outcome when there is one."""
    if isinstance(retval, dict) and "failed" in retval:
        logger.info(
            f"Task completed: {task.name} [{task_id}] - State: {state} - "
            f"{retval['succeeded']} succeeded, {retval['failed']} failed"
        )
    else:
        logger.info(f"Task completed: {task.name} [{task_id}] - State: {state}")


@task_failure.connect
def task_failure_handler(sender=None, task_id=None, exception=None, **extra):
    """Log when a task fails."""
    logger.error(f"Task failed: {sender.name} [{task_id}] - Error: {exception}")
