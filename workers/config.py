# =============================================================================
# workers/config.py - Celery Worker Configuration
# =============================================================================
# Settings specific to Celery workers, including the nightly beat schedule.
# =============================================================================

from celery.schedules import crontab

from app.config import settings


class CeleryConfig:
    """
    Celery configuration settings.

    These are applied to the Celery app via app.config_from_object().
    """

    # -------------------------------------------------------------------------
    # Broker Settings (Redis)
    # -------------------------------------------------------------------------

    # Redis URL for message broker
    broker_url = settings.REDIS_URL

    # Redis URL for result backend (store task results)
    result_backend = settings.REDIS_URL

    # -------------------------------------------------------------------------
    # Task Settings
    # -------------------------------------------------------------------------

    # Acknowledge tasks after they complete (not before)
    # This prevents task loss if worker crashes mid-task
    task_acks_late = True

    # Only prefetch one task at a time
    worker_prefetch_multiplier = 1

    # Task results expire after 1 day, long enough to inspect the nightly run
    result_expires = 86400

    # A full recalculation walks every active consultant
    task_time_limit = 3600
    task_soft_time_limit = 3300

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    task_serializer = "json"
    result_serializer = "json"
    accept_content = ["json"]

    # -------------------------------------------------------------------------
    # Task Routing
    # -------------------------------------------------------------------------

    task_queues = {
        "default": {
            "exchange": "default",
            "routing_key": "default",
        },
        "scores": {
            "exchange": "scores",
            "routing_key": "scores",
        },
    }

    task_routes = {
        "workers.tasks.recalculate_all_scores": {"queue": "scores"},
    }

    task_default_queue = "default"

    # -------------------------------------------------------------------------
    # Retry Settings
    # -------------------------------------------------------------------------

    task_annotations = {
        "*": {
            "max_retries": 3,
            "default_retry_delay": 60,  # Wait 60 seconds between retries
        }
    }

    # -------------------------------------------------------------------------
    # Monitoring
    # -------------------------------------------------------------------------

    worker_send_task_events = True
    task_send_sent_event = True

    # -------------------------------------------------------------------------
    # Schedule
    # -------------------------------------------------------------------------

    # crontab entries are evaluated in this timezone
    timezone = settings.SCORE_RECALC_TIMEZONE
    enable_utc = True

    beat_schedule = {
        "recalculate-all-scores-nightly": {
            "task": "workers.tasks.recalculate_all_scores",
            "schedule": crontab(hour=settings.SCORE_RECALC_HOUR, minute=0),
        },
    }
