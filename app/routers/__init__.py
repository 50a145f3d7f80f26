# =============================================================================
# app/routers/ - API Route Definitions
# =============================================================================
# This package contains FastAPI routers organized by feature:
# - health.py: Health check endpoints
# - scores.py: Per-consultant score and public metrics
# - admin.py: Score statistics, top consultants, bulk recalculation
# - applications.py: Store applications ranked by score
# - payments.py: Split payment lifecycle
# - webhooks.py: Stripe event intake
# - verification.py: Signup verification codes
# - tasks.py: Background task status endpoints
#
# Each router is mounted in main.py with a URL prefix.
# =============================================================================

from . import health
from . import scores
from . import admin
from . import applications
from . import payments
from . import webhooks
from . import verification
from . import tasks

__all__ = [
    "health",
    "scores",
    "admin",
    "applications",
    "payments",
    "webhooks",
    "verification",
    "tasks",
]
