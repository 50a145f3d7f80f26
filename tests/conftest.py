# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# This module provides pytest fixtures and configuration for all tests.
#
# Key features:
# - Sets up mock environment variables before any imports
# - Provides common fixtures for testing
# =============================================================================

import os

# =============================================================================
# Set up test environment BEFORE any imports
# =============================================================================
# This must happen before importing app.config which loads settings immediately

os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")
os.environ.setdefault("AUTH0_DOMAIN", "test-tenant.us.auth0.com")
os.environ.setdefault("AUTH0_AUDIENCE", "https://api.test-marketplace")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_123")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_123")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DEBUG", "true")

from datetime import datetime, timedelta, timezone

import pytest
import redis

from core.services.verification_service import VerificationService
from workers.celery_app import celery_app

# TestClient serves requests from a separate thread; make the worker app the
# process-wide default so shared tasks resolve to the same (patchable) objects.
celery_app.set_default()


class InMemoryRedis:
    """The slice of the redis-py client the verification store uses."""

    def __init__(self):
        self.values: dict[str, str] = {}
        self.expiry: dict[str, int] = {}
        self.versions: dict[str, int] = {}
        # Runs right before EXEC, standing in for another client's write
        self.before_execute = None

    def _touch(self, key):
        self.versions[key] = self.versions.get(key, 0) + 1

    def set(self, key, value, ex=None):
        self.values[key] = value
        if ex is not None:
            self.expiry[key] = ex
        self._touch(key)
        return True

    def get(self, key):
        return self.values.get(key)

    def delete(self, key):
        self.expiry.pop(key, None)
        self._touch(key)
        return 1 if self.values.pop(key, None) is not None else 0

    def ttl(self, key):
        return self.expiry.get(key, -2)

    def ping(self):
        return True

    def pipeline(self):
        return InMemoryPipeline(self)


class InMemoryPipeline:
    """WATCH/MULTI/EXEC over InMemoryRedis, with redis-py's WatchError."""

    def __init__(self, client):
        self.client = client
        self.watched: dict[str, int] = {}
        self.queued: list[str] = []

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.reset()

    def reset(self):
        self.watched = {}
        self.queued = []

    def watch(self, *keys):
        for key in keys:
            self.watched[key] = self.client.versions.get(key, 0)

    def get(self, key):
        return self.client.get(key)

    def multi(self):
        pass

    def delete(self, key):
        self.queued.append(key)

    def execute(self):
        if self.client.before_execute is not None:
            self.client.before_execute()
        changed = any(self.client.versions.get(key, 0) != version for key, version in self.watched.items())
        if changed:
            self.reset()
            raise redis.WatchError("Watched variable changed.")
        results = [self.client.delete(key) for key in self.queued]
        self.reset()
        return results


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def redis_client():
    """Install a fresh in-memory Redis for the verification store."""
    client = InMemoryRedis()
    VerificationService.set_client(client)
    yield client
    VerificationService.set_client(None)


@pytest.fixture
def score_row():
    """A stored consultant_scores row, calculated just now."""
    return {
        "consultant_id": "consultant-1",
        "total_score": 7.8,
        "tier": "Gold",
        "rank": "3",
        "service_score": 9.0,
        "service_weight": 40,
        "service_average_stars": 4.5,
        "service_rating_count": 25,
        "service_satisfaction_rate": 92.0,
        "service_percentage": 90,
        "sales_score": 7.2,
        "sales_weight": 35,
        "sales_total": 80,
        "sales_last_30_days": 15,
        "sales_average_ticket": 250.0,
        "sales_percentage": 72,
        "training_score": 6.7,
        "training_weight": 25,
        "training_total": 3,
        "training_completed": 2,
        "training_mandatory_completed": True,
        "training_percentage": 67,
        "calculation_version": "1.0.0",
        "calculation_ms": 42,
        "source": "auto",
        "last_updated": datetime.now(timezone.utc).isoformat(),
    }


@pytest.fixture
def stale_score_row(score_row):
    """The same row, calculated two days ago."""
    row = dict(score_row)
    row["last_updated"] = (datetime.now(timezone.utc) - timedelta(days=2)).isoformat()
    return row


@pytest.fixture
def settlement_row():
    """A sale_settlements row awaiting payment: 10000 at 8%."""
    return {
        "sale_id": "sale-1",
        "product_id": "product-1",
        "store_id": "store-1",
        "consultant_id": "consultant-1",
        "gross_amount": 10000,
        "currency": "brl",
        "commission_rate": 8,
        "commission_source": "product",
        "consultant_amount": 800,
        "store_gross_amount": 9200,
        "consultant_account_id": "acct_consultant",
        "store_account_id": "acct_store",
        "payment_id": "pi_123",
        "status": "awaiting_payment",
        "consultant_transfer_id": None,
        "store_transfer_id": None,
        "needs_manual_review": False,
        "review_reason": None,
        "created_at": "2024-06-15T12:00:00Z",
        "paid_at": None,
        "settled_at": None,
        "updated_at": None,
    }
