# =============================================================================
# core/ - Business Logic Package
# =============================================================================
# This package contains framework-agnostic business logic:
# - models/: Pydantic schemas for data validation
# - scoring.py: Pure consultant score calculation
# - commission.py: Pure commission split and payment transition rules
# - policy.py: Who may see or trigger what
# - services/: Orchestration over Supabase, Stripe and Redis
#
# Code in this package should NOT import from FastAPI or Celery.
# This keeps the logic testable and reusable.
# =============================================================================
