# =============================================================================
# tests/ - Test Suite
# =============================================================================
# This package contains all tests for the Marketplace API:
# - test_scoring.py / test_commission.py: Pure calculation rules
# - test_models.py: Unit tests for Pydantic model validation
# - test_*_service.py: Services with Supabase, Stripe and Redis mocked
# - test_routers.py / test_auth.py: HTTP surface and token handling
#
# Run tests with: pytest
# =============================================================================
