# =============================================================================
# lib/ - Standalone Utility Modules
# =============================================================================
# This package contains reusable utilities:
# - supabase_client.py: Typed Supabase wrapper for database operations
# - stripe_client.py: Stripe SDK wrapper for payments and transfers
# - utils.py: Shared utilities (id normalization, timestamps, rounding)
#
# These modules are self-contained and can be tested in isolation.
# =============================================================================

from lib.supabase_client import SupabaseClient, SupabaseClientError
from lib.stripe_client import PaymentProviderError, StripeClient
from lib.utils import normalize_id, round_half_up

__all__ = [
    # Supabase
    "SupabaseClient",
    "SupabaseClientError",
    # Stripe
    "StripeClient",
    "PaymentProviderError",
    # Utils
    "normalize_id",
    "round_half_up",
]
