# =============================================================================
# lib/utils.py - Shared Utilities
# =============================================================================
# Common utilities used across the application.
# =============================================================================

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID


# =============================================================================
# ID Utilities
# =============================================================================

def normalize_id(value: str | UUID) -> str:
    """
    Normalize an entity id to string format.

    Handles both string and UUID objects, ensuring consistent string output.

    Example:
        consultant_id = normalize_id(uuid_obj)  # "550e8400-..."
        consultant_id = normalize_id("550e8400-...")  # "550e8400-..."
    """
    return str(value) if isinstance(value, UUID) else value


# =============================================================================
# Time Utilities
# =============================================================================

def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: str | datetime | None) -> datetime | None:
    """
    Parse a PostgREST timestamp into an aware datetime.

    PostgREST returns ISO 8601 strings, sometimes with a trailing "Z".
    Naive values are assumed to be UTC.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# =============================================================================
# Number Utilities
# =============================================================================

def round_half_up(value: float | Decimal, places: int = 0) -> Decimal:
    """
    Round with half-up semantics (Python's round() is half-to-even).

    Floats are converted through str() so that 2.675 rounds as written.
    """
    exponent = Decimal(1).scaleb(-places)
    return Decimal(str(value)).quantize(exponent, rounding=ROUND_HALF_UP)


def round1(value: float) -> float:
    """Round to one decimal place, half-up."""
    return float(round_half_up(value, 1))
