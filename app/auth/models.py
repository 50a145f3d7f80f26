# =============================================================================
# app/auth/models.py - Authentication Models
# =============================================================================
# Pydantic models for authentication data.
# =============================================================================

from typing import Optional

from pydantic import BaseModel, ConfigDict

from core.policy import Role


class AuthUser(BaseModel):
    """
    Authenticated user extracted from an Auth0 access token.

    `id` is the marketplace row id (consultant, store or customer) that the
    token was issued for, so it can be compared directly with path ids.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    email: Optional[str] = None
    role: Role = Role.CUSTOMER


class UserResponse(BaseModel):
    """User info returned by /auth/me."""
    id: str
    email: Optional[str] = None
    role: Role


class TokenPayload(BaseModel):
    """
    Decoded Auth0 access token payload.

    Only the standard claims are modelled; namespaced custom claims are read
    from the raw payload.
    """
    sub: str  # Auth0 user id, e.g. "auth0|123"
    aud: str | list[str]
    iss: str
    exp: int
    iat: int
