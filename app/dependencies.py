# =============================================================================
# app/dependencies.py - Shared Dependencies
# =============================================================================
# FastAPI dependency injection for shared resources.
# These are injected into route handlers using Depends().
# =============================================================================

from typing import Annotated

from fastapi import Depends

from app.auth.dependencies import get_current_user
from app.auth.models import AuthUser
from app.exceptions import AuthorizationError
from core.policy import Role


# Type alias for an authenticated caller
CurrentUser = Annotated[AuthUser, Depends(get_current_user)]


def require_admin(user: CurrentUser) -> AuthUser:
    """
    Only let admins through.

    Raises:
        AuthorizationError: 403 for any other role
    """
    if user.role != Role.ADMIN:
        raise AuthorizationError("Admin access required")
    return user


AdminUser = Annotated[AuthUser, Depends(require_admin)]
