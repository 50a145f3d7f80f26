# =============================================================================
# app/auth/dependencies.py - FastAPI Auth Dependencies
# =============================================================================
# Provides dependency injection for authentication.
#
# Verifies Auth0 RS256 access tokens against the tenant's JWKS:
# - signature, expiry, audience (AUTH0_AUDIENCE) and issuer are checked
# - the role comes from the namespaced AUTH0_ROLES_CLAIM
#
# Usage:
#   from app.auth import get_current_user, AuthUser
#
#   @router.get("/protected")
#   async def protected(user: AuthUser = Depends(get_current_user)):
#       return {"user_id": user.id}
# =============================================================================

import logging
import time
from typing import Any

import httpx
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import ValidationError as PydanticValidationError

from app.auth.models import AuthUser, TokenPayload
from app.config import settings
from core.policy import Role

logger = logging.getLogger(__name__)

# HTTP Bearer token extractor
security = HTTPBearer()

ALGORITHM = "RS256"

# Cache for JWKS keys
_jwks_cache: dict = {}
_jwks_cache_time: float = 0
JWKS_CACHE_TTL = 3600  # 1 hour


def _get_jwks_url() -> str:
    return f"{settings.auth0_issuer}.well-known/jwks.json"


def _fetch_jwks() -> dict:
    """Fetch JWKS from Auth0 with caching."""
    global _jwks_cache, _jwks_cache_time

    current_time = time.time()

    # Return cached if valid
    if _jwks_cache and (current_time - _jwks_cache_time) < JWKS_CACHE_TTL:
        return _jwks_cache

    try:
        jwks_url = _get_jwks_url()
        response = httpx.get(jwks_url, timeout=settings.HTTP_TIMEOUT_SECONDS)
        response.raise_for_status()
        _jwks_cache = response.json()
        _jwks_cache_time = current_time
        logger.debug(f"Fetched JWKS from {jwks_url}")
        return _jwks_cache
    except httpx.HTTPError as e:
        logger.warning(f"Failed to fetch JWKS: {e}")
        # Return cached even if expired, as fallback
        if _jwks_cache:
            return _jwks_cache
        return {"keys": []}


def _get_signing_key(token: str) -> dict:
    """
    Find the JWK that signed a token.

    Raises:
        JWTError: If the header is unreadable or no key matches its kid
    """
    unverified_header = jwt.get_unverified_header(token)

    if unverified_header.get("alg") != ALGORITHM:
        raise JWTError(f"Unsupported algorithm: {unverified_header.get('alg')}")

    kid = unverified_header.get("kid")
    for key in _fetch_jwks().get("keys", []):
        if key.get("kid") == kid:
            return key

    raise JWTError(f"No signing key found for kid={kid}")


def role_from_claims(payload: dict[str, Any]) -> Role:
    """
    Resolve the user's role from the roles claim.

    The claim may be a single string or a list; the first known role wins.
    Tokens without a recognised role are treated as customers.
    """
    claimed = payload.get(settings.AUTH0_ROLES_CLAIM) or []
    if isinstance(claimed, str):
        claimed = [claimed]

    known = {role.value for role in Role}
    for value in claimed:
        if value in known:
            return Role(value)
    return Role.CUSTOMER


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> AuthUser:
    """
    Extract and validate user from an Auth0 access token.

    This dependency:
    1. Extracts the Bearer token from the Authorization header
    2. Verifies the RS256 signature against the tenant JWKS
    3. Validates expiry, audience and issuer
    4. Returns an AuthUser with the marketplace id, email and role

    Raises:
        HTTPException: 401 if token is invalid or expired
    """
    token = credentials.credentials

    try:
        signing_key = _get_signing_key(token)

        payload = jwt.decode(
            token,
            signing_key,
            algorithms=[ALGORITHM],
            audience=settings.AUTH0_AUDIENCE,
            issuer=settings.auth0_issuer,
        )
        claims = TokenPayload.model_validate(payload)

    except ExpiredSignatureError:
        logger.warning("JWT token has expired")
        raise _unauthorized("Token has expired")

    except JWTError as e:
        logger.warning(f"JWT validation failed: {e}")
        raise _unauthorized(f"Invalid token: {str(e)}")

    except PydanticValidationError:
        logger.warning("JWT token missing standard claims")
        raise _unauthorized("Invalid token: missing claims")

    user_id = payload.get(settings.AUTH0_USER_ID_CLAIM) or claims.sub
    user = AuthUser(
        id=str(user_id),
        email=payload.get("email"),
        role=role_from_claims(payload),
    )

    logger.debug(f"Authenticated user: {user.id} ({user.role.value})")
    return user

