# =============================================================================
# app/exceptions.py - Error Taxonomy and Exception Handlers
# =============================================================================
# Centralized exception handling for the API.
# Every failure leaves the API as {"success": false, "error": ..., "code": ...}
# with the status code carried by the exception class.
# =============================================================================

import logging
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.config import settings

logger = logging.getLogger(__name__)


class MarketplaceException(Exception):
    """
    Base exception for the marketplace API.

    All custom exceptions inherit from this class.
    Provides structured error responses with actionable suggestions.
    """

    def __init__(
        self,
        message: str,
        code: str = "MARKETPLACE_ERROR",
        status_code: int = 500,
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.suggestion = suggestion
        self.details = details or {}

    # Upstream failures hide their raw message outside development
    expose_message = True
    public_message = "An unexpected error occurred"

    def to_dict(self, include_details: bool = False) -> dict[str, Any]:
        """Convert exception to API response dict."""
        message = self.message if (self.expose_message or include_details) else self.public_message
        result: dict[str, Any] = {
            "success": False,
            "error": message,
            "code": self.code,
        }
        if self.suggestion:
            result["suggestion"] = self.suggestion
        if self.details and (self.expose_message or include_details):
            result["details"] = self.details
        return result


# =============================================================================
# Taxonomy
# =============================================================================

class ValidationError(MarketplaceException):
    """Missing or malformed input."""

    def __init__(self, message: str, details: dict[str, Any] | None = None, suggestion: str | None = None):
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            status_code=400,
            suggestion=suggestion,
            details=details,
        )


class AuthorizationError(MarketplaceException):
    """The caller's role does not allow the action."""

    def __init__(self, message: str = "You are not allowed to perform this action", details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            code="FORBIDDEN",
            status_code=403,
            details=details,
        )


class NotFoundError(MarketplaceException):
    """Raised when a referenced entity doesn't exist."""

    def __init__(self, entity: str, entity_id: str):
        super().__init__(
            message=f"{entity} not found: {entity_id}",
            code=f"{entity.upper().replace(' ', '_')}_NOT_FOUND",
            status_code=404,
            suggestion=f"Check that the {entity.lower()} id is correct",
            details={"id": entity_id},
        )


class ConflictError(MarketplaceException):
    """Duplicate unique key or an illegal state transition."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            code="CONFLICT",
            status_code=409,
            details=details,
        )


class UpstreamError(MarketplaceException):
    """An external service (database, payment processor) call failed."""

    expose_message = False
    public_message = "An upstream service is unavailable, please try again later"

    def __init__(
        self,
        message: str,
        code: str = "UPSTREAM_ERROR",
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
        status_code: int = 502,
    ):
        super().__init__(
            message=message,
            code=code,
            status_code=status_code,
            suggestion=suggestion,
            details=details,
        )


class ScoreUnavailableError(UpstreamError):
    """Raised when the metrics behind a consultant score cannot be fetched."""

    public_message = "Consultant score is currently unavailable"

    def __init__(self, consultant_id: str, error: str):
        super().__init__(
            message=f"Score unavailable for consultant {consultant_id}: {error}",
            code="SCORE_UNAVAILABLE",
            suggestion="Try again later",
            details={"consultant_id": consultant_id},
        )


# =============================================================================
# Exception Handlers
# =============================================================================

async def marketplace_exception_handler(
    request: Request,
    exc: MarketplaceException
) -> JSONResponse:
    """
    Convert MarketplaceException to the JSON error envelope.
    """
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(include_details=settings.is_development),
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError
) -> JSONResponse:
    """
    Handle request body/query validation errors as 400s.
    """
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": "Validation error",
            "code": "VALIDATION_ERROR",
            "errors": [
                {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg")}
                for err in exc.errors()
            ],
        }
    )


async def unexpected_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle anything that escaped the taxonomy."""
    logger.exception(f"Unexpected error: {exc}")
    content: dict[str, Any] = {
        "success": False,
        "error": "An unexpected error occurred",
        "code": "INTERNAL_ERROR",
    }
    if settings.is_development:
        content["details"] = {"error": str(exc)}
    return JSONResponse(status_code=500, content=content)
