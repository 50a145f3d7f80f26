# =============================================================================
# app/routers/verification.py - Signup Verification Endpoints
# =============================================================================
# Issues and checks the email + phone code pair used during customer signup.
# These endpoints are public: the customer has no account yet.
# =============================================================================

import logging

from fastapi import APIRouter
from pydantic import BaseModel, Field

from app.config import settings
from core.services.verification_service import VerificationService

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Request Models
# =============================================================================

class IssueCodesRequest(BaseModel):
    email: str = Field(..., min_length=3, examples=["ana@example.com"])
    phone: str = Field(..., min_length=8, examples=["11999990000"])


class VerifyCodesRequest(BaseModel):
    email: str = Field(..., min_length=3)
    phone: str = Field(..., min_length=8)
    email_code: str = Field(..., min_length=6, max_length=6)
    phone_code: str = Field(..., min_length=6, max_length=6)


# =============================================================================
# Endpoints
# =============================================================================

@router.post("/codes")
async def issue_codes(request: IssueCodesRequest):
    """
    Generate a code pair for an email/phone.

    Codes are valid for 15 minutes. Outside production the codes are
    returned in the response so signup can be tested without delivery.
    """
    codes = VerificationService.issue_codes(request.email, request.phone)

    response = {"success": True, "message": "Verification codes issued"}
    if not settings.is_production:
        response["dev"] = codes
    return response


@router.post("/verify")
async def verify_codes(request: VerifyCodesRequest):
    """Check a code pair. A pair can only be used once."""
    VerificationService.verify_codes(
        request.email,
        request.phone,
        request.email_code,
        request.phone_code,
    )
    return {"success": True, "message": "Codes verified", "verified": True}
