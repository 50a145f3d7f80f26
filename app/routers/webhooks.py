# =============================================================================
# app/routers/webhooks.py - Stripe Webhook Endpoint
# =============================================================================
# Receives payment events from Stripe and hands them to SettlementService.
#
# Events:
#   - payment_intent.succeeded: settle the sale and transfer both shares
#   - payment_intent.payment_failed: mark the payment failed
#   - anything else: logged and acknowledged
#
# Events for payment intents this service never opened (no settlement row)
# are acknowledged too, since a retry could never succeed.
#
# A 5xx answer makes Stripe retry the event; settlement is idempotent per
# payment, so retries are safe.
# =============================================================================

import logging

import stripe
from fastapi import APIRouter, Header, Request
from fastapi.responses import JSONResponse

from app.exceptions import MarketplaceException, NotFoundError
from core.services.settlement_service import SettlementService
from lib.stripe_client import StripeClient

logger = logging.getLogger(__name__)

router = APIRouter()

# Event type -> SettlementService method
HANDLERS = {
    "payment_intent.succeeded": "on_payment_confirmed",
    "payment_intent.payment_failed": "on_payment_failed",
}


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(default=None, alias="Stripe-Signature"),
):
    """
    Verify and dispatch a Stripe event.

    Returns 400 when the signature or payload is invalid, and 500 when
    processing a valid event fails so that Stripe retries it. Events for
    unknown payments are acknowledged and ignored.
    """
    payload = await request.body()

    try:
        event = StripeClient.construct_event(payload, stripe_signature)
    except (ValueError, stripe.SignatureVerificationError) as e:
        logger.warning(f"Rejected Stripe webhook: {e}")
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "Invalid webhook signature", "code": "INVALID_SIGNATURE"},
        )

    event_type = event["type"]
    handler_name = HANDLERS.get(event_type)
    if handler_name is None:
        logger.info(f"Ignoring Stripe event {event_type} [{event['id']}]")
        return {"success": True, "received": True}

    payment_id = event["data"]["object"]["id"]
    logger.info(f"Processing Stripe event {event_type} for payment {payment_id}")

    try:
        result = getattr(SettlementService, handler_name)(payment_id)
    except NotFoundError:
        logger.warning(f"Ignoring Stripe event {event_type} for unknown payment {payment_id} [{event['id']}]")
        return {"success": True, "received": True, "ignored": True}
    except MarketplaceException as e:
        logger.error(f"Stripe event {event_type} for {payment_id} failed: {e.code} {e.message}")
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Event processing failed", "code": e.code},
        )

    return {"success": True, "received": True, "status": result.get("status")}
