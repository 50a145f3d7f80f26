# =============================================================================
# lib/stripe_client.py - Stripe Client Wrapper
# =============================================================================
# Thin wrapper over the Stripe SDK for the calls the settlement flow makes:
# - PaymentIntents (create, retrieve, cancel)
# - Refunds
# - Transfers to connected accounts
# - Connected account status
# - Webhook signature verification
#
# Every SDK failure is re-raised as PaymentProviderError so the API layer
# answers with the upstream error envelope instead of a raw Stripe payload.
#
# Usage:
#   from lib.stripe_client import StripeClient
#   intent = StripeClient.create_payment_intent(10000, metadata={"sale_id": "..."})
# =============================================================================

from __future__ import annotations

import logging
from typing import Any

import stripe

from app.config import settings
from app.exceptions import UpstreamError

logger = logging.getLogger(__name__)


class PaymentProviderError(UpstreamError):
    """Error during a Stripe API call."""

    def __init__(
        self,
        message: str,
        code: str = "PAYMENT_PROVIDER_ERROR",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            message=message,
            code=code,
            suggestion="Try again later or check the payment in the Stripe dashboard",
            details=details,
        )


class StripeClient:
    """
    Class-level wrapper around the Stripe SDK.

    The API key is applied lazily on first use, mirroring SupabaseClient's
    singleton client.
    """

    _configured: bool = False

    @classmethod
    def _configure(cls) -> None:
        if not cls._configured:
            stripe.api_key = settings.STRIPE_SECRET_KEY
            # Failures surface to the caller immediately
            stripe.max_network_retries = 0
            cls._configured = True
            logger.info("Stripe client configured")

    # -------------------------------------------------------------------------
    # Payment Intents
    # -------------------------------------------------------------------------

    @classmethod
    def create_payment_intent(
        cls,
        amount: int,
        metadata: dict[str, str],
        idempotency_key: str | None = None,
    ) -> stripe.PaymentIntent:
        """
        Create a PaymentIntent that keeps 100% of the funds on the platform.

        Payee transfers happen later, once the payment succeeds.
        """
        cls._configure()
        try:
            return stripe.PaymentIntent.create(
                amount=amount,
                currency=settings.STRIPE_CURRENCY,
                metadata=metadata,
                idempotency_key=idempotency_key,
            )
        except stripe.StripeError as e:
            raise PaymentProviderError(
                message=f"Failed to create payment intent: {e}",
                code="CREATE_PAYMENT_FAILED",
                details={"metadata": metadata},
            )

    @classmethod
    def retrieve_payment_intent(cls, payment_id: str) -> stripe.PaymentIntent:
        cls._configure()
        try:
            return stripe.PaymentIntent.retrieve(payment_id)
        except stripe.StripeError as e:
            raise PaymentProviderError(
                message=f"Failed to retrieve payment intent: {e}",
                code="RETRIEVE_PAYMENT_FAILED",
                details={"payment_id": payment_id},
            )

    @classmethod
    def cancel_payment_intent(cls, payment_id: str) -> stripe.PaymentIntent:
        cls._configure()
        try:
            return stripe.PaymentIntent.cancel(payment_id)
        except stripe.StripeError as e:
            raise PaymentProviderError(
                message=f"Failed to cancel payment intent: {e}",
                code="CANCEL_PAYMENT_FAILED",
                details={"payment_id": payment_id},
            )

    @classmethod
    def create_refund(cls, payment_id: str, amount: int | None = None) -> stripe.Refund:
        """Refund a payment in full, or partially when `amount` is given."""
        cls._configure()
        params: dict[str, Any] = {"payment_intent": payment_id}
        if amount is not None:
            params["amount"] = amount

        try:
            return stripe.Refund.create(**params)
        except stripe.StripeError as e:
            raise PaymentProviderError(
                message=f"Failed to create refund: {e}",
                code="REFUND_FAILED",
                details={"payment_id": payment_id, "amount": amount},
            )

    # -------------------------------------------------------------------------
    # Connected Accounts / Transfers
    # -------------------------------------------------------------------------

    @classmethod
    def is_account_active(cls, account_id: str) -> bool:
        """
        Check that a connected account can receive transfers.

        An account is active when both charges and payouts are enabled.
        """
        cls._configure()
        try:
            account = stripe.Account.retrieve(account_id)
        except stripe.StripeError as e:
            raise PaymentProviderError(
                message=f"Failed to retrieve connected account: {e}",
                code="RETRIEVE_ACCOUNT_FAILED",
                details={"account_id": account_id},
            )
        return bool(account.get("charges_enabled") and account.get("payouts_enabled"))

    @classmethod
    def create_transfer(
        cls,
        amount: int,
        destination: str,
        transfer_group: str,
        metadata: dict[str, str],
        idempotency_key: str,
    ) -> stripe.Transfer:
        """
        Move `amount` minor units from the platform balance to a connected account.

        The idempotency key makes a replayed transfer return the original one.
        """
        cls._configure()
        try:
            return stripe.Transfer.create(
                amount=amount,
                currency=settings.STRIPE_CURRENCY,
                destination=destination,
                transfer_group=transfer_group,
                metadata=metadata,
                idempotency_key=idempotency_key,
            )
        except stripe.StripeError as e:
            raise PaymentProviderError(
                message=f"Failed to create transfer: {e}",
                code="TRANSFER_FAILED",
                details={"destination": destination, "amount": amount},
            )

    # -------------------------------------------------------------------------
    # Webhooks
    # -------------------------------------------------------------------------

    @classmethod
    def construct_event(cls, payload: bytes, signature: str | None) -> stripe.Event:
        """
        Verify a webhook payload against its Stripe-Signature header.

        Raises:
            ValueError: If the payload is not valid JSON
            stripe.SignatureVerificationError: If the signature doesn't match
        """
        cls._configure()
        return stripe.Webhook.construct_event(
            payload,
            signature or "",
            settings.STRIPE_WEBHOOK_SECRET,
        )
