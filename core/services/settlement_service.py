# =============================================================================
# core/services/settlement_service.py - Commission Split & Settlement
# =============================================================================
# Drives a sale's payment from creation to payee transfers:
# - create_split_payment: resolve rate, split, open the PaymentIntent
# - on_payment_confirmed: claim the settlement and transfer both shares
# - on_payment_failed / cancel / refund: the remaining lifecycle moves
#
# The platform collects 100% of the payment. Transfers to the consultant and
# the store only happen after Stripe reports the payment succeeded, and their
# amounts are always read back from the stored settlement record.
# =============================================================================

import logging
from typing import Any
from uuid import UUID

from app.config import settings
from app.exceptions import ConflictError, NotFoundError, ValidationError
from core.commission import resolve_commission_rate, split_amount, validate_transition
from core.models.settlement import (
    CreatePaymentResponse,
    PaymentStatus,
    SettlementRecord,
)
from lib.stripe_client import PaymentProviderError, StripeClient
from lib.supabase_client import SupabaseClient
from lib.utils import normalize_id, utcnow

logger = logging.getLogger(__name__)

PAYEES = ("consultant", "store")


class SettlementService:
    """
    Service for split payments.

    Every status change goes through core.commission.validate_transition,
    and the move to PAID is a compare-and-set so that only one confirmation
    ever reaches the transfer step.
    """

    @staticmethod
    def get_settlement(payment_id: str) -> SettlementRecord:
        """
        Load the settlement attached to a payment.

        Raises:
            NotFoundError: No settlement for this payment
        """
        row = SupabaseClient.fetch_settlement_by_payment(payment_id)
        if not row:
            raise NotFoundError("settlement", payment_id)
        return SettlementRecord.from_row(row)

    @staticmethod
    def _response(record: SettlementRecord, client_secret: str | None) -> CreatePaymentResponse:
        return CreatePaymentResponse(
            payment_id=record.payment_id,
            client_secret=client_secret,
            amount=record.gross_amount,
            commission_rate=float(record.commission_rate),
            commission_source=record.commission_source,
            consultant_amount=record.consultant_amount,
            store_gross_amount=record.store_gross_amount,
        )

    # -------------------------------------------------------------------------
    # Create
    # -------------------------------------------------------------------------

    @staticmethod
    def create_split_payment(
        sale_id: str | UUID,
        product_id: str | UUID | None,
        store_id: str | UUID,
        consultant_id: str | UUID,
        amount: int,
    ) -> CreatePaymentResponse:
        """
        Open a payment for a sale and record how it will be split.

        Args:
            sale_id: The sale being paid
            product_id: Product sold; its commission rate wins when set
            store_id: Selling store
            consultant_id: Consultant credited with the sale
            amount: Gross amount in minor units

        Returns:
            CreatePaymentResponse with the client secret for the frontend

        Raises:
            ValidationError: Bad input or a payee without a connected account
            NotFoundError: Store or consultant doesn't exist
            ConflictError: The sale already has a settled or closed payment
            PaymentProviderError: Stripe rejected the PaymentIntent
        """
        for field, value in (("sale_id", sale_id), ("store_id", store_id), ("consultant_id", consultant_id)):
            if not value:
                raise ValidationError(message=f"{field} is required", details={"field": field})
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationError(
                message="Amount must be a positive integer in minor units",
                details={"amount": amount},
            )

        sale_id_str = normalize_id(sale_id)
        store_id_str = normalize_id(store_id)
        consultant_id_str = normalize_id(consultant_id)
        product_id_str = normalize_id(product_id) if product_id else None

        existing = SupabaseClient.fetch_settlement_by_sale(sale_id_str)
        if existing:
            record = SettlementRecord.from_row(existing)
            if record.status != PaymentStatus.AWAITING_PAYMENT:
                raise ConflictError(
                    message=f"Sale {sale_id_str} already has a {record.status.value} payment",
                    details={"sale_id": sale_id_str, "payment_id": record.payment_id},
                )
            intent = StripeClient.retrieve_payment_intent(record.payment_id)
            logger.info(f"Returning existing payment {record.payment_id} for sale {sale_id_str}")
            return SettlementService._response(record, intent.client_secret)

        product_rate = None
        if product_id_str:
            product = SupabaseClient.fetch_product(product_id_str)
            if product:
                product_rate = product.get("commission_rate")
            else:
                logger.warning(f"Product {product_id_str} not found, using store commission")

        store = SupabaseClient.fetch_store(store_id_str)
        if not store:
            raise NotFoundError("store", store_id_str)

        consultant = SupabaseClient.fetch_consultant(consultant_id_str)
        if not consultant:
            raise NotFoundError("consultant", consultant_id_str)

        if not consultant.get("stripe_account_id"):
            raise ValidationError(
                message="Consultant has no connected Stripe account",
                details={"consultant_id": consultant_id_str},
                suggestion="The consultant must finish Stripe onboarding before selling",
            )
        if not store.get("stripe_account_id"):
            raise ValidationError(
                message="Store has no connected Stripe account",
                details={"store_id": store_id_str},
                suggestion="The store must finish Stripe onboarding before selling",
            )

        rate, source = resolve_commission_rate(product_rate, store.get("default_commission_rate"))
        split = split_amount(amount, rate)
        validate_transition(PaymentStatus.PENDING, PaymentStatus.AWAITING_PAYMENT)

        intent = StripeClient.create_payment_intent(
            amount=split.gross_amount,
            metadata={"sale_id": sale_id_str},
            idempotency_key=f"sale:{sale_id_str}",
        )

        record = SettlementRecord(
            sale_id=sale_id_str,
            product_id=product_id_str,
            store_id=store_id_str,
            consultant_id=consultant_id_str,
            gross_amount=split.gross_amount,
            currency=settings.STRIPE_CURRENCY,
            commission_rate=split.commission_rate,
            commission_source=source,
            consultant_amount=split.consultant_amount,
            store_gross_amount=split.store_gross_amount,
            consultant_account_id=consultant["stripe_account_id"],
            store_account_id=store["stripe_account_id"],
            payment_id=intent.id,
            status=PaymentStatus.AWAITING_PAYMENT,
        )
        SupabaseClient.insert_settlement(record.to_row())

        SupabaseClient.update_sale(sale_id_str, {
            "payment_id": intent.id,
            "status": PaymentStatus.AWAITING_PAYMENT.value,
            "commission_rate": float(split.commission_rate),
            "commission_source": source.value,
            "consultant_amount": split.consultant_amount,
            "store_gross_amount": split.store_gross_amount,
        })

        logger.info(
            f"Created payment {intent.id} for sale {sale_id_str}: "
            f"{split.gross_amount} at {split.commission_rate}% ({source.value}) -> "
            f"consultant {split.consultant_amount}, store {split.store_gross_amount}"
        )
        return SettlementService._response(record, intent.client_secret)

    # -------------------------------------------------------------------------
    # Confirmation
    # -------------------------------------------------------------------------

    @staticmethod
    def _transfer(
        record: SettlementRecord,
        payee: str,
        amount: int,
        account_id: str,
    ) -> tuple[str | None, str | None]:
        """
        Transfer one payee's share.

        Returns:
            (transfer_id, review_reason); both None when the amount is
            too small to transfer
        """
        if amount <= settings.MIN_TRANSFER_AMOUNT:
            logger.info(
                f"Skipping {payee} transfer of {amount} for payment {record.payment_id}: "
                f"at or below minimum {settings.MIN_TRANSFER_AMOUNT}"
            )
            return None, None

        try:
            if not StripeClient.is_account_active(account_id):
                logger.warning(f"{payee} account {account_id} is not active, transfer held")
                return None, f"{payee} account {account_id} not active"

            transfer = StripeClient.create_transfer(
                amount=amount,
                destination=account_id,
                transfer_group=f"sale_{record.sale_id}",
                metadata={"sale_id": record.sale_id, "payee": payee},
                idempotency_key=f"{record.payment_id}:{payee}",
            )
        except PaymentProviderError as e:
            logger.error(f"{payee} transfer failed for payment {record.payment_id}: {e}")
            return None, f"{payee} transfer failed: {e.code}"

        logger.info(f"Transferred {amount} to {payee} {account_id} ({transfer.id})")
        return transfer.id, None

    @staticmethod
    def _settle(record: SettlementRecord, paid_at: str) -> dict[str, Any]:
        """
        Transfer both shares, mark the sale paid and close the settlement.

        Each transfer id is stored as soon as Stripe returns it, so a resumed
        settlement only retries the payees that were not paid yet.
        """
        transfer_ids: dict[str, str | None] = {}
        issues = []
        for payee, amount, account_id in (
            ("consultant", record.consultant_amount, record.consultant_account_id),
            ("store", record.store_gross_amount, record.store_account_id),
        ):
            transfer_id = getattr(record, f"{payee}_transfer_id")
            if transfer_id is None:
                transfer_id, issue = SettlementService._transfer(record, payee, amount, account_id)
                if transfer_id:
                    SupabaseClient.update_settlement(record.payment_id, {f"{payee}_transfer_id": transfer_id})
                if issue:
                    issues.append(issue)
            transfer_ids[payee] = transfer_id

        SupabaseClient.update_sale(record.sale_id, {
            "status": PaymentStatus.PAID.value,
            "paid_at": paid_at,
        })
        SupabaseClient.update_settlement(record.payment_id, {
            "needs_manual_review": bool(issues),
            "review_reason": "; ".join(issues) or None,
            "settled_at": utcnow().isoformat(),
        })

        logger.info(f"Payment {record.payment_id} settled for sale {record.sale_id}")
        return {
            "payment_id": record.payment_id,
            "sale_id": record.sale_id,
            "status": PaymentStatus.PAID.value,
            "already_processed": False,
            "consultant_transfer_id": transfer_ids["consultant"],
            "store_transfer_id": transfer_ids["store"],
            "needs_manual_review": bool(issues),
        }

    @staticmethod
    def on_payment_confirmed(payment_id: str) -> dict[str, Any]:
        """
        Handle a succeeded payment: mark it paid and transfer both shares.

        Safe to call any number of times for the same payment. Only the call
        that wins the AWAITING_PAYMENT -> PAID claim starts the settlement;
        a later call finishes a PAID settlement that was interrupted before
        settled_at was written, and otherwise does nothing.

        Returns:
            Dict with the payment outcome and "already_processed"

        Raises:
            NotFoundError: No settlement for this payment
            ConflictError: Stripe doesn't report the payment as succeeded, or
                the payment is already canceled/failed
        """
        record = SettlementService.get_settlement(payment_id)

        if record.status == PaymentStatus.PAID and record.settled_at is None:
            logger.warning(f"Resuming unfinished settlement of payment {payment_id}")
            paid_at = record.paid_at or utcnow()
            return SettlementService._settle(record, paid_at.isoformat())

        if record.status in (PaymentStatus.PAID, PaymentStatus.REFUNDED):
            logger.info(f"Payment {payment_id} already processed ({record.status.value})")
            return {"payment_id": payment_id, "status": record.status.value, "already_processed": True}

        validate_transition(record.status, PaymentStatus.PAID)

        intent = StripeClient.retrieve_payment_intent(payment_id)
        if intent.status != "succeeded":
            raise ConflictError(
                message=f"Payment {payment_id} has not succeeded",
                details={"payment_id": payment_id, "provider_status": intent.status},
            )

        paid_at = utcnow().isoformat()
        claimed = SupabaseClient.update_settlement(
            payment_id,
            {"status": PaymentStatus.PAID.value, "paid_at": paid_at},
            expected_status=PaymentStatus.AWAITING_PAYMENT.value,
        )
        if claimed is None:
            logger.info(f"Payment {payment_id} was claimed by a concurrent confirmation")
            return {"payment_id": payment_id, "status": PaymentStatus.PAID.value, "already_processed": True}

        return SettlementService._settle(record, paid_at)

    # -------------------------------------------------------------------------
    # Other Lifecycle Moves
    # -------------------------------------------------------------------------

    @staticmethod
    def _move(record: SettlementRecord, target: PaymentStatus, extra: dict[str, Any] | None = None) -> None:
        """Persist a validated status change on both settlement and sale."""
        updated = SupabaseClient.update_settlement(
            record.payment_id,
            {"status": target.value, **(extra or {})},
            expected_status=record.status.value,
        )
        if updated is None:
            raise ConflictError(
                message=f"Payment {record.payment_id} changed while being updated",
                details={"payment_id": record.payment_id, "target": target.value},
            )
        SupabaseClient.update_sale(record.sale_id, {"status": target.value})

    @staticmethod
    def on_payment_failed(payment_id: str) -> dict[str, Any]:
        """Mark a payment failed. No transfers are made."""
        record = SettlementService.get_settlement(payment_id)
        if record.status == PaymentStatus.FAILED:
            return {"payment_id": payment_id, "status": record.status.value, "already_processed": True}

        validate_transition(record.status, PaymentStatus.FAILED)
        SettlementService._move(record, PaymentStatus.FAILED)

        logger.warning(f"Payment {payment_id} failed for sale {record.sale_id}")
        return {"payment_id": payment_id, "status": PaymentStatus.FAILED.value, "already_processed": False}

    @staticmethod
    def cancel(payment_id: str) -> dict[str, Any]:
        """
        Cancel a payment that hasn't been paid yet.

        Raises:
            ConflictError: The payment is no longer awaiting payment
        """
        record = SettlementService.get_settlement(payment_id)
        validate_transition(record.status, PaymentStatus.CANCELED)

        StripeClient.cancel_payment_intent(payment_id)
        SettlementService._move(record, PaymentStatus.CANCELED)

        logger.info(f"Payment {payment_id} canceled for sale {record.sale_id}")
        return {"payment_id": payment_id, "status": PaymentStatus.CANCELED.value}

    @staticmethod
    def _refund_reason(record: SettlementRecord, refunded: int) -> str:
        """Describe the refund from the recorded transfers, after any earlier reason."""
        made = []
        for payee in PAYEES:
            transfer_id = getattr(record, f"{payee}_transfer_id")
            if transfer_id:
                made.append(f"{payee} {transfer_id}")

        if made:
            reason = f"refund of {refunded} issued, transfers not reversed: {', '.join(made)}"
        else:
            reason = f"refund of {refunded} issued, no payee transfers were made"
        return "; ".join(r for r in (record.review_reason, reason) if r)

    @staticmethod
    def refund(payment_id: str, amount: int | None = None) -> dict[str, Any]:
        """
        Refund a paid payment, fully or partially.

        Payee transfers are not reversed; the settlement is flagged for
        manual review instead.

        Raises:
            ValidationError: Amount is not within 0 < amount <= gross
            ConflictError: The payment is not in PAID status
        """
        record = SettlementService.get_settlement(payment_id)

        if amount is not None and (amount <= 0 or amount > record.gross_amount):
            raise ValidationError(
                message="Refund amount must be positive and at most the payment amount",
                details={"amount": amount, "gross_amount": record.gross_amount},
            )
        validate_transition(record.status, PaymentStatus.REFUNDED)

        refund = StripeClient.create_refund(payment_id, amount)
        refunded = amount if amount is not None else record.gross_amount
        SettlementService._move(record, PaymentStatus.REFUNDED, {
            "needs_manual_review": True,
            "review_reason": SettlementService._refund_reason(record, refunded),
        })

        logger.warning(
            f"Refunded {refunded} of payment {payment_id}; payee transfers need manual review"
        )
        return {
            "payment_id": payment_id,
            "status": PaymentStatus.REFUNDED.value,
            "refund_id": refund.id,
            "amount": refunded,
            "needs_manual_review": True,
        }

    # -------------------------------------------------------------------------
    # Read
    # -------------------------------------------------------------------------

    @staticmethod
    def get_payment_details(record: SettlementRecord) -> dict[str, Any]:
        """
        The stored settlement alongside Stripe's live view of the payment.

        Takes the already loaded record so callers can check access before
        Stripe is contacted.
        """
        intent = StripeClient.retrieve_payment_intent(record.payment_id)
        return {
            "settlement": record.model_dump(mode="json"),
            "provider_status": intent.status,
            "amount_received": intent.get("amount_received"),
        }
