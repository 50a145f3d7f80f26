# =============================================================================
# tests/test_settlement_service.py - Settlement Service Tests
# =============================================================================
# This module contains tests for:
# - Creating a split payment (validation, rate resolution, Stripe call)
# - Confirmation: idempotence, minimum transfer, inactive payee accounts
# - Resuming a settlement interrupted after the paid claim
# - Failure, cancel and refund transitions
#
# Supabase is replaced by an in-memory settlement table that honours the
# compare-and-set on status; Stripe is a MagicMock.
# =============================================================================

from unittest.mock import MagicMock, patch

import pytest

from app.exceptions import ConflictError, NotFoundError, ValidationError
from core.models.settlement import CommissionSource, PaymentStatus
from core.services.settlement_service import SettlementService
from lib.stripe_client import PaymentProviderError
from lib.supabase_client import SupabaseClientError


class FakeSettlementTable:
    """In-memory stand-in for sale_settlements keyed by payment id."""

    def __init__(self, rows=None):
        self.rows = {row["payment_id"]: dict(row) for row in rows or []}

    def fetch_by_payment(self, payment_id):
        row = self.rows.get(payment_id)
        return dict(row) if row else None

    def fetch_by_sale(self, sale_id):
        for row in self.rows.values():
            if row["sale_id"] == sale_id:
                return dict(row)
        return None

    def insert(self, row):
        self.rows[row["payment_id"]] = dict(row)
        return dict(row)

    def update(self, payment_id, data, expected_status=None):
        row = self.rows.get(payment_id)
        if row is None or (expected_status is not None and row["status"] != expected_status):
            return None
        row.update(data)
        return dict(row)


@pytest.fixture
def table(settlement_row):
    return FakeSettlementTable([settlement_row])


@pytest.fixture
def mock_supabase(table):
    """SupabaseClient backed by the fake settlement table."""
    with patch("core.services.settlement_service.SupabaseClient") as mock:
        mock.fetch_settlement_by_payment.side_effect = table.fetch_by_payment
        mock.fetch_settlement_by_sale.side_effect = table.fetch_by_sale
        mock.insert_settlement.side_effect = table.insert
        mock.update_settlement.side_effect = table.update
        mock.fetch_product.return_value = {"id": "product-1", "name": "Sofa", "commission_rate": 8}
        mock.fetch_store.return_value = {
            "id": "store-1",
            "trade_name": "Casa",
            "default_commission_rate": 12,
            "stripe_account_id": "acct_store",
        }
        mock.fetch_consultant.return_value = {
            "id": "consultant-1",
            "name": "Ana",
            "active": True,
            "stripe_account_id": "acct_consultant",
        }
        yield mock


@pytest.fixture
def mock_stripe():
    """StripeClient with a succeeded payment and active accounts."""
    with patch("core.services.settlement_service.StripeClient") as mock:
        mock.create_payment_intent.return_value = MagicMock(id="pi_new", client_secret="pi_new_secret")
        mock.retrieve_payment_intent.return_value = MagicMock(
            id="pi_123", status="succeeded", client_secret="pi_123_secret"
        )
        mock.is_account_active.return_value = True
        mock.create_transfer.side_effect = lambda **kwargs: MagicMock(id=f"tr_{kwargs['metadata']['payee']}")
        mock.create_refund.return_value = MagicMock(id="re_1")
        yield mock


# =============================================================================
# Create Tests
# =============================================================================

class TestCreateSplitPayment:
    """Test opening a split payment."""

    def test_product_rate_split(self, mock_supabase, mock_stripe, table):
        response = SettlementService.create_split_payment("sale-2", "product-1", "store-1", "consultant-1", 10000)

        assert response.payment_id == "pi_new"
        assert response.client_secret == "pi_new_secret"
        assert response.commission_rate == 8.0
        assert response.commission_source == CommissionSource.PRODUCT
        assert response.consultant_amount == 800
        assert response.store_gross_amount == 9200

        stored = table.rows["pi_new"]
        assert stored["status"] == "awaiting_payment"
        assert stored["consultant_account_id"] == "acct_consultant"
        assert stored["store_account_id"] == "acct_store"

    def test_intent_carries_only_a_sale_reference(self, mock_supabase, mock_stripe):
        SettlementService.create_split_payment("sale-2", "product-1", "store-1", "consultant-1", 10000)

        kwargs = mock_stripe.create_payment_intent.call_args.kwargs
        assert kwargs["amount"] == 10000
        assert kwargs["metadata"] == {"sale_id": "sale-2"}
        assert kwargs["idempotency_key"] == "sale:sale-2"

    def test_store_default_when_product_has_no_rate(self, mock_supabase, mock_stripe):
        mock_supabase.fetch_product.return_value = {"id": "product-1", "commission_rate": None}

        response = SettlementService.create_split_payment("sale-2", "product-1", "store-1", "consultant-1", 10000)

        assert response.commission_rate == 12.0
        assert response.commission_source == CommissionSource.STORE

    def test_fallback_rate(self, mock_supabase, mock_stripe):
        """No product override and no store default: 10% from the store."""
        mock_supabase.fetch_product.return_value = None
        mock_supabase.fetch_store.return_value["default_commission_rate"] = None

        response = SettlementService.create_split_payment("sale-2", "product-1", "store-1", "consultant-1", 10000)

        assert response.commission_rate == 10.0
        assert response.commission_source == CommissionSource.STORE
        assert response.consultant_amount == 1000

    def test_sale_row_is_updated(self, mock_supabase, mock_stripe):
        SettlementService.create_split_payment("sale-2", None, "store-1", "consultant-1", 5000)

        sale_id, data = mock_supabase.update_sale.call_args[0]
        assert sale_id == "sale-2"
        assert data["payment_id"] == "pi_new"
        assert data["status"] == "awaiting_payment"

    @pytest.mark.parametrize("args", [
        ("", "product-1", "store-1", "consultant-1", 100),
        ("sale-2", "product-1", "", "consultant-1", 100),
        ("sale-2", "product-1", "store-1", "", 100),
        ("sale-2", "product-1", "store-1", "consultant-1", 0),
        ("sale-2", "product-1", "store-1", "consultant-1", -5),
    ])
    def test_invalid_input(self, mock_supabase, mock_stripe, args):
        with pytest.raises(ValidationError):
            SettlementService.create_split_payment(*args)
        mock_stripe.create_payment_intent.assert_not_called()

    def test_payee_without_account(self, mock_supabase, mock_stripe):
        mock_supabase.fetch_consultant.return_value["stripe_account_id"] = None

        with pytest.raises(ValidationError):
            SettlementService.create_split_payment("sale-2", None, "store-1", "consultant-1", 100)
        mock_stripe.create_payment_intent.assert_not_called()

    def test_missing_store(self, mock_supabase, mock_stripe):
        mock_supabase.fetch_store.return_value = None

        with pytest.raises(NotFoundError):
            SettlementService.create_split_payment("sale-2", None, "store-1", "consultant-1", 100)

    def test_existing_open_payment_is_returned(self, mock_supabase, mock_stripe):
        """Creating twice for the same sale hands back the first payment."""
        response = SettlementService.create_split_payment("sale-1", "product-1", "store-1", "consultant-1", 10000)

        assert response.payment_id == "pi_123"
        assert response.client_secret == "pi_123_secret"
        mock_stripe.create_payment_intent.assert_not_called()

    def test_existing_paid_sale_conflicts(self, mock_supabase, mock_stripe, table):
        table.rows["pi_123"]["status"] = "paid"

        with pytest.raises(ConflictError):
            SettlementService.create_split_payment("sale-1", "product-1", "store-1", "consultant-1", 10000)


# =============================================================================
# Confirmation Tests
# =============================================================================

class TestOnPaymentConfirmed:
    """Test settlement after a succeeded payment."""

    def test_transfers_recorded_amounts(self, mock_supabase, mock_stripe, table):
        result = SettlementService.on_payment_confirmed("pi_123")

        assert result["already_processed"] is False
        assert result["status"] == "paid"
        transfers = {c.kwargs["metadata"]["payee"]: c.kwargs for c in mock_stripe.create_transfer.call_args_list}
        assert transfers["consultant"]["amount"] == 800
        assert transfers["consultant"]["destination"] == "acct_consultant"
        assert transfers["consultant"]["idempotency_key"] == "pi_123:consultant"
        assert transfers["store"]["amount"] == 9200
        assert transfers["store"]["destination"] == "acct_store"
        assert transfers["store"]["idempotency_key"] == "pi_123:store"

        stored = table.rows["pi_123"]
        assert stored["status"] == "paid"
        assert stored["consultant_transfer_id"] == "tr_consultant"
        assert stored["store_transfer_id"] == "tr_store"
        assert stored["needs_manual_review"] is False

    def test_confirming_twice_transfers_once(self, mock_supabase, mock_stripe):
        first = SettlementService.on_payment_confirmed("pi_123")
        second = SettlementService.on_payment_confirmed("pi_123")

        assert first["already_processed"] is False
        assert second["already_processed"] is True
        assert mock_stripe.create_transfer.call_count == 2

    def test_lost_claim_does_not_transfer(self, mock_supabase, mock_stripe, table):
        """A concurrent confirmation that loses the status claim is a no-op."""
        def claimed_elsewhere(payment_id, data, expected_status=None):
            table.rows[payment_id]["status"] = "paid"
            return table.update(payment_id, data, expected_status)

        mock_supabase.update_settlement.side_effect = claimed_elsewhere

        result = SettlementService.on_payment_confirmed("pi_123")

        assert result["already_processed"] is True
        mock_stripe.create_transfer.assert_not_called()

    def test_sale_marked_paid(self, mock_supabase, mock_stripe):
        SettlementService.on_payment_confirmed("pi_123")

        sale_id, data = mock_supabase.update_sale.call_args[0]
        assert sale_id == "sale-1"
        assert data["status"] == "paid"
        assert data["paid_at"]

    def test_minimum_transfer_is_skipped(self, mock_supabase, mock_stripe, table):
        """A share at or below 50 minor units stays on the platform."""
        table.rows["pi_123"].update(gross_amount=1000, commission_rate=5, consultant_amount=50, store_gross_amount=950)

        SettlementService.on_payment_confirmed("pi_123")

        payees = [c.kwargs["metadata"]["payee"] for c in mock_stripe.create_transfer.call_args_list]
        assert payees == ["store"]
        assert table.rows["pi_123"]["consultant_transfer_id"] is None
        assert table.rows["pi_123"]["needs_manual_review"] is False

    def test_just_above_minimum_is_transferred(self, mock_supabase, mock_stripe, table):
        table.rows["pi_123"].update(gross_amount=1020, commission_rate=5, consultant_amount=51, store_gross_amount=969)

        SettlementService.on_payment_confirmed("pi_123")

        assert mock_stripe.create_transfer.call_count == 2

    def test_inactive_account_flags_review_and_other_transfer_proceeds(self, mock_supabase, mock_stripe, table):
        mock_stripe.is_account_active.side_effect = lambda account: account != "acct_consultant"

        result = SettlementService.on_payment_confirmed("pi_123")

        payees = [c.kwargs["metadata"]["payee"] for c in mock_stripe.create_transfer.call_args_list]
        assert payees == ["store"]
        assert result["needs_manual_review"] is True
        stored = table.rows["pi_123"]
        assert stored["needs_manual_review"] is True
        assert "consultant" in stored["review_reason"]

    def test_failed_transfer_flags_review(self, mock_supabase, mock_stripe, table):
        def transfer(**kwargs):
            if kwargs["metadata"]["payee"] == "store":
                raise PaymentProviderError("insufficient balance", code="TRANSFER_FAILED")
            return MagicMock(id="tr_consultant")

        mock_stripe.create_transfer.side_effect = transfer

        result = SettlementService.on_payment_confirmed("pi_123")

        assert result["consultant_transfer_id"] == "tr_consultant"
        assert result["store_transfer_id"] is None
        assert "TRANSFER_FAILED" in table.rows["pi_123"]["review_reason"]

    def test_interrupted_settlement_resumes_without_repeating_transfers(self, mock_supabase, mock_stripe, table):
        """A crash after the paid claim is finished by the next confirmation."""
        mock_supabase.update_sale.side_effect = [SupabaseClientError("timeout"), None]

        with pytest.raises(SupabaseClientError):
            SettlementService.on_payment_confirmed("pi_123")
        assert table.rows["pi_123"]["status"] == "paid"
        assert table.rows["pi_123"]["settled_at"] is None

        result = SettlementService.on_payment_confirmed("pi_123")

        assert result["already_processed"] is False
        assert result["consultant_transfer_id"] == "tr_consultant"
        assert result["store_transfer_id"] == "tr_store"
        assert mock_stripe.create_transfer.call_count == 2
        assert mock_supabase.update_sale.call_count == 2
        assert table.rows["pi_123"]["settled_at"]

    def test_resume_only_transfers_unpaid_payee(self, mock_supabase, mock_stripe, table):
        calls = []

        def transfer(**kwargs):
            payee = kwargs["metadata"]["payee"]
            calls.append(payee)
            if payee == "store" and calls.count("store") == 1:
                raise RuntimeError("connection reset")
            return MagicMock(id=f"tr_{payee}")

        mock_stripe.create_transfer.side_effect = transfer

        with pytest.raises(RuntimeError):
            SettlementService.on_payment_confirmed("pi_123")
        assert table.rows["pi_123"]["consultant_transfer_id"] == "tr_consultant"

        result = SettlementService.on_payment_confirmed("pi_123")

        assert calls == ["consultant", "store", "store"]
        assert result["store_transfer_id"] == "tr_store"
        assert table.rows["pi_123"]["store_transfer_id"] == "tr_store"
        assert table.rows["pi_123"]["needs_manual_review"] is False

    def test_settled_payment_is_not_resumed(self, mock_supabase, mock_stripe, table):
        table.rows["pi_123"].update(status="paid", settled_at="2024-06-15T12:05:00Z")

        result = SettlementService.on_payment_confirmed("pi_123")

        assert result["already_processed"] is True
        mock_stripe.create_transfer.assert_not_called()
        mock_supabase.update_sale.assert_not_called()

    def test_unsucceeded_intent_conflicts(self, mock_supabase, mock_stripe, table):
        mock_stripe.retrieve_payment_intent.return_value = MagicMock(status="requires_payment_method")

        with pytest.raises(ConflictError):
            SettlementService.on_payment_confirmed("pi_123")
        assert table.rows["pi_123"]["status"] == "awaiting_payment"
        mock_stripe.create_transfer.assert_not_called()

    def test_canceled_payment_never_transfers(self, mock_supabase, mock_stripe, table):
        table.rows["pi_123"]["status"] = "canceled"

        with pytest.raises(ConflictError):
            SettlementService.on_payment_confirmed("pi_123")
        mock_stripe.create_transfer.assert_not_called()

    def test_unknown_payment(self, mock_supabase, mock_stripe):
        with pytest.raises(NotFoundError):
            SettlementService.on_payment_confirmed("pi_unknown")


# =============================================================================
# Lifecycle Tests
# =============================================================================

class TestLifecycle:
    """Test failure, cancel and refund."""

    def test_payment_failed(self, mock_supabase, mock_stripe, table):
        result = SettlementService.on_payment_failed("pi_123")

        assert result["status"] == "failed"
        assert table.rows["pi_123"]["status"] == "failed"
        mock_stripe.create_transfer.assert_not_called()

    def test_payment_failed_twice_is_noop(self, mock_supabase, mock_stripe):
        SettlementService.on_payment_failed("pi_123")
        result = SettlementService.on_payment_failed("pi_123")

        assert result["already_processed"] is True

    def test_cancel(self, mock_supabase, mock_stripe, table):
        result = SettlementService.cancel("pi_123")

        assert result["status"] == "canceled"
        mock_stripe.cancel_payment_intent.assert_called_once_with("pi_123")
        assert table.rows["pi_123"]["status"] == "canceled"

    def test_cannot_cancel_paid_payment(self, mock_supabase, mock_stripe, table):
        table.rows["pi_123"]["status"] = "paid"

        with pytest.raises(ConflictError):
            SettlementService.cancel("pi_123")
        mock_stripe.cancel_payment_intent.assert_not_called()

    def test_full_refund_flags_review(self, mock_supabase, mock_stripe, table):
        table.rows["pi_123"].update(status="paid", consultant_transfer_id="tr_c", store_transfer_id="tr_s")

        result = SettlementService.refund("pi_123")

        mock_stripe.create_refund.assert_called_once_with("pi_123", None)
        assert result["amount"] == 10000
        stored = table.rows["pi_123"]
        assert stored["status"] == PaymentStatus.REFUNDED.value
        assert stored["needs_manual_review"] is True
        assert stored["review_reason"] == "refund of 10000 issued, transfers not reversed: consultant tr_c, store tr_s"

    def test_refund_keeps_earlier_review_reason(self, mock_supabase, mock_stripe, table):
        table.rows["pi_123"].update(
            status="paid",
            store_transfer_id="tr_s",
            needs_manual_review=True,
            review_reason="consultant account acct_consultant not active",
        )

        SettlementService.refund("pi_123", 2500)

        assert table.rows["pi_123"]["review_reason"] == (
            "consultant account acct_consultant not active; "
            "refund of 2500 issued, transfers not reversed: store tr_s"
        )

    def test_refund_without_transfers(self, mock_supabase, mock_stripe, table):
        table.rows["pi_123"]["status"] = "paid"

        SettlementService.refund("pi_123")

        assert table.rows["pi_123"]["review_reason"] == "refund of 10000 issued, no payee transfers were made"

    def test_partial_refund(self, mock_supabase, mock_stripe, table):
        table.rows["pi_123"]["status"] = "paid"

        result = SettlementService.refund("pi_123", 2500)

        mock_stripe.create_refund.assert_called_once_with("pi_123", 2500)
        assert result["amount"] == 2500

    @pytest.mark.parametrize("amount", [0, -1, 10001])
    def test_refund_amount_bounds(self, mock_supabase, mock_stripe, table, amount):
        table.rows["pi_123"]["status"] = "paid"

        with pytest.raises(ValidationError):
            SettlementService.refund("pi_123", amount)
        mock_stripe.create_refund.assert_not_called()

    def test_cannot_refund_unpaid(self, mock_supabase, mock_stripe):
        with pytest.raises(ConflictError):
            SettlementService.refund("pi_123")

    def test_payment_details(self, mock_supabase, mock_stripe):
        intent = MagicMock(status="succeeded")
        intent.get.return_value = 10000
        mock_stripe.retrieve_payment_intent.return_value = intent

        details = SettlementService.get_payment_details(SettlementService.get_settlement("pi_123"))

        assert details["provider_status"] == "succeeded"
        assert details["amount_received"] == 10000
        assert details["settlement"]["sale_id"] == "sale-1"
