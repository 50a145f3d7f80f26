# =============================================================================
# lib/supabase_client.py - Supabase Client Wrapper
# =============================================================================
# This module provides a typed wrapper for Supabase database operations.
# It implements the singleton pattern to reuse a single client connection
# and provides specialized methods for:
# - Consultant activity (ratings, completed sales, assigned trainings)
# - Consultant scores (upsert by consultant_id, ranking RPCs)
# - Stores, products and consultants for commission resolution
# - Sale settlement records
#
# Usage:
#   from lib.supabase_client import SupabaseClient
#   ratings = SupabaseClient.fetch_ratings(consultant_id)
# =============================================================================

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from supabase import create_client, Client

from app.config import settings
from app.exceptions import UpstreamError
from lib.utils import normalize_id

# Set up logging for this module
logger = logging.getLogger(__name__)

# PostgREST code for "no rows returned" on .single()
NO_ROWS_CODE = "PGRST116"


class SupabaseClientError(UpstreamError):
    """
    Error during Supabase operations.

    Provides actionable error messages: what failed and how to fix it.
    """

    def __init__(
        self,
        message: str,
        code: str = "SUPABASE_ERROR",
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            message=message,
            code=code,
            suggestion=suggestion,
            details=details,
        )

    def __str__(self) -> str:
        result = f"[{self.code}] {self.message}"
        if self.suggestion:
            result += f" Suggestion: {self.suggestion}"
        return result


class SupabaseClient:
    """
    Typed wrapper for Supabase database operations.

    Implements singleton pattern - one client instance is shared across
    the application. All methods are class methods for easy access without
    instantiation.

    Example:
        score_row = SupabaseClient.fetch_consultant_score("550e8400-...")
        if score_row is None:
            ...
    """

    _instance: Client | None = None

    @classmethod
    def get_client(cls) -> Client:
        """
        Get or create the singleton Supabase client.

        Uses service_role key which bypasses Row Level Security (RLS).
        This is appropriate for server-side operations.

        Raises:
            SupabaseClientError: If client creation fails
        """
        if cls._instance is None:
            try:
                cls._instance = create_client(
                    settings.SUPABASE_URL,
                    settings.SUPABASE_SERVICE_KEY
                )
                logger.info("Supabase client initialized successfully")
            except Exception as e:
                raise SupabaseClientError(
                    message=f"Failed to create Supabase client: {e}",
                    code="CLIENT_INIT_FAILED",
                    suggestion="Check SUPABASE_URL and SUPABASE_SERVICE_KEY in your .env file"
                )
        return cls._instance

    @classmethod
    def _fetch_single(
        cls,
        table: str,
        column: str,
        value: str | UUID,
        columns: str = "*",
        code: str = "FETCH_FAILED",
    ) -> dict[str, Any] | None:
        """Fetch one row by column value, returning None when absent."""
        client = cls.get_client()
        value_str = normalize_id(value)

        try:
            response = (
                client.table(table)
                .select(columns)
                .eq(column, value_str)
                .single()
                .execute()
            )
            return response.data

        except Exception as e:
            if NO_ROWS_CODE in str(e):
                return None
            raise SupabaseClientError(
                message=f"Failed to fetch {table} row: {e}",
                code=code,
                details={"table": table, column: value_str},
            )

    # -------------------------------------------------------------------------
    # Consultant Activity
    # -------------------------------------------------------------------------

    @classmethod
    def fetch_ratings(cls, consultant_id: str | UUID) -> list[dict[str, Any]]:
        """
        Fetch all star ratings given to a consultant.

        Returns:
            List of dicts with key "stars" (1-5)

        Raises:
            SupabaseClientError: If query fails
        """
        client = cls.get_client()
        consultant_id_str = normalize_id(consultant_id)

        try:
            response = (
                client.table("ratings")
                .select("stars")
                .eq("consultant_id", consultant_id_str)
                .execute()
            )
            return response.data or []

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch ratings: {e}",
                code="FETCH_RATINGS_FAILED",
                details={"consultant_id": consultant_id_str},
            )

    @classmethod
    def fetch_completed_sales(cls, consultant_id: str | UUID) -> list[dict[str, Any]]:
        """
        Fetch the consultant's completed sales.

        Returns:
            List of dicts with keys "total_amount" and "created_at"

        Raises:
            SupabaseClientError: If query fails
        """
        client = cls.get_client()
        consultant_id_str = normalize_id(consultant_id)

        try:
            response = (
                client.table("sales")
                .select("total_amount, created_at")
                .eq("consultant_id", consultant_id_str)
                .eq("status", "completed")
                .execute()
            )
            return response.data or []

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch sales: {e}",
                code="FETCH_SALES_FAILED",
                details={"consultant_id": consultant_id_str},
            )

    @classmethod
    def fetch_trainings(cls, consultant_id: str | UUID) -> list[dict[str, Any]]:
        """
        Fetch trainings assigned to a consultant.

        Returns:
            List of dicts with keys "completed" and "mandatory"

        Raises:
            SupabaseClientError: If query fails
        """
        client = cls.get_client()
        consultant_id_str = normalize_id(consultant_id)

        try:
            response = (
                client.table("consultant_trainings")
                .select("completed, mandatory")
                .eq("consultant_id", consultant_id_str)
                .execute()
            )
            return response.data or []

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch trainings: {e}",
                code="FETCH_TRAININGS_FAILED",
                details={"consultant_id": consultant_id_str},
            )

    @classmethod
    def fetch_active_consultant_ids(cls) -> list[str]:
        """
        Fetch ids of all active consultants.

        Raises:
            SupabaseClientError: If query fails
        """
        client = cls.get_client()

        try:
            response = (
                client.table("consultants")
                .select("id")
                .eq("active", True)
                .execute()
            )
            return [str(row["id"]) for row in response.data or []]

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch active consultants: {e}",
                code="FETCH_CONSULTANTS_FAILED",
            )

    # -------------------------------------------------------------------------
    # Consultant Scores
    # -------------------------------------------------------------------------

    @classmethod
    def fetch_consultant_score(cls, consultant_id: str | UUID) -> dict[str, Any] | None:
        """Fetch the stored score row for a consultant, or None."""
        return cls._fetch_single(
            "consultant_scores",
            "consultant_id",
            consultant_id,
            code="FETCH_SCORE_FAILED",
        )

    @classmethod
    def upsert_consultant_score(cls, row: dict[str, Any]) -> dict[str, Any]:
        """
        Insert or overwrite the score row keyed by consultant_id.

        Returns:
            The stored row

        Raises:
            SupabaseClientError: If the upsert fails
        """
        client = cls.get_client()

        try:
            response = (
                client.table("consultant_scores")
                .upsert(row, on_conflict="consultant_id")
                .execute()
            )

            if response.data:
                return response.data[0]
            raise SupabaseClientError(
                message="Upsert returned no data",
                code="UPSERT_NO_DATA",
            )

        except SupabaseClientError:
            raise
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to upsert consultant score: {e}",
                code="UPSERT_SCORE_FAILED",
                details={"consultant_id": row.get("consultant_id")},
            )

    @classmethod
    def fetch_consultant_rank(cls, consultant_id: str | UUID) -> str | None:
        """
        Ask the database for a consultant's position among all scores.

        Backed by the `calculate_consultant_rank` stored function.
        """
        client = cls.get_client()
        consultant_id_str = normalize_id(consultant_id)

        try:
            response = client.rpc(
                "calculate_consultant_rank",
                {"consultant_uuid": consultant_id_str},
            ).execute()
            return response.data

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to calculate rank: {e}",
                code="RANK_FAILED",
                details={"consultant_id": consultant_id_str},
            )

    @classmethod
    def refresh_consultant_ranks(cls) -> Any:
        """Recompute the stored rank of every consultant in one pass."""
        client = cls.get_client()

        try:
            response = client.rpc("refresh_consultant_ranks", {}).execute()
            return response.data

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to refresh ranks: {e}",
                code="RANK_REFRESH_FAILED",
            )

    @classmethod
    def fetch_all_scores(cls) -> list[dict[str, Any]]:
        """Fetch every stored score row, best first."""
        client = cls.get_client()

        try:
            response = (
                client.table("consultant_scores")
                .select("*")
                .order("total_score", desc=True)
                .execute()
            )
            return response.data or []

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch scores: {e}",
                code="FETCH_SCORES_FAILED",
            )

    @classmethod
    def fetch_top_scores(cls, limit: int = 10) -> list[dict[str, Any]]:
        """Fetch the `limit` highest stored scores."""
        client = cls.get_client()

        try:
            response = (
                client.table("consultant_scores")
                .select("consultant_id, total_score, tier, rank")
                .order("total_score", desc=True)
                .limit(limit)
                .execute()
            )
            return response.data or []

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch top scores: {e}",
                code="FETCH_TOP_SCORES_FAILED",
                details={"limit": limit},
            )

    # -------------------------------------------------------------------------
    # Marketplace Entities
    # -------------------------------------------------------------------------

    @classmethod
    def fetch_product(cls, product_id: str | UUID) -> dict[str, Any] | None:
        """Fetch a product's name and commission override."""
        return cls._fetch_single(
            "products", "id", product_id,
            columns="id, name, commission_rate",
            code="FETCH_PRODUCT_FAILED",
        )

    @classmethod
    def fetch_store(cls, store_id: str | UUID) -> dict[str, Any] | None:
        """Fetch a store's default commission and connected account."""
        return cls._fetch_single(
            "stores", "id", store_id,
            columns="id, trade_name, default_commission_rate, stripe_account_id",
            code="FETCH_STORE_FAILED",
        )

    @classmethod
    def fetch_consultant(cls, consultant_id: str | UUID) -> dict[str, Any] | None:
        """Fetch a consultant's profile and connected account."""
        return cls._fetch_single(
            "consultants", "id", consultant_id,
            columns="id, name, email, city, state, active, stripe_account_id, stripe_account_status",
            code="FETCH_CONSULTANT_FAILED",
        )

    @classmethod
    def fetch_pending_applications(cls, store_id: str | UUID) -> list[dict[str, Any]]:
        """
        Fetch pending consultant applications to a store, with the
        applicant's public profile embedded.
        """
        client = cls.get_client()
        store_id_str = normalize_id(store_id)

        try:
            response = (
                client.table("applications")
                .select("id, status, message, created_at, consultant:consultant_id (id, name, email, city, state)")
                .eq("store_id", store_id_str)
                .eq("status", "pending")
                .execute()
            )
            return response.data or []

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to fetch applications: {e}",
                code="FETCH_APPLICATIONS_FAILED",
                details={"store_id": store_id_str},
            )

    @classmethod
    def update_sale(cls, sale_id: str | UUID, data: dict[str, Any]) -> dict[str, Any] | None:
        """Update a sale row; returns the updated row or None if absent."""
        client = cls.get_client()
        sale_id_str = normalize_id(sale_id)

        try:
            response = (
                client.table("sales")
                .update(data)
                .eq("id", sale_id_str)
                .execute()
            )
            return response.data[0] if response.data else None

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to update sale: {e}",
                code="UPDATE_SALE_FAILED",
                details={"sale_id": sale_id_str},
            )

    # -------------------------------------------------------------------------
    # Sale Settlements
    # -------------------------------------------------------------------------

    @classmethod
    def insert_settlement(cls, row: dict[str, Any]) -> dict[str, Any]:
        """
        Insert a settlement record.

        Raises:
            SupabaseClientError: If the insert fails (including a duplicate sale_id)
        """
        client = cls.get_client()

        try:
            response = (
                client.table("sale_settlements")
                .insert(row)
                .execute()
            )

            if response.data:
                return response.data[0]
            raise SupabaseClientError(
                message="Insert returned no data",
                code="INSERT_NO_DATA",
            )

        except SupabaseClientError:
            raise
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to insert settlement: {e}",
                code="INSERT_SETTLEMENT_FAILED",
                details={"sale_id": row.get("sale_id")},
            )

    @classmethod
    def fetch_settlement_by_payment(cls, payment_id: str) -> dict[str, Any] | None:
        """Fetch the settlement attached to a payment intent id."""
        return cls._fetch_single(
            "sale_settlements", "payment_id", payment_id,
            code="FETCH_SETTLEMENT_FAILED",
        )

    @classmethod
    def fetch_settlement_by_sale(cls, sale_id: str | UUID) -> dict[str, Any] | None:
        """Fetch the settlement of a sale."""
        return cls._fetch_single(
            "sale_settlements", "sale_id", sale_id,
            code="FETCH_SETTLEMENT_FAILED",
        )

    @classmethod
    def update_settlement(
        cls,
        payment_id: str,
        data: dict[str, Any],
        expected_status: str | None = None,
    ) -> dict[str, Any] | None:
        """
        Update a settlement by payment id.

        With `expected_status`, the update only applies while the row is still
        in that status (compare-and-set). Returns None when nothing matched.
        """
        client = cls.get_client()

        try:
            query = (
                client.table("sale_settlements")
                .update(data)
                .eq("payment_id", payment_id)
            )
            if expected_status is not None:
                query = query.eq("status", expected_status)

            response = query.execute()
            return response.data[0] if response.data else None

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to update settlement: {e}",
                code="UPDATE_SETTLEMENT_FAILED",
                details={"payment_id": payment_id},
            )
