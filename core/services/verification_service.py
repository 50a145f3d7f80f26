# =============================================================================
# core/services/verification_service.py - Signup Verification Codes
# =============================================================================
# Issues and checks the email + phone code pair a customer confirms at signup.
#
# Codes live in Redis under one key per email/phone pair with a TTL, so
# expiry needs no sweeper and every API process sees the same codes.
#
# Usage:
#   codes = VerificationService.issue_codes("ana@example.com", "11999990000")
#   VerificationService.verify_codes(email, phone, "123456", "654321")
# =============================================================================

import json
import logging
import secrets

import redis

from app.config import settings
from app.exceptions import ValidationError

logger = logging.getLogger(__name__)

KEY_PREFIX = "marketplace:verification"


def get_redis_client() -> redis.Redis:
    """Get a Redis client for the verification store."""
    return redis.from_url(settings.REDIS_URL, decode_responses=True)


def _generate_code() -> str:
    return f"{secrets.randbelow(1_000_000):06d}"


def _key(email: str, phone: str) -> str:
    return f"{KEY_PREFIX}:{email.strip().lower()}-{phone.strip()}"


def _expired() -> ValidationError:
    return ValidationError(
        message="Codes not found or expired",
        suggestion="Request new verification codes",
    )


class VerificationService:
    """
    Service for signup verification codes.

    A new issue for the same email/phone replaces the pending pair.
    A pair verifies at most once.
    """

    _client: redis.Redis | None = None

    @classmethod
    def get_client(cls) -> redis.Redis:
        if cls._client is None:
            cls._client = get_redis_client()
        return cls._client

    @classmethod
    def set_client(cls, client: redis.Redis | None) -> None:
        """Swap the Redis client (tests install an in-memory client)."""
        cls._client = client

    @classmethod
    def issue_codes(cls, email: str, phone: str) -> dict[str, str]:
        """
        Generate and store a fresh code pair.

        Returns:
            {"email_code": ..., "phone_code": ...}

        Raises:
            ValidationError: If email or phone is missing
        """
        if not email or not phone:
            raise ValidationError(message="Email and phone are required")

        codes = {"email_code": _generate_code(), "phone_code": _generate_code()}
        cls.get_client().set(
            _key(email, phone),
            json.dumps(codes),
            ex=settings.VERIFICATION_CODE_TTL_SECONDS,
        )

        logger.info(f"Issued verification codes for {email}")
        return codes

    @classmethod
    def verify_codes(cls, email: str, phone: str, email_code: str, phone_code: str) -> bool:
        """
        Check a submitted code pair and consume it on success.

        A wrong pair leaves the stored codes in place until they expire.

        Raises:
            ValidationError: Missing fields, no pending codes, or a mismatch
        """
        if not all([email, phone, email_code, phone_code]):
            raise ValidationError(message="All fields are required")

        client = cls.get_client()
        key = _key(email, phone)

        # WATCH makes the delete fail if the pair was consumed or reissued
        # after we read it, so a pair verifies once and only as read
        with client.pipeline() as pipe:
            pipe.watch(key)
            raw = pipe.get(key)
            if raw is None:
                raise _expired()

            stored = json.loads(raw)
            matches = (
                secrets.compare_digest(stored["email_code"], str(email_code))
                and secrets.compare_digest(stored["phone_code"], str(phone_code))
            )
            if not matches:
                logger.info(f"Invalid verification codes submitted for {email}")
                raise ValidationError(message="Invalid codes")

            pipe.multi()
            pipe.delete(key)
            try:
                pipe.execute()
            except redis.WatchError:
                logger.info(f"Verification codes for {email} changed while verifying")
                raise _expired()

        logger.info(f"Verification codes confirmed for {email}")
        return True
