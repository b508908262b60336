"""
OTP Service

Handles OTP generation, storage, and single-use verification.

All state lives in the ``otp_codes`` table. Issue is an upsert keyed by
(email, purpose) and verification is one conditional UPDATE ... RETURNING,
so the guarantees hold with several API instances behind a load balancer.
"""

import logging
import math
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from sqlalchemy import case, delete, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from trendx.core.config import settings
from trendx.core.security import hash_token, utcnow
from trendx.models.enums import OTPPurpose
from trendx.models.otp_code import OTPCode


logger = logging.getLogger(__name__)


class OTPError(Exception):
    """Base class for OTP validation failures."""


class OTPNotFoundError(OTPError):
    """No pending code for this email (never issued, or already used)."""


class OTPExpiredError(OTPError):
    """The pending code is past its expiry."""


class OTPMismatchError(OTPError):
    """A pending code exists but the submitted one differs."""


def generate_otp(length: Optional[int] = None) -> str:
    """Generate a zero-padded numeric code, 6 digits by default."""
    length = length or settings.OTP_LENGTH
    return str(secrets.randbelow(10 ** length)).zfill(length)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


_UPSERT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


class OTPStore:
    """
    Issues and validates one-time codes.

    One store is built per request around that request's database session.

    Args:
        db: Database session.
        clock: Returns the current aware UTC datetime.
        code_factory: Returns a fresh plain-text code.
        expire_minutes: Code lifetime, defaults to OTP_EXPIRE_MINUTES.
        cooldown_seconds: Minimum gap between issues, defaults to
            OTP_RESEND_COOLDOWN_SECONDS.
        max_attempts: Wrong guesses after which the pending code is burned,
            defaults to OTP_MAX_ATTEMPTS.
    """

    def __init__(
        self,
        db: AsyncSession,
        clock: Callable[[], datetime] = utcnow,
        code_factory: Callable[[], str] = generate_otp,
        expire_minutes: Optional[int] = None,
        cooldown_seconds: Optional[int] = None,
        max_attempts: Optional[int] = None,
    ):
        self.db = db
        self._clock = clock
        self._code_factory = code_factory
        self.expire_minutes = expire_minutes or settings.OTP_EXPIRE_MINUTES
        self.cooldown_seconds = (
            settings.OTP_RESEND_COOLDOWN_SECONDS if cooldown_seconds is None else cooldown_seconds
        )
        self.max_attempts = max_attempts or settings.OTP_MAX_ATTEMPTS

    def _insert(self):
        dialect = self.db.get_bind().dialect.name
        try:
            return _UPSERT_INSERTS[dialect]
        except KeyError:
            raise NotImplementedError(f"OTP upsert is not supported on {dialect}")

    async def issue(
        self,
        email: str,
        purpose: OTPPurpose = OTPPurpose.EMAIL_VERIFICATION,
    ) -> str:
        """
        Create and store a new OTP for the given email.

        Overwrites any pending code for the same email and purpose, so only
        the latest code is ever valid.

        Args:
            email: Email address to create OTP for.
            purpose: Purpose of the OTP.

        Returns:
            str: The plain text OTP code (to be sent via email).
        """
        email = normalize_email(email)
        plain_otp = self._code_factory()
        now = self._clock()

        insert = self._insert()
        stmt = insert(OTPCode).values(
            id=uuid.uuid4(),
            email=email,
            purpose=purpose,
            code_hash=hash_token(plain_otp),
            created_at=now,
            expires_at=now + timedelta(minutes=self.expire_minutes),
            is_used=False,
            used_at=None,
            failed_attempts=0,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["email", "purpose"],
            set_={
                "code_hash": stmt.excluded.code_hash,
                "created_at": stmt.excluded.created_at,
                "expires_at": stmt.excluded.expires_at,
                "is_used": stmt.excluded.is_used,
                "used_at": stmt.excluded.used_at,
                "failed_attempts": stmt.excluded.failed_attempts,
            },
        )

        await self.db.execute(stmt)
        await self.db.commit()

        logger.info(f"Issued {purpose.value} code for {email}")
        return plain_otp

    async def validate(
        self,
        email: str,
        code: str,
        purpose: OTPPurpose = OTPPurpose.EMAIL_VERIFICATION,
    ) -> None:
        """
        Check a submitted code and consume it.

        Check and consume happen in a single UPDATE, so two concurrent
        requests with the same code cannot both succeed. A wrong code does
        not consume the pending record but counts against it; after
        ``max_attempts`` wrong guesses the record is marked used and a new
        code has to be issued.

        Args:
            email: Email address.
            code: OTP code to verify.
            purpose: Expected purpose of the OTP.

        Raises:
            OTPNotFoundError: Nothing pending (or already consumed).
            OTPExpiredError: The pending code has expired.
            OTPMismatchError: The code does not match.
        """
        email = normalize_email(email)
        now = self._clock()

        result = await self.db.execute(
            update(OTPCode)
            .where(
                OTPCode.email == email,
                OTPCode.purpose == purpose,
                OTPCode.code_hash == hash_token(code),
                OTPCode.is_used == False,  # noqa: E712
                OTPCode.expires_at > now,
            )
            .values(is_used=True, used_at=now)
            .returning(OTPCode.id)
            .execution_options(synchronize_session=False)
        )
        if result.first() is not None:
            await self.db.commit()
            logger.info(f"Consumed {purpose.value} code for {email}")
            return

        # Count the wrong guess against a live code; the cap burns it
        attempts = (
            await self.db.execute(
                update(OTPCode)
                .where(
                    OTPCode.email == email,
                    OTPCode.purpose == purpose,
                    OTPCode.is_used == False,  # noqa: E712
                    OTPCode.expires_at > now,
                )
                .values(
                    failed_attempts=OTPCode.failed_attempts + 1,
                    is_used=case(
                        (OTPCode.failed_attempts + 1 >= self.max_attempts, True),
                        else_=False,
                    ),
                )
                .returning(OTPCode.failed_attempts)
                .execution_options(synchronize_session=False)
            )
        ).scalar_one_or_none()

        if attempts is not None:
            await self.db.commit()
            if attempts >= self.max_attempts:
                logger.warning(f"{purpose.value} code for {email} burned after {attempts} wrong attempts")
            else:
                logger.info(f"Mismatched {purpose.value} code submitted for {email} (attempt {attempts})")
            raise OTPMismatchError(email)

        # Nothing live to guess against; work out why
        record = (
            await self.db.execute(
                select(OTPCode)
                .where(OTPCode.email == email, OTPCode.purpose == purpose)
                .execution_options(populate_existing=True)
            )
        ).scalar_one_or_none()

        if record is None or record.is_used:
            logger.info(f"No pending {purpose.value} code for {email}")
            raise OTPNotFoundError(email)
        if now >= _as_utc(record.expires_at):
            logger.info(f"Expired {purpose.value} code submitted for {email}")
            raise OTPExpiredError(email)
        raise OTPMismatchError(email)

    async def revoke(
        self,
        email: str,
        purpose: OTPPurpose = OTPPurpose.EMAIL_VERIFICATION,
    ) -> None:
        """
        Drop the pending code for an email.

        Used when a freshly issued code could not be delivered, so the resend
        cooldown does not hold back the retry.
        """
        email = normalize_email(email)
        await self.db.execute(
            delete(OTPCode)
            .where(OTPCode.email == email, OTPCode.purpose == purpose)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        logger.info(f"Revoked undelivered {purpose.value} code for {email}")

    async def seconds_until_resend(
        self,
        email: str,
        purpose: OTPPurpose = OTPPurpose.EMAIL_VERIFICATION,
    ) -> Optional[int]:
        """
        Remaining resend cooldown for an email.

        Returns:
            Seconds to wait, or None if a new code may be issued now.
        """
        created_at = (
            await self.db.execute(
                select(OTPCode.created_at).where(
                    OTPCode.email == normalize_email(email),
                    OTPCode.purpose == purpose,
                )
            )
        ).scalar_one_or_none()

        if created_at is None:
            return None

        elapsed = (self._clock() - _as_utc(created_at)).total_seconds()
        remaining = math.ceil(self.cooldown_seconds - elapsed)
        return remaining if remaining > 0 else None

    async def cleanup_expired(self) -> int:
        """
        Remove expired and used OTP codes.

        Returns:
            int: Number of OTPs deleted.
        """
        result = await self.db.execute(
            delete(OTPCode)
            .where(
                (OTPCode.expires_at <= self._clock()) |
                (OTPCode.is_used == True)  # noqa: E712
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount or 0
