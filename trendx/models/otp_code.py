"""
OTP Code Model

Stores the active one-time code per email and purpose.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Enum, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from trendx.core.database import Base
from trendx.models.enums import OTPPurpose


class OTPCode(Base):
    """
    OTP Code model for email verification and password reset.

    There is at most one row per (email, purpose): issuing a new code
    overwrites the row, which is what invalidates the previous code.

    Attributes:
        id: UUID primary key.
        email: Email address this OTP is for.
        code_hash: SHA-256 of the numeric code.
        purpose: Purpose of OTP (EMAIL_VERIFICATION, PASSWORD_RESET).
        expires_at: When the OTP expires (10 minutes from creation by default).
        is_used / used_at: Consumption marker.
        failed_attempts: Wrong guesses against the current code.
        created_at: Issue timestamp, also used for the resend cooldown.
    """

    __tablename__ = "otp_codes"
    __table_args__ = (
        UniqueConstraint("email", "purpose", name="uq_otp_codes_email_purpose"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        index=True,
        nullable=False,
    )
    code_hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )
    purpose: Mapped[OTPPurpose] = mapped_column(
        Enum(OTPPurpose, name="otp_purpose", create_constraint=True),
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    used_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    is_used: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )
    failed_attempts: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<OTPCode(id={self.id}, email={self.email}, purpose={self.purpose})>"
