"""SQLAlchemy 2.0 ORM table definitions for the profile store.

Uses the ``Mapped`` / ``mapped_column`` declaration style.  ``Base`` is
exported so the API can create tables on startup in local mode.
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import CheckConstraint, DateTime, Index, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    """Return the current UTC timestamp (timezone-aware)."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Shared declarative base for all Saga tables."""


class UserProfileTable(Base):
    """Stored user profile.

    ``role`` and ``subscription_tier`` mirror the identity provider's
    custom claims.  The tier resolver reads them only when a token's
    claims are missing (typically right after signup).
    """

    __tablename__ = "user_profiles"

    uid: Mapped[str] = mapped_column(String(128), primary_key=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    display_name: Mapped[str | None] = mapped_column(String(256), nullable=True)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default="user")
    subscription_tier: Mapped[str] = mapped_column(String(32), nullable=False, default="Explorer")
    stripe_customer_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint("role IN ('user', 'admin')", name="ck_user_profiles_role"),
        CheckConstraint(
            "subscription_tier IN ('Explorer', 'Growth', 'Transformation')",
            name="ck_user_profiles_tier",
        ),
        Index("ix_user_profiles_stripe_customer", "stripe_customer_id"),
    )
