"""SQLAlchemy model for manually verified membership payments."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, ForeignKey, Index, Integer, Numeric, String, Text, func, text
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base
from app.models.statuses import PaymentStatus
from app.models.types import UTCDateTime, utcnow

_PENDING_ONLY = text("status = 'pending'")


class Payment(Base):
    """A screenshot + transaction id submitted by a member for verification."""

    __tablename__ = "membership_payments"
    __table_args__ = (
        # At most one pending payment per membership.
        Index(
            "uq_membership_payments_one_pending",
            "membership_id",
            unique=True,
            postgresql_where=_PENDING_ONLY,
            sqlite_where=_PENDING_ONLY,
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    membership_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("memberships.id"), nullable=False, index=True
    )
    transaction_id: Mapped[str] = mapped_column(String(100), nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    screenshot_path: Mapped[str] = mapped_column(String(500), nullable=False)
    payment_method: Mapped[str] = mapped_column(String(30), nullable=False, default="qr_code")
    status: Mapped[str] = mapped_column(
        String(30), nullable=False, default=PaymentStatus.PENDING
    )
    payment_purpose: Mapped[str] = mapped_column(String(30), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utcnow, server_default=func.now(), nullable=False
    )
    verified_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    verified_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return (
            "Payment(id={id}, membership_id={membership}, purpose={purpose}, status={status})"
        ).format(
            id=self.id,
            membership=self.membership_id,
            purpose=self.payment_purpose,
            status=self.status,
        )


__all__ = ["Payment"]
