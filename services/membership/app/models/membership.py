"""SQLAlchemy models for the membership service."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, ForeignKey, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base
from app.models.statuses import MembershipStatus
from app.models.types import UTCDateTime, utcnow


class Membership(Base):
    """A member's purchase of a plan and the validity window it grants."""

    __tablename__ = "memberships"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    plan_name: Mapped[str] = mapped_column(String(100), nullable=False)
    plan_type: Mapped[str] = mapped_column(String(20), nullable=False)
    plan_mode: Mapped[str | None] = mapped_column(String(20), nullable=True)
    duration_months: Mapped[int] = mapped_column(Integer, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    status: Mapped[str] = mapped_column(
        String(30), nullable=False, default=MembershipStatus.AWAITING_PAYMENT, index=True
    )
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), default=utcnow, onupdate=utcnow, nullable=True
    )

    membership_start_date: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    membership_end_date: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    # Legacy columns still read by older screens; kept equal to membership_*.
    start_date: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    end_date: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    grace_period_end: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    trainer_assigned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    trainer_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("trainers.id"), nullable=True
    )
    trainer_period_end: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    trainer_grace_period_end: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True
    )
    trainer_addon: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    @property
    def effective_start_date(self) -> datetime | None:
        return self.membership_start_date or self.start_date

    @property
    def effective_end_date(self) -> datetime | None:
        return self.membership_end_date or self.end_date

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return (
            "Membership(id={id}, user_id={user}, plan_name={name!r}, status={status})"
        ).format(id=self.id, user=self.user_id, name=self.plan_name, status=self.status)


__all__ = ["Membership"]
