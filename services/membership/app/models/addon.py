"""SQLAlchemy model for paid membership add-ons."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import ForeignKey, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base
from app.models.statuses import AddonStatus
from app.models.types import UTCDateTime, utcnow


class MembershipAddon(Base):
    __tablename__ = "membership_addons"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    membership_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("memberships.id"), nullable=False, index=True
    )
    payment_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("membership_payments.id"), nullable=True, index=True
    )
    addon_type: Mapped[str] = mapped_column(String(30), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=AddonStatus.PENDING)
    trainer_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("trainers.id"), nullable=True
    )
    duration_months: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utcnow, server_default=func.now(), nullable=False
    )


__all__ = ["MembershipAddon"]
