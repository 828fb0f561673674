"""SQLAlchemy model linking a trainer to a membership for a bounded period."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base
from app.models.statuses import AssignmentStatus
from app.models.types import UTCDateTime, utcnow


class TrainerAssignment(Base):
    """A trainer's access window for one member.

    ``period_end`` is always capped at the owning membership's end date.
    """

    __tablename__ = "trainer_assignments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    membership_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("memberships.id"), nullable=False, index=True
    )
    trainer_id: Mapped[int] = mapped_column(Integer, ForeignKey("trainers.id"), nullable=False)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    assignment_type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=AssignmentStatus.PENDING
    )
    period_start: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    period_end: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    payment_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("membership_payments.id"), nullable=True, index=True
    )
    addon_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("membership_addons.id"), nullable=True
    )
    is_renewal: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    requested_by_user: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), default=utcnow, onupdate=utcnow, nullable=True
    )


__all__ = ["TrainerAssignment"]
