"""Structured notification intents handed to the notification fan-out."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base
from app.models.types import UTCDateTime, utcnow


class NotificationIntent(Base):
    __tablename__ = "notification_intents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    intent_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    membership_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("memberships.id"), nullable=False, index=True
    )
    payment_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    addon_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    assignment_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    recipient_user_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    human_summary: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), default=utcnow, server_default=func.now(), nullable=False
    )


__all__ = ["NotificationIntent"]
