from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from app.models.notification_intent import NotificationIntent


def create_intent(db: Session, intent: NotificationIntent) -> NotificationIntent:
    db.add(intent)
    db.flush()
    return intent


def list_intents(
    db: Session,
    *,
    membership_id: Optional[int] = None,
    intent_type: Optional[str] = None,
    after_id: Optional[int] = None,
    limit: int = 100,
) -> List[NotificationIntent]:
    query = db.query(NotificationIntent)

    if membership_id is not None:
        query = query.filter(NotificationIntent.membership_id == membership_id)
    if intent_type is not None:
        query = query.filter(NotificationIntent.intent_type == intent_type)
    if after_id is not None:
        query = query.filter(NotificationIntent.id > after_id)

    return query.order_by(NotificationIntent.id).limit(limit).all()


def has_intent_since(
    db: Session,
    membership_id: int,
    intent_type: str,
    since: datetime,
) -> bool:
    return (
        db.query(NotificationIntent.id)
        .filter(
            NotificationIntent.membership_id == membership_id,
            NotificationIntent.intent_type == intent_type,
            NotificationIntent.created_at >= since,
        )
        .first()
        is not None
    )


__all__ = ["create_intent", "list_intents", "has_intent_since"]
