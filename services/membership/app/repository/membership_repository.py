"""Data access helpers for memberships."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from app.models.membership import Membership
from app.models.statuses import MembershipStatus
from app.models.types import utcnow


def get_membership(db: Session, membership_id: int) -> Optional[Membership]:
    return db.query(Membership).filter(Membership.id == membership_id).first()


def list_memberships_by_user(db: Session, user_id: int) -> List[Membership]:
    return (
        db.query(Membership)
        .filter(Membership.user_id == user_id)
        .order_by(Membership.created_at.desc(), Membership.id.desc())
        .all()
    )


def list_memberships_by_status(
    db: Session, statuses: Iterable[str]
) -> List[Membership]:
    return (
        db.query(Membership)
        .filter(Membership.status.in_(list(statuses)))
        .order_by(Membership.id)
        .all()
    )


def list_sweep_candidates(db: Session) -> List[Membership]:
    return list_memberships_by_status(
        db, (MembershipStatus.ACTIVE, MembershipStatus.GRACE_PERIOD)
    )


def create_membership(db: Session, membership: Membership) -> Membership:
    db.add(membership)
    db.flush()
    return membership


def compare_and_set_status(
    db: Session,
    membership_id: int,
    *,
    expected_status: str,
    new_status: str,
    values: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> bool:
    """Update the membership only while its status still equals ``expected_status``.

    Returns ``False`` when another writer changed the status first; nothing is
    written in that case.
    """

    changes: Dict[str, Any] = dict(values or {})
    changes["status"] = new_status
    changes["updated_at"] = now or utcnow()

    updated = (
        db.query(Membership)
        .filter(
            Membership.id == membership_id,
            Membership.status == expected_status,
        )
        .update(changes, synchronize_session=False)
    )
    return updated == 1


__all__ = [
    "get_membership",
    "list_memberships_by_user",
    "list_memberships_by_status",
    "list_sweep_candidates",
    "create_membership",
    "compare_and_set_status",
]
