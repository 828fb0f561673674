from __future__ import annotations

from typing import List, Optional

from sqlalchemy.orm import Session

from app.models.statuses import AssignmentStatus
from app.models.trainer_assignment import TrainerAssignment


def get_assignment(db: Session, assignment_id: int) -> Optional[TrainerAssignment]:
    return (
        db.query(TrainerAssignment)
        .filter(TrainerAssignment.id == assignment_id)
        .first()
    )


def list_assignments_by_payment(db: Session, payment_id: int) -> List[TrainerAssignment]:
    return (
        db.query(TrainerAssignment)
        .filter(TrainerAssignment.payment_id == payment_id)
        .order_by(TrainerAssignment.id)
        .all()
    )


def list_assignments_by_membership(
    db: Session,
    membership_id: int,
    *,
    status_filter: Optional[str] = None,
) -> List[TrainerAssignment]:
    query = db.query(TrainerAssignment).filter(
        TrainerAssignment.membership_id == membership_id
    )
    if status_filter is not None:
        query = query.filter(TrainerAssignment.status == status_filter)
    return query.order_by(TrainerAssignment.id).all()


def list_active_assignments(db: Session, membership_id: int) -> List[TrainerAssignment]:
    return list_assignments_by_membership(
        db, membership_id, status_filter=AssignmentStatus.ACTIVE
    )


def create_assignment(db: Session, assignment: TrainerAssignment) -> TrainerAssignment:
    db.add(assignment)
    db.flush()
    return assignment


def delete_assignment(db: Session, assignment: TrainerAssignment) -> None:
    db.delete(assignment)
    db.flush()


__all__ = [
    "get_assignment",
    "list_assignments_by_payment",
    "list_assignments_by_membership",
    "list_active_assignments",
    "create_assignment",
    "delete_assignment",
]
