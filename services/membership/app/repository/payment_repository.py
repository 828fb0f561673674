"""Database helpers for membership payment persistence."""

from __future__ import annotations

from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from app.models.payment import Payment
from app.models.statuses import PaymentStatus


def list_payments_by_membership(db: Session, membership_id: int) -> List[Payment]:
    return (
        db.query(Payment)
        .filter(Payment.membership_id == membership_id)
        .order_by(Payment.created_at.desc(), Payment.id.desc())
        .all()
    )


def list_pending_payments(db: Session, membership_id: int) -> List[Payment]:
    """Pending payments for a membership, most recent first."""

    return (
        db.query(Payment)
        .filter(
            Payment.membership_id == membership_id,
            Payment.status == PaymentStatus.PENDING,
        )
        .order_by(Payment.created_at.desc(), Payment.id.desc())
        .all()
    )


def has_pending_payment(
    db: Session, membership_id: int, purposes: Optional[Iterable[str]] = None
) -> bool:
    query = db.query(Payment.id).filter(
        Payment.membership_id == membership_id,
        Payment.status == PaymentStatus.PENDING,
    )
    if purposes is not None:
        query = query.filter(Payment.payment_purpose.in_(list(purposes)))
    return query.first() is not None


def create_payment(db: Session, payment: Payment) -> Payment:
    db.add(payment)
    db.flush()
    return payment


def delete_payment(db: Session, payment: Payment) -> None:
    db.delete(payment)
    db.flush()


__all__ = [
    "list_payments_by_membership",
    "list_pending_payments",
    "has_pending_payment",
    "create_payment",
    "delete_payment",
]
