from __future__ import annotations

from typing import List, Optional

from sqlalchemy.orm import Session

from app.models.addon import MembershipAddon


def get_addon(db: Session, addon_id: int) -> Optional[MembershipAddon]:
    return db.query(MembershipAddon).filter(MembershipAddon.id == addon_id).first()


def list_addons_by_payment(db: Session, payment_id: int) -> List[MembershipAddon]:
    return (
        db.query(MembershipAddon)
        .filter(MembershipAddon.payment_id == payment_id)
        .order_by(MembershipAddon.id)
        .all()
    )


def list_addons_by_membership(db: Session, membership_id: int) -> List[MembershipAddon]:
    return (
        db.query(MembershipAddon)
        .filter(MembershipAddon.membership_id == membership_id)
        .order_by(MembershipAddon.id)
        .all()
    )


def create_addon(db: Session, addon: MembershipAddon) -> MembershipAddon:
    db.add(addon)
    db.flush()
    return addon


def delete_addon(db: Session, addon: MembershipAddon) -> None:
    db.delete(addon)
    db.flush()


__all__ = [
    "get_addon",
    "list_addons_by_payment",
    "list_addons_by_membership",
    "create_addon",
    "delete_addon",
]
