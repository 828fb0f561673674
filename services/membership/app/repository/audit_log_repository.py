from typing import List

from sqlalchemy.orm import Session

from app.models.audit_log import MembershipAuditLog


def create_audit_log(db: Session, audit_log: MembershipAuditLog) -> MembershipAuditLog:
    db.add(audit_log)
    db.flush()
    return audit_log


def list_audit_logs(db: Session, membership_id: int) -> List[MembershipAuditLog]:
    return (
        db.query(MembershipAuditLog)
        .filter(MembershipAuditLog.membership_id == membership_id)
        .order_by(MembershipAuditLog.id_log)
        .all()
    )
