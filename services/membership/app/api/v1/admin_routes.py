"""Admin routes: payment verification, trainer assignment and expiry checks."""

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from app.core.security import require_admin
from app.dependencies import get_db
from app.repository import notification_repository
from app.schemas import (
    AssignTrainerRequest,
    AuditLogResponse,
    ExpirySweepResponse,
    MembershipResponse,
    MembershipStateResponse,
    NotificationIntentResponse,
    RejectRequest,
    TransitionResult,
)
from app.services import MembershipLifecycleService

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/memberships/{membership_id}/state", response_model=MembershipStateResponse)
def get_membership_state(
    membership_id: int,
    admin_id: int = Depends(require_admin),
    db: Session = Depends(get_db),
):
    service = MembershipLifecycleService(db)
    return service.get_membership_state(membership_id)


@router.get("/memberships/{membership_id}/audit-log", response_model=list[AuditLogResponse])
def list_audit_log(
    membership_id: int,
    admin_id: int = Depends(require_admin),
    db: Session = Depends(get_db),
):
    service = MembershipLifecycleService(db)
    return service.list_audit_trail(membership_id)


@router.post("/memberships/{membership_id}/approve", response_model=MembershipResponse)
def approve_membership(
    membership_id: int,
    background_tasks: BackgroundTasks,
    admin_id: int = Depends(require_admin),
    db: Session = Depends(get_db),
):
    service = MembershipLifecycleService(db)
    return service.approve(membership_id, admin_id, background_tasks=background_tasks)


@router.post("/memberships/{membership_id}/reject", response_model=MembershipResponse)
def reject_membership(
    membership_id: int,
    payload: RejectRequest,
    background_tasks: BackgroundTasks,
    admin_id: int = Depends(require_admin),
    db: Session = Depends(get_db),
):
    service = MembershipLifecycleService(db)
    return service.reject(
        membership_id, payload.reason, admin_id, background_tasks=background_tasks
    )


@router.post("/memberships/{membership_id}/assign-trainer", response_model=MembershipStateResponse)
def assign_trainer(
    membership_id: int,
    payload: AssignTrainerRequest,
    background_tasks: BackgroundTasks,
    admin_id: int = Depends(require_admin),
    db: Session = Depends(get_db),
):
    service = MembershipLifecycleService(db)
    service.assign_included_trainer(
        membership_id, payload.trainer_id, admin_id, background_tasks=background_tasks
    )
    return service.get_membership_state(membership_id)


@router.post("/memberships/{membership_id}/transition-expired", response_model=TransitionResult)
def transition_expired(
    membership_id: int,
    background_tasks: BackgroundTasks,
    admin_id: int = Depends(require_admin),
    db: Session = Depends(get_db),
):
    service = MembershipLifecycleService(db)
    outcome = service.transition_expired(membership_id, background_tasks=background_tasks)
    return TransitionResult(
        membership_id=outcome.membership_id,
        previous_status=outcome.previous_status,
        status=outcome.status,
        changed=outcome.changed,
        actions=outcome.actions,
    )


@router.post("/expiries/check", response_model=ExpirySweepResponse)
def check_expiries(
    background_tasks: BackgroundTasks,
    admin_id: int = Depends(require_admin),
    db: Session = Depends(get_db),
):
    service = MembershipLifecycleService(db)
    return service.sweep_expiries(background_tasks=background_tasks)


@router.get("/notifications", response_model=list[NotificationIntentResponse])
def list_notifications(
    membership_id: Optional[int] = Query(default=None),
    intent_type: Optional[str] = Query(default=None, alias="type"),
    after_id: Optional[int] = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    admin_id: int = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return notification_repository.list_intents(
        db,
        membership_id=membership_id,
        intent_type=intent_type,
        after_id=after_id,
        limit=limit,
    )
