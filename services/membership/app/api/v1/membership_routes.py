"""API routes for member-facing membership operations."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.security import get_current_user_id
from app.dependencies import get_db
from app.schemas import (
    AddonOptionsResponse,
    MembershipCreate,
    MembershipResponse,
    TrainerRenewalEligibilityResponse,
)
from app.services import MembershipLifecycleService

router = APIRouter(prefix="/memberships", tags=["memberships"])


@router.post("", response_model=MembershipResponse, status_code=status.HTTP_201_CREATED)
def create_membership(
    membership_in: MembershipCreate,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    service = MembershipLifecycleService(db)
    return service.create_membership(user_id, membership_in)


@router.get("/mine", response_model=list[MembershipResponse])
def list_my_memberships(
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    service = MembershipLifecycleService(db)
    return service.list_user_memberships(user_id)


@router.get("/{membership_id}", response_model=MembershipResponse)
def get_membership(
    membership_id: int,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    service = MembershipLifecycleService(db)
    return service.get_owned_membership(membership_id, user_id)


@router.get("/{membership_id}/addon-options", response_model=AddonOptionsResponse)
def get_addon_options(
    membership_id: int,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    service = MembershipLifecycleService(db)
    return service.addon_options(membership_id, user_id)


@router.get(
    "/{membership_id}/trainer-renewal-eligibility",
    response_model=TrainerRenewalEligibilityResponse,
)
def get_trainer_renewal_eligibility(
    membership_id: int,
    at: Optional[datetime] = Query(default=None, description="Evaluate at this instant"),
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    service = MembershipLifecycleService(db)
    return service.trainer_renewal_eligibility(membership_id, user_id, now=at)
