"""Pydantic schemas for membership resources."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MembershipCreate(BaseModel):
    plan_name: str = Field(min_length=1, max_length=100)
    plan_type: Literal["online", "in_gym"]
    duration_months: int = Field(ge=1, le=36)
    price: Decimal = Field(gt=0)

    @field_validator("plan_name")
    @classmethod
    def _strip_plan_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Plan name must not be blank")
        return value


class MembershipResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    plan_name: str
    plan_type: str
    plan_mode: Optional[str] = None
    duration_months: int
    price: Decimal
    status: str
    rejection_reason: Optional[str] = None
    created_at: datetime
    membership_start_date: Optional[datetime] = None
    membership_end_date: Optional[datetime] = None
    grace_period_end: Optional[datetime] = None
    trainer_assigned: bool
    trainer_id: Optional[int] = None
    trainer_period_end: Optional[datetime] = None
    trainer_grace_period_end: Optional[datetime] = None
    trainer_addon: bool


class MembershipStateResponse(BaseModel):
    membership_id: int
    user_id: int
    status: str
    plan_name: str
    membership_start_date: Optional[datetime] = None
    membership_end_date: Optional[datetime] = None
    grace_period_end: Optional[datetime] = None
    trainer_assigned: bool
    trainer_id: Optional[int] = None
    trainer_period_end: Optional[datetime] = None
    effective_trainer_period_end: Optional[datetime] = None
    trainer_grace_period_end: Optional[datetime] = None
    trainer_access_status: str
    pending_payment_id: Optional[int] = None
    pending_payment_purpose: Optional[str] = None
    pending_addon_ids: List[int] = Field(default_factory=list)
    pending_assignment_ids: List[int] = Field(default_factory=list)


class AddonOptionsResponse(BaseModel):
    membership_id: int
    base_plan_type: str
    in_gym_available: bool
    trainer_available: bool
    fixed_trainer_months: Optional[int] = None
    in_gym_admission_fee: Decimal


class TrainerRenewalEligibilityResponse(BaseModel):
    membership_id: int
    is_eligible: bool
    reason: Optional[str] = None
    max_renewal_days: int
    remaining_plan_days: Optional[int] = None
    membership_end_date: Optional[datetime] = None
    trainer_period_end: Optional[datetime] = None


class RejectRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=500)

    @field_validator("reason")
    @classmethod
    def _require_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("A rejection reason is required")
        return value


class AssignTrainerRequest(BaseModel):
    trainer_id: int = Field(gt=0)


class TransitionResult(BaseModel):
    membership_id: int
    previous_status: str
    status: str
    changed: bool
    actions: List[str] = Field(default_factory=list)


class ExpirySweepResponse(BaseModel):
    checked: int = 0
    moved_to_grace_period: int = 0
    expired: int = 0
    trainer_grace_started: int = 0
    trainer_revoked: int = 0
    expiring_notices: int = 0
