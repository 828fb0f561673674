"""Pydantic schemas for payment submissions."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class AddonSelection(BaseModel):
    in_gym: bool = False
    personal_trainer: bool = False
    trainer_id: Optional[int] = None
    trainer_months: int = Field(default=1, ge=1, le=36)

    @model_validator(mode="after")
    def _trainer_requires_id(self) -> "AddonSelection":
        if self.personal_trainer and self.trainer_id is None:
            raise ValueError("trainer_id is required when personal_trainer is selected")
        return self


class PaymentDetails(BaseModel):
    transaction_id: str = Field(min_length=1, max_length=100)
    payment_date: date
    amount: Decimal = Field(gt=0)
    screenshot_path: str = Field(min_length=1, max_length=500)

    @field_validator("transaction_id", "screenshot_path")
    @classmethod
    def _require_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class PaymentSubmission(PaymentDetails):
    addons: AddonSelection = Field(default_factory=AddonSelection)


class TrainerRenewalSubmission(PaymentDetails):
    trainer_id: int = Field(gt=0)
    duration_months: int = Field(ge=1, le=36)


class PaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    membership_id: int
    transaction_id: str
    payment_date: date
    amount: Decimal
    screenshot_path: str
    payment_method: str
    status: str
    payment_purpose: str
    created_at: datetime
    verified_at: Optional[datetime] = None
    verified_by: Optional[int] = None
    rejection_reason: Optional[str] = None


class SubmissionResponse(BaseModel):
    membership_id: int
    membership_status: str
    payment: PaymentResponse
    addon_ids: List[int] = Field(default_factory=list)
    assignment_ids: List[int] = Field(default_factory=list)
    expected_amount: Decimal
