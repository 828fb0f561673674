"""Pydantic schemas for the membership service."""

from app.schemas.audit_log import AuditLogResponse
from app.schemas.fees import FeeResponse
from app.schemas.membership import (
    AddonOptionsResponse,
    AssignTrainerRequest,
    ExpirySweepResponse,
    MembershipCreate,
    MembershipResponse,
    MembershipStateResponse,
    RejectRequest,
    TrainerRenewalEligibilityResponse,
    TransitionResult,
)
from app.schemas.notification import NotificationIntentResponse
from app.schemas.payment import (
    AddonSelection,
    PaymentResponse,
    PaymentSubmission,
    SubmissionResponse,
    TrainerRenewalSubmission,
)

__all__ = [
    "AuditLogResponse",
    "FeeResponse",
    "AddonOptionsResponse",
    "AssignTrainerRequest",
    "ExpirySweepResponse",
    "MembershipCreate",
    "MembershipResponse",
    "MembershipStateResponse",
    "RejectRequest",
    "TrainerRenewalEligibilityResponse",
    "TransitionResult",
    "NotificationIntentResponse",
    "AddonSelection",
    "PaymentResponse",
    "PaymentSubmission",
    "SubmissionResponse",
    "TrainerRenewalSubmission",
]
