"""API routes for submitting membership and trainer payments."""

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.orm import Session

from app.core.security import get_current_user_id
from app.dependencies import get_db
from app.schemas import (
    PaymentResponse,
    PaymentSubmission,
    SubmissionResponse,
    TrainerRenewalSubmission,
)
from app.services import MembershipLifecycleService, PaymentSubmissionHandler
from app.services.payment_submission import SubmissionResult

router = APIRouter(prefix="/memberships", tags=["payments"])


def _to_response(result: SubmissionResult) -> SubmissionResponse:
    return SubmissionResponse(
        membership_id=result.membership.id,
        membership_status=result.membership.status,
        payment=PaymentResponse.model_validate(result.payment),
        addon_ids=result.addon_ids,
        assignment_ids=result.assignment_ids,
        expected_amount=result.expected_amount,
    )


@router.post(
    "/{membership_id}/submit-payment",
    response_model=SubmissionResponse,
    status_code=status.HTTP_201_CREATED,
)
def submit_payment(
    membership_id: int,
    submission: PaymentSubmission,
    background_tasks: BackgroundTasks,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    handler = PaymentSubmissionHandler(db)
    result = handler.submit_payment(
        membership_id, user_id, submission, background_tasks=background_tasks
    )
    return _to_response(result)


@router.post(
    "/{membership_id}/renew-trainer",
    response_model=SubmissionResponse,
    status_code=status.HTTP_201_CREATED,
)
def renew_trainer(
    membership_id: int,
    submission: TrainerRenewalSubmission,
    background_tasks: BackgroundTasks,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    handler = PaymentSubmissionHandler(db)
    result = handler.submit_trainer_renewal(
        membership_id, user_id, submission, background_tasks=background_tasks
    )
    return _to_response(result)


@router.get("/{membership_id}/payments", response_model=list[PaymentResponse])
def list_payments(
    membership_id: int,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    service = MembershipLifecycleService(db)
    return service.list_payments(membership_id, user_id)
