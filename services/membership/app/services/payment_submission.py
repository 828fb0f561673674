"""Recording member payments against a membership.

A submission is all-or-nothing from the member's point of view even though
it spans several rows. The payment row is written first, the membership
status is moved with a conditional write, and the add-on rows follow. Any
failure after the payment exists is undone with compensating deletes in
reverse order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from fastapi import BackgroundTasks, status
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import (
    AddonCreationFailedError,
    AmountMismatchError,
    ConcurrentModificationError,
    DuplicatePendingError,
    EligibilityDeniedError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
)
from app.core.locks import MembershipLockRegistry, membership_locks
from app.models import Membership, Payment, Trainer
from app.models.statuses import MembershipStatus, PaymentPurpose, PaymentStatus, PlanType
from app.repository import membership_repository, payment_repository, trainer_repository
from app.schemas.payment import PaymentDetails, PaymentSubmission, TrainerRenewalSubmission
from app.services.addon_eligibility import (
    PlanConfiguration,
    is_in_gym_addon_available,
    is_trainer_addon_available,
    trainer_addon_months,
)
from app.services.addon_orchestrator import AddonOrchestrator
from app.services.dates import resolve_now
from app.services.fee_config import FeeConfigProvider
from app.services.notifications import IntentType, NotificationEmitter
from app.services.trainer_eligibility import (
    calculate_renewal_end_date,
    candidate_renewal_end,
    check_eligibility,
    effective_trainer_period_end,
    exceeds_membership_end,
    renewal_start,
)

logger = logging.getLogger(__name__)

AMOUNT_TOLERANCE = Decimal("1")


@dataclass
class SubmissionResult:
    membership: Membership
    payment: Payment
    expected_amount: Decimal
    addon_ids: List[int] = field(default_factory=list)
    assignment_ids: List[int] = field(default_factory=list)


def payment_purpose_for(membership: Membership, now: datetime) -> str:
    """Purpose of a membership payment, decided from the requested transition."""

    current_status = membership.status
    if current_status == MembershipStatus.AWAITING_PAYMENT:
        return PaymentPurpose.INITIAL_PURCHASE
    if current_status == MembershipStatus.GRACE_PERIOD:
        return PaymentPurpose.MEMBERSHIP_RENEWAL
    if current_status == MembershipStatus.ACTIVE:
        end = membership.effective_end_date
        # The expiry sweep may not have run yet.
        if end is not None and end <= now:
            return PaymentPurpose.MEMBERSHIP_RENEWAL
        raise InvalidStateError(
            "Membership is still active. Renewal opens once the current period ends.",
            current_status=current_status,
            membership_end_date=end,
        )
    if current_status == MembershipStatus.PENDING:
        message = "A payment for this membership is already awaiting verification."
    elif current_status == MembershipStatus.EXPIRED:
        message = "Membership has expired. Purchase a new membership instead."
    elif current_status == MembershipStatus.REJECTED:
        message = "Membership was rejected. Purchase a new membership instead."
    else:
        message = f"Payments cannot be submitted while the membership is '{current_status}'."
    raise InvalidStateError(message, current_status=current_status)


def check_amount(expected: Decimal, received: Decimal) -> None:
    if abs(Decimal(received) - Decimal(expected)) > AMOUNT_TOLERANCE:
        raise AmountMismatchError(
            f"Submitted amount {received} does not match the expected amount {expected}.",
            expected_amount=expected,
            received_amount=received,
        )


class PaymentSubmissionHandler:
    """Validates and records a single pending payment for a membership."""

    def __init__(
        self,
        db: Session,
        *,
        fees: Optional[FeeConfigProvider] = None,
        notifications: Optional[NotificationEmitter] = None,
        locks: Optional[MembershipLockRegistry] = None,
    ):
        self.db = db
        self.fees = fees or FeeConfigProvider(db)
        self.notifications = notifications or NotificationEmitter(db)
        self.locks = locks or membership_locks

    def _load_owned_membership(self, membership_id: int, user_id: int) -> Membership:
        membership = membership_repository.get_membership(self.db, membership_id)
        if membership is None:
            raise NotFoundError(f"Membership {membership_id} not found")
        if membership.user_id != user_id:
            raise UnauthorizedError(
                "Membership does not belong to the current user",
                status_code=status.HTTP_403_FORBIDDEN,
            )
        return membership

    def _get_active_trainer(self, trainer_id: int) -> Trainer:
        trainer = trainer_repository.get_trainer(self.db, trainer_id)
        if trainer is None or not trainer.is_active:
            raise EligibilityDeniedError(
                "Invalid or inactive trainer selected",
                trainer_id=trainer_id,
            )
        return trainer

    def _ensure_no_pending(self, membership_id: int) -> None:
        pending = payment_repository.list_pending_payments(self.db, membership_id)
        if pending:
            raise DuplicatePendingError(
                "A payment for this membership is already awaiting verification.",
                pending_payment_id=pending[0].id,
            )

    def _insert_payment(
        self, membership: Membership, details: PaymentDetails, purpose: str
    ) -> Payment:
        payment = Payment(
            membership_id=membership.id,
            transaction_id=details.transaction_id,
            payment_date=details.payment_date,
            amount=details.amount,
            screenshot_path=details.screenshot_path,
            payment_method="qr_code",
            status=PaymentStatus.PENDING,
            payment_purpose=purpose,
        )
        try:
            payment_repository.create_payment(self.db, payment)
            self.db.commit()
        except IntegrityError as exc:
            # Another process inserted a pending payment between check and insert.
            self.db.rollback()
            raise DuplicatePendingError(
                "A payment for this membership is already awaiting verification."
            ) from exc
        return payment

    def _move_status(
        self,
        membership_id: int,
        payment: Payment,
        *,
        expected_status: str,
        new_status: str,
        values: dict,
        now: datetime,
    ) -> None:
        swapped = membership_repository.compare_and_set_status(
            self.db,
            membership_id,
            expected_status=expected_status,
            new_status=new_status,
            values=values,
            now=now,
        )
        if swapped:
            self.db.commit()
            return

        logger.warning(
            "Membership %s changed while payment %s was being recorded; removing the payment",
            membership_id,
            payment.id,
        )
        self.db.rollback()
        payment_repository.delete_payment(self.db, payment)
        self.db.commit()
        raise ConcurrentModificationError(
            "The membership was modified by another request. Please review it and try again.",
            expected_status=expected_status,
        )

    def _compensate(
        self,
        orchestrator: AddonOrchestrator,
        payment: Payment,
        membership_id: int,
        *,
        moved_to: str,
        restore_status: str,
        restore_values: dict,
        now: datetime,
    ) -> None:
        self.db.rollback()
        self.notifications.discard()
        try:
            orchestrator.rollback()
            payment_repository.delete_payment(self.db, payment)
            if moved_to != restore_status or restore_values:
                restored = membership_repository.compare_and_set_status(
                    self.db,
                    membership_id,
                    expected_status=moved_to,
                    new_status=restore_status,
                    values=restore_values,
                    now=now,
                )
                if not restored:
                    logger.warning(
                        "Membership %s left %s during compensation; status not restored",
                        membership_id,
                        moved_to,
                    )
            self.db.commit()
        except SQLAlchemyError:
            logger.exception(
                "Compensation failed for membership %s, payment %s", membership_id, payment.id
            )
            self.db.rollback()
            return
        logger.warning(
            "Submission for membership %s rolled back; payment %s removed",
            membership_id,
            payment.id,
        )

    def submit_payment(
        self,
        membership_id: int,
        user_id: int,
        submission: PaymentSubmission,
        *,
        now: Optional[datetime] = None,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> SubmissionResult:
        """Initial purchase or membership renewal payment, with optional add-ons."""

        current = resolve_now(now)
        membership = self._load_owned_membership(membership_id, user_id)
        purpose = payment_purpose_for(membership, current)
        config = PlanConfiguration.from_membership(membership)
        selection = submission.addons

        in_gym_price: Optional[Decimal] = None
        if selection.in_gym:
            if not is_in_gym_addon_available(config):
                raise EligibilityDeniedError(
                    f"The in-gym add-on is not available for the {membership.plan_name} plan; "
                    "gym access is already included.",
                    plan_name=membership.plan_name,
                )
            in_gym_price = self.fees.admission_fee()

        trainer: Optional[Trainer] = None
        trainer_months = 0
        trainer_price = Decimal("0")
        if selection.personal_trainer:
            if not is_trainer_addon_available(config):
                raise EligibilityDeniedError(
                    f"The trainer add-on is not available for the {membership.plan_name} plan.",
                    plan_name=membership.plan_name,
                )
            trainer = self._get_active_trainer(selection.trainer_id)
            trainer_months = trainer_addon_months(config, selection.trainer_months)
            trainer_price = Decimal(trainer.price) * trainer_months

        expected = Decimal(membership.price) + (in_gym_price or Decimal("0")) + trainer_price
        check_amount(expected, submission.amount)

        previous_status = membership.status
        previous_mode = membership.plan_mode
        new_mode = PlanType.IN_GYM if selection.in_gym else (previous_mode or membership.plan_type)

        with self.locks.hold(membership.id):
            self._ensure_no_pending(membership.id)
            payment = self._insert_payment(membership, submission, purpose)
            self._move_status(
                membership.id,
                payment,
                expected_status=previous_status,
                new_status=MembershipStatus.PENDING,
                values={"plan_mode": new_mode},
                now=current,
            )

            orchestrator = AddonOrchestrator(self.db)
            try:
                if in_gym_price is not None:
                    orchestrator.create_in_gym_addon(membership, payment, in_gym_price)
                assignment = None
                if trainer is not None:
                    _, assignment = orchestrator.create_trainer_addon(
                        membership,
                        payment,
                        trainer,
                        months=trainer_months,
                        price=trainer_price,
                        now=current,
                    )
                self._emit_submitted(membership, payment, trainer, assignment)
                self.db.commit()
            except AddonCreationFailedError:
                self._compensate(
                    orchestrator,
                    payment,
                    membership.id,
                    moved_to=MembershipStatus.PENDING,
                    restore_status=previous_status,
                    restore_values={"plan_mode": previous_mode},
                    now=current,
                )
                raise
            except SQLAlchemyError as exc:
                self._compensate(
                    orchestrator,
                    payment,
                    membership.id,
                    moved_to=MembershipStatus.PENDING,
                    restore_status=previous_status,
                    restore_values={"plan_mode": previous_mode},
                    now=current,
                )
                raise AddonCreationFailedError(
                    "Could not record the add-ons for this payment; nothing was saved."
                ) from exc

        self.db.refresh(membership)
        self.db.refresh(payment)
        logger.info(
            "Payment %s (%s) submitted for membership %s by user %s",
            payment.id,
            purpose,
            membership.id,
            user_id,
        )
        self.notifications.dispatch(background_tasks)
        return SubmissionResult(
            membership=membership,
            payment=payment,
            expected_amount=expected,
            addon_ids=orchestrator.addon_ids,
            assignment_ids=orchestrator.assignment_ids,
        )

    def _emit_submitted(
        self,
        membership: Membership,
        payment: Payment,
        trainer: Optional[Trainer],
        assignment,
    ) -> None:
        if assignment is not None and trainer is not None:
            self.notifications.emit(
                IntentType.TRAINER_ASSIGNMENT_REQUESTED,
                membership.id,
                f"User {membership.user_id} requested trainer {trainer.name} for the "
                f"{membership.plan_name} membership. Assign trainer.",
                payment_id=payment.id,
                addon_id=assignment.addon_id,
                assignment_id=assignment.id,
            )
            return
        self.notifications.emit(
            IntentType.PAYMENT_SUBMITTED,
            membership.id,
            f"User {membership.user_id} submitted payment for the {membership.plan_name} "
            "membership. Please verify.",
            payment_id=payment.id,
        )

    def submit_trainer_renewal(
        self,
        membership_id: int,
        user_id: int,
        submission: TrainerRenewalSubmission,
        *,
        now: Optional[datetime] = None,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> SubmissionResult:
        """Buy or extend trainer access on an active membership.

        A first attach is capped at the membership end. A renewal whose end
        would fall after the membership end is refused before anything is
        written.
        """

        current = resolve_now(now)
        membership = self._load_owned_membership(membership_id, user_id)

        membership_end = membership.effective_end_date
        trainer_end = effective_trainer_period_end(membership)
        first_attach = not membership.trainer_assigned and trainer_end is None

        eligibility = check_eligibility(
            membership.status,
            membership_end,
            trainer_period_end=trainer_end,
            first_attach=first_attach,
            now=current,
        )
        if not eligibility.is_eligible:
            raise EligibilityDeniedError(
                eligibility.reason or "Trainer renewal is not available.",
                current_status=membership.status,
                max_renewal_days=eligibility.max_renewal_days,
                membership_end_date=membership_end,
            )

        months = submission.duration_months
        start = renewal_start(trainer_end, current)
        if not first_attach and exceeds_membership_end(start, months, membership_end):
            raise EligibilityDeniedError(
                f"A {months}-month renewal would end on "
                f"{candidate_renewal_end(start, months).date().isoformat()}, after the membership "
                f"ends on {membership_end.date().isoformat()}. At most "
                f"{eligibility.max_renewal_days} days can be renewed.",
                max_renewal_days=eligibility.max_renewal_days,
                membership_end_date=membership_end,
            )
        period_end = calculate_renewal_end_date(start, months, membership_end)

        trainer = self._get_active_trainer(submission.trainer_id)
        expected = Decimal(trainer.price) * months
        check_amount(expected, submission.amount)

        with self.locks.hold(membership.id):
            self._ensure_no_pending(membership.id)
            payment = self._insert_payment(
                membership, submission, PaymentPurpose.TRAINER_RENEWAL
            )
            self._move_status(
                membership.id,
                payment,
                expected_status=MembershipStatus.ACTIVE,
                new_status=MembershipStatus.ACTIVE,
                values={},
                now=current,
            )

            orchestrator = AddonOrchestrator(self.db)
            try:
                addon, assignment = orchestrator.create_trainer_addon(
                    membership,
                    payment,
                    trainer,
                    months=months,
                    price=expected,
                    now=current,
                    is_renewal=not first_attach,
                    period_start=start,
                    period_end=period_end,
                )
                intent_type = (
                    IntentType.TRAINER_ASSIGNMENT_REQUESTED
                    if first_attach
                    else IntentType.TRAINER_RENEWAL_SUBMITTED
                )
                self.notifications.emit(
                    intent_type,
                    membership.id,
                    f"User {membership.user_id} submitted a {months}-month trainer payment "
                    f"for {trainer.name}. Please verify.",
                    payment_id=payment.id,
                    addon_id=addon.id,
                    assignment_id=assignment.id,
                )
                self.db.commit()
            except AddonCreationFailedError:
                self._compensate(
                    orchestrator,
                    payment,
                    membership.id,
                    moved_to=MembershipStatus.ACTIVE,
                    restore_status=MembershipStatus.ACTIVE,
                    restore_values={},
                    now=current,
                )
                raise
            except SQLAlchemyError as exc:
                self._compensate(
                    orchestrator,
                    payment,
                    membership.id,
                    moved_to=MembershipStatus.ACTIVE,
                    restore_status=MembershipStatus.ACTIVE,
                    restore_values={},
                    now=current,
                )
                raise AddonCreationFailedError(
                    "Could not record the trainer add-on for this payment; nothing was saved."
                ) from exc

        self.db.refresh(membership)
        self.db.refresh(payment)
        logger.info(
            "Trainer payment %s submitted for membership %s (%s months, first attach=%s)",
            payment.id,
            membership.id,
            months,
            first_attach,
        )
        self.notifications.dispatch(background_tasks)
        return SubmissionResult(
            membership=membership,
            payment=payment,
            expected_amount=expected,
            addon_ids=orchestrator.addon_ids,
            assignment_ids=orchestrator.assignment_ids,
        )


__all__ = [
    "AMOUNT_TOLERANCE",
    "SubmissionResult",
    "PaymentSubmissionHandler",
    "payment_purpose_for",
    "check_amount",
]
