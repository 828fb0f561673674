"""Membership status state machine.

awaiting_payment -> pending -> active -> grace_period -> expired, with
pending -> rejected and grace_period -> pending (renewal payment) on the
side. Every status change goes through a conditional write so a transition
never overwrites a concurrent one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import BackgroundTasks, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import (
    ConcurrentModificationError,
    EligibilityDeniedError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
)
from app.models import Membership, MembershipAuditLog, Payment, TrainerAssignment
from app.models.statuses import (
    AddonStatus,
    AddonType,
    AssignmentStatus,
    AssignmentType,
    MembershipStatus,
    PaymentPurpose,
    PaymentStatus,
)
from app.repository import (
    addon_repository,
    audit_log_repository,
    membership_repository,
    notification_repository,
    payment_repository,
    trainer_assignment_repository,
    trainer_repository,
)
from app.schemas.membership import MembershipCreate
from app.services.addon_eligibility import (
    PlanConfiguration,
    base_plan_type,
    is_regular_monthly_plan,
    resolve_addon_options,
)
from app.services.addon_orchestrator import (
    activate_for_payment,
    expire_active_assignments,
    reject_for_payment,
)
from app.services.dates import add_days, add_months, days_until, resolve_now
from app.services.fee_config import FeeConfigProvider
from app.services.notifications import IntentType, NotificationEmitter
from app.services.trainer_eligibility import (
    TrainerRenewalEligibility,
    calculate_renewal_end_date,
    calculate_trainer_period,
    check_eligibility,
    effective_trainer_period_end,
    has_included_trainer,
    renewal_start,
    trainer_access_status,
    trainer_grace_period_end,
)

logger = logging.getLogger(__name__)

GRACE_PERIOD_DAYS = 15
EXPIRY_NOTICE_DAYS = 4
# Regular monthly renewals always restart a single month from approval.
REGULAR_RENEWAL_MONTHS = 1
MEMBERSHIP_PAYMENT_PURPOSES = (
    PaymentPurpose.INITIAL_PURCHASE,
    PaymentPurpose.MEMBERSHIP_RENEWAL,
)
TRAINER_PAYMENT_LAPSED_REASON = "The membership ended before the trainer payment was verified"


@dataclass
class TransitionOutcome:
    membership_id: int
    previous_status: str
    status: str
    actions: List[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.actions)


def activation_window(
    membership: Membership, purpose: str, now: datetime
) -> tuple[datetime, datetime]:
    """Start and end dates granted when a membership payment is approved."""

    if purpose == PaymentPurpose.INITIAL_PURCHASE:
        return now, add_months(now, membership.duration_months)

    if is_regular_monthly_plan(membership.plan_name):
        return now, add_months(now, REGULAR_RENEWAL_MONTHS)

    previous_end = membership.effective_end_date
    start = previous_end if previous_end is not None and previous_end > now else now
    return start, add_months(start, membership.duration_months)


class MembershipLifecycleService:
    """Owns membership status transitions and the admin-facing read model."""

    def __init__(
        self,
        db: Session,
        *,
        notifications: Optional[NotificationEmitter] = None,
    ):
        self.db = db
        self.notifications = notifications or NotificationEmitter(db)

    # Lookups

    def get_membership(self, membership_id: int) -> Membership:
        membership = membership_repository.get_membership(self.db, membership_id)
        if membership is None:
            raise NotFoundError(f"Membership {membership_id} not found")
        return membership

    def get_owned_membership(self, membership_id: int, user_id: int) -> Membership:
        membership = self.get_membership(membership_id)
        if membership.user_id != user_id:
            raise UnauthorizedError(
                "Membership does not belong to the current user",
                status_code=status.HTTP_403_FORBIDDEN,
            )
        return membership

    def list_user_memberships(self, user_id: int) -> List[Membership]:
        return membership_repository.list_memberships_by_user(self.db, user_id)

    def list_payments(self, membership_id: int, user_id: int) -> List[Payment]:
        self.get_owned_membership(membership_id, user_id)
        return payment_repository.list_payments_by_membership(self.db, membership_id)

    def list_audit_trail(self, membership_id: int) -> List[MembershipAuditLog]:
        self.get_membership(membership_id)
        return audit_log_repository.list_audit_logs(self.db, membership_id)

    # Purchase

    def create_membership(self, user_id: int, payload: MembershipCreate) -> Membership:
        membership = Membership(
            user_id=user_id,
            plan_name=payload.plan_name,
            plan_type=payload.plan_type,
            plan_mode=payload.plan_type,
            duration_months=payload.duration_months,
            price=payload.price,
            status=MembershipStatus.AWAITING_PAYMENT,
            trainer_assigned=False,
            trainer_addon=False,
        )
        try:
            membership_repository.create_membership(self.db, membership)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Failed to create membership for user %s", user_id)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to create membership",
            ) from exc
        self.db.refresh(membership)
        logger.info(
            "Membership %s (%s) created for user %s",
            membership.id,
            membership.plan_name,
            user_id,
        )
        return membership

    # Member-facing eligibility

    def addon_options(
        self, membership_id: int, user_id: int, fees: Optional[FeeConfigProvider] = None
    ) -> Dict[str, Any]:
        membership = self.get_owned_membership(membership_id, user_id)
        config = PlanConfiguration.from_membership(membership)
        options = resolve_addon_options(config)
        provider = fees or FeeConfigProvider(self.db)
        return {
            "membership_id": membership.id,
            "base_plan_type": base_plan_type(config),
            "in_gym_available": options.in_gym_available,
            "trainer_available": options.trainer_available,
            "fixed_trainer_months": options.fixed_trainer_months,
            "in_gym_admission_fee": provider.admission_fee(),
        }

    def trainer_renewal_eligibility(
        self, membership_id: int, user_id: int, *, now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        membership = self.get_owned_membership(membership_id, user_id)
        result = self._trainer_eligibility(membership, resolve_now(now))
        return {
            "membership_id": membership.id,
            "is_eligible": result.is_eligible,
            "reason": result.reason,
            "max_renewal_days": result.max_renewal_days,
            "remaining_plan_days": result.remaining_plan_days,
            "membership_end_date": membership.effective_end_date,
            "trainer_period_end": effective_trainer_period_end(membership),
        }

    def _trainer_eligibility(
        self, membership: Membership, now: datetime
    ) -> TrainerRenewalEligibility:
        trainer_end = effective_trainer_period_end(membership)
        return check_eligibility(
            membership.status,
            membership.effective_end_date,
            trainer_period_end=trainer_end,
            first_attach=not membership.trainer_assigned and trainer_end is None,
            now=now,
        )

    # Admin read model

    def get_membership_state(
        self, membership_id: int, *, now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        membership = self.get_membership(membership_id)
        current = resolve_now(now)
        pending = payment_repository.list_pending_payments(self.db, membership_id)
        pending_payment = pending[0] if pending else None

        pending_addon_ids: List[int] = []
        pending_assignment_ids: List[int] = []
        if pending_payment is not None:
            pending_addon_ids = [
                addon.id
                for addon in addon_repository.list_addons_by_payment(self.db, pending_payment.id)
                if addon.status == AddonStatus.PENDING
            ]
            pending_assignment_ids = [
                assignment.id
                for assignment in trainer_assignment_repository.list_assignments_by_payment(
                    self.db, pending_payment.id
                )
                if assignment.status == AssignmentStatus.PENDING
            ]

        effective_end = effective_trainer_period_end(membership)
        return {
            "membership_id": membership.id,
            "user_id": membership.user_id,
            "status": membership.status,
            "plan_name": membership.plan_name,
            "membership_start_date": membership.effective_start_date,
            "membership_end_date": membership.effective_end_date,
            "grace_period_end": membership.grace_period_end,
            "trainer_assigned": membership.trainer_assigned,
            "trainer_id": membership.trainer_id,
            "trainer_period_end": membership.trainer_period_end,
            "effective_trainer_period_end": effective_end,
            "trainer_grace_period_end": membership.trainer_grace_period_end,
            "trainer_access_status": trainer_access_status(
                membership.trainer_assigned,
                effective_end,
                membership.trainer_grace_period_end,
                now=current,
            ),
            "pending_payment_id": pending_payment.id if pending_payment else None,
            "pending_payment_purpose": (
                pending_payment.payment_purpose if pending_payment else None
            ),
            "pending_addon_ids": pending_addon_ids,
            "pending_assignment_ids": pending_assignment_ids,
        }

    # Approval / rejection

    def approve(
        self,
        membership_id: int,
        admin_id: int,
        *,
        now: Optional[datetime] = None,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> Membership:
        """Approve the most recent pending payment of a membership.

        Older pending payments, which can only exist if a duplicate slipped
        in, are rejected as superseded.
        """

        current = resolve_now(now)
        membership = self.get_membership(membership_id)
        pending = payment_repository.list_pending_payments(self.db, membership_id)
        if not pending:
            raise InvalidStateError(
                "There is no pending payment to approve for this membership.",
                current_status=membership.status,
            )
        payment, superseded = pending[0], pending[1:]

        if payment.payment_purpose == PaymentPurpose.TRAINER_RENEWAL:
            approve_payment = self._approve_trainer_payment
        else:
            approve_payment = self._approve_membership_payment

        try:
            for stale in superseded:
                self._reject_payment(
                    stale, f"Superseded by payment {payment.id}", admin_id, current
                )
            approve_payment(membership, payment, admin_id, current)
            self.db.commit()
        except (ConcurrentModificationError, InvalidStateError):
            self.db.rollback()
            raise
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Failed to approve membership %s", membership_id)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to approve membership",
            ) from exc

        self.db.refresh(membership)
        self.notifications.dispatch(background_tasks)
        return membership

    def _approve_membership_payment(
        self, membership: Membership, payment: Payment, admin_id: int, now: datetime
    ) -> None:
        if membership.status != MembershipStatus.PENDING:
            raise InvalidStateError(
                f"Only pending memberships can be approved; this one is '{membership.status}'.",
                current_status=membership.status,
            )

        start, end = activation_window(membership, payment.payment_purpose, now)
        self._verify_payment(payment, admin_id, now)

        values: Dict[str, Any] = {
            "membership_start_date": start,
            "membership_end_date": end,
            "start_date": start,
            "end_date": end,
            "grace_period_end": None,
            "rejection_reason": None,
        }

        trainer_addons = [
            addon
            for addon in addon_repository.list_addons_by_payment(self.db, payment.id)
            if addon.addon_type == AddonType.PERSONAL_TRAINER
            and addon.status == AddonStatus.PENDING
        ]
        fixed_end = None
        if trainer_addons:
            period = calculate_trainer_period(
                start,
                membership.plan_name,
                has_addon=True,
                addon_months=trainer_addons[0].duration_months or 1,
                membership_end=end,
            )
            fixed_end = period.period_end

        activated = activate_for_payment(
            self.db,
            payment,
            period_start=start,
            membership_end=end,
            fixed_period_end=fixed_end,
        )
        if activated:
            assignment = activated[-1]
            values.update(
                trainer_assigned=True,
                trainer_id=assignment.trainer_id,
                trainer_period_end=assignment.period_end,
                trainer_grace_period_end=None,
                trainer_addon=True,
            )

        swapped = membership_repository.compare_and_set_status(
            self.db,
            membership.id,
            expected_status=MembershipStatus.PENDING,
            new_status=MembershipStatus.ACTIVE,
            values=values,
            now=now,
        )
        if not swapped:
            raise ConcurrentModificationError(
                "The membership was modified by another request. Reload it and try again.",
                expected_status=MembershipStatus.PENDING,
            )

        renewal = payment.payment_purpose == PaymentPurpose.MEMBERSHIP_RENEWAL
        self._audit(
            membership.id,
            "renewal_approved" if renewal else "membership_approved",
            f"Payment {payment.id} approved; valid {start.date()} to {end.date()}",
            MembershipStatus.PENDING,
            MembershipStatus.ACTIVE,
            admin_id,
        )
        self.notifications.emit(
            IntentType.MEMBERSHIP_APPROVED,
            membership.id,
            f"Your {membership.plan_name} membership is active until {end.date().isoformat()}.",
            payment_id=payment.id,
            assignment_id=activated[-1].id if activated else None,
            recipient_user_id=membership.user_id,
        )
        logger.info(
            "Membership %s approved by admin %s (payment %s, %s)",
            membership.id,
            admin_id,
            payment.id,
            payment.payment_purpose,
        )

    def _approve_trainer_payment(
        self, membership: Membership, payment: Payment, admin_id: int, now: datetime
    ) -> None:
        membership_end = membership.effective_end_date
        if membership.status != MembershipStatus.ACTIVE:
            raise InvalidStateError(
                "Trainer payments can only be approved on an active membership.",
                current_status=membership.status,
            )
        if membership_end is None or membership_end <= now:
            raise InvalidStateError(
                "The membership has already ended; trainer access cannot be extended.",
                current_status=membership.status,
                membership_end_date=membership_end,
            )

        trainer_addons = [
            addon
            for addon in addon_repository.list_addons_by_payment(self.db, payment.id)
            if addon.addon_type == AddonType.PERSONAL_TRAINER
        ]
        months = trainer_addons[0].duration_months if trainer_addons else None
        start = renewal_start(effective_trainer_period_end(membership), now)
        end = calculate_renewal_end_date(start, months or 1, membership_end)

        self._verify_payment(payment, admin_id, now)
        activated = activate_for_payment(
            self.db,
            payment,
            period_start=start,
            membership_end=membership_end,
            fixed_period_end=end,
        )

        values: Dict[str, Any] = {
            "trainer_period_end": end,
            "trainer_grace_period_end": None,
            "trainer_assigned": True,
            "trainer_addon": True,
        }
        if activated:
            values["trainer_id"] = activated[-1].trainer_id

        swapped = membership_repository.compare_and_set_status(
            self.db,
            membership.id,
            expected_status=MembershipStatus.ACTIVE,
            new_status=MembershipStatus.ACTIVE,
            values=values,
            now=now,
        )
        if not swapped:
            raise ConcurrentModificationError(
                "The membership was modified by another request. Reload it and try again.",
                expected_status=MembershipStatus.ACTIVE,
            )

        self._audit(
            membership.id,
            "trainer_renewal_approved",
            f"Trainer payment {payment.id} approved; trainer access until {end.date()}",
            MembershipStatus.ACTIVE,
            MembershipStatus.ACTIVE,
            admin_id,
        )
        self.notifications.emit(
            IntentType.TRAINER_RENEWAL_APPROVED,
            membership.id,
            f"Your trainer access is active until {end.date().isoformat()}.",
            payment_id=payment.id,
            assignment_id=activated[-1].id if activated else None,
            recipient_user_id=membership.user_id,
        )
        logger.info(
            "Trainer payment %s approved for membership %s by admin %s",
            payment.id,
            membership.id,
            admin_id,
        )

    def reject(
        self,
        membership_id: int,
        reason: str,
        admin_id: int,
        *,
        now: Optional[datetime] = None,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> Membership:
        current = resolve_now(now)
        reason = (reason or "").strip()
        if not reason:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="A rejection reason is required",
            )

        membership = self.get_membership(membership_id)
        pending = payment_repository.list_pending_payments(self.db, membership_id)
        if not pending:
            raise InvalidStateError(
                "There is no pending payment to reject for this membership.",
                current_status=membership.status,
            )
        payment = pending[0]
        trainer_payment = payment.payment_purpose == PaymentPurpose.TRAINER_RENEWAL

        try:
            if trainer_payment:
                self._reject_payment(payment, reason, admin_id, current)
                self._audit(
                    membership.id,
                    "trainer_renewal_rejected",
                    f"Trainer payment {payment.id} rejected: {reason}",
                    membership.status,
                    membership.status,
                    admin_id,
                )
                self.notifications.emit(
                    IntentType.TRAINER_RENEWAL_REJECTED,
                    membership.id,
                    f"Your trainer payment was rejected: {reason}",
                    payment_id=payment.id,
                    recipient_user_id=membership.user_id,
                )
            else:
                if membership.status != MembershipStatus.PENDING:
                    raise InvalidStateError(
                        f"Only pending memberships can be rejected; this one is '{membership.status}'.",
                        current_status=membership.status,
                    )
                for stale in pending:
                    self._reject_payment(stale, reason, admin_id, current)
                swapped = membership_repository.compare_and_set_status(
                    self.db,
                    membership.id,
                    expected_status=MembershipStatus.PENDING,
                    new_status=MembershipStatus.REJECTED,
                    values={"rejection_reason": reason},
                    now=current,
                )
                if not swapped:
                    raise ConcurrentModificationError(
                        "The membership was modified by another request. Reload it and try again.",
                        expected_status=MembershipStatus.PENDING,
                    )
                self._audit(
                    membership.id,
                    "membership_rejected",
                    f"Payment {payment.id} rejected: {reason}",
                    MembershipStatus.PENDING,
                    MembershipStatus.REJECTED,
                    admin_id,
                )
                self.notifications.emit(
                    IntentType.MEMBERSHIP_REJECTED,
                    membership.id,
                    f"Your {membership.plan_name} membership payment was rejected: {reason}",
                    payment_id=payment.id,
                    recipient_user_id=membership.user_id,
                )
            self.db.commit()
        except (ConcurrentModificationError, InvalidStateError):
            self.db.rollback()
            raise
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Failed to reject membership %s", membership_id)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to reject membership",
            ) from exc

        self.db.refresh(membership)
        logger.info(
            "Payment %s for membership %s rejected by admin %s",
            payment.id,
            membership.id,
            admin_id,
        )
        self.notifications.dispatch(background_tasks)
        return membership

    def _verify_payment(self, payment: Payment, admin_id: int, now: datetime) -> None:
        payment.status = PaymentStatus.VERIFIED
        payment.verified_at = now
        payment.verified_by = admin_id
        self.db.flush()

    def _reject_payment(
        self, payment: Payment, reason: str, admin_id: Optional[int], now: datetime
    ) -> None:
        payment.status = PaymentStatus.REJECTED
        payment.rejection_reason = reason
        payment.verified_at = now
        payment.verified_by = admin_id
        self.db.flush()
        reject_for_payment(self.db, payment)

    # Included trainer access

    def assign_included_trainer(
        self,
        membership_id: int,
        trainer_id: int,
        admin_id: int,
        *,
        now: Optional[datetime] = None,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> TrainerAssignment:
        current = resolve_now(now)
        membership = self.get_membership(membership_id)
        membership_end = membership.effective_end_date

        if membership.status != MembershipStatus.ACTIVE:
            raise InvalidStateError(
                "Trainers can only be assigned to active memberships.",
                current_status=membership.status,
            )
        if membership_end is None or membership_end <= current:
            raise InvalidStateError(
                "The membership has already ended.",
                current_status=membership.status,
                membership_end_date=membership_end,
            )
        if not has_included_trainer(membership.plan_name):
            raise EligibilityDeniedError(
                f"The {membership.plan_name} plan does not include trainer access.",
                plan_name=membership.plan_name,
            )
        already_granted = [
            assignment
            for assignment in trainer_assignment_repository.list_assignments_by_membership(
                self.db, membership_id
            )
            if assignment.assignment_type == AssignmentType.PLAN_INCLUDED
            and assignment.status in (AssignmentStatus.ACTIVE, AssignmentStatus.EXPIRED)
        ]
        if already_granted:
            raise InvalidStateError(
                "Included trainer access was already granted for this membership.",
                current_status=membership.status,
            )

        trainer = trainer_repository.get_trainer(self.db, trainer_id)
        if trainer is None or not trainer.is_active:
            raise EligibilityDeniedError(
                "Invalid or inactive trainer selected", trainer_id=trainer_id
            )

        period = calculate_trainer_period(
            current,
            membership.plan_name,
            has_addon=False,
            membership_end=membership_end,
        )
        existing_end = effective_trainer_period_end(membership)
        trainer_end = period.period_end
        if membership.trainer_assigned and existing_end is not None and existing_end > trainer_end:
            trainer_end = existing_end

        assignment = TrainerAssignment(
            membership_id=membership.id,
            trainer_id=trainer.id,
            user_id=membership.user_id,
            assignment_type=AssignmentType.PLAN_INCLUDED,
            status=AssignmentStatus.ACTIVE,
            period_start=period.period_start,
            period_end=period.period_end,
            is_renewal=False,
            requested_by_user=False,
        )
        try:
            trainer_assignment_repository.create_assignment(self.db, assignment)
            swapped = membership_repository.compare_and_set_status(
                self.db,
                membership.id,
                expected_status=MembershipStatus.ACTIVE,
                new_status=MembershipStatus.ACTIVE,
                values={
                    "trainer_assigned": True,
                    "trainer_id": trainer.id,
                    "trainer_period_end": trainer_end,
                    "trainer_grace_period_end": None,
                },
                now=current,
            )
            if not swapped:
                raise ConcurrentModificationError(
                    "The membership was modified by another request. Reload it and try again.",
                    expected_status=MembershipStatus.ACTIVE,
                )
            self._audit(
                membership.id,
                "trainer_assigned",
                f"Trainer {trainer.name} assigned until {period.period_end.date()}",
                MembershipStatus.ACTIVE,
                MembershipStatus.ACTIVE,
                admin_id,
            )
            self.notifications.emit(
                IntentType.TRAINER_ASSIGNED,
                membership.id,
                f"{trainer.name} is your trainer until {period.period_end.date().isoformat()}.",
                assignment_id=assignment.id,
                recipient_user_id=membership.user_id,
            )
            self.db.commit()
        except ConcurrentModificationError:
            self.db.rollback()
            raise
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Failed to assign trainer to membership %s", membership_id)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to assign trainer",
            ) from exc

        self.db.refresh(assignment)
        logger.info(
            "Trainer %s assigned to membership %s by admin %s",
            trainer.id,
            membership.id,
            admin_id,
        )
        self.notifications.dispatch(background_tasks)
        return assignment

    # Expiry

    def transition_expired(
        self,
        membership_id: int,
        *,
        now: Optional[datetime] = None,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> TransitionOutcome:
        """Advance one membership along the expiry path if its dates say so.

        Safe to call repeatedly: a membership with nothing due, including an
        already expired one, is left untouched.
        """

        current = resolve_now(now)
        membership = self.get_membership(membership_id)
        outcome = TransitionOutcome(
            membership_id=membership.id,
            previous_status=membership.status,
            status=membership.status,
        )

        try:
            if membership.status == MembershipStatus.ACTIVE:
                if self._enter_grace_period(membership, current):
                    outcome.actions.append("moved_to_grace_period")
                else:
                    outcome.actions.extend(self._check_trainer_access(membership, current))

            if membership.status == MembershipStatus.GRACE_PERIOD:
                outcome.actions.extend(self._expire_after_grace(membership, current))

            if outcome.changed:
                self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Expiry transition failed for membership %s", membership_id)
            raise

        if outcome.changed:
            self.db.refresh(membership)
            logger.info(
                "Membership %s expiry check: %s -> %s (%s)",
                membership.id,
                outcome.previous_status,
                membership.status,
                ", ".join(outcome.actions),
            )
            self.notifications.dispatch(background_tasks)
        outcome.status = membership.status
        return outcome

    def _enter_grace_period(self, membership: Membership, now: datetime) -> bool:
        end = membership.effective_end_date
        if end is None or end > now:
            return False

        grace_end = add_days(end, GRACE_PERIOD_DAYS)
        swapped = membership_repository.compare_and_set_status(
            self.db,
            membership.id,
            expected_status=MembershipStatus.ACTIVE,
            new_status=MembershipStatus.GRACE_PERIOD,
            values={"grace_period_end": grace_end},
            now=now,
        )
        if not swapped:
            return False

        self.db.expire(membership)
        self._audit(
            membership.id,
            "grace_period_started",
            f"Membership ended {end.date()}; grace period until {grace_end.date()}",
            MembershipStatus.ACTIVE,
            MembershipStatus.GRACE_PERIOD,
            None,
        )
        self._reject_stranded_trainer_payments(membership, now)
        self.notifications.emit(
            IntentType.MEMBERSHIP_GRACE_PERIOD,
            membership.id,
            f"Your {membership.plan_name} membership has ended. Renew before "
            f"{grace_end.date().isoformat()} to keep it.",
            recipient_user_id=membership.user_id,
        )
        return True

    def _reject_stranded_trainer_payments(self, membership: Membership, now: datetime) -> None:
        """Trainer payments can only be approved on an active membership."""

        for payment in payment_repository.list_pending_payments(self.db, membership.id):
            if payment.payment_purpose != PaymentPurpose.TRAINER_RENEWAL:
                continue
            self._reject_payment(payment, TRAINER_PAYMENT_LAPSED_REASON, None, now)
            self._audit(
                membership.id,
                "trainer_renewal_rejected",
                f"Trainer payment {payment.id} rejected: {TRAINER_PAYMENT_LAPSED_REASON}",
                MembershipStatus.GRACE_PERIOD,
                MembershipStatus.GRACE_PERIOD,
                None,
            )
            self.notifications.emit(
                IntentType.TRAINER_RENEWAL_REJECTED,
                membership.id,
                f"Your trainer payment was rejected: {TRAINER_PAYMENT_LAPSED_REASON}",
                payment_id=payment.id,
                recipient_user_id=membership.user_id,
            )
            logger.info(
                "Pending trainer payment %s for membership %s rejected on grace entry",
                payment.id,
                membership.id,
            )

    def _expire_after_grace(self, membership: Membership, now: datetime) -> List[str]:
        end = membership.effective_end_date
        grace_end = membership.grace_period_end
        if grace_end is None and end is not None:
            grace_end = add_days(end, GRACE_PERIOD_DAYS)
        if grace_end is None or grace_end > now:
            return []
        if payment_repository.has_pending_payment(
            self.db, membership.id, purposes=MEMBERSHIP_PAYMENT_PURPOSES
        ):
            return []

        values: Dict[str, Any] = {}
        revoke_trainer = is_regular_monthly_plan(membership.plan_name) and (
            membership.trainer_assigned
            or trainer_assignment_repository.list_active_assignments(self.db, membership.id)
        )
        if revoke_trainer:
            values.update(trainer_assigned=False, trainer_grace_period_end=None)

        swapped = membership_repository.compare_and_set_status(
            self.db,
            membership.id,
            expected_status=MembershipStatus.GRACE_PERIOD,
            new_status=MembershipStatus.EXPIRED,
            values=values,
            now=now,
        )
        if not swapped:
            return []

        actions = ["expired"]
        self.db.expire(membership)
        self._audit(
            membership.id,
            "membership_expired",
            f"Grace period ended {grace_end.date()} without renewal",
            MembershipStatus.GRACE_PERIOD,
            MembershipStatus.EXPIRED,
            None,
        )
        self.notifications.emit(
            IntentType.MEMBERSHIP_EXPIRED,
            membership.id,
            f"Your {membership.plan_name} membership has expired.",
            recipient_user_id=membership.user_id,
        )
        if revoke_trainer:
            expire_active_assignments(self.db, membership.id)
            actions.append("trainer_revoked")
            self.notifications.emit(
                IntentType.TRAINER_ACCESS_REVOKED,
                membership.id,
                "Trainer access ended together with your regular monthly membership.",
                recipient_user_id=membership.user_id,
            )
        return actions

    def _check_trainer_access(self, membership: Membership, now: datetime) -> List[str]:
        if not membership.trainer_assigned:
            return []
        trainer_end = effective_trainer_period_end(membership)
        if trainer_end is None or trainer_end > now:
            return []

        grace_end = membership.trainer_grace_period_end
        if grace_end is None:
            grace_end = trainer_grace_period_end(trainer_end)
            swapped = membership_repository.compare_and_set_status(
                self.db,
                membership.id,
                expected_status=MembershipStatus.ACTIVE,
                new_status=MembershipStatus.ACTIVE,
                values={"trainer_grace_period_end": grace_end},
                now=now,
            )
            if not swapped:
                return []
            self.db.expire(membership)
            self.notifications.emit(
                IntentType.TRAINER_GRACE_PERIOD,
                membership.id,
                "Your trainer period has ended. Renew before "
                f"{grace_end.date().isoformat()} to keep your trainer.",
                recipient_user_id=membership.user_id,
            )
            if grace_end > now:
                return ["trainer_grace_started"]

        if grace_end > now:
            return []

        swapped = membership_repository.compare_and_set_status(
            self.db,
            membership.id,
            expected_status=MembershipStatus.ACTIVE,
            new_status=MembershipStatus.ACTIVE,
            values={"trainer_assigned": False},
            now=now,
        )
        if not swapped:
            return []
        self.db.expire(membership)
        expire_active_assignments(self.db, membership.id)
        self._audit(
            membership.id,
            "trainer_revoked",
            f"Trainer grace period ended {grace_end.date()}",
            MembershipStatus.ACTIVE,
            MembershipStatus.ACTIVE,
            None,
        )
        self.notifications.emit(
            IntentType.TRAINER_ACCESS_REVOKED,
            membership.id,
            "Your trainer access has ended.",
            recipient_user_id=membership.user_id,
        )
        return ["trainer_revoked"]

    def sweep_expiries(
        self,
        *,
        now: Optional[datetime] = None,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> Dict[str, int]:
        current = resolve_now(now)
        counts = {
            "checked": 0,
            "moved_to_grace_period": 0,
            "expired": 0,
            "trainer_grace_started": 0,
            "trainer_revoked": 0,
            "expiring_notices": 0,
        }

        candidate_ids = [m.id for m in membership_repository.list_sweep_candidates(self.db)]
        for membership_id in candidate_ids:
            counts["checked"] += 1
            try:
                outcome = self.transition_expired(
                    membership_id, now=current, background_tasks=background_tasks
                )
            except SQLAlchemyError:
                continue
            for action in outcome.actions:
                if action in counts:
                    counts[action] += 1

        counts["expiring_notices"] = self._emit_expiry_notices(current)
        if counts["expiring_notices"]:
            self.db.commit()
            self.notifications.dispatch(background_tasks)

        logger.info("Expiry sweep finished: %s", counts)
        return counts

    def _emit_expiry_notices(self, now: datetime) -> int:
        sent = 0
        active = membership_repository.list_memberships_by_status(
            self.db, (MembershipStatus.ACTIVE,)
        )
        for membership in active:
            end = membership.effective_end_date
            if end is not None and end > now and days_until(end, now) <= EXPIRY_NOTICE_DAYS:
                if self._notify_once(
                    membership,
                    IntentType.MEMBERSHIP_EXPIRING,
                    end,
                    f"Your {membership.plan_name} membership ends on {end.date().isoformat()}.",
                    now,
                ):
                    sent += 1

            trainer_end = effective_trainer_period_end(membership)
            if (
                membership.trainer_assigned
                and trainer_end is not None
                and trainer_end > now
                and days_until(trainer_end, now) <= EXPIRY_NOTICE_DAYS
            ):
                if self._notify_once(
                    membership,
                    IntentType.TRAINER_PERIOD_EXPIRING,
                    trainer_end,
                    f"Your trainer access ends on {trainer_end.date().isoformat()}.",
                    now,
                ):
                    sent += 1
        return sent

    def _notify_once(
        self,
        membership: Membership,
        intent_type: str,
        ends_at: datetime,
        summary: str,
        now: datetime,
    ) -> bool:
        window_start = add_days(ends_at, -EXPIRY_NOTICE_DAYS)
        if notification_repository.has_intent_since(
            self.db, membership.id, intent_type, window_start
        ):
            return False
        self.notifications.emit(
            intent_type,
            membership.id,
            summary,
            recipient_user_id=membership.user_id,
            created_at=now,
        )
        return True

    def _audit(
        self,
        membership_id: int,
        action: str,
        message: str,
        previous_status: Optional[str],
        new_status: Optional[str],
        actor_id: Optional[int],
    ) -> None:
        audit_log_repository.create_audit_log(
            self.db,
            MembershipAuditLog(
                membership_id=membership_id,
                action=action,
                message=message,
                previous_status=previous_status,
                new_status=new_status,
                actor_id=actor_id,
            ),
        )


__all__ = [
    "GRACE_PERIOD_DAYS",
    "EXPIRY_NOTICE_DAYS",
    "TransitionOutcome",
    "activation_window",
    "MembershipLifecycleService",
]
