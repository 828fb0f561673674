"""Creation and settlement of the add-on rows that travel with a payment."""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import AddonCreationFailedError
from app.models import Membership, MembershipAddon, Payment, Trainer, TrainerAssignment
from app.models.statuses import AddonStatus, AddonType, AssignmentStatus, AssignmentType
from app.repository import addon_repository, trainer_assignment_repository
from app.services.dates import add_months
from app.services.trainer_eligibility import cap_to_membership

logger = logging.getLogger(__name__)


class AddonOrchestrator:
    """Creates pending add-on and trainer assignment rows for one payment.

    Every row created through an instance is remembered so that ``rollback``
    can remove exactly those rows if the submission fails later on.
    """

    def __init__(self, db: Session):
        self.db = db
        self.created_addons: List[MembershipAddon] = []
        self.created_assignments: List[TrainerAssignment] = []

    def create_in_gym_addon(
        self, membership: Membership, payment: Payment, price: Decimal
    ) -> MembershipAddon:
        addon = MembershipAddon(
            membership_id=membership.id,
            payment_id=payment.id,
            addon_type=AddonType.IN_GYM,
            price=price,
            status=AddonStatus.PENDING,
        )
        self._insert_addon(addon)
        return addon

    def create_trainer_addon(
        self,
        membership: Membership,
        payment: Payment,
        trainer: Trainer,
        *,
        months: int,
        price: Decimal,
        now: datetime,
        is_renewal: bool = False,
        period_start: Optional[datetime] = None,
        period_end: Optional[datetime] = None,
    ) -> tuple[MembershipAddon, TrainerAssignment]:
        addon = MembershipAddon(
            membership_id=membership.id,
            payment_id=payment.id,
            addon_type=AddonType.PERSONAL_TRAINER,
            price=price,
            status=AddonStatus.PENDING,
            trainer_id=trainer.id,
            duration_months=months,
        )
        self._insert_addon(addon)

        # Placeholder window; approval recomputes it from the activation date.
        start = period_start or now
        end = period_end or add_months(start, months)
        membership_end = membership.effective_end_date
        if membership_end is not None and membership_end > start:
            end = cap_to_membership(end, membership_end)

        assignment = TrainerAssignment(
            membership_id=membership.id,
            trainer_id=trainer.id,
            user_id=membership.user_id,
            assignment_type=AssignmentType.ADDON,
            status=AssignmentStatus.PENDING,
            period_start=start,
            period_end=end,
            payment_id=payment.id,
            addon_id=addon.id,
            is_renewal=is_renewal,
            requested_by_user=True,
        )
        self._insert_assignment(assignment)
        return addon, assignment

    def _insert_addon(self, addon: MembershipAddon) -> None:
        try:
            addon_repository.create_addon(self.db, addon)
        except SQLAlchemyError as exc:
            logger.exception(
                "Failed to create %s addon for membership %s",
                addon.addon_type,
                addon.membership_id,
            )
            raise AddonCreationFailedError(
                f"Could not create the {addon.addon_type} add-on; the payment was not recorded.",
                addon_type=addon.addon_type,
            ) from exc
        self.created_addons.append(addon)

    def _insert_assignment(self, assignment: TrainerAssignment) -> None:
        try:
            trainer_assignment_repository.create_assignment(self.db, assignment)
        except SQLAlchemyError as exc:
            logger.exception(
                "Failed to create trainer assignment for membership %s",
                assignment.membership_id,
            )
            raise AddonCreationFailedError(
                "Could not create the trainer assignment; the payment was not recorded.",
                addon_type=AddonType.PERSONAL_TRAINER,
            ) from exc
        self.created_assignments.append(assignment)

    def rollback(self) -> None:
        """Delete the rows this instance created, assignments first.

        Rows that never reached the database (discarded by a session
        rollback) are skipped.
        """

        for assignment in reversed(self.created_assignments):
            if inspect(assignment).persistent:
                trainer_assignment_repository.delete_assignment(self.db, assignment)
        for addon in reversed(self.created_addons):
            if inspect(addon).persistent:
                addon_repository.delete_addon(self.db, addon)
        self.created_assignments.clear()
        self.created_addons.clear()

    @property
    def addon_ids(self) -> List[int]:
        return [addon.id for addon in self.created_addons]

    @property
    def assignment_ids(self) -> List[int]:
        return [assignment.id for assignment in self.created_assignments]


def activate_for_payment(
    db: Session,
    payment: Payment,
    *,
    period_start: datetime,
    membership_end: Optional[datetime],
    fixed_period_end: Optional[datetime] = None,
) -> List[TrainerAssignment]:
    """Promote the add-ons and assignments created with ``payment``.

    Assignment windows are finalised from ``period_start``: either the given
    ``fixed_period_end`` or start + the add-on months, capped at
    ``membership_end`` in both cases.
    """

    addons = addon_repository.list_addons_by_payment(db, payment.id)
    months_by_addon = {addon.id: addon.duration_months or 1 for addon in addons}
    for addon in addons:
        if addon.status == AddonStatus.PENDING:
            addon.status = AddonStatus.ACTIVE

    activated: List[TrainerAssignment] = []
    for assignment in trainer_assignment_repository.list_assignments_by_payment(db, payment.id):
        if assignment.status != AssignmentStatus.PENDING:
            continue
        end = fixed_period_end
        if end is None:
            end = add_months(period_start, months_by_addon.get(assignment.addon_id, 1))
        end = cap_to_membership(end, membership_end)
        assignment.period_start = period_start
        assignment.period_end = end
        assignment.status = AssignmentStatus.ACTIVE
        activated.append(assignment)

    db.flush()
    return activated


def reject_for_payment(db: Session, payment: Payment) -> None:
    for addon in addon_repository.list_addons_by_payment(db, payment.id):
        if addon.status == AddonStatus.PENDING:
            addon.status = AddonStatus.REJECTED
    for assignment in trainer_assignment_repository.list_assignments_by_payment(db, payment.id):
        if assignment.status == AssignmentStatus.PENDING:
            assignment.status = AssignmentStatus.REJECTED
    db.flush()


def expire_active_assignments(db: Session, membership_id: int) -> int:
    assignments = trainer_assignment_repository.list_active_assignments(db, membership_id)
    for assignment in assignments:
        assignment.status = AssignmentStatus.EXPIRED
    db.flush()
    return len(assignments)


__all__ = [
    "AddonOrchestrator",
    "activate_for_payment",
    "reject_for_payment",
    "expire_active_assignments",
]
