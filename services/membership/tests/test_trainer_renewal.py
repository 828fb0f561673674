from datetime import date, timedelta
from decimal import Decimal

import pytest

from app.core.exceptions import EligibilityDeniedError, UnauthorizedError
from app.models import NotificationIntent, Payment, TrainerAssignment
from app.models.statuses import AssignmentStatus, MembershipStatus, PaymentPurpose, PaymentStatus
from app.schemas.payment import TrainerRenewalSubmission
from app.services.dates import add_months
from app.services.membership_lifecycle import MembershipLifecycleService
from app.services.payment_submission import PaymentSubmissionHandler

from conftest import ADMIN_ID, NOW, OTHER_USER_ID, USER_ID


def _renewal(trainer_id, months=1, amount="2000"):
    return TrainerRenewalSubmission(
        transaction_id="UPI-TR-1",
        payment_date=date(2024, 3, 10),
        amount=Decimal(amount),
        screenshot_path="payments/101/trainer.png",
        trainer_id=trainer_id,
        duration_months=months,
    )


@pytest.fixture
def handler(db_session, emitter):
    return PaymentSubmissionHandler(db_session, notifications=emitter)


@pytest.fixture
def lifecycle(db_session, emitter):
    return MembershipLifecycleService(db_session, notifications=emitter)


@pytest.fixture
def active_with_trainer(membership_factory, trainer_factory):
    def _create(days_left, trainer_days_left):
        trainer = trainer_factory()
        membership = membership_factory(
            status=MembershipStatus.ACTIVE,
            membership_start_date=NOW - timedelta(days=60),
            membership_end_date=NOW + timedelta(days=days_left),
            trainer_assigned=True,
            trainer_id=trainer.id,
            trainer_period_end=NOW + timedelta(days=trainer_days_left),
            trainer_addon=True,
        )
        return membership, trainer

    return _create


def test_first_attach_is_capped_at_membership_end(db_session, handler, membership_factory, trainer_factory):
    trainer = trainer_factory(price=Decimal("2000"))
    membership_end = NOW + timedelta(days=35)
    membership = membership_factory(
        status=MembershipStatus.ACTIVE,
        membership_start_date=NOW - timedelta(days=55),
        membership_end_date=membership_end,
    )

    result = handler.submit_trainer_renewal(
        membership.id, USER_ID, _renewal(trainer.id, months=2, amount="4000"), now=NOW
    )

    assignment = db_session.get(TrainerAssignment, result.assignment_ids[0])
    assert assignment.period_end == membership_end
    assert assignment.is_renewal is False
    assert result.payment.payment_purpose == PaymentPurpose.TRAINER_RENEWAL
    assert result.membership.status == MembershipStatus.ACTIVE
    intent = db_session.query(NotificationIntent).one()
    assert intent.intent_type == "trainer_assignment_requested"


def test_first_attach_ignores_minimum_remaining_days(handler, membership_factory, trainer_factory):
    trainer = trainer_factory()
    membership = membership_factory(
        status=MembershipStatus.ACTIVE,
        membership_start_date=NOW - timedelta(days=80),
        membership_end_date=NOW + timedelta(days=10),
    )

    result = handler.submit_trainer_renewal(membership.id, USER_ID, _renewal(trainer.id), now=NOW)

    assert result.payment.status == PaymentStatus.PENDING


def test_renewal_past_membership_end_is_refused(db_session, handler, active_with_trainer):
    membership, trainer = active_with_trainer(days_left=40, trainer_days_left=10)

    with pytest.raises(EligibilityDeniedError) as excinfo:
        handler.submit_trainer_renewal(
            membership.id, USER_ID, _renewal(trainer.id, months=2, amount="4000"), now=NOW
        )

    assert excinfo.value.context["max_renewal_days"] == 30
    assert excinfo.value.context["membership_end_date"] == NOW + timedelta(days=40)
    assert db_session.query(Payment).count() == 0


def test_renewal_needs_thirty_days_left(db_session, handler, active_with_trainer):
    membership, trainer = active_with_trainer(days_left=20, trainer_days_left=5)

    with pytest.raises(EligibilityDeniedError) as excinfo:
        handler.submit_trainer_renewal(membership.id, USER_ID, _renewal(trainer.id), now=NOW)

    assert "at least 30 days" in excinfo.value.message
    assert excinfo.value.context["max_renewal_days"] == 15
    assert db_session.query(Payment).count() == 0


def test_renewal_refused_during_grace_period(handler, membership_factory, trainer_factory):
    trainer = trainer_factory()
    membership = membership_factory(
        status=MembershipStatus.GRACE_PERIOD,
        membership_end_date=NOW - timedelta(days=2),
        grace_period_end=NOW + timedelta(days=13),
    )

    with pytest.raises(EligibilityDeniedError) as excinfo:
        handler.submit_trainer_renewal(membership.id, USER_ID, _renewal(trainer.id), now=NOW)

    assert excinfo.value.context["max_renewal_days"] == 0


def test_renewal_for_someone_else_is_refused(handler, active_with_trainer):
    membership, trainer = active_with_trainer(days_left=90, trainer_days_left=10)

    with pytest.raises(UnauthorizedError):
        handler.submit_trainer_renewal(membership.id, OTHER_USER_ID, _renewal(trainer.id), now=NOW)


def test_approved_renewal_extends_from_current_trainer_end(db_session, handler, lifecycle, active_with_trainer):
    membership, trainer = active_with_trainer(days_left=100, trainer_days_left=10)
    result = handler.submit_trainer_renewal(membership.id, USER_ID, _renewal(trainer.id), now=NOW)

    approved = lifecycle.approve(membership.id, ADMIN_ID, now=NOW)

    expected_end = add_months(NOW + timedelta(days=10), 1)
    assert approved.status == MembershipStatus.ACTIVE
    assert approved.trainer_period_end == expected_end
    assert approved.trainer_assigned is True
    assert approved.membership_end_date == NOW + timedelta(days=100)

    payment = db_session.get(Payment, result.payment.id)
    assert payment.status == PaymentStatus.VERIFIED
    assert payment.verified_by == ADMIN_ID
    assignment = db_session.get(TrainerAssignment, result.assignment_ids[0])
    assert assignment.status == AssignmentStatus.ACTIVE
    assert assignment.is_renewal is True
    assert assignment.period_start == NOW + timedelta(days=10)
    assert assignment.period_end == expected_end


def test_rejected_renewal_keeps_membership_active(db_session, handler, lifecycle, active_with_trainer):
    membership, trainer = active_with_trainer(days_left=100, trainer_days_left=10)
    handler.submit_trainer_renewal(membership.id, USER_ID, _renewal(trainer.id), now=NOW)

    rejected = lifecycle.reject(membership.id, "Screenshot unreadable", ADMIN_ID, now=NOW)

    assert rejected.status == MembershipStatus.ACTIVE
    assert rejected.trainer_period_end == NOW + timedelta(days=10)
    assert rejected.rejection_reason is None
    assignment = db_session.query(TrainerAssignment).one()
    assert assignment.status == AssignmentStatus.REJECTED
    payment = db_session.query(Payment).one()
    assert payment.rejection_reason == "Screenshot unreadable"
