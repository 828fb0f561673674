from datetime import date, timedelta
from decimal import Decimal

import pytest
from fastapi import HTTPException

from app.core.exceptions import EligibilityDeniedError, InvalidStateError, NotFoundError
from app.models import (
    Membership,
    MembershipAddon,
    MembershipAuditLog,
    NotificationIntent,
    Payment,
    TrainerAssignment,
)
from app.models.statuses import (
    AddonStatus,
    AssignmentStatus,
    AssignmentType,
    MembershipStatus,
    PaymentPurpose,
    PaymentStatus,
)
from app.schemas.payment import AddonSelection, PaymentSubmission, TrainerRenewalSubmission
from app.services.dates import add_months
from app.services.membership_lifecycle import MembershipLifecycleService, activation_window
from app.services.payment_submission import PaymentSubmissionHandler

from conftest import ADMIN_ID, NOW, USER_ID


def _submission(amount, **addons):
    return PaymentSubmission(
        transaction_id="UPI-777",
        payment_date=date(2024, 3, 10),
        amount=Decimal(amount),
        screenshot_path="payments/101/receipt.png",
        addons=AddonSelection(**addons),
    )


@pytest.fixture
def handler(db_session, emitter):
    return PaymentSubmissionHandler(db_session, notifications=emitter)


@pytest.fixture
def lifecycle(db_session, emitter):
    return MembershipLifecycleService(db_session, notifications=emitter)


def _intent_types(db_session, membership_id):
    return [
        intent.intent_type
        for intent in db_session.query(NotificationIntent)
        .filter(NotificationIntent.membership_id == membership_id)
        .order_by(NotificationIntent.id)
    ]


# activation_window


def test_initial_purchase_starts_at_approval():
    membership = Membership(plan_name="basic", duration_months=3)

    start, end = activation_window(membership, PaymentPurpose.INITIAL_PURCHASE, NOW)

    assert start == NOW
    assert end == add_months(NOW, 3)


def test_early_renewal_continues_from_previous_end():
    previous_end = NOW + timedelta(days=3)
    membership = Membership(plan_name="basic", duration_months=3, membership_end_date=previous_end)

    start, end = activation_window(membership, PaymentPurpose.MEMBERSHIP_RENEWAL, NOW)

    assert start == previous_end
    assert end == add_months(previous_end, 3)


def test_late_renewal_restarts_from_approval():
    membership = Membership(
        plan_name="basic", duration_months=3, membership_end_date=NOW - timedelta(days=5)
    )

    start, end = activation_window(membership, PaymentPurpose.MEMBERSHIP_RENEWAL, NOW)

    assert start == NOW
    assert end == add_months(NOW, 3)


def test_regular_monthly_renewal_is_one_month_from_approval():
    membership = Membership(
        plan_name="Regular Monthly",
        duration_months=1,
        membership_end_date=NOW + timedelta(days=2),
    )

    start, end = activation_window(membership, PaymentPurpose.MEMBERSHIP_RENEWAL, NOW)

    assert start == NOW
    assert end == add_months(NOW, 1)


# Approval and rejection


def test_approving_initial_purchase_activates_membership(db_session, handler, lifecycle, membership_factory, recording_client):
    membership = membership_factory()
    result = handler.submit_payment(membership.id, USER_ID, _submission("3000"), now=NOW)

    approved = lifecycle.approve(membership.id, ADMIN_ID, now=NOW)

    assert approved.status == MembershipStatus.ACTIVE
    assert approved.membership_start_date == NOW
    assert approved.membership_end_date == add_months(NOW, 3)
    assert approved.start_date == approved.membership_start_date
    assert approved.end_date == approved.membership_end_date
    assert approved.trainer_assigned is False

    payment = db_session.get(Payment, result.payment.id)
    assert payment.status == PaymentStatus.VERIFIED
    assert payment.verified_at == NOW

    audit = db_session.query(MembershipAuditLog).one()
    assert audit.action == "membership_approved"
    assert audit.actor_id == ADMIN_ID
    assert _intent_types(db_session, membership.id) == ["payment_submitted", "membership_approved"]
    assert [payload["type"] for payload in recording_client.sent] == [
        "payment_submitted",
        "membership_approved",
    ]


def test_approval_activates_in_gym_addon(db_session, handler, lifecycle, membership_factory):
    membership = membership_factory()
    handler.submit_payment(membership.id, USER_ID, _submission("4200", in_gym=True), now=NOW)

    approved = lifecycle.approve(membership.id, ADMIN_ID, now=NOW)

    addon = db_session.query(MembershipAddon).one()
    assert addon.status == AddonStatus.ACTIVE
    assert approved.plan_mode == "in_gym"


def test_approval_grants_trainer_addon_period(db_session, handler, lifecycle, membership_factory, trainer_factory):
    trainer = trainer_factory(price=Decimal("2000"))
    membership = membership_factory()
    handler.submit_payment(
        membership.id,
        USER_ID,
        _submission("7000", personal_trainer=True, trainer_id=trainer.id, trainer_months=2),
        now=NOW,
    )

    approved = lifecycle.approve(membership.id, ADMIN_ID, now=NOW)

    assignment = db_session.query(TrainerAssignment).one()
    assert assignment.status == AssignmentStatus.ACTIVE
    assert assignment.period_start == NOW
    assert assignment.period_end == add_months(NOW, 2)
    assert approved.trainer_assigned is True
    assert approved.trainer_addon is True
    assert approved.trainer_id == trainer.id
    assert approved.trainer_period_end == add_months(NOW, 2)


def test_premium_trainer_addon_adds_to_included_week(db_session, handler, lifecycle, membership_factory, trainer_factory):
    trainer = trainer_factory(price=Decimal("2000"))
    membership = membership_factory(plan_name="premium", price=Decimal("5000"))
    handler.submit_payment(
        membership.id,
        USER_ID,
        _submission("7000", personal_trainer=True, trainer_id=trainer.id, trainer_months=1),
        now=NOW,
    )

    approved = lifecycle.approve(membership.id, ADMIN_ID, now=NOW)

    assert approved.trainer_period_end == add_months(NOW + timedelta(days=7), 1)


def test_trainer_addon_never_outlasts_membership(db_session, handler, lifecycle, membership_factory, trainer_factory):
    trainer = trainer_factory(price=Decimal("1000"))
    membership = membership_factory(duration_months=1, price=Decimal("1000"))
    handler.submit_payment(
        membership.id,
        USER_ID,
        _submission("4000", personal_trainer=True, trainer_id=trainer.id, trainer_months=3),
        now=NOW,
    )

    approved = lifecycle.approve(membership.id, ADMIN_ID, now=NOW)

    assert approved.trainer_period_end == approved.membership_end_date
    assignment = db_session.query(TrainerAssignment).one()
    assert assignment.period_end == approved.membership_end_date


def test_grace_period_renewal_restarts_membership(db_session, handler, lifecycle, membership_factory):
    membership = membership_factory(
        status=MembershipStatus.GRACE_PERIOD,
        membership_start_date=NOW - timedelta(days=97),
        membership_end_date=NOW - timedelta(days=5),
        grace_period_end=NOW + timedelta(days=10),
    )
    handler.submit_payment(membership.id, USER_ID, _submission("3000"), now=NOW)

    approved = lifecycle.approve(membership.id, ADMIN_ID, now=NOW)

    assert approved.status == MembershipStatus.ACTIVE
    assert approved.membership_start_date == NOW
    assert approved.membership_end_date == add_months(NOW, 3)
    assert approved.grace_period_end is None
    assert db_session.query(MembershipAuditLog).one().action == "renewal_approved"


def test_approve_without_pending_payment(lifecycle, membership_factory):
    membership = membership_factory(status=MembershipStatus.PENDING)

    with pytest.raises(InvalidStateError):
        lifecycle.approve(membership.id, ADMIN_ID, now=NOW)


def test_approve_unknown_membership(lifecycle):
    with pytest.raises(NotFoundError):
        lifecycle.approve(4242, ADMIN_ID, now=NOW)


def test_reject_marks_everything_rejected(db_session, handler, lifecycle, membership_factory, trainer_factory):
    trainer = trainer_factory(price=Decimal("2000"))
    membership = membership_factory()
    handler.submit_payment(
        membership.id,
        USER_ID,
        _submission("5000", personal_trainer=True, trainer_id=trainer.id),
        now=NOW,
    )

    rejected = lifecycle.reject(membership.id, "Transaction id not found", ADMIN_ID, now=NOW)

    assert rejected.status == MembershipStatus.REJECTED
    assert rejected.rejection_reason == "Transaction id not found"
    assert db_session.query(Payment).one().status == PaymentStatus.REJECTED
    assert db_session.query(MembershipAddon).one().status == AddonStatus.REJECTED
    assert db_session.query(TrainerAssignment).one().status == AssignmentStatus.REJECTED
    assert "membership_rejected" in _intent_types(db_session, membership.id)


def test_reject_requires_reason(lifecycle, handler, membership_factory):
    membership = membership_factory()
    handler.submit_payment(membership.id, USER_ID, _submission("3000"), now=NOW)

    with pytest.raises(HTTPException) as excinfo:
        lifecycle.reject(membership.id, "   ", ADMIN_ID, now=NOW)

    assert excinfo.value.status_code == 422


# Expiry


def _active(membership_factory, end, **overrides):
    return membership_factory(
        status=MembershipStatus.ACTIVE,
        membership_start_date=end - timedelta(days=90),
        membership_end_date=end,
        **overrides,
    )


def test_ended_membership_enters_grace_period(db_session, lifecycle, membership_factory):
    end = NOW - timedelta(days=1)
    membership = _active(membership_factory, end)

    outcome = lifecycle.transition_expired(membership.id, now=NOW)

    assert outcome.actions == ["moved_to_grace_period"]
    assert outcome.status == MembershipStatus.GRACE_PERIOD
    db_session.refresh(membership)
    assert membership.grace_period_end == end + timedelta(days=15)
    assert _intent_types(db_session, membership.id) == ["membership_grace_period"]


def test_transition_is_idempotent(db_session, lifecycle, membership_factory):
    membership = _active(membership_factory, NOW - timedelta(days=1))
    lifecycle.transition_expired(membership.id, now=NOW)

    outcome = lifecycle.transition_expired(membership.id, now=NOW)

    assert outcome.changed is False
    assert outcome.status == MembershipStatus.GRACE_PERIOD
    assert len(_intent_types(db_session, membership.id)) == 1


def test_membership_still_running_is_untouched(lifecycle, membership_factory):
    membership = _active(membership_factory, NOW + timedelta(days=1))

    outcome = lifecycle.transition_expired(membership.id, now=NOW)

    assert outcome.changed is False
    assert outcome.status == MembershipStatus.ACTIVE


def test_grace_period_ends_in_expiry(db_session, lifecycle, membership_factory):
    membership = membership_factory(
        status=MembershipStatus.GRACE_PERIOD,
        membership_end_date=NOW - timedelta(days=16),
        grace_period_end=NOW - timedelta(days=1),
    )

    outcome = lifecycle.transition_expired(membership.id, now=NOW)

    assert outcome.actions == ["expired"]
    assert outcome.status == MembershipStatus.EXPIRED
    assert lifecycle.transition_expired(membership.id, now=NOW).changed is False


def test_long_ended_membership_expires_in_one_pass(lifecycle, membership_factory):
    membership = _active(membership_factory, NOW - timedelta(days=20))

    outcome = lifecycle.transition_expired(membership.id, now=NOW)

    assert outcome.actions == ["moved_to_grace_period", "expired"]
    assert outcome.status == MembershipStatus.EXPIRED


def test_pending_renewal_holds_off_expiry(db_session, handler, lifecycle, membership_factory):
    membership = membership_factory(
        status=MembershipStatus.GRACE_PERIOD,
        membership_end_date=NOW - timedelta(days=14),
        grace_period_end=NOW + timedelta(days=1),
    )
    handler.submit_payment(membership.id, USER_ID, _submission("3000"), now=NOW)

    outcome = lifecycle.transition_expired(membership.id, now=NOW + timedelta(days=2))

    assert outcome.changed is False
    assert outcome.status == MembershipStatus.PENDING


def _trainer_payment(trainer_id):
    return TrainerRenewalSubmission(
        transaction_id="UPI-TR-9",
        payment_date=date(2024, 3, 10),
        amount=Decimal("2000"),
        screenshot_path="payments/101/trainer.png",
        trainer_id=trainer_id,
        duration_months=1,
    )


def test_pending_trainer_payment_does_not_hold_off_expiry(db_session, handler, lifecycle, membership_factory, trainer_factory):
    trainer = trainer_factory(price=Decimal("2000"))
    membership = _active(membership_factory, NOW + timedelta(days=40))
    handler.submit_trainer_renewal(membership.id, USER_ID, _trainer_payment(trainer.id), now=NOW)

    outcome = lifecycle.transition_expired(membership.id, now=NOW + timedelta(days=85))

    assert outcome.actions == ["moved_to_grace_period", "expired"]
    assert outcome.status == MembershipStatus.EXPIRED
    payment = db_session.query(Payment).one()
    assert payment.status == PaymentStatus.REJECTED
    assert payment.verified_by is None
    assert db_session.query(MembershipAddon).one().status == AddonStatus.REJECTED
    assert db_session.query(TrainerAssignment).one().status == AssignmentStatus.REJECTED
    assert "trainer_renewal_rejected" in _intent_types(db_session, membership.id)


def test_grace_entry_clears_trainer_payment_for_renewal(db_session, handler, lifecycle, membership_factory, trainer_factory):
    trainer = trainer_factory(price=Decimal("2000"))
    membership = _active(membership_factory, NOW + timedelta(days=40))
    handler.submit_trainer_renewal(membership.id, USER_ID, _trainer_payment(trainer.id), now=NOW)
    later = NOW + timedelta(days=41)

    outcome = lifecycle.transition_expired(membership.id, now=later)
    result = handler.submit_payment(membership.id, USER_ID, _submission("3000"), now=later)

    assert outcome.status == MembershipStatus.GRACE_PERIOD
    assert result.membership.status == MembershipStatus.PENDING
    assert result.payment.payment_purpose == PaymentPurpose.MEMBERSHIP_RENEWAL
    statuses = {
        payment.payment_purpose: payment.status for payment in db_session.query(Payment)
    }
    assert statuses == {
        PaymentPurpose.TRAINER_RENEWAL: PaymentStatus.REJECTED,
        PaymentPurpose.MEMBERSHIP_RENEWAL: PaymentStatus.PENDING,
    }


def test_regular_monthly_expiry_revokes_trainer(db_session, lifecycle, membership_factory, trainer_factory):
    trainer = trainer_factory()
    end = NOW - timedelta(days=16)
    membership = membership_factory(
        plan_name="Regular Monthly",
        plan_type="in_gym",
        duration_months=1,
        status=MembershipStatus.GRACE_PERIOD,
        membership_start_date=end - timedelta(days=30),
        membership_end_date=end,
        grace_period_end=NOW - timedelta(days=1),
        trainer_assigned=True,
        trainer_id=trainer.id,
        trainer_period_end=end,
        trainer_addon=True,
    )
    db_session.add(
        TrainerAssignment(
            membership_id=membership.id,
            trainer_id=trainer.id,
            user_id=USER_ID,
            assignment_type=AssignmentType.ADDON,
            status=AssignmentStatus.ACTIVE,
            period_start=end - timedelta(days=30),
            period_end=end,
        )
    )
    db_session.commit()

    outcome = lifecycle.transition_expired(membership.id, now=NOW)

    assert outcome.actions == ["expired", "trainer_revoked"]
    db_session.refresh(membership)
    assert membership.trainer_assigned is False
    assert membership.trainer_id == trainer.id
    assert membership.trainer_period_end == end
    assert db_session.query(TrainerAssignment).one().status == AssignmentStatus.EXPIRED
    assert "trainer_access_revoked" in _intent_types(db_session, membership.id)


def test_trainer_grace_then_revocation(db_session, lifecycle, membership_factory, trainer_factory):
    trainer = trainer_factory()
    trainer_end = NOW - timedelta(days=1)
    membership = _active(
        membership_factory,
        NOW + timedelta(days=60),
        trainer_assigned=True,
        trainer_id=trainer.id,
        trainer_period_end=trainer_end,
    )

    outcome = lifecycle.transition_expired(membership.id, now=NOW)

    assert outcome.actions == ["trainer_grace_started"]
    db_session.refresh(membership)
    assert membership.trainer_grace_period_end == trainer_end + timedelta(days=5)
    assert membership.trainer_assigned is True

    outcome = lifecycle.transition_expired(membership.id, now=NOW + timedelta(days=5))

    assert outcome.actions == ["trainer_revoked"]
    db_session.refresh(membership)
    assert membership.trainer_assigned is False
    assert membership.status == MembershipStatus.ACTIVE


def test_sweep_reports_counts(db_session, lifecycle, membership_factory):
    _active(membership_factory, NOW - timedelta(days=1))
    _active(membership_factory, NOW + timedelta(days=3))
    _active(membership_factory, NOW + timedelta(days=40))
    membership_factory(
        status=MembershipStatus.GRACE_PERIOD,
        membership_end_date=NOW - timedelta(days=16),
        grace_period_end=NOW - timedelta(days=1),
    )
    membership_factory()

    counts = lifecycle.sweep_expiries(now=NOW)

    assert counts["checked"] == 4
    assert counts["moved_to_grace_period"] == 1
    assert counts["expired"] == 1
    assert counts["expiring_notices"] == 1


def test_expiry_notice_sent_once_per_period(db_session, lifecycle, membership_factory):
    membership = _active(membership_factory, NOW + timedelta(days=3))

    first = lifecycle.sweep_expiries(now=NOW)
    second = lifecycle.sweep_expiries(now=NOW + timedelta(days=1))

    assert first["expiring_notices"] == 1
    assert second["expiring_notices"] == 0
    assert _intent_types(db_session, membership.id) == ["membership_expiring"]


# Included trainer access


def test_premium_plan_gets_a_week_of_trainer_access(db_session, lifecycle, membership_factory, trainer_factory):
    trainer = trainer_factory()
    membership = _active(membership_factory, NOW + timedelta(days=60), plan_name="premium")

    assignment = lifecycle.assign_included_trainer(membership.id, trainer.id, ADMIN_ID, now=NOW)

    assert assignment.assignment_type == AssignmentType.PLAN_INCLUDED
    assert assignment.period_end == NOW + timedelta(days=7)
    db_session.refresh(membership)
    assert membership.trainer_assigned is True
    assert membership.trainer_period_end == NOW + timedelta(days=7)


def test_elite_allowance_is_capped_at_membership_end(lifecycle, membership_factory, trainer_factory):
    trainer = trainer_factory()
    end = NOW + timedelta(days=10)
    membership = _active(membership_factory, end, plan_name="elite")

    assignment = lifecycle.assign_included_trainer(membership.id, trainer.id, ADMIN_ID, now=NOW)

    assert assignment.period_end == end


def test_included_trainer_granted_only_once(lifecycle, membership_factory, trainer_factory):
    trainer = trainer_factory()
    membership = _active(membership_factory, NOW + timedelta(days=60), plan_name="elite")
    lifecycle.assign_included_trainer(membership.id, trainer.id, ADMIN_ID, now=NOW)

    with pytest.raises(InvalidStateError):
        lifecycle.assign_included_trainer(membership.id, trainer.id, ADMIN_ID, now=NOW)


def test_basic_plan_has_no_included_trainer(lifecycle, membership_factory, trainer_factory):
    trainer = trainer_factory()
    membership = _active(membership_factory, NOW + timedelta(days=60))

    with pytest.raises(EligibilityDeniedError):
        lifecycle.assign_included_trainer(membership.id, trainer.id, ADMIN_ID, now=NOW)


def test_included_trainer_needs_active_membership(lifecycle, membership_factory, trainer_factory):
    trainer = trainer_factory()
    membership = membership_factory(plan_name="premium", status=MembershipStatus.PENDING)

    with pytest.raises(InvalidStateError):
        lifecycle.assign_included_trainer(membership.id, trainer.id, ADMIN_ID, now=NOW)


# Read model


def test_state_shows_pending_payment_and_addons(handler, lifecycle, membership_factory, trainer_factory):
    trainer = trainer_factory()
    membership = membership_factory()
    result = handler.submit_payment(
        membership.id,
        USER_ID,
        _submission("5000", personal_trainer=True, trainer_id=trainer.id),
        now=NOW,
    )

    state = lifecycle.get_membership_state(membership.id, now=NOW)

    assert state["status"] == MembershipStatus.PENDING
    assert state["pending_payment_id"] == result.payment.id
    assert state["pending_payment_purpose"] == PaymentPurpose.INITIAL_PURCHASE
    assert state["pending_addon_ids"] == result.addon_ids
    assert state["pending_assignment_ids"] == result.assignment_ids
    assert state["trainer_access_status"] == "none"


def test_state_reads_legacy_regular_trainer_end_as_membership_end(lifecycle, membership_factory, trainer_factory):
    trainer = trainer_factory()
    start = NOW - timedelta(days=5)
    end = add_months(start, 1)
    membership = membership_factory(
        plan_name="Regular Monthly",
        plan_type="in_gym",
        duration_months=1,
        status=MembershipStatus.ACTIVE,
        membership_start_date=start,
        membership_end_date=end,
        trainer_assigned=True,
        trainer_id=trainer.id,
        trainer_period_end=start,
        trainer_addon=True,
    )

    state = lifecycle.get_membership_state(membership.id, now=NOW)

    assert state["trainer_period_end"] == start
    assert state["effective_trainer_period_end"] == end
    assert state["trainer_access_status"] == "active"
    outcome = lifecycle.transition_expired(membership.id, now=NOW)
    assert outcome.changed is False
