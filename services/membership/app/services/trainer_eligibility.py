"""Trainer access rules: renewal eligibility, period math and grace handling.

Trainer access is a sub-resource of the membership. Every period computed
here is capped at the membership's own end date; renewals that would cross
that boundary are refused up front instead of being truncated.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from app.models.statuses import MembershipStatus
from app.services.addon_eligibility import is_regular_monthly_plan
from app.services.dates import add_days, add_months, days_until, earliest, resolve_now

TRAINER_GRACE_PERIOD_DAYS = 5
MIN_TRAINER_RENEWAL_DAYS = 30

# plan name -> (included days, included months)
INCLUDED_TRAINER_ALLOWANCE = {
    "basic": (0, 0),
    "premium": (7, 0),
    "elite": (0, 1),
}

_LEGACY_PERIOD_TOLERANCE = timedelta(days=1)

_INELIGIBLE_STATUS_REASONS = {
    MembershipStatus.AWAITING_PAYMENT: (
        "Membership is awaiting its first payment. Trainer renewal requires an active membership."
    ),
    MembershipStatus.PENDING: (
        "Membership payment is still being verified. Trainer renewal is available once it is active."
    ),
    MembershipStatus.GRACE_PERIOD: (
        "Membership has ended and is in its grace period. Renew the membership before renewing trainer access."
    ),
    MembershipStatus.EXPIRED: (
        "Membership has expired. Purchase a new membership to get trainer access."
    ),
    MembershipStatus.REJECTED: (
        "Membership payment was rejected. Trainer renewal requires an active membership."
    ),
}


@dataclass(frozen=True)
class TrainerRenewalEligibility:
    is_eligible: bool
    max_renewal_days: int
    reason: Optional[str] = None
    remaining_plan_days: Optional[int] = None


@dataclass(frozen=True)
class TrainerPeriod:
    period_start: datetime
    period_end: datetime
    is_included: bool
    is_addon: bool


class TrainerAccessStatus:
    ACTIVE = "active"
    GRACE_PERIOD = "grace_period"
    EXPIRED = "expired"
    NONE = "none"


def renewal_start(trainer_period_end: Optional[datetime], now: datetime) -> datetime:
    """A renewal continues an unexpired trainer period, otherwise starts now."""

    if trainer_period_end is not None and trainer_period_end > now:
        return trainer_period_end
    return now


def max_renewal_days(
    membership_end_date: datetime,
    *,
    trainer_period_end: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> int:
    current = resolve_now(now)
    start = renewal_start(trainer_period_end, current)
    return max(0, days_until(membership_end_date, start))


def check_eligibility(
    membership_status: str,
    membership_end_date: Optional[datetime],
    *,
    trainer_period_end: Optional[datetime] = None,
    first_attach: bool = False,
    now: Optional[datetime] = None,
) -> TrainerRenewalEligibility:
    """Whether trainer access may be bought or renewed right now.

    The minimum remaining-days rule only applies to renewals; attaching a
    trainer for the first time is allowed on any active membership.
    """

    current = resolve_now(now)

    if membership_status != MembershipStatus.ACTIVE:
        reason = _INELIGIBLE_STATUS_REASONS.get(
            membership_status,
            f"Membership status is '{membership_status}'. Trainer renewal requires an active membership.",
        )
        return TrainerRenewalEligibility(is_eligible=False, max_renewal_days=0, reason=reason)

    if membership_end_date is None:
        return TrainerRenewalEligibility(
            is_eligible=False,
            max_renewal_days=0,
            reason="Membership end date is missing. Cannot calculate remaining plan duration.",
        )

    if membership_end_date <= current:
        return TrainerRenewalEligibility(
            is_eligible=False,
            max_renewal_days=0,
            reason="Membership has already ended. Renew the membership before renewing trainer access.",
            remaining_plan_days=0,
        )

    remaining = days_until(membership_end_date, current)
    available = max_renewal_days(
        membership_end_date, trainer_period_end=trainer_period_end, now=current
    )

    if not first_attach and remaining < MIN_TRAINER_RENEWAL_DAYS:
        return TrainerRenewalEligibility(
            is_eligible=False,
            max_renewal_days=available,
            reason=(
                f"Remaining plan duration is {remaining} days. Trainer renewal requires at "
                f"least {MIN_TRAINER_RENEWAL_DAYS} days remaining on your membership."
            ),
            remaining_plan_days=remaining,
        )

    return TrainerRenewalEligibility(
        is_eligible=True,
        max_renewal_days=available,
        remaining_plan_days=remaining,
    )


def candidate_renewal_end(start: datetime, duration_months: int) -> datetime:
    return add_months(start, duration_months)


def calculate_renewal_end_date(
    start: datetime, duration_months: int, membership_end_cap: datetime
) -> datetime:
    """Renewal end date, never later than ``membership_end_cap``."""

    return min(candidate_renewal_end(start, duration_months), membership_end_cap)


def exceeds_membership_end(
    start: datetime, duration_months: int, membership_end_cap: datetime
) -> bool:
    return candidate_renewal_end(start, duration_months) > membership_end_cap


def included_trainer_allowance(plan_name: Optional[str]) -> tuple[int, int]:
    return INCLUDED_TRAINER_ALLOWANCE.get((plan_name or "").strip().lower(), (0, 0))


def has_included_trainer(plan_name: Optional[str]) -> bool:
    return included_trainer_allowance(plan_name) != (0, 0)


def calculate_trainer_period(
    start: datetime,
    plan_name: str,
    *,
    has_addon: bool,
    addon_months: int = 0,
    membership_end: Optional[datetime] = None,
) -> TrainerPeriod:
    """Trainer window granted at activation: included allowance plus add-on months."""

    included_days, included_months = included_trainer_allowance(plan_name)
    months = included_months + (addon_months if has_addon else 0)

    end = add_days(start, included_days) if included_days else start
    if months:
        end = add_months(end, months)
    if membership_end is not None:
        end = min(end, membership_end)

    return TrainerPeriod(
        period_start=start,
        period_end=end,
        is_included=bool(included_days or included_months),
        is_addon=has_addon and addon_months > 0,
    )


def trainer_grace_period_end(trainer_period_end: datetime) -> datetime:
    return add_days(trainer_period_end, TRAINER_GRACE_PERIOD_DAYS)


def trainer_access_status(
    trainer_assigned: bool,
    trainer_period_end: Optional[datetime],
    grace_period_end: Optional[datetime],
    *,
    now: Optional[datetime] = None,
) -> str:
    if not trainer_assigned or trainer_period_end is None:
        return TrainerAccessStatus.NONE

    current = resolve_now(now)
    if trainer_period_end > current:
        return TrainerAccessStatus.ACTIVE
    if grace_period_end is not None and trainer_period_end <= current <= grace_period_end:
        return TrainerAccessStatus.GRACE_PERIOD
    return TrainerAccessStatus.EXPIRED


def effective_trainer_period_end(membership) -> Optional[datetime]:
    """Trainer period end as it should be displayed and checked for expiry.

    Some regular monthly add-on rows were written with a trainer end equal to
    the membership start. Those are read as lasting until the membership end
    (or start + duration when no end is stored). The stored value is never
    rewritten here.
    """

    stored = membership.trainer_period_end
    if stored is None:
        return None

    start = membership.effective_start_date
    if (
        start is not None
        and membership.trainer_addon
        and is_regular_monthly_plan(membership.plan_name)
        and stored - start <= _LEGACY_PERIOD_TOLERANCE
    ):
        end = membership.effective_end_date
        if end is not None:
            return end
        return add_months(start, membership.duration_months or 1)

    return stored


def cap_to_membership(period_end: datetime, membership_end: Optional[datetime]) -> datetime:
    capped = earliest(period_end, membership_end)
    return capped if capped is not None else period_end


__all__ = [
    "TRAINER_GRACE_PERIOD_DAYS",
    "MIN_TRAINER_RENEWAL_DAYS",
    "TrainerRenewalEligibility",
    "TrainerPeriod",
    "TrainerAccessStatus",
    "renewal_start",
    "max_renewal_days",
    "check_eligibility",
    "candidate_renewal_end",
    "calculate_renewal_end_date",
    "exceeds_membership_end",
    "included_trainer_allowance",
    "has_included_trainer",
    "calculate_trainer_period",
    "trainer_grace_period_end",
    "trainer_access_status",
    "effective_trainer_period_end",
    "cap_to_membership",
]
