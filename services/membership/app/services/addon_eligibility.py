"""Which add-ons a plan may carry.

Eligibility is a function of the plan's configuration (name, type and
duration), never of what the membership bought on a previous cycle, so a
member who skipped an add-on at purchase can still take it on renewal.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from app.models.statuses import PlanType

REGULAR_PLAN_MARKER = "regular"


@dataclass(frozen=True)
class PlanConfiguration:
    plan_name: str
    plan_type: str
    duration_months: Optional[int] = None

    @classmethod
    def from_membership(cls, membership) -> "PlanConfiguration":
        return cls(
            plan_name=membership.plan_name,
            plan_type=membership.plan_type,
            duration_months=membership.duration_months,
        )


@dataclass(frozen=True)
class AddonOptions:
    in_gym_available: bool
    trainer_available: bool
    # Set when the trainer add-on length is dictated by the plan itself.
    fixed_trainer_months: Optional[int] = None


def is_regular_monthly_plan(plan_name: Optional[str]) -> bool:
    return REGULAR_PLAN_MARKER in (plan_name or "").lower()


def base_plan_type(config: PlanConfiguration) -> str:
    if is_regular_monthly_plan(config.plan_name):
        return PlanType.IN_GYM
    return (config.plan_type or PlanType.ONLINE).lower()


def is_in_gym_addon_available(config: PlanConfiguration) -> bool:
    return base_plan_type(config) == PlanType.ONLINE


def is_trainer_addon_available(config: PlanConfiguration) -> bool:
    return True


def trainer_addon_months(config: PlanConfiguration, requested_months: int) -> int:
    """Months of trainer access an add-on purchase actually covers.

    Regular monthly plans always buy exactly one membership cycle.
    """

    if is_regular_monthly_plan(config.plan_name):
        return config.duration_months or 1
    return requested_months


def resolve_addon_options(config: PlanConfiguration) -> AddonOptions:
    fixed_months = None
    if is_regular_monthly_plan(config.plan_name):
        fixed_months = config.duration_months or 1
    return AddonOptions(
        in_gym_available=is_in_gym_addon_available(config),
        trainer_available=is_trainer_addon_available(config),
        fixed_trainer_months=fixed_months,
    )


__all__ = [
    "PlanConfiguration",
    "AddonOptions",
    "is_regular_monthly_plan",
    "base_plan_type",
    "is_in_gym_addon_available",
    "is_trainer_addon_available",
    "trainer_addon_months",
    "resolve_addon_options",
]
