"""Admission and monthly fees for in-gym plans."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional

from sqlalchemy.orm import Session

from app.core.exceptions import ConfigUnavailableError
from app.repository import settings_repository

logger = logging.getLogger(__name__)

ADMISSION_FEE_KEY = "in_gym_admission_fee"
MONTHLY_FEE_KEY = "in_gym_monthly_fee"

DEFAULT_ADMISSION_FEE = Decimal("1200")
DEFAULT_MONTHLY_FEE = Decimal("650")


@dataclass(frozen=True)
class FeeSchedule:
    admission_fee: Decimal
    monthly_fee: Decimal
    admission_fee_is_fallback: bool = False
    monthly_fee_is_fallback: bool = False

    @property
    def degraded(self) -> bool:
        return self.admission_fee_is_fallback or self.monthly_fee_is_fallback


def _parse_fee(raw: Optional[str]) -> Optional[Decimal]:
    if raw is None:
        return None
    try:
        value = Decimal(str(raw).strip())
    except (InvalidOperation, ValueError):
        return None
    if not value.is_finite() or value <= 0:
        return None
    return value


class FeeConfigProvider:
    """Resolves fees once per instance; create one per request.

    Missing, malformed or unreachable settings fall back to the built-in
    amounts. That is a degraded mode, not an error.
    """

    def __init__(self, db: Session):
        self.db = db
        self._schedule: Optional[FeeSchedule] = None

    def get_fees(self) -> FeeSchedule:
        if self._schedule is None:
            self._schedule = self._load()
        return self._schedule

    def admission_fee(self) -> Decimal:
        return self.get_fees().admission_fee

    def monthly_fee(self) -> Decimal:
        return self.get_fees().monthly_fee

    def _load(self) -> FeeSchedule:
        try:
            values = settings_repository.get_setting_values(
                self.db, (ADMISSION_FEE_KEY, MONTHLY_FEE_KEY)
            )
        except ConfigUnavailableError as exc:
            logger.warning("Fee settings unavailable, using fallback fees: %s", exc)
            # Leave the session usable for the caller after a failed read.
            self.db.rollback()
            values = {}

        admission = _parse_fee(values.get(ADMISSION_FEE_KEY))
        monthly = _parse_fee(values.get(MONTHLY_FEE_KEY))

        if admission is None:
            logger.warning(
                "Setting %s missing or invalid; falling back to %s",
                ADMISSION_FEE_KEY,
                DEFAULT_ADMISSION_FEE,
            )
        if monthly is None:
            logger.warning(
                "Setting %s missing or invalid; falling back to %s",
                MONTHLY_FEE_KEY,
                DEFAULT_MONTHLY_FEE,
            )

        return FeeSchedule(
            admission_fee=admission if admission is not None else DEFAULT_ADMISSION_FEE,
            monthly_fee=monthly if monthly is not None else DEFAULT_MONTHLY_FEE,
            admission_fee_is_fallback=admission is None,
            monthly_fee_is_fallback=monthly is None,
        )


__all__ = [
    "ADMISSION_FEE_KEY",
    "MONTHLY_FEE_KEY",
    "DEFAULT_ADMISSION_FEE",
    "DEFAULT_MONTHLY_FEE",
    "FeeSchedule",
    "FeeConfigProvider",
]
