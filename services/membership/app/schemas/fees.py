from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel


class FeeResponse(BaseModel):
    admission_fee: Decimal
    monthly_fee: Decimal
    is_fallback: bool = False
