"""Public fee lookup."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.dependencies import get_db
from app.schemas import FeeResponse
from app.services import FeeConfigProvider

router = APIRouter(prefix="/fees", tags=["fees"])


@router.get("", response_model=FeeResponse)
def get_fees(db: Session = Depends(get_db)):
    fees = FeeConfigProvider(db).get_fees()
    return FeeResponse(
        admission_fee=fees.admission_fee,
        monthly_fee=fees.monthly_fee,
        is_fallback=fees.degraded,
    )
