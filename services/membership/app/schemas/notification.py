from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class NotificationIntentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    intent_type: str
    membership_id: int
    payment_id: Optional[int] = None
    addon_id: Optional[int] = None
    assignment_id: Optional[int] = None
    recipient_user_id: Optional[int] = None
    human_summary: str
    created_at: datetime
