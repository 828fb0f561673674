from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class AuditLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id_log: int
    membership_id: int
    action: str
    message: str
    previous_status: Optional[str] = None
    new_status: Optional[str] = None
    actor_id: Optional[int] = None
    timestamp: datetime
