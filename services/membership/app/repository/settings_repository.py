"""Read access to the ``admin_settings`` key/value table."""

from __future__ import annotations

from typing import Dict, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import ConfigUnavailableError
from app.models.admin_setting import AdminSetting


def get_setting_values(db: Session, keys: Iterable[str]) -> Dict[str, Optional[str]]:
    wanted = list(keys)
    try:
        rows = (
            db.query(AdminSetting.setting_key, AdminSetting.setting_value)
            .filter(AdminSetting.setting_key.in_(wanted))
            .all()
        )
    except SQLAlchemyError as exc:
        raise ConfigUnavailableError("Unable to read admin settings") from exc

    return {key: value for key, value in rows}


__all__ = ["get_setting_values"]
