from __future__ import annotations

from typing import Optional

from sqlalchemy.orm import Session

from app.models.trainer import Trainer


def get_trainer(db: Session, trainer_id: int) -> Optional[Trainer]:
    return db.query(Trainer).filter(Trainer.id == trainer_id).first()


__all__ = ["get_trainer"]
