"""Repository helpers for the membership service."""

from app.repository import (
    addon_repository,
    audit_log_repository,
    membership_repository,
    notification_repository,
    payment_repository,
    settings_repository,
    trainer_assignment_repository,
    trainer_repository,
)

__all__ = [
    "addon_repository",
    "audit_log_repository",
    "membership_repository",
    "notification_repository",
    "payment_repository",
    "settings_repository",
    "trainer_assignment_repository",
    "trainer_repository",
]
