"""SQLAlchemy models for the membership service."""
from app.models.trainer import Trainer
from app.models.membership import Membership
from app.models.payment import Payment
from app.models.addon import MembershipAddon
from app.models.trainer_assignment import TrainerAssignment
from app.models.admin_setting import AdminSetting
from app.models.notification_intent import NotificationIntent
from app.models.audit_log import MembershipAuditLog

__all__ = [
    "Trainer",
    "Membership",
    "Payment",
    "MembershipAddon",
    "TrainerAssignment",
    "AdminSetting",
    "NotificationIntent",
    "MembershipAuditLog",
]
