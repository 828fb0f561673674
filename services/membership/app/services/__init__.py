"""Service layer for the membership service."""

from app.services.fee_config import FeeConfigProvider
from app.services.membership_lifecycle import MembershipLifecycleService
from app.services.notification_client import NotificationClient
from app.services.notifications import NotificationEmitter
from app.services.payment_submission import PaymentSubmissionHandler

__all__ = [
    "FeeConfigProvider",
    "MembershipLifecycleService",
    "NotificationClient",
    "NotificationEmitter",
    "PaymentSubmissionHandler",
]
