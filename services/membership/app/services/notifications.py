"""Notification intents emitted by the membership lifecycle.

Intents are persisted with the business change that produced them and are
delivered to the notification service only after the caller commits.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import BackgroundTasks
from sqlalchemy.orm import Session

from app.models.notification_intent import NotificationIntent
from app.repository import notification_repository
from app.services.notification_client import NotificationClient

logger = logging.getLogger(__name__)


class IntentType:
    PAYMENT_SUBMITTED = "payment_submitted"
    TRAINER_ASSIGNMENT_REQUESTED = "trainer_assignment_requested"
    TRAINER_RENEWAL_SUBMITTED = "trainer_renewal_submitted"
    MEMBERSHIP_APPROVED = "membership_approved"
    MEMBERSHIP_REJECTED = "membership_rejected"
    TRAINER_RENEWAL_APPROVED = "trainer_renewal_approved"
    TRAINER_RENEWAL_REJECTED = "trainer_renewal_rejected"
    MEMBERSHIP_GRACE_PERIOD = "membership_grace_period"
    MEMBERSHIP_EXPIRED = "membership_expired"
    MEMBERSHIP_EXPIRING = "membership_expiring"
    TRAINER_PERIOD_EXPIRING = "trainer_period_expiring"
    TRAINER_GRACE_PERIOD = "trainer_grace_period"
    TRAINER_ACCESS_REVOKED = "trainer_access_revoked"
    TRAINER_ASSIGNED = "trainer_assigned"


def intent_payload(intent: NotificationIntent) -> Dict[str, Any]:
    return {
        "id": intent.id,
        "type": intent.intent_type,
        "membershipId": intent.membership_id,
        "paymentId": intent.payment_id,
        "addonId": intent.addon_id,
        "assignmentId": intent.assignment_id,
        "recipientUserId": intent.recipient_user_id,
        "humanSummary": intent.human_summary,
    }


class NotificationEmitter:
    def __init__(self, db: Session, client: Optional[NotificationClient] = None):
        self.db = db
        self.client = client or NotificationClient()
        self._outbox: List[NotificationIntent] = []

    def emit(
        self,
        intent_type: str,
        membership_id: int,
        human_summary: str,
        *,
        payment_id: Optional[int] = None,
        addon_id: Optional[int] = None,
        assignment_id: Optional[int] = None,
        recipient_user_id: Optional[int] = None,
        created_at: Optional[datetime] = None,
    ) -> NotificationIntent:
        intent = NotificationIntent(
            intent_type=intent_type,
            membership_id=membership_id,
            payment_id=payment_id,
            addon_id=addon_id,
            assignment_id=assignment_id,
            recipient_user_id=recipient_user_id,
            human_summary=human_summary,
        )
        if created_at is not None:
            intent.created_at = created_at
        notification_repository.create_intent(self.db, intent)
        self._outbox.append(intent)
        return intent

    def discard(self) -> None:
        self._outbox.clear()

    def dispatch(self, background_tasks: Optional[BackgroundTasks] = None) -> int:
        """Hand committed intents to the notification service.

        Delivery failures are logged by the client and never raised.
        """

        payloads = [intent_payload(intent) for intent in self._outbox]
        self._outbox.clear()

        for payload in payloads:
            if background_tasks is not None:
                background_tasks.add_task(self.client.send_intent, payload)
            else:
                self.client.send_intent(payload)

        return len(payloads)


__all__ = ["IntentType", "NotificationEmitter", "intent_payload"]
