"""Delivery of notification intents to the notification service."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from app.core.config import settings

logger = logging.getLogger(__name__)

INTENTS_PATH = "/api/gym/v1/notification/intents"


class NotificationClient:
    """POSTs intents one at a time; an empty base URL disables delivery."""

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        if base_url is None:
            base_url = settings.NOTIFICATION_SERVICE_URL
        self._base_url = (base_url or "").rstrip("/")
        self._timeout = timeout or settings.NOTIFICATION_SERVICE_TIMEOUT

    @property
    def is_configured(self) -> bool:
        return bool(self._base_url)

    @property
    def intents_url(self) -> str:
        return f"{self._base_url}{INTENTS_PATH}"

    def send_intent(self, payload: Dict[str, Any]) -> bool:
        """Returns ``False`` when the intent was not delivered."""

        intent_type = payload.get("type")
        if not self.is_configured:
            logger.debug("No notification service configured; %s intent kept local", intent_type)
            return False

        try:
            response = httpx.post(self.intents_url, json=payload, timeout=self._timeout)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "Notification service rejected %s intent %s with HTTP %s: %s",
                intent_type,
                payload.get("id"),
                exc.response.status_code,
                exc.response.text,
            )
            return False
        except httpx.RequestError as exc:
            logger.warning(
                "Could not deliver %s intent %s: %s", intent_type, payload.get("id"), exc
            )
            return False

        logger.debug("Delivered %s intent %s", intent_type, payload.get("id"))
        return True


__all__ = ["NotificationClient", "INTENTS_PATH"]
