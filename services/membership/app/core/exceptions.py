"""Domain errors raised by the membership lifecycle."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class MembershipError(HTTPException):
    """Base class for failures that carry a stable error kind.

    Subclasses are regular ``HTTPException`` instances so routers can let them
    propagate untouched; ``context`` holds the extra fields returned to the
    caller next to ``detail``.
    """

    kind: str = "MembershipError"
    default_status: int = status.HTTP_400_BAD_REQUEST

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
        **context: Any,
    ) -> None:
        super().__init__(
            status_code=status_code or self.default_status,
            detail=message,
            headers=headers,
        )
        self.message = message
        self.context = {key: value for key, value in context.items() if value is not None}

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"detail": self.message, "error": self.kind}
        for key, value in self.context.items():
            payload[key] = _jsonable(value)
        return payload


class UnauthorizedError(MembershipError):
    kind = "Unauthorized"
    default_status = status.HTTP_401_UNAUTHORIZED


class NotFoundError(MembershipError):
    kind = "NotFound"
    default_status = status.HTTP_404_NOT_FOUND


class InvalidStateError(MembershipError):
    kind = "InvalidState"
    default_status = status.HTTP_409_CONFLICT


class DuplicatePendingError(MembershipError):
    kind = "DuplicatePending"
    default_status = status.HTTP_409_CONFLICT


class AmountMismatchError(MembershipError):
    kind = "AmountMismatch"
    default_status = status.HTTP_400_BAD_REQUEST


class EligibilityDeniedError(MembershipError):
    kind = "EligibilityDenied"
    default_status = status.HTTP_400_BAD_REQUEST


class ConcurrentModificationError(MembershipError):
    kind = "ConcurrentModification"
    default_status = status.HTTP_409_CONFLICT


class AddonCreationFailedError(MembershipError):
    kind = "AddonCreationFailed"
    default_status = status.HTTP_500_INTERNAL_SERVER_ERROR


class ConfigUnavailableError(Exception):
    """Raised when operational settings cannot be read.

    Never leaves the fee config provider, which falls back to defaults.
    """


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value


__all__ = [
    "MembershipError",
    "UnauthorizedError",
    "NotFoundError",
    "InvalidStateError",
    "DuplicatePendingError",
    "AmountMismatchError",
    "EligibilityDeniedError",
    "ConcurrentModificationError",
    "AddonCreationFailedError",
    "ConfigUnavailableError",
]
