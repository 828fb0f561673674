from typing import Optional

from fastapi import Depends, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from app.core.config import settings
from app.core.exceptions import UnauthorizedError

bearer_scheme = HTTPBearer(auto_error=False)

_AUTH_HEADERS = {"WWW-Authenticate": "Bearer"}


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> dict:
    """Validate the bearer token issued by the Auth service.

    Returns the decoded JWT payload to downstream dependencies. Raises an HTTP 401
    error when the token is missing or invalid.
    """

    if credentials is None or not credentials.scheme or credentials.scheme.lower() != "bearer":
        raise UnauthorizedError("Not authenticated", headers=_AUTH_HEADERS)

    token = credentials.credentials

    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
        )
    except JWTError as exc:
        raise UnauthorizedError(
            "Could not validate credentials", headers=_AUTH_HEADERS
        ) from exc

    return payload


def user_id_from_payload(payload: dict) -> Optional[int]:
    subject = payload.get("sub")
    if subject is None:
        return None
    try:
        return int(subject)
    except (TypeError, ValueError):
        return None


def get_current_user_id(payload: dict = Depends(get_current_user)) -> int:
    user_id = user_id_from_payload(payload)
    if user_id is None:
        raise UnauthorizedError(
            "Token payload missing a valid subject", headers=_AUTH_HEADERS
        )
    return user_id


def require_admin(payload: dict = Depends(get_current_user)) -> int:
    """Return the admin's user id, rejecting tokens without the admin role."""

    admin_id = user_id_from_payload(payload)
    if admin_id is None:
        raise UnauthorizedError(
            "Token payload missing a valid subject", headers=_AUTH_HEADERS
        )
    if payload.get("role") != settings.ADMIN_ROLE:
        raise UnauthorizedError(
            "Admin privileges required",
            status_code=status.HTTP_403_FORBIDDEN,
        )
    return admin_id


__all__ = ["get_current_user", "get_current_user_id", "require_admin", "user_id_from_payload"]
