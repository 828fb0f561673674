"""Exception handlers that give every membership response the same error shape."""
from __future__ import annotations

import logging
from typing import Any, Dict, List

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core.exceptions import MembershipError

logger = logging.getLogger(__name__)


def _detail_text(detail: Any) -> str:
    if isinstance(detail, str):
        return detail
    if detail is None:
        return "An error occurred"
    if isinstance(detail, dict):
        nested = detail.get("detail")
        if isinstance(nested, str):
            return nested
        return "; ".join(f"{key}: {value}" for key, value in detail.items())
    if isinstance(detail, (list, tuple)):
        return "; ".join(_detail_text(item) for item in detail)
    return str(detail)


def _validation_messages(exc: RequestValidationError) -> List[str]:
    messages = []
    for error in exc.errors():
        # "body" is implied for JSON payloads; keep query/path prefixes.
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        message = error.get("msg", "Invalid input")
        messages.append(f"{location}: {message}" if location else message)
    return messages


def _respond(exc: HTTPException, content: Dict[str, Any]) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(MembershipError)
    async def membership_error_handler(
        request: Request, exc: MembershipError
    ) -> JSONResponse:  # type: ignore[override]
        if exc.status_code >= 500:
            logger.error(
                "%s on %s %s: %s", exc.kind, request.method, request.url.path, exc.message
            )
        else:
            logger.info(
                "%s on %s %s: %s", exc.kind, request.method, request.url.path, exc.message
            )
        return _respond(exc, exc.to_payload())

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):  # type: ignore[override]
        return _respond(exc, {"detail": _detail_text(exc.detail)})

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:  # type: ignore[override]
        messages = _validation_messages(exc)
        return JSONResponse(
            status_code=422,
            content={"detail": "; ".join(messages) if messages else "Invalid request"},
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:  # type: ignore[override]
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})


__all__ = ["register_exception_handlers"]
