from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from kyara.core.config import get_settings
from kyara.core.errors import AppError, InternalError
from kyara.core.i18n import infer_locale_from_headers, t

logger = logging.getLogger(__name__)

_HTTP_STATUS_CODES: dict[int, str] = {
    404: "not_found",
    405: "method_not_allowed",
}


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "-") or "-"


def _locale(request: Request) -> str:
    settings = get_settings()
    return getattr(request.state, "locale", "") or infer_locale_from_headers(
        request.headers,
        default_locale=settings.default_locale,
        locale_header=settings.locale_header,
    )


def error_envelope(*, code: str, message: str, request_id: str) -> dict[str, Any]:
    return {"error": {"code": code, "message": message}, "request_id": request_id}


def _error_response(request: Request, *, status_code: int, code: str, headers: dict[str, str] | None = None) -> JSONResponse:
    payload = error_envelope(code=code, message=t(_locale(request), code), request_id=_request_id(request))
    return JSONResponse(status_code=status_code, content=payload, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        rid = _request_id(request)
        log_extra: dict[str, Any] = {"code": exc.code, "request_id": rid, **(exc.extra or {})}

        headers: dict[str, str] = {}
        if exc.code == "selection_loading":
            headers["Retry-After"] = "1"

        if exc.http_status >= 500:
            logger.warning("app_error", extra=log_extra, exc_info=exc)
        else:
            logger.info("app_error", extra=log_extra)

        return _error_response(request, status_code=exc.http_status, code=exc.code, headers=headers)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        code = _HTTP_STATUS_CODES.get(exc.status_code, "request_invalid")
        logger.info("http_exception", extra={"code": code, "status": exc.status_code, "request_id": _request_id(request)})
        return _error_response(request, status_code=exc.status_code, code=code)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.info(
            "request_validation_error",
            extra={"request_id": _request_id(request), "error_count": len(exc.errors())},
        )
        return _error_response(request, status_code=422, code="request_invalid")

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        logger.info("request_value_error", extra={"request_id": _request_id(request), "reason": str(exc)})
        return _error_response(request, status_code=422, code="request_invalid")

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:  # noqa: ARG001
        logger.exception("unhandled_exception", extra={"request_id": _request_id(request)})
        safe = InternalError()
        return _error_response(request, status_code=safe.http_status, code=safe.code)
