"""
Global exception handlers for consistent API errors.

Forma de respuesta: {"message", "code", "details"?, "request_id"?}.
"""
import logging
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from uncaged.core.errors import AppError, InternalError, ValidationFailed


def _req_id(request: Request) -> str | None:
    return getattr(getattr(request, "state", object()), "request_id", None)


def _body(request: Request, message: str, code: str | None = None, details: Any = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"message": message}
    if code:
        body["code"] = code
    if details is not None:
        body["details"] = jsonable_encoder(details)
    rid = _req_id(request)
    if rid:
        body["request_id"] = rid
    return body


def register_exception_handlers(app: FastAPI) -> None:
    log = logging.getLogger("uncaged.errors")

    @app.exception_handler(AppError)
    async def _app_error_handler(request: Request, exc: AppError):
        log_fn = log.error if exc.status_code >= 500 else log.warning
        log_fn(
            "%s method=%s path=%s status=%s code=%s request_id=%s",
            exc.message, request.method, request.url.path, exc.status_code, exc.code, _req_id(request),
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=_body(request, exc.message, exc.code, exc.details),
        )

    @app.exception_handler(StarletteHTTPException)
    async def _http_exc_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content=_body(request, exc.detail or "HTTP error"))

    @app.exception_handler(RequestValidationError)
    async def _validation_handler(request: Request, exc: RequestValidationError):
        err = ValidationFailed()
        return JSONResponse(
            status_code=err.status_code,
            content=_body(request, err.message, err.code, exc.errors()),
        )

    @app.exception_handler(Exception)
    async def _generic_handler(request: Request, exc: Exception):
        log.exception("Unhandled error method=%s path=%s request_id=%s", request.method, request.url.path, _req_id(request))
        err = InternalError()
        return JSONResponse(status_code=err.status_code, content=_body(request, err.message, err.code))
