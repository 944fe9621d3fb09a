"""Typed application errors and the JSON error envelope handlers."""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import settings

logger = logging.getLogger(__name__)


class AppError(Exception):
    """An error a service raises on purpose, carrying its HTTP status and code."""

    def __init__(self, status_code: int, code: str, message: str, details: Optional[Any] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details


def bad_request(message: str, details: Optional[Any] = None) -> AppError:
    return AppError(400, "BAD_REQUEST", message, details)


def unauthorized(message: str) -> AppError:
    return AppError(401, "UNAUTHORIZED", message)


def forbidden(message: str) -> AppError:
    return AppError(403, "FORBIDDEN", message)


def not_found(message: str) -> AppError:
    return AppError(404, "NOT_FOUND", message)


def conflict(message: str) -> AppError:
    return AppError(409, "CONFLICT", message)


HTTP_STATUS_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "BAD_REQUEST",
    409: "CONFLICT",
}


def error_body(code: str, message: str, details: Optional[Any] = None) -> dict:
    error: dict[str, Any] = {"code": code, "message": message}
    if details:
        error["details"] = details
    return {"success": False, "error": error}


def format_validation_errors(exc: RequestValidationError) -> dict[str, str]:
    formatted: dict[str, str] = {}
    for issue in exc.errors():
        # Drop the leading "body"/"query"/"path" segment.
        path = ".".join(str(part) for part in issue["loc"][1:])
        formatted.setdefault(path or "_root", issue["msg"])
    return formatted


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s: %s", exc.code, exc.message, exc_info=exc)
    else:
        logger.warning("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.code, exc.message, exc.details))


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = format_validation_errors(exc)
    logger.warning("%s %s -> VALIDATION_ERROR: %s", request.method, request.url.path, details)
    return JSONResponse(status_code=400, content=error_body("VALIDATION_ERROR", "Invalid input", details))


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404:
        code, message = "NOT_FOUND", "The requested resource was not found"
    else:
        code = HTTP_STATUS_CODES.get(exc.status_code, "INTERNAL_ERROR")
        message = str(exc.detail)
    logger.warning("%s %s -> %s", request.method, request.url.path, code)
    return JSONResponse(status_code=exc.status_code, content=error_body(code, message))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("INTERNAL_ERROR on %s %s: %s", request.method, request.url.path, exc, exc_info=exc)
    message = "Internal server error" if settings.is_production else str(exc)
    return JSONResponse(status_code=500, content=error_body("INTERNAL_ERROR", message))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
