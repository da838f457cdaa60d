"""
Error taxonomy and the JSON error envelope.

Every error leaves the API as ``{"error": <machine code>, "message": <text>, "code": <status>}``.
Clients branch on ``error``, never on ``message``.
"""

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class PortalError(Exception):
    status_code = 500
    error_code = "internal_error"

    def __init__(self, message: str, error_code: str | None = None):
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code


class ValidationError(PortalError):
    status_code = 400
    error_code = "validation_error"


class AuthenticationError(PortalError):
    status_code = 401
    error_code = "authentication_required"


class AuthorizationError(PortalError):
    status_code = 403
    error_code = "forbidden"


class NotFoundError(PortalError):
    status_code = 404
    error_code = "not_found"


class ConflictError(PortalError):
    status_code = 409
    error_code = "conflict"


class StoreError(PortalError):
    status_code = 500
    error_code = "store_error"


class ExternalServiceError(PortalError):
    status_code = 502
    error_code = "external_service_error"


HTTP_ERROR_CODES = {
    400: "bad_request",
    401: "authentication_required",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    422: "validation_error",
}


def error_body(error: str, message: str, code: int) -> dict:
    return {"error": error, "message": message, "code": code}


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(PortalError)
    async def portal_error_handler(request: Request, exc: PortalError):
        if exc.status_code >= 500:
            logger.error(f"❌ {request.method} {request.url.path}: {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.error_code, exc.message, exc.status_code),
        )

    @app.exception_handler(HTTPException)
    async def http_error_handler(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(
                HTTP_ERROR_CODES.get(exc.status_code, "http_error"), str(exc.detail), exc.status_code
            ),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg', 'invalid input')}" if field else "Invalid input"
        return JSONResponse(status_code=400, content=error_body("validation_error", message, 400))

    @app.exception_handler(SQLAlchemyError)
    async def store_error_handler(request: Request, exc: SQLAlchemyError):
        logger.exception(f"❌ Store failure on {request.method} {request.url.path}")
        return JSONResponse(status_code=500, content=error_body("store_error", "Database operation failed", 500))
