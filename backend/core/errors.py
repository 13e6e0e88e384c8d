"""
Error taxonomy and the handlers that turn every failure into the uniform
JSON envelope ``{"status": "error", "message": ...}``.

Handlers raise the classes below exactly like a plain ``HTTPException``;
the status code is fixed per class so call sites only supply the message.

=====================  ====  ==========================================
Class                  Code  Raised for
=====================  ====  ==========================================
ValidationError        400   malformed input, schema violations
ConflictError          400   duplicate email, last-admin protection
AuthenticationError    401   missing / invalid / expired credentials
AuthorizationError     403   role not allowed
NotFoundError          404   unknown resource id
(anything else)        500   generic message, traceback logged
=====================  ====  ==========================================
"""

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.logger import logger

_INTERNAL_ERROR = "Internal server error"


class ValidationError(HTTPException):
    def __init__(self, detail: str = "Invalid request"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class ConflictError(HTTPException):
    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class AuthenticationError(HTTPException):
    def __init__(self, detail: str = "Not authenticated"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthorizationError(HTTPException):
    def __init__(self, detail: str = "You do not have permission to perform this action"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class NotFoundError(HTTPException):
    def __init__(self, detail: str = "Resource not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


def error_response(status_code: int, message: str, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"status": "error", "message": message},
        headers=headers,
    )


def _describe(error: dict) -> str:
    # ("body", "publishDate") -> "publishDate"; keep the location short
    loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
    msg = error.get("msg", "invalid value")
    return f"{'.'.join(loc)}: {msg}" if loc else msg


def register_exception_handlers(app: FastAPI) -> None:
    """Install the envelope-producing handlers on *app*."""

    @app.exception_handler(StarletteHTTPException)
    async def _handle_http_error(request: Request, exc: StarletteHTTPException):
        message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
        if exc.status_code == status.HTTP_404_NOT_FOUND and message == "Not Found":
            message = "Resource not found"
        return error_response(exc.status_code, message, getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def _handle_validation_error(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = _describe(errors[0]) if errors else "Invalid request"
        return error_response(status.HTTP_400_BAD_REQUEST, message)

    @app.exception_handler(Exception)
    async def _handle_unexpected(request: Request, exc: Exception):
        logger.exception(
            "Unhandled error on %s %s", request.method, request.url.path, exc_info=exc
        )
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, _INTERNAL_ERROR)
