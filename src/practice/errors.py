"""Error taxonomy and the handler that renders it."""

from typing import Any, Dict, Optional

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

log = structlog.get_logger()


class PracticeError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        *,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code

    def to_response(self) -> Dict[str, Any]:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }


class Unauthenticated(PracticeError):
    """No valid session is attached to the request."""

    status_code = status.HTTP_401_UNAUTHORIZED
    code = "UNAUTHENTICATED"


class AuthenticationError(PracticeError):
    """Username/password pair did not match a stored account."""

    status_code = status.HTTP_401_UNAUTHORIZED
    code = "INVALID_CREDENTIALS"


class ValidationError(PracticeError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_ERROR"


class NotFound(PracticeError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"


class StorageError(PracticeError):
    """An object store or session store call failed."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "STORAGE_ERROR"


class UpstreamError(PracticeError):
    """The execution or advice service failed or returned non-success."""

    status_code = status.HTTP_502_BAD_GATEWAY
    code = "UPSTREAM_ERROR"

    def __init__(self, message: str, details=None, *, retryable: bool = False, **kwargs):
        super().__init__(message, details, **kwargs)
        self.retryable = retryable
        self.details.setdefault("retryable", retryable)


class ParseError(PracticeError):
    """A body expected to hold structured data could not be parsed."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "PARSE_ERROR"


async def practice_error_handler(request: Request, exc: PracticeError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error(
            "request.failed",
            path=request.url.path,
            code=exc.code,
            message=exc.message,
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_response())


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    error = ValidationError(
        "Invalid request",
        {"errors": [{"loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors()]},
    )
    return JSONResponse(status_code=error.status_code, content=error.to_response())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PracticeError, practice_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
