"""
Domain exception taxonomy and the JSON error envelope.

Services raise these; the handlers registered by ``register_exception_handlers``
render every failure as ``{"success": false, "error": "..."}``.
"""
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from lucky_triple.core.logging import get_logger

logger = get_logger(__name__)


class LuckyTripleError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationFailed(LuckyTripleError):
    status_code = status.HTTP_400_BAD_REQUEST


class InsufficientBalance(ValidationFailed):
    def __init__(self, message: str = "Insufficient balance"):
        super().__init__(message)


class AlreadyProcessed(LuckyTripleError):
    """Terminal ledger entries cannot transition again."""
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "Transaction already processed"):
        super().__init__(message)


class BalanceConflict(LuckyTripleError):
    """The balance changed between read and compare-and-swap write."""
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str = "Balance changed, please retry"):
        super().__init__(message)


class AuthenticationRequired(LuckyTripleError):
    status_code = status.HTTP_401_UNAUTHORIZED


class PermissionDenied(LuckyTripleError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(LuckyTripleError):
    status_code = status.HTTP_404_NOT_FOUND


class ServiceFailure(LuckyTripleError):
    """Unclassified failure; the message is generic, details stay in the logs."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def _first_validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid value")
    return f"{location}: {message}" if location else message


def register_exception_handlers(app: FastAPI) -> None:
    """Install envelope-producing handlers on the application."""

    @app.exception_handler(LuckyTripleError)
    async def lucky_triple_error_handler(request: Request, exc: LuckyTripleError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return error_response(exc.status_code, exc.message)

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        logger.warning(f"Rate limit exceeded on {request.method} {request.url.path}: {exc.detail}")
        response = error_response(status.HTTP_429_TOO_MANY_REQUESTS, f"Rate limit exceeded: {exc.detail}")
        limiter = getattr(request.app.state, "limiter", None)
        view_rate_limit = getattr(request.state, "view_rate_limit", None)
        if limiter is not None and view_rate_limit is not None:
            response = limiter._inject_headers(response, view_rate_limit)
        return response

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return error_response(status.HTTP_400_BAD_REQUEST, _first_validation_message(exc))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled exception on {request.method} {request.url.path}: {exc}")
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Server error")
