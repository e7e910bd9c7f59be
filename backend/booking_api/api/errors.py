"""
Exception handlers rendering every failure in the standard envelope.

Status classes: not-found 404, forbidden 403, unauthorized 401,
bad-request 400, conflict 409, internal 500.
"""

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from booking_api.core.exceptions import BookingAPIError
from booking_api.core.logging import get_logger

logger = get_logger(__name__)


def _envelope(status_code: int, message: str, errors=None, headers=None) -> JSONResponse:
    content = {"success": False, "message": message}
    if errors is not None:
        content["errors"] = jsonable_encoder(errors)
    return JSONResponse(status_code=status_code, content=content, headers=headers)


async def booking_error_handler(request: Request, exc: BookingAPIError) -> JSONResponse:
    errors = exc.errors if exc.errors is not None else [{"code": exc.code, "retryable": exc.retryable}]
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
    return _envelope(exc.status_code, exc.message, errors, headers)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("request_validation_failed", errors=len(exc.errors()))
    errors = [
        {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    return _envelope(status.HTTP_400_BAD_REQUEST, "Validation error", errors)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _envelope(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    # Full diagnostics go to the log only
    logger.exception("unhandled_exception", error_type=type(exc).__name__)
    return _envelope(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


EXCEPTION_HANDLERS = {
    BookingAPIError: booking_error_handler,
    RequestValidationError: validation_error_handler,
    StarletteHTTPException: http_error_handler,
    Exception: unhandled_error_handler,
}


def register_exception_handlers(app: FastAPI) -> None:
    for exception_class, handler in EXCEPTION_HANDLERS.items():
        app.add_exception_handler(exception_class, handler)
