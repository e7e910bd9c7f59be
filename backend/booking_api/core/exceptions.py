"""
Domain exceptions for the booking API.

Every failure the workflow reports carries:
  - status_code: the HTTP status the API layer responds with
  - code:        a stable machine-readable tag (not_found, insufficient_seats, ...)
  - retryable:   whether resubmitting the same request may succeed

Handlers in booking_api.api.errors turn these into the standard
{success, message, errors} envelope.
"""

from typing import Any, Optional

from fastapi import status


class BookingAPIError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "bad_request"
    retryable: bool = False

    def __init__(self, message: str, errors: Optional[list[Any]] = None):
        self.message = message
        self.errors = errors
        super().__init__(message)


class NotFoundError(BookingAPIError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class AuthenticationError(BookingAPIError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthorized"


class ForbiddenError(BookingAPIError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"


class InputValidationError(BookingAPIError):
    code = "validation_error"


class NotBookableError(BookingAPIError):
    code = "not_bookable"


class InsufficientSeatsError(BookingAPIError):
    status_code = status.HTTP_409_CONFLICT
    code = "insufficient_seats"


class NotCancellableError(BookingAPIError):
    code = "not_cancellable"


class TooLateToCancelError(NotCancellableError):
    code = "too_late_to_cancel"


class DuplicateBookingError(BookingAPIError):
    status_code = status.HTTP_409_CONFLICT
    code = "duplicate_booking"


class ConflictError(BookingAPIError):
    """Concurrent-transaction contention. Safe to resubmit."""

    status_code = status.HTTP_409_CONFLICT
    code = "conflict"
    retryable = True


class LockTimeoutError(ConflictError):
    code = "lock_timeout"


class InternalError(BookingAPIError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "internal"

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)
