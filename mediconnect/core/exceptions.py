"""Custom application exceptions."""


class AppException(Exception):
    """Base application exception."""

    default_code = "error"

    def __init__(self, message: str, status_code: int = 500, code: str | None = None):
        """Initialize exception with message, status code and machine-readable code."""
        self.message = message
        self.status_code = status_code
        self.code = code or self.default_code
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    default_code = "not_found"

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class UnauthorizedException(AppException):
    """Unauthorized access exception."""

    default_code = "invalid_credentials"

    def __init__(self, message: str = "Unauthorized", code: str | None = None):
        """Initialize with 401 status code."""
        super().__init__(message, status_code=401, code=code)


class SessionInvalidatedException(UnauthorizedException):
    """Credential was valid but a newer login or a logout superseded it."""

    default_code = "session_invalidated"

    def __init__(self, message: str = "Session invalidated. You have logged in elsewhere."):
        """Initialize with 401 status code and the session_invalidated code."""
        super().__init__(message)


class ForbiddenException(AppException):
    """Forbidden access exception."""

    default_code = "forbidden"

    def __init__(self, message: str = "Forbidden"):
        """Initialize with 403 status code."""
        super().__init__(message, status_code=403)


class BadRequestException(AppException):
    """Bad request exception."""

    default_code = "bad_request"

    def __init__(self, message: str = "Bad request"):
        """Initialize with 400 status code."""
        super().__init__(message, status_code=400)


class ConflictException(AppException):
    """Conflict exception."""

    default_code = "conflict"

    def __init__(self, message: str = "Conflict"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)


class ValidationException(AppException):
    """Validation error exception."""

    default_code = "validation_error"

    def __init__(self, message: str = "Validation error"):
        """Initialize with 422 status code."""
        super().__init__(message, status_code=422)


class InvalidTransitionException(ConflictException):
    """Appointment lifecycle transition not allowed from the current state."""

    default_code = "invalid_transition"


# Booking admission rejections. These are deterministic business outcomes the
# client can correct by picking another slot; they are never retried.


class BookingRejectedException(AppException):
    """Base class for slot admission rejections."""

    default_code = "booking_rejected"


class DoctorUnavailableException(BookingRejectedException):
    """Doctor has no open window on the requested day."""

    default_code = "doctor_unavailable"

    def __init__(self, message: str = "Doctor is not available on this date"):
        """Initialize with 400 status code."""
        super().__init__(message, status_code=400)


class OutsideHoursException(BookingRejectedException):
    """Requested time falls outside the doctor's window for that day."""

    default_code = "outside_hours"

    def __init__(self, message: str = "Selected time is outside doctor availability"):
        """Initialize with 400 status code."""
        super().__init__(message, status_code=400)


class SlotTakenException(BookingRejectedException):
    """Another non-cancelled appointment already holds the slot."""

    default_code = "slot_taken"

    def __init__(self, message: str = "This slot is already booked"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)
