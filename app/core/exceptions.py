from typing import Any, Dict, Optional


class AppException(Exception):
    def __init__(
        self,
        message: str,
        status_code: int = 400,
        error_code: str = "BUSINESS_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        super().__init__(self.message)


class InvalidRequestError(AppException):
    def __init__(self, message: str = "The request is missing required fields.", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=400,
            error_code="INVALID_REQUEST",
            details=details
        )


class InvalidTokenError(AppException):
    def __init__(self, message: str = "This scheduling URL is not valid."):
        super().__init__(
            message=message,
            status_code=404,
            error_code="INVALID_TOKEN"
        )


class ScheduleNotFoundError(AppException):
    def __init__(self, message: str = "The selected schedule could not be found."):
        super().__init__(
            message=message,
            status_code=404,
            error_code="SCHEDULE_NOT_FOUND"
        )


class InvalidTimeRangeError(AppException):
    def __init__(self, message: str = "The selected time range is not available."):
        super().__init__(
            message=message,
            status_code=400,
            error_code="INVALID_TIME_RANGE"
        )


class RateLimitedError(AppException):
    def __init__(self, retry_after: int, remaining: int = 0):
        super().__init__(
            message="Too many requests. Please wait a moment and try again.",
            status_code=429,
            error_code="RATE_LIMITED",
            details={"retryAfter": retry_after}
        )
        self.retry_after = retry_after
        self.remaining = remaining


class BookingNotFoundError(AppException):
    def __init__(self, message: str = "The booking could not be found."):
        super().__init__(
            message=message,
            status_code=404,
            error_code="BOOKING_NOT_FOUND"
        )


class BookingAlreadyCancelledError(AppException):
    def __init__(self, message: str = "This booking has already been cancelled."):
        super().__init__(
            message=message,
            status_code=400,
            error_code="BOOKING_ALREADY_CANCELLED"
        )


class JobSeekerNotFoundError(AppException):
    def __init__(self, message: str = "Job seeker not found."):
        super().__init__(
            message=message,
            status_code=404,
            error_code="JOB_SEEKER_NOT_FOUND"
        )


class AccessDeniedError(AppException):
    """Custom permission error. Named AccessDeniedError to avoid shadowing Python's built-in PermissionError."""
    def __init__(self, message: str = "You are not allowed to modify this booking."):
        super().__init__(
            message=message,
            status_code=403,
            error_code="FORBIDDEN"
        )


class AuthenticationError(AppException):
    def __init__(self, message: str = "Invalid or missing API key"):
        super().__init__(
            message=message,
            status_code=401,
            error_code="AUTH_FAILED"
        )
