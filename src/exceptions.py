class AppException(Exception):
    """Base exception for application errors."""

    code: str = "APP_ERROR"
    status_code: int = 500

    def __init__(self, message: str, details: list[dict] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or []


class NotFoundException(AppException):
    code = "NOT_FOUND"
    status_code = 404


class ConflictException(AppException):
    """Stale aggregate version; the caller must re-read and retry."""

    code = "CONFLICT"
    status_code = 409


class InvalidStateException(AppException):
    code = "INVALID_STATE"
    status_code = 409


class ForbiddenException(AppException):
    code = "FORBIDDEN"
    status_code = 403


class UnauthorizedException(AppException):
    code = "UNAUTHORIZED"
    status_code = 401


class ValidationException(AppException):
    code = "VALIDATION_ERROR"
    status_code = 422


class UnavailableException(AppException):
    """Storage unreachable. Safe for the client to retry."""

    code = "UNAVAILABLE"
    status_code = 503
    retryable = True


class ReconciliationRequiredException(AppException):
    """An order was created but the inquiry could not be marked converted."""

    code = "RECONCILIATION_REQUIRED"
    status_code = 500
