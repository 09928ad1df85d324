from dataclasses import dataclass

from fastapi import status


@dataclass(frozen=True)
class ErrorDefinition:
    code: str
    message: str
    status_code: int
    retryable: bool = False


class ErrorCatalog:
    INVALID_TOKEN = ErrorDefinition("INVALID_TOKEN", "Invalid token", status.HTTP_401_UNAUTHORIZED)
    INVALID_CREDENTIALS = ErrorDefinition(
        "INVALID_CREDENTIALS",
        "Invalid credentials",
        status.HTTP_401_UNAUTHORIZED,
    )
    DENIED = ErrorDefinition("DENIED", "Access denied", status.HTTP_403_FORBIDDEN)
    INVALID_INPUT = ErrorDefinition(
        "INVALID_INPUT",
        "Invalid input",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    CONFLICT = ErrorDefinition(
        "CONFLICT",
        "Request conflicts with the current state of the resource",
        status.HTTP_409_CONFLICT,
    )
    UNAVAILABLE = ErrorDefinition(
        "UNAVAILABLE",
        "Service temporarily unavailable",
        status.HTTP_503_SERVICE_UNAVAILABLE,
        retryable=True,
    )
    INTERNAL_ERROR = ErrorDefinition(
        "INTERNAL_ERROR",
        "Internal server error",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


class AppError(Exception):
    def __init__(self, error: ErrorDefinition, details: object | None = None):
        self.error = error
        self.details = details
        super().__init__(error.message)


class Denied(AppError):
    """Scope or role violation.

    Raised identically for rows that do not exist and rows outside the
    caller's scope. ``reason`` is kept for audit records only and is never
    rendered to the caller.
    """

    def __init__(self, reason: str = "denied"):
        super().__init__(ErrorCatalog.DENIED)
        self.reason = reason


class InvalidInput(AppError):
    def __init__(self, message: str, **details):
        super().__init__(ErrorCatalog.INVALID_INPUT, details={"message": message, **details})


class Unavailable(AppError):
    def __init__(self, component: str):
        super().__init__(ErrorCatalog.UNAVAILABLE, details={"component": component, "retryable": True})


class Conflict(AppError):
    def __init__(self, current_status: str, allowed_transitions: list[str], message: str | None = None):
        details = {
            "current_status": current_status,
            "allowed_transitions": allowed_transitions,
        }
        if message:
            details["message"] = message
        super().__init__(ErrorCatalog.CONFLICT, details=details)
