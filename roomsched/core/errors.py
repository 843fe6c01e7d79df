"""Application exceptions, rendered to JSON by the handler in ``main``."""

from __future__ import annotations


class AppError(Exception):
    """Base class for all application exceptions."""

    def __init__(self, message: str, status_code: int = 500, details: dict | None = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(AppError):
    """Caller-fixable problem with a candidate reservation or resource."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, status_code=400, details=details)


class NotAllowedError(AppError):
    """The requested action is not allowed in the record's current state."""

    def __init__(self, message: str):
        super().__init__(message, status_code=400)


class UnauthenticatedError(AppError):
    def __init__(self, message: str = "Unknown or missing user"):
        super().__init__(message, status_code=401)


class PermissionDeniedError(AppError):
    def __init__(self, message: str):
        super().__init__(message, status_code=403)


class NotFoundError(AppError):
    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(f"{resource_type} with id {resource_id} not found", status_code=404)


class TimeConflictError(AppError):
    """Write refused because the slot collides with existing bookings."""

    def __init__(self, conflicts: list[dict]):
        super().__init__(
            "Time conflict with existing bookings",
            status_code=409,
            details={"conflicts": conflicts},
        )
