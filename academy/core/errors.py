"""Error taxonomy shared by the progress and analytics services.

Services raise these synchronously where a problem is detected; nothing
in the core catches or retries them.  The HTTP layer maps each class to
its ``status_code`` in a single exception handler (see academy.main).
"""

from __future__ import annotations


class AppError(Exception):
    """Base class for every error the core raises on purpose."""

    code = "APP_ERROR"
    status_code = 400

    def __init__(self, message: str, *, details: dict[str, object] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, object]:
        body: dict[str, object] = {"detail": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class NotFoundError(AppError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str, id: object | None = None) -> None:
        message = (
            f"{resource} with id {id} not found" if id is not None
            else f"{resource} not found"
        )
        super().__init__(message)
        self.resource = resource


class AuthorizationError(AppError):
    code = "AUTHORIZATION_ERROR"
    status_code = 403

    def __init__(self, message: str = "Not authorized") -> None:
        super().__init__(message)


class ValidationError(AppError):
    code = "VALIDATION_ERROR"
    status_code = 400


class ConflictError(AppError):
    code = "CONFLICT"
    status_code = 409
