from __future__ import annotations


class AppError(Exception):
    """Base application error; ``status_code`` is its HTTP rendering."""

    status_code = 500

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class ValidationError(AppError):
    status_code = 422


class NotFoundError(AppError):
    status_code = 404


class ConflictError(AppError):
    """Idempotency key reused for a different message."""

    status_code = 409


class TransientIOError(AppError):
    """Storage or network failure that is safe to retry."""

    status_code = 503


class DependencyError(AppError):
    """A collaborator refused the request; retrying will not help."""

    status_code = 424


def error_for_status(status_code: int) -> type[AppError]:
    """Inverse of ``status_code`` for clients reading an error response."""
    if status_code in (400, ValidationError.status_code):
        return ValidationError
    if status_code == 429 or status_code >= 500:
        return TransientIOError
    for cls in (NotFoundError, ConflictError, DependencyError):
        if cls.status_code == status_code:
            return cls
    return AppError
