"""Error taxonomy shared by the storage layer and the HTTP handlers."""

from typing import Any


class TruthLensError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, errors: list[Any] | None = None) -> None:
        self.message = message or self.default_message
        self.errors = errors or []
        super().__init__(self.message)


class NotFoundError(TruthLensError):
    status_code = 404
    default_message = "Not found"


class InvalidDataError(TruthLensError):
    status_code = 400
    default_message = "Invalid data"


class ConflictError(TruthLensError):
    """Unique-constraint violation; retryable when caused by racing writers."""

    status_code = 409
    default_message = "Conflict"


class InternalError(TruthLensError):
    status_code = 500
    default_message = "Internal server error"


def is_unique_violation(exc: Exception) -> bool:
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code is not None:
        return code == "23505"
    text = str(orig or exc).lower()
    return "unique" in text or "duplicate key" in text


def is_foreign_key_violation(exc: Exception) -> bool:
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code is not None:
        return code == "23503"
    return "foreign key" in str(orig or exc).lower()


def translate_integrity_error(
    exc: Exception,
    conflict_message: str = "Resource already exists",
    missing_message: str = "Referenced resource not found",
) -> TruthLensError:
    if is_unique_violation(exc):
        return ConflictError(conflict_message)
    if is_foreign_key_violation(exc):
        return NotFoundError(missing_message)
    return InternalError()
