"""
Shop error taxonomy.

Every error carries the HTTP status it maps to. Messages of 5xx errors
are logged but never sent to the client.
"""

from sqlalchemy.exc import DBAPIError

# Postgres SQLSTATEs for serialization failure and detected deadlock
TRANSIENT_SQLSTATES = frozenset({"40001", "40P01"})


class ShopError(Exception):
    """Base class for errors surfaced by the shop core."""

    status_code: int = 500
    public_message: str = "An error occurred while processing your request"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.public_message)
        self.message = message or self.public_message


class ValidationError(ShopError):
    """Bad input or business-rule violation."""

    status_code = 400
    public_message = "Validation failed"


class UnauthorizedError(ShopError):
    status_code = 401
    public_message = "Unauthorized"


class ForbiddenError(ShopError):
    status_code = 403
    public_message = "Forbidden"


class NotFoundError(ShopError):
    status_code = 404
    public_message = "Not found"


class TransientConflictError(ShopError):
    """The transaction lost a concurrent write race and may be retried."""

    public_message = "Concurrent update conflict"


class UpstreamError(ShopError):
    """The payment provider call failed."""

    public_message = "Payment provider request failed"


class RetryExhaustedError(ShopError):
    public_message = "Failed to process your request after multiple attempts"

    def __init__(self, attempts: int) -> None:
        super().__init__(f"Gave up after {attempts} attempts")
        self.attempts = attempts


def is_transient_db_error(exc: BaseException) -> bool:
    """Check whether a driver error signals a lost write race."""
    if not isinstance(exc, DBAPIError):
        return False

    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in TRANSIENT_SQLSTATES:
        return True

    # SQLite reports lock contention instead of serialization failures
    return "database is locked" in str(orig)


def is_transient_conflict(exc: BaseException) -> bool:
    """Retry predicate for checkout attempts."""
    return isinstance(exc, TransientConflictError)
