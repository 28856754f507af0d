"""Tests for transient conflict detection."""

from sqlalchemy.exc import IntegrityError, OperationalError

from storefront.core.errors import (
    NotFoundError,
    TransientConflictError,
    ValidationError,
    is_transient_conflict,
    is_transient_db_error,
)


class DriverError(Exception):
    def __init__(self, message: str, sqlstate: str | None = None) -> None:
        super().__init__(message)
        self.sqlstate = sqlstate


def test_postgres_serialization_failure_is_transient():
    exc = OperationalError("UPDATE", {}, DriverError("could not serialize", "40001"))
    assert is_transient_db_error(exc)


def test_postgres_deadlock_is_transient():
    exc = OperationalError("UPDATE", {}, DriverError("deadlock detected", "40P01"))
    assert is_transient_db_error(exc)


def test_sqlite_lock_is_transient():
    exc = OperationalError("INSERT", {}, DriverError("database is locked"))
    assert is_transient_db_error(exc)


def test_constraint_violation_is_not_transient():
    exc = IntegrityError("INSERT", {}, DriverError("duplicate key", "23505"))
    assert not is_transient_db_error(exc)


def test_non_database_errors_are_not_transient():
    assert not is_transient_db_error(RuntimeError("database is locked"))


def test_retry_predicate_only_accepts_transient_conflicts():
    assert is_transient_conflict(TransientConflictError())
    assert not is_transient_conflict(ValidationError("Cart is empty"))
    assert not is_transient_conflict(NotFoundError())


def test_error_status_codes():
    assert ValidationError().status_code == 400
    assert NotFoundError().status_code == 404
    assert TransientConflictError().status_code == 500
    assert ValidationError("Cart is empty").message == "Cart is empty"
    assert NotFoundError().message == "Not found"
