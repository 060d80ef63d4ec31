"""
run_with_retry classification tests.

Verifies:
- Stale writes and deadlocks are retried, then surface as ConcurrentModificationError
- Lock timeouts surface as StoreTimeoutError without retrying
- Other store errors surface as StoreFailureError
- Domain errors and cancellation pass through after a rollback
"""

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from groceries.errors import (
    ConcurrentModificationError,
    EmptyOrderError,
    StoreFailureError,
    StoreTimeoutError,
)
from groceries.extensions import db
from groceries.models import Product
from groceries.services.concurrency import run_with_retry


class FakePgError(Exception):
    def __init__(self, message, pgcode):
        super().__init__(message)
        self.pgcode = pgcode


def _operational(message, pgcode=None):
    orig = FakePgError(message, pgcode) if pgcode else Exception(message)
    return OperationalError("SELECT 1", {}, orig)


def _stage_write():
    db.session.add(Product(name="Uncommitted", price_cents=100, stock_quantity=1))
    db.session.flush()


def _assert_rolled_back():
    assert not db.session.new
    assert db.session.query(Product).filter_by(name="Uncommitted").count() == 0


class TestRetry:

    def test_returns_result(self, app):
        assert run_with_retry(lambda: 42, operation="noop") == 42

    def test_stale_data_retried_then_succeeds(self, db_session):
        attempts = []

        def flaky():
            attempts.append(1)
            _stage_write()
            if len(attempts) < 3:
                raise StaleDataError("version mismatch")
            return "ok"

        assert run_with_retry(flaky, operation="flaky", backoff_base=0) == "ok"
        assert len(attempts) == 3
        # Only the last attempt's write survives
        db.session.commit()
        assert db.session.query(Product).filter_by(name="Uncommitted").count() == 1

    def test_retries_exhausted(self, app):
        attempts = []

        def always_stale():
            attempts.append(1)
            raise StaleDataError("version mismatch")

        with pytest.raises(ConcurrentModificationError) as exc:
            run_with_retry(always_stale, operation="place_order", retries=3, backoff_base=0)

        assert len(attempts) == 4
        assert exc.value.http_status == 409
        assert exc.value.details["attempts"] == 4

    def test_deadlock_is_retried(self, app):
        attempts = []

        def deadlocked_once():
            attempts.append(1)
            if len(attempts) == 1:
                raise _operational("deadlock detected", pgcode="40P01")
            return "ok"

        assert run_with_retry(deadlocked_once, operation="deadlock", backoff_base=0) == "ok"
        assert len(attempts) == 2

    def test_default_retry_count_comes_from_config(self, app):
        attempts = []

        def always_serialization_failure():
            attempts.append(1)
            raise _operational("could not serialize access", pgcode="40001")

        with pytest.raises(ConcurrentModificationError):
            run_with_retry(always_serialization_failure, operation="serial", backoff_base=0)
        assert len(attempts) == app.config["STORE_RETRY_ATTEMPTS"] + 1


class TestClassification:

    @pytest.mark.parametrize("error", [
        _operational("database is locked"),
        _operational("canceling statement due to statement timeout", pgcode="57014"),
        _operational("could not obtain lock on row", pgcode="55P03"),
    ])
    def test_timeouts(self, db_session, error):
        attempts = []

        def blocked():
            attempts.append(1)
            _stage_write()
            raise error

        with pytest.raises(StoreTimeoutError) as exc:
            run_with_retry(blocked, operation="place_order")
        assert exc.value.http_status == 503
        assert len(attempts) == 1
        _assert_rolled_back()

    def test_other_store_errors(self, db_session):
        def broken():
            _stage_write()
            raise IntegrityError("INSERT", {}, Exception("constraint failed"))

        with pytest.raises(StoreFailureError) as exc:
            run_with_retry(broken, operation="place_order")
        assert exc.value.operation == "place_order"
        _assert_rolled_back()

    def test_unclassified_operational_error(self, app):
        def broken():
            raise _operational("disk I/O error")

        with pytest.raises(StoreFailureError):
            run_with_retry(broken, operation="place_order")

    def test_domain_errors_pass_through(self, db_session):
        def empty():
            _stage_write()
            raise EmptyOrderError()

        with pytest.raises(EmptyOrderError):
            run_with_retry(empty, operation="place_order")
        _assert_rolled_back()

    def test_cancellation_rolls_back(self, db_session):
        def interrupted():
            _stage_write()
            raise KeyboardInterrupt()

        with pytest.raises(KeyboardInterrupt):
            run_with_retry(interrupted, operation="place_order")
        _assert_rolled_back()
