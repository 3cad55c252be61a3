"""Unit tests for bounded retry of storage transactions."""

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from tenantguard.core.errors import NotFoundError, StorageFailureError
from tenantguard.core.retry import is_transient, run_with_retry


class FakeSession:
    def __init__(self, log: list[str]):
        self.log = log

    async def __aenter__(self):
        self.log.append("open")
        return self

    async def __aexit__(self, *exc_info):
        self.log.append("close")
        return False

    async def commit(self):
        self.log.append("commit")

    async def rollback(self):
        self.log.append("rollback")


def make_factory(log: list[str]):
    return lambda: FakeSession(log)


def operational_error() -> OperationalError:
    return OperationalError("UPDATE licenses", {}, Exception("could not serialize access"))


class TestIsTransient:
    def test_operational_and_stale_are_transient(self):
        assert is_transient(operational_error())
        assert is_transient(StaleDataError("version mismatch"))

    def test_integrity_and_domain_errors_are_not(self):
        assert not is_transient(IntegrityError("INSERT", {}, Exception("duplicate")))
        assert not is_transient(NotFoundError())


@pytest.mark.asyncio
class TestRunWithRetry:
    async def test_commits_on_first_success(self):
        log: list[str] = []

        async def operation(session):
            return 42

        assert await run_with_retry(make_factory(log), operation, attempts=3, base_delay_ms=0) == 42
        assert log == ["open", "commit", "close"]

    async def test_retries_transient_failure_in_a_fresh_session(self):
        log: list[str] = []
        calls = []

        async def operation(session):
            calls.append(session)
            if len(calls) < 3:
                raise operational_error()
            return "done"

        result = await run_with_retry(make_factory(log), operation, attempts=3, base_delay_ms=0)

        assert result == "done"
        assert len(calls) == 3
        assert len({id(s) for s in calls}) == 3
        assert log.count("rollback") == 2
        assert log.count("commit") == 1

    async def test_exhausted_retries_surface_storage_failure(self):
        log: list[str] = []

        async def operation(session):
            raise StaleDataError("version mismatch")

        with pytest.raises(StorageFailureError) as exc_info:
            await run_with_retry(make_factory(log), operation, attempts=2, base_delay_ms=0)

        assert isinstance(exc_info.value.__cause__, StaleDataError)
        assert log.count("open") == 2
        assert "commit" not in log

    async def test_non_transient_error_is_not_retried(self):
        log: list[str] = []

        async def operation(session):
            raise NotFoundError("License not found")

        with pytest.raises(NotFoundError):
            await run_with_retry(make_factory(log), operation, attempts=5, base_delay_ms=0)

        assert log == ["open", "rollback", "close"]
