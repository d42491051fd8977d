from types import SimpleNamespace
from typing import Any, Iterator, List

import pytest
from exam_booking import database
from exam_booking.config import get_settings
from exam_booking.domain.errors import ResourceBusyError
from exam_booking.infrastructure.repositories import SqlAlchemySlotRepository, is_lock_timeout
from sqlalchemy import event
from sqlalchemy.exc import DBAPIError


class MySQLError(Exception):
    pass


class PGError(Exception):
    def __init__(self, message: str, sqlstate: str) -> None:
        super().__init__(message)
        self.sqlstate = sqlstate


def _dbapi_error(orig: Exception) -> DBAPIError:
    return DBAPIError("SELECT ... FOR UPDATE", None, orig)


class LockingSession:
    """Records statements and fails the locking read with `error`."""

    def __init__(self, dialect: str, error: Exception | None = None) -> None:
        self.dialect = dialect
        self.error = error
        self.executed: List[str] = []

    def get_bind(self) -> Any:
        return SimpleNamespace(dialect=SimpleNamespace(name=self.dialect))

    async def execute(self, stmt: Any) -> None:
        self.executed.append(str(stmt))

    async def scalar(self, stmt: Any) -> Any:
        if self.error is not None:
            raise self.error
        return None


@pytest.fixture(autouse=True)
def _settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.setenv("LOCK_TIMEOUT_SECONDS", "3")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_mysql_lock_wait_timeout_is_recognised() -> None:
    assert is_lock_timeout(_dbapi_error(MySQLError(1205, "Lock wait timeout exceeded"))) is True


def test_postgres_lock_not_available_is_recognised() -> None:
    assert is_lock_timeout(_dbapi_error(PGError("canceling statement due to lock timeout", "55P03"))) is True


def test_other_driver_errors_are_not_lock_timeouts() -> None:
    assert is_lock_timeout(_dbapi_error(MySQLError(1213, "Deadlock found"))) is False
    assert is_lock_timeout(_dbapi_error(PGError("unique violation", "23505"))) is False


@pytest.mark.asyncio
async def test_locking_read_leaves_mysql_session_settings_alone() -> None:
    session = LockingSession("mysql")
    assert await SqlAlchemySlotRepository(session).get_for_update(1) is None  # type: ignore[arg-type]
    assert session.executed == []


@pytest.mark.asyncio
async def test_locking_read_bounds_wait_on_postgres() -> None:
    session = LockingSession("postgresql")
    await SqlAlchemySlotRepository(session).get_for_update(1)  # type: ignore[arg-type]
    assert session.executed == ["SET LOCAL lock_timeout = '3s'"]


@pytest.mark.asyncio
async def test_lock_wait_timeout_becomes_resource_busy() -> None:
    error = _dbapi_error(MySQLError(1205, "Lock wait timeout exceeded"))
    session = LockingSession("mysql", error=error)
    with pytest.raises(ResourceBusyError):
        await SqlAlchemySlotRepository(session).get_for_update(1)  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_unrelated_driver_error_propagates() -> None:
    error = _dbapi_error(MySQLError(1213, "Deadlock found"))
    session = LockingSession("mysql", error=error)
    with pytest.raises(DBAPIError):
        await SqlAlchemySlotRepository(session).get_for_update(1)  # type: ignore[arg-type]


class RecordingCursor:
    def __init__(self) -> None:
        self.statements: List[str] = []
        self.closed = False

    def execute(self, statement: str) -> None:
        self.statements.append(statement)

    def close(self) -> None:
        self.closed = True


def test_connect_hook_sets_innodb_lock_wait_once_per_connection() -> None:
    cursor = RecordingCursor()
    connection = SimpleNamespace(cursor=lambda: cursor)

    database.set_lock_wait_timeout(connection, None)

    assert cursor.statements == ["SET innodb_lock_wait_timeout = 3"]
    assert cursor.closed is True


@pytest.mark.parametrize(
    ("url", "hooked"),
    [
        ("mysql+aiomysql://app:pw@127.0.0.1:3306/exam_booking", True),
        ("sqlite+aiosqlite://", False),
    ],
)
def test_engine_installs_connect_hook_only_for_mysql(
    monkeypatch: pytest.MonkeyPatch,
    url: str,
    hooked: bool,
) -> None:
    monkeypatch.setenv("DATABASE_URL", url)
    get_settings.cache_clear()
    database.get_engine.cache_clear()
    try:
        engine = database.get_engine()
        assert event.contains(engine.sync_engine, "connect", database.set_lock_wait_timeout) is hooked
    finally:
        database.get_engine.cache_clear()
