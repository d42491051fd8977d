from functools import lru_cache
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import get_settings


def set_lock_wait_timeout(dbapi_connection: Any, connection_record: Any) -> None:
    """Bound InnoDB row-lock waits for every new MySQL/MariaDB connection.

    The value is connection-scoped, so it applies to every transaction the pool runs on it.
    """
    seconds = get_settings().lock_timeout_seconds
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute(f"SET innodb_lock_wait_timeout = {seconds}")
    finally:
        cursor.close()


@lru_cache
def get_engine() -> AsyncEngine:
    settings = get_settings()
    engine = create_async_engine(
        settings.database_url,
        echo=settings.echo_sql,
        pool_pre_ping=True,
        pool_recycle=3600,
    )
    if engine.dialect.name in ("mysql", "mariadb"):
        event.listen(engine.sync_engine, "connect", set_lock_wait_timeout)
    return engine


@lru_cache
def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(get_engine(), expire_on_commit=False, class_=AsyncSession)
