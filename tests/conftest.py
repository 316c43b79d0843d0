"""Shared pytest fixtures.

Integration tests (marked ``integration``) need PostgreSQL. The URL comes from
TEST_DATABASE_* env vars when set; otherwise a throwaway testcontainers
PostgreSQL is started for the session. Without either, those tests skip.
Unit tests never touch these fixtures.
"""

from __future__ import annotations

import os
import sys

import pytest
import pytest_asyncio
import structlog
from sqlalchemy.ext.asyncio import create_async_engine

from src.store.database import drop_schema, ensure_schema, make_session_factory


def _external_pg_url() -> str | None:
    host = os.getenv("TEST_DATABASE_HOST")
    if host is None:
        return None
    name = os.getenv("TEST_DATABASE_NAME", "tasklink_test")
    if "_test" not in name.lower():
        raise RuntimeError(
            f"Refusing to run tests against database '{name}': name must contain '_test'."
        )
    user = os.getenv("TEST_DATABASE_USER", "postgres")
    password = os.getenv("TEST_DATABASE_PASSWORD", "")
    port = os.getenv("TEST_DATABASE_PORT", "5432")
    return f"postgresql+asyncpg://{user}:{password}@{host}:{port}/{name}"


@pytest.fixture(autouse=True)
def _reset_structlog():
    """Undo setup_logging() after each test so loggers never hold a closed capture stream."""
    yield
    structlog.reset_defaults()
    # cache_logger_on_first_use pins an assembled logger onto each module-level
    # proxy; drop those so the next test assembles against the current streams.
    for name, module in list(sys.modules.items()):
        if name == "src" or name.startswith("src."):
            for obj in list(vars(module).values()):
                if isinstance(obj, structlog._config.BoundLoggerLazyProxy):
                    vars(obj).pop("bind", None)


@pytest.fixture(scope="session")
def pg_url():
    """Async PostgreSQL URL shared by every integration test of the session."""
    url = _external_pg_url()
    if url is not None:
        yield url
        return

    try:
        from testcontainers.postgres import PostgresContainer

        container = PostgresContainer("postgres:16", dbname="tasklink_test")
        container.start()
    except Exception as e:  # noqa: BLE001
        pytest.skip(f"PostgreSQL not available for integration tests: {e}")

    try:
        yield container.get_connection_url(driver="asyncpg")
    finally:
        container.stop()


@pytest_asyncio.fixture
async def db_session_factory(pg_url: str):
    """Fresh schema per test; dropped again afterwards."""
    engine = create_async_engine(pg_url)
    await ensure_schema(engine)
    try:
        yield make_session_factory(engine)
    finally:
        await drop_schema(engine)
        await engine.dispose()
