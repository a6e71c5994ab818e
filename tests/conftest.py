from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002

from rowgraph.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork, shutdown, startup
from tests.helpers.models import catalog
from tests.support.memory_store import MemoryRowStore

os.environ.setdefault("ROWGRAPH_DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator


@pytest.fixture
def memory_store() -> MemoryRowStore:
    return MemoryRowStore()


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = create_engine("sqlite+pysqlite:///:memory:")
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_unit_of_work(
    sqlite_engine: Engine,
) -> Iterator[Callable[[], SqlAlchemyUnitOfWork]]:
    startup(catalog, engine=sqlite_engine, force=True)

    def factory() -> SqlAlchemyUnitOfWork:
        return SqlAlchemyUnitOfWork()

    try:
        yield factory
    finally:
        shutdown()


@pytest.fixture
def uow(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> Iterator[SqlAlchemyUnitOfWork]:
    """An open unit of work with a write transaction already begun."""

    with sqlite_unit_of_work() as unit_of_work:
        unit_of_work.begin()
        yield unit_of_work
