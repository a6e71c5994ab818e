"""SQLAlchemy-backed unit of work around the graph insertion engine."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal, TypeVar

from sqlalchemy import create_engine

from rowgraph.config import get_database_config
from rowgraph.domain import walker
from rowgraph.domain.errors import ConstraintViolationError
from rowgraph.domain.ports import NO_KEY

from .hydration import Hydrator
from .mappings import build_tables, create_all_tables
from .store import SqlAlchemyRowStore

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator
    from types import TracebackType

    from sqlalchemy.engine import Engine

    from rowgraph.domain.handles import RowHandle
    from rowgraph.domain.schema import SchemaCatalog

    from .mappings import StoreTables

log = logging.getLogger(__name__)

T = TypeVar("T")


class StartupError(RuntimeError):
    """Raised when a SQLAlchemy unit of work is used before initialisation."""


@dataclass(slots=True)
class _AdapterState:
    _engine: Engine | None = None
    _tables: StoreTables | None = None

    @property
    def engine(self) -> Engine | None:
        return self._engine

    @property
    def tables(self) -> StoreTables:
        if self._engine is None or self._tables is None:
            raise StartupError(
                "SQLAlchemy adapter not initialised. Call rowgraph.adapters.sqlalchemy."
                "unit_of_work.startup() before requesting a unit of work."
            )
        return self._tables

    def configure(self, engine: Engine | None, tables: StoreTables | None) -> None:
        self._engine = engine
        self._tables = tables


_STATE = _AdapterState()


def startup(
    catalog: SchemaCatalog,
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> None:
    """Initialise the engine and create the tables for ``catalog``."""

    if _STATE.engine is not None and not force:
        raise StartupError(
            "SQLAlchemy adapter already initialised. Pass force=True to reconfigure."
        )

    if engine is None:
        config = get_database_config()
        engine = create_engine(database_uri or config.uri, echo=config.echo)
    tables = build_tables(catalog)
    create_all_tables(engine, tables)
    _STATE.configure(engine, tables)
    log.info("Started row store on %s with %s types", engine.url, len(tables.rows))


def configured_engine() -> Engine | None:
    """Return the engine currently managed by the adapter (if any)."""

    return _STATE.engine


def is_started() -> bool:
    """Return whether the adapter has been initialised."""

    return _STATE.engine is not None


def shutdown() -> None:
    """Dispose the managed engine and reset state (primarily for tests)."""

    if _STATE.engine is not None:
        _STATE.engine.dispose()
    _STATE.configure(None, None)


@dataclass(slots=True)
class _ManagedEntry:
    obj: object
    handle: RowHandle
    key: object


class SqlAlchemyUnitOfWork:
    """One connection, its write transactions, and the objects loaded through it.

    The connection is opened by ``__enter__`` and closed by ``__exit__`` on every
    exit path; a write transaction still open at that point is rolled back.
    Objects returned by :meth:`get`, :meth:`find`, :meth:`all` and
    :meth:`copy_to_store` are *managed*: inserting them again writes into
    their existing row instead of creating a new one.
    """

    def __init__(self) -> None:
        self.tables: StoreTables = _STATE.tables
        self.engine: Engine = _STATE.engine  # type: ignore[assignment]
        self._store: SqlAlchemyRowStore | None = None
        self._managed: dict[int, _ManagedEntry] = {}

    def __enter__(self) -> SqlAlchemyUnitOfWork:
        if self._store is not None:
            raise StartupError("Unit of work connection already open")
        self._store = SqlAlchemyRowStore(self.engine.connect(), self.tables)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        store = self.store
        try:
            if store.in_write_transaction:
                if exc_type is None:
                    log.warning("Closing unit of work with an open write transaction; rolling back")
                store.rollback()
        finally:
            store.connection.close()
            self._store = None
            self._managed.clear()
        return False

    @property
    def store(self) -> SqlAlchemyRowStore:
        if self._store is None:
            raise StartupError("Unit of work connection not open")
        return self._store

    @property
    def catalog(self) -> SchemaCatalog:
        return self.tables.catalog

    # Transactions ------------------------------------------------------------

    @property
    def is_in_transaction(self) -> bool:
        return self._store is not None and self._store.in_write_transaction

    def begin(self) -> None:
        self.store.begin()

    def commit(self) -> None:
        self.store.commit()

    def rollback(self) -> None:
        discarded = self.store.rollback()
        if not discarded:
            return
        for identity, entry in list(self._managed.items()):
            if entry.handle in discarded:
                del self._managed[identity]

    @contextmanager
    def transaction(self) -> Iterator[SqlAlchemyUnitOfWork]:
        """Run the block in a write transaction, committed unless it raises."""

        self.begin()
        try:
            yield self
        except BaseException:
            if self.is_in_transaction:
                self.rollback()
            raise
        self.commit()

    # Graph insertion -------------------------------------------------------

    def insert(self, obj: object) -> None:
        walker.insert(self.catalog, self.store, obj, managed=self._managed_handle)

    def insert_all(self, objects: Iterable[object]) -> None:
        walker.insert_all(self.catalog, self.store, objects, managed=self._managed_handle)

    def insert_or_update(self, obj: object) -> None:
        walker.insert_or_update(self.catalog, self.store, obj, managed=self._managed_handle)

    def insert_or_update_all(self, objects: Iterable[object]) -> None:
        walker.insert_or_update_all(
            self.catalog, self.store, objects, managed=self._managed_handle
        )

    def copy_to_store(self, obj: T, *, update: bool = False) -> T:
        """Insert (or upsert) ``obj`` and return a managed copy of its row."""

        graph_walker = walker.GraphWalker(
            self.catalog, self.store, update=update, managed=self._managed_handle
        )
        handle = graph_walker.materialize(obj)
        return self.get(handle)  # type: ignore[return-value]

    # Reads -----------------------------------------------------------------

    def get(self, handle: RowHandle) -> object:
        return self._load([handle])[0]

    def find(self, model: type[T], key: object) -> T | None:
        """Return the managed object of ``model`` whose primary key is ``key``."""

        handle = self.store.find_row_by_key(self.catalog.descriptor_for(model), key)
        if handle is None:
            return None
        return self._load([handle])[0]  # type: ignore[return-value]

    def all(self, model: type[T]) -> list[T]:
        handles = self.store.row_handles(self.catalog.descriptor_for(model))
        return self._load(handles)  # type: ignore[return-value]

    def count(self, model: type | str) -> int:
        return self.store.count(self.catalog.descriptor_for(model))

    def handle_of(self, obj: object) -> RowHandle | None:
        entry = self._managed.get(id(obj))
        if entry is None or entry.obj is not obj:
            return None
        return entry.handle

    def is_managed(self, obj: object) -> bool:
        return self.handle_of(obj) is not None

    def _load(self, handles: list[RowHandle]) -> list[object]:
        hydrator = Hydrator(self.store)
        results = hydrator.load(handles)
        for handle, obj in hydrator.loaded.items():
            descriptor = self.tables.descriptor(handle.type_name)
            key = NO_KEY if descriptor.primary_key is None else getattr(obj, descriptor.primary_key.name)
            self._managed[id(obj)] = _ManagedEntry(obj=obj, handle=handle, key=key)
        return results

    def _managed_handle(self, obj: object) -> RowHandle | None:
        handle = self.handle_of(obj)
        if handle is None:
            return None
        entry = self._managed[id(obj)]
        descriptor = self.tables.descriptor(handle.type_name)
        if descriptor.primary_key is not None:
            current = getattr(obj, descriptor.primary_key.name)
            if current != entry.key:
                raise ConstraintViolationError(
                    f"Primary key of managed {descriptor.name} cannot change "
                    f"from {entry.key!r} to {current!r}"
                )
        return handle
