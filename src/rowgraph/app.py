"""Application orchestration entry points."""

from __future__ import annotations

from collections.abc import Callable
from logging import getLogger
from typing import TYPE_CHECKING

from rowgraph.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork, startup

if TYPE_CHECKING:
    from rowgraph.domain.schema import SchemaCatalog

UnitOfWorkFactory = Callable[[], SqlAlchemyUnitOfWork]


log = getLogger(__name__)


def create_tables(catalog: SchemaCatalog, database_uri: str | None = None) -> list[str]:
    """Create the tables for every type in ``catalog`` and return the row table names."""

    startup(catalog, database_uri=database_uri, force=True)
    names = [descriptor.name for descriptor in catalog.descriptors()]
    log.info("Created tables for %s types", len(names))
    return names


def count_rows(
    catalog: SchemaCatalog,
    type_name: str,
    database_uri: str | None = None,
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> int:
    """Return the number of stored rows of ``type_name``."""

    if unit_of_work_factory is None:
        startup(catalog, database_uri=database_uri, force=True)
    effective_uow = unit_of_work_factory or SqlAlchemyUnitOfWork
    with effective_uow() as uow:
        total = uow.count(type_name)
    log.info("Counted %s rows of %s", total, type_name)
    return total
