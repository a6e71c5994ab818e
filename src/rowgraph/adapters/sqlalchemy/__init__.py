"""SQLAlchemy adapter package for rowgraph."""

from __future__ import annotations

from .hydration import Hydrator
from .mappings import StoreTables, build_tables, create_all_tables
from .store import SqlAlchemyRowStore
from .unit_of_work import (
    SqlAlchemyUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)

__all__ = [
    "Hydrator",
    "SqlAlchemyRowStore",
    "SqlAlchemyUnitOfWork",
    "StartupError",
    "StoreTables",
    "build_tables",
    "configured_engine",
    "create_all_tables",
    "is_started",
    "shutdown",
    "startup",
]
