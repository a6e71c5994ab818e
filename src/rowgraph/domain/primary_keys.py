"""Primary-key reconciliation for upserts."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .handles import RowHandle
    from .ports import RowStore
    from .schema import TypeDescriptor

log = logging.getLogger(__name__)


class PrimaryKeyResolver:
    """Two-level lookup from ``(type, key value)`` to a row handle.

    The first level is a cache that lives for one top-level call, so a key that
    recurs throughout a graph is looked up in the store at most once and rows
    created earlier in the same call are found before they are committed. On a
    cache miss the store is queried and a hit is cached. ``None`` is an ordinary
    key value here: two objects with a ``None`` key collapse onto one row.
    """

    def __init__(self, store: RowStore) -> None:
        self._store = store
        self._handles: dict[str, dict[object, RowHandle]] = {}
        self.cache_hits = 0
        self.store_lookups = 0

    def resolve(self, descriptor: TypeDescriptor, key: object) -> RowHandle | None:
        cached = self._handles.get(descriptor.name, {})
        if key in cached:
            self.cache_hits += 1
            return cached[key]

        self.store_lookups += 1
        handle = self._store.find_row_by_key(descriptor, key)
        if handle is not None:
            log.debug("Matched existing %s row for key %r", descriptor.name, key)
            self.register(descriptor, key, handle)
        return handle

    def register(self, descriptor: TypeDescriptor, key: object, handle: RowHandle) -> None:
        self._handles.setdefault(descriptor.name, {})[key] = handle
