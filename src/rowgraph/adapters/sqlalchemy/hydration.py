"""Rebuild application objects from stored rows."""

from __future__ import annotations

import dataclasses
from collections import deque
from typing import TYPE_CHECKING

from rowgraph.domain.schema import FieldKind

if TYPE_CHECKING:
    from collections.abc import Sequence

    from rowgraph.domain.handles import RowHandle
    from rowgraph.domain.schema import TypeDescriptor

    from .store import SqlAlchemyRowStore


def _ignored_default(descriptor: TypeDescriptor, name: str) -> object:
    for dc_field in dataclasses.fields(descriptor.model):
        if dc_field.name != name:
            continue
        if dc_field.default is not dataclasses.MISSING:
            return dc_field.default
        if dc_field.default_factory is not dataclasses.MISSING:
            return dc_field.default_factory()
    return None


class Hydrator:
    """Load rows (and every row they reach) as fresh dataclass instances.

    One hydrator corresponds to one load: a row reached twice, including via a
    cycle, yields the same instance. ``__init__`` is bypassed so rows load even
    for classes with required constructor arguments; ignored fields get their
    declared default.
    """

    def __init__(self, store: SqlAlchemyRowStore) -> None:
        self._store = store
        self._instances: dict[RowHandle, object] = {}
        self._pending: deque[tuple[object, RowHandle]] = deque()

    @property
    def loaded(self) -> dict[RowHandle, object]:
        return dict(self._instances)

    def load(self, handles: Sequence[RowHandle]) -> list[object]:
        results = [self._instance_for(handle) for handle in handles]
        while self._pending:
            obj, handle = self._pending.popleft()
            self._fill(obj, handle)
        return results

    def _instance_for(self, handle: RowHandle) -> object:
        existing = self._instances.get(handle)
        if existing is None:
            model = self._store.tables.descriptor(handle.type_name).model
            existing = model.__new__(model)
            self._instances[handle] = existing
            self._pending.append((existing, handle))
        return existing

    def _fill(self, obj: object, handle: RowHandle) -> None:
        descriptor = self._store.tables.descriptor(handle.type_name)
        row = self._store.read_row(handle)
        for field in descriptor.fields:
            if field.kind is FieldKind.SCALAR:
                value = row[field.name]
            elif field.kind is FieldKind.OBJECT:
                target = row[field.name]
                value = None if target is None else self._instance_for(target)
            elif field.kind is FieldKind.OBJECT_LIST:
                value = [
                    None if element is None else self._instance_for(element)
                    for element in self._store.read_list(handle, field.name)
                ]
            else:
                value = self._store.read_list(handle, field.name)
            object.__setattr__(obj, field.name, value)
        for name in descriptor.ignored_fields:
            object.__setattr__(obj, name, _ignored_default(descriptor, name))
