"""In-memory implementation of the ``RowStore`` port for walker tests."""

from __future__ import annotations

from itertools import count
from typing import TYPE_CHECKING

from rowgraph.domain.errors import ConstraintViolationError, TransactionStateError
from rowgraph.domain.handles import ListHandle, RowHandle
from rowgraph.domain.ports import NO_KEY

if TYPE_CHECKING:
    from collections.abc import Mapping

    from rowgraph.domain.schema import TypeDescriptor


class MemoryRowStore:
    """Rows as dictionaries, with every write recorded in ``events``."""

    def __init__(self, *, in_write_transaction: bool = True) -> None:
        self.in_write_transaction = in_write_transaction
        self.rows: dict[RowHandle, dict[str, object]] = {}
        self.lists: dict[tuple[RowHandle, str], list[object]] = {}
        self.events: list[tuple[str, object]] = []
        self.key_lookups = 0
        self._ids = count(1)

    def _require_transaction(self) -> None:
        if not self.in_write_transaction:
            raise TransactionStateError("No write transaction is open")

    def _find(self, descriptor: TypeDescriptor, key: object) -> RowHandle | None:
        if descriptor.primary_key is None:
            return None
        name = descriptor.primary_key.name
        for handle, row in self.rows.items():
            if handle.type_name == descriptor.name and name in row and row[name] == key:
                return handle
        return None

    def create_row(self, descriptor: TypeDescriptor, key: object = NO_KEY) -> RowHandle:
        self._require_transaction()
        row: dict[str, object] = {}
        if key is not NO_KEY:
            assert descriptor.primary_key is not None
            if self._find(descriptor, key) is not None:
                raise ConstraintViolationError(f"duplicate key {key!r}")
            row[descriptor.primary_key.name] = key
        handle = RowHandle(descriptor.name, next(self._ids))
        self.rows[handle] = row
        self.events.append(("create", handle))
        return handle

    def find_row_by_key(self, descriptor: TypeDescriptor, key: object) -> RowHandle | None:
        self.key_lookups += 1
        return self._find(descriptor, key)

    def write_scalar(self, handle: RowHandle, field: str, value: object) -> None:
        self.write_scalars(handle, {field: value})

    def write_scalars(self, handle: RowHandle, values: Mapping[str, object]) -> None:
        self._require_transaction()
        self.rows[handle].update(values)
        self.events.append(("scalars", handle))

    def write_reference(self, handle: RowHandle, field: str, target: RowHandle | None) -> None:
        self._require_transaction()
        self.rows[handle][field] = target
        self.events.append(("reference", (handle, field)))

    def create_list(self, handle: RowHandle, field: str) -> ListHandle:
        self._require_transaction()
        self.lists[(handle, field)] = []
        self.events.append(("list", (handle, field)))
        return ListHandle(owner=handle, field=field)

    def append_to_list(self, list_handle: ListHandle, value: object) -> None:
        self._require_transaction()
        self.lists[(list_handle.owner, list_handle.field)].append(value)
        list_handle.length += 1

    def rows_of(self, type_name: str) -> list[RowHandle]:
        return [handle for handle in self.rows if handle.type_name == type_name]

    def list_of(self, handle: RowHandle, field: str) -> list[object]:
        return self.lists[(handle, field)]
