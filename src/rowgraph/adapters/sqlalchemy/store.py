"""Row store backed by a SQLAlchemy Core connection."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.exc import IntegrityError

from rowgraph.domain.errors import ConstraintViolationError, TransactionStateError
from rowgraph.domain.handles import ListHandle, RowHandle
from rowgraph.domain.ports import NO_KEY
from rowgraph.domain.schema import FieldKind

from .mappings import OWNER_ID, POSITION, ROW_ID, TARGET_ID, VALUE

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqlalchemy import Connection, Executable, Result, RootTransaction

    from rowgraph.domain.schema import FieldDescriptor, TypeDescriptor

    from .mappings import StoreTables

log = logging.getLogger(__name__)


class SqlAlchemyRowStore:
    """Create, update and read rows on one connection.

    The store owns the write transaction of its connection: ``begin`` opens it,
    ``commit`` and ``rollback`` close it. Writes outside of it are rejected.
    Reads work either way.
    """

    def __init__(self, connection: Connection, tables: StoreTables) -> None:
        self.connection = connection
        self.tables = tables
        self._transaction: RootTransaction | None = None
        self._created: set[RowHandle] = set()

    # Transaction lifecycle -------------------------------------------------

    @property
    def in_write_transaction(self) -> bool:
        return self._transaction is not None and self._transaction.is_active

    @property
    def created_rows(self) -> frozenset[RowHandle]:
        """Rows created in the current write transaction."""
        return frozenset(self._created)

    def begin(self) -> None:
        if self.in_write_transaction:
            raise TransactionStateError("A write transaction is already open")
        if self.connection.in_transaction():
            # drop the implicit read transaction so writes see the latest state
            self.connection.rollback()
        self._transaction = self.connection.begin()
        self._created.clear()

    def commit(self) -> None:
        transaction = self._require_transaction()
        transaction.commit()
        self._transaction = None
        self._created.clear()

    def rollback(self) -> frozenset[RowHandle]:
        """Discard the write transaction and return the rows it had created."""

        transaction = self._require_transaction()
        transaction.rollback()
        self._transaction = None
        discarded = frozenset(self._created)
        self._created.clear()
        log.debug("Rolled back write transaction; discarded %s created rows", len(discarded))
        return discarded

    def _require_transaction(self) -> RootTransaction:
        if self._transaction is None or not self._transaction.is_active:
            raise TransactionStateError("No write transaction is open")
        return self._transaction

    def _write(self, statement: Executable) -> Result[Any]:
        self._require_transaction()
        try:
            return self.connection.execute(statement)
        except IntegrityError as exc:
            raise ConstraintViolationError(str(exc.orig)) from exc

    # Writes ------------------------------------------------------------------

    def create_row(self, descriptor: TypeDescriptor, key: object = NO_KEY) -> RowHandle:
        table = self.tables.row_table(descriptor.name)
        values: dict[str, object] = {}
        if key is not NO_KEY:
            if descriptor.primary_key is None:
                raise ConstraintViolationError(f"{descriptor.name} does not declare a primary key")
            if self.find_row_by_key(descriptor, key) is not None:
                raise ConstraintViolationError(
                    f"{descriptor.name} with primary key {key!r} already exists"
                )
            values[descriptor.primary_key.name] = key
        result = self._write(insert(table).values(values))
        row_id = result.inserted_primary_key[0]
        handle = RowHandle(descriptor.name, int(row_id))
        self._created.add(handle)
        return handle

    def find_row_by_key(self, descriptor: TypeDescriptor, key: object) -> RowHandle | None:
        if descriptor.primary_key is None:
            return None
        table = self.tables.row_table(descriptor.name)
        key_column = table.c[descriptor.primary_key.name]
        condition = key_column.is_(None) if key is None else key_column == key
        stmt = select(table.c[ROW_ID]).where(condition).limit(1)
        row_id = self.connection.execute(stmt).scalar_one_or_none()
        if row_id is None:
            return None
        return RowHandle(descriptor.name, row_id)

    def write_scalar(self, handle: RowHandle, field: str, value: object) -> None:
        self.write_scalars(handle, {field: value})

    def write_scalars(self, handle: RowHandle, values: Mapping[str, object]) -> None:
        if not values:
            return
        table = self.tables.row_table(handle.type_name)
        self._write(update(table).where(table.c[ROW_ID] == handle.row_id).values(dict(values)))

    def write_reference(self, handle: RowHandle, field: str, target: RowHandle | None) -> None:
        table = self.tables.row_table(handle.type_name)
        target_id = None if target is None else target.row_id
        self._write(
            update(table).where(table.c[ROW_ID] == handle.row_id).values({field: target_id})
        )

    def create_list(self, handle: RowHandle, field: str) -> ListHandle:
        table = self.tables.list_table(handle.type_name, field)
        self._write(delete(table).where(table.c[OWNER_ID] == handle.row_id))
        return ListHandle(owner=handle, field=field)

    def append_to_list(self, list_handle: ListHandle, value: object) -> None:
        owner = list_handle.owner
        table = self.tables.list_table(owner.type_name, list_handle.field)
        field = self.tables.descriptor(owner.type_name).field(list_handle.field)
        self._require_transaction()
        if field.kind is FieldKind.OBJECT_LIST:
            element = {TARGET_ID: None if value is None else _row_id_of(value)}
        else:
            element = {VALUE: value}
        # the same list may be cleared and refilled while an outer walk still appends to it
        next_position = self.connection.execute(
            select(func.coalesce(func.max(table.c[POSITION]) + 1, 0)).where(
                table.c[OWNER_ID] == owner.row_id
            )
        ).scalar_one()
        self._write(
            insert(table).values({OWNER_ID: owner.row_id, POSITION: next_position, **element})
        )
        list_handle.length += 1

    # Reads -------------------------------------------------------------------

    def has_row(self, handle: RowHandle) -> bool:
        table = self.tables.row_table(handle.type_name)
        stmt = select(table.c[ROW_ID]).where(table.c[ROW_ID] == handle.row_id)
        return self.connection.execute(stmt).scalar_one_or_none() is not None

    def read_row(self, handle: RowHandle) -> dict[str, object]:
        """Return scalar values and reference handles of one row by field name."""

        descriptor = self.tables.descriptor(handle.type_name)
        table = self.tables.row_table(handle.type_name)
        stmt = select(table).where(table.c[ROW_ID] == handle.row_id)
        row = self.connection.execute(stmt).mappings().one_or_none()
        if row is None:
            raise LookupError(f"Row {handle} does not exist")
        values: dict[str, object] = {}
        for field in descriptor.fields:
            if field.kind is FieldKind.SCALAR:
                values[field.name] = row[field.name]
            elif field.kind is FieldKind.OBJECT:
                values[field.name] = _handle_or_none(field, row[field.name])
        return values

    def read_scalar(self, handle: RowHandle, field: str) -> object:
        table = self.tables.row_table(handle.type_name)
        stmt = select(table.c[field]).where(table.c[ROW_ID] == handle.row_id)
        return self.connection.execute(stmt).scalar_one()

    def read_reference(self, handle: RowHandle, field: str) -> RowHandle | None:
        descriptor = self.tables.descriptor(handle.type_name)
        table = self.tables.row_table(handle.type_name)
        stmt = select(table.c[field]).where(table.c[ROW_ID] == handle.row_id)
        return _handle_or_none(descriptor.field(field), self.connection.execute(stmt).scalar_one())

    def read_list(self, handle: RowHandle, field: str) -> list[Any]:
        """Return list elements in order: handles for object lists, values otherwise."""

        descriptor_field = self.tables.descriptor(handle.type_name).field(field)
        table = self.tables.list_table(handle.type_name, field)
        element_column = TARGET_ID if descriptor_field.kind is FieldKind.OBJECT_LIST else VALUE
        stmt = (
            select(table.c[element_column])
            .where(table.c[OWNER_ID] == handle.row_id)
            .order_by(table.c[POSITION])
        )
        elements = list(self.connection.execute(stmt).scalars())
        if descriptor_field.kind is FieldKind.OBJECT_LIST:
            return [_handle_or_none(descriptor_field, element) for element in elements]
        return elements

    def row_handles(self, descriptor: TypeDescriptor) -> list[RowHandle]:
        table = self.tables.row_table(descriptor.name)
        stmt = select(table.c[ROW_ID]).order_by(table.c[ROW_ID])
        return [RowHandle(descriptor.name, row_id) for row_id in self.connection.execute(stmt).scalars()]

    def count(self, descriptor: TypeDescriptor) -> int:
        table = self.tables.row_table(descriptor.name)
        return self.connection.execute(select(func.count()).select_from(table)).scalar_one()


def _row_id_of(value: object) -> int:
    if not isinstance(value, RowHandle):
        raise TypeError(f"Object lists hold row handles, got {type(value).__name__}")
    return value.row_id


def _handle_or_none(field: FieldDescriptor, row_id: int | None) -> RowHandle | None:
    if row_id is None or field.target is None:
        return None
    return RowHandle(field.target, row_id)
