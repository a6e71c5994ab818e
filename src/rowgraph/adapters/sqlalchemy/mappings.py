"""SQLAlchemy table metadata derived from a schema catalog."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, date, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Final

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    Date,
    DateTime,
    Dialect,
    Double,
    ForeignKey,
    Integer,
    LargeBinary,
    MetaData,
    String,
    Table,
    TypeDecorator,
)
from sqlalchemy import Enum as SqlEnum

from rowgraph.domain.errors import SchemaDefinitionError
from rowgraph.domain.schema import FieldKind

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine
    from sqlalchemy.types import TypeEngine

    from rowgraph.domain.schema import FieldDescriptor, SchemaCatalog, TypeDescriptor

log = logging.getLogger(__name__)

ROW_ID: Final[str] = "_row_id"
OWNER_ID: Final[str] = "owner_row_id"
POSITION: Final[str] = "position"
TARGET_ID: Final[str] = "target_row_id"
VALUE: Final[str] = "value"

EPOCH: Final[datetime] = datetime(1970, 1, 1, tzinfo=UTC)

NAMING_CONVENTION: Final[dict[str, str]] = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


_COLUMN_TYPES: Final[dict[type, type[TypeEngine[Any]]]] = {
    bool: Boolean,
    int: BigInteger,
    float: Double,
    str: String,
    bytes: LargeBinary,
    datetime: UTCDateTime,
    date: Date,
}

_ZERO_VALUES: Final[dict[type, object]] = {
    bool: False,
    int: 0,
    float: 0.0,
    str: "",
    bytes: b"",
    datetime: EPOCH,
    date: EPOCH.date(),
}


def column_type(python_type: type) -> TypeEngine[Any]:
    if issubclass(python_type, Enum):
        return SqlEnum(python_type, native_enum=False, create_constraint=False)
    return _COLUMN_TYPES[python_type]()


def zero_value(python_type: type) -> object:
    """Value a fresh row holds in a non-nullable column before it is written."""

    if issubclass(python_type, Enum):
        return next(iter(python_type))
    return _ZERO_VALUES[python_type]


@dataclass(frozen=True, slots=True)
class StoreTables:
    """Row tables per type and link tables per list field for one catalog."""

    catalog: SchemaCatalog
    metadata: MetaData
    rows: dict[str, Table]
    lists: dict[tuple[str, str], Table]

    def descriptor(self, type_name: str) -> TypeDescriptor:
        return self.catalog.descriptor_for(type_name)

    def row_table(self, type_name: str) -> Table:
        return self.rows[type_name]

    def list_table(self, type_name: str, field_name: str) -> Table:
        return self.lists[(type_name, field_name)]


def list_table_name(type_name: str, field_name: str) -> str:
    return f"{type_name}__{field_name}"


def _scalar_column(descriptor: TypeDescriptor, field: FieldDescriptor) -> Column[Any]:
    if field.python_type is None:
        raise SchemaDefinitionError(f"{descriptor.name}.{field.name} has no scalar type")
    sql_type = column_type(field.python_type)
    if field.primary_key:
        return Column(field.name, sql_type, nullable=field.nullable, unique=True)
    if field.nullable or field.unique:
        # unique columns stay NULL until written so fresh rows never collide
        return Column(field.name, sql_type, nullable=True, unique=field.unique, index=field.indexed)
    return Column(
        field.name,
        sql_type,
        nullable=False,
        index=field.indexed,
        default=zero_value(field.python_type),
    )


def _list_table(metadata: MetaData, descriptor: TypeDescriptor, field: FieldDescriptor) -> Table:
    if field.kind is FieldKind.OBJECT_LIST:
        element = Column(TARGET_ID, Integer, nullable=True)
    elif field.python_type is not None:
        element = Column(VALUE, column_type(field.python_type), nullable=True)
    else:
        raise SchemaDefinitionError(f"{descriptor.name}.{field.name} has no element type")
    return Table(
        list_table_name(descriptor.name, field.name),
        metadata,
        Column(
            OWNER_ID,
            Integer,
            ForeignKey(f"{descriptor.name}.{ROW_ID}", ondelete="CASCADE"),
            primary_key=True,
        ),
        Column(POSITION, Integer, primary_key=True),
        element,
    )


def build_tables(catalog: SchemaCatalog, *, metadata: MetaData | None = None) -> StoreTables:
    """Describe every registered type as SQLAlchemy ``Table`` objects."""

    metadata = metadata if metadata is not None else MetaData(naming_convention=NAMING_CONVENTION)
    rows: dict[str, Table] = {}
    lists: dict[tuple[str, str], Table] = {}

    for descriptor in catalog.descriptors():
        columns: list[Column[Any]] = [Column(ROW_ID, Integer, primary_key=True, autoincrement=True)]
        for field in descriptor.fields:
            if field.name == ROW_ID:
                raise SchemaDefinitionError(f"{descriptor.name}: field name {ROW_ID} is reserved")
            if field.kind is FieldKind.SCALAR:
                columns.append(_scalar_column(descriptor, field))
            elif field.kind is FieldKind.OBJECT:
                columns.append(Column(field.name, Integer, nullable=True))
            else:
                lists[(descriptor.name, field.name)] = _list_table(metadata, descriptor, field)
        rows[descriptor.name] = Table(descriptor.name, metadata, *columns)

    return StoreTables(catalog=catalog, metadata=metadata, rows=rows, lists=lists)


def create_all_tables(engine: Engine, tables: StoreTables) -> None:
    tables.metadata.create_all(engine)
    log.info(
        "Ensured %s row tables and %s list tables", len(tables.rows), len(tables.lists)
    )
