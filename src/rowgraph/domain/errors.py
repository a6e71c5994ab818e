"""Error taxonomy for graph insertion."""

from __future__ import annotations


class RowGraphError(Exception):
    """Base class for every error raised by rowgraph."""


class InvalidArgumentError(RowGraphError, ValueError):
    """Raised for a missing root object, sequence, or sequence element."""


class UnknownTypeError(RowGraphError, LookupError):
    """Raised when an object's type is not registered in the schema catalog."""

    def __init__(self, type_name: str) -> None:
        self.type_name = type_name
        super().__init__(f"Type is not part of the schema: {type_name}")


class TransactionStateError(RowGraphError, RuntimeError):
    """Raised when a write transaction is required but absent (or vice versa)."""


class ConstraintViolationError(RowGraphError):
    """Raised by the store when a uniqueness constraint is violated."""


class FieldTypeError(RowGraphError, TypeError):
    """Raised when a field value does not match its declared type."""

    def __init__(self, type_name: str, field_name: str, message: str) -> None:
        self.type_name = type_name
        self.field_name = field_name
        super().__init__(f"{type_name}.{field_name}: {message}")


class SchemaDefinitionError(RowGraphError, TypeError):
    """Raised when a model class cannot be described as a table."""
