"""Graph insertion engine: schema catalog, identity/key maps and the walker.

Flow of one top-level call:
1) the catalog describes the root's type
2) the walker asks the identity map, then (upserts only) the key resolver,
   whether a row already exists for the object
3) otherwise the store creates one, which is registered before references
   are followed
4) scalars are written, then references and lists are walked depth-first
"""

from __future__ import annotations

from .errors import (
    ConstraintViolationError,
    FieldTypeError,
    InvalidArgumentError,
    RowGraphError,
    SchemaDefinitionError,
    TransactionStateError,
    UnknownTypeError,
)
from .handles import ListHandle, RowHandle
from .identity import IdentityTracker
from .ports import NO_KEY, RowStore
from .primary_keys import PrimaryKeyResolver
from .schema import (
    FieldDescriptor,
    FieldKind,
    SchemaCatalog,
    TypeDescriptor,
    column,
    ignored,
)
from .walker import (
    GraphWalker,
    WalkStats,
    insert,
    insert_all,
    insert_or_update,
    insert_or_update_all,
)

__all__ = [
    "NO_KEY",
    "ConstraintViolationError",
    "FieldDescriptor",
    "FieldKind",
    "FieldTypeError",
    "GraphWalker",
    "IdentityTracker",
    "InvalidArgumentError",
    "ListHandle",
    "PrimaryKeyResolver",
    "RowGraphError",
    "RowHandle",
    "RowStore",
    "SchemaCatalog",
    "SchemaDefinitionError",
    "TransactionStateError",
    "TypeDescriptor",
    "UnknownTypeError",
    "WalkStats",
    "column",
    "ignored",
    "insert",
    "insert_all",
    "insert_or_update",
    "insert_or_update_all",
]
