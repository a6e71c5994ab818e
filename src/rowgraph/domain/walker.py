"""Depth-first materialization of object graphs into store rows.

One :class:`GraphWalker` serves exactly one top-level call. It owns the call's
:class:`IdentityTracker` and :class:`PrimaryKeyResolver`, so nothing is shared
between calls.

Every object gets its row handle registered *before* any of its references
are followed; a back-reference met while the object is still being populated
resolves to that handle instead of recursing. Traversal keeps a stack of
per-object step generators rather than recursing, so long reference chains do
not hit the interpreter recursion limit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeAlias

from .errors import FieldTypeError, InvalidArgumentError, TransactionStateError, UnknownTypeError
from .identity import IdentityTracker
from .ports import NO_KEY
from .primary_keys import PrimaryKeyResolver
from .schema import FieldKind

if TYPE_CHECKING:
    from collections.abc import Callable, Generator, Iterable

    from .handles import RowHandle
    from .ports import RowStore
    from .schema import FieldDescriptor, SchemaCatalog, TypeDescriptor

    ManagedLookup: TypeAlias = Callable[[object], RowHandle | None]
    _Steps: TypeAlias = Generator[object, RowHandle | None, None]

log = logging.getLogger(__name__)


@dataclass(slots=True)
class WalkStats:
    created: int = 0
    merged: int = 0
    reused: int = 0


class GraphWalker:
    """Materialize objects reachable from one or more roots, once per identity.

    ``update=False`` is plain insert: every new identity gets a new row. With
    ``update=True`` keyed types are matched by primary key, first among rows of
    this call and then in the store, and matched rows are overwritten.
    ``managed`` maps objects that already belong to the store to their row.
    """

    def __init__(
        self,
        catalog: SchemaCatalog,
        store: RowStore,
        *,
        update: bool,
        managed: ManagedLookup | None = None,
    ) -> None:
        self._catalog = catalog
        self._store = store
        self._update = update
        self._managed = managed
        self._identities = IdentityTracker()
        self._keys = PrimaryKeyResolver(store)
        self.stats = WalkStats()

    @property
    def update(self) -> bool:
        return self._update

    @property
    def keys(self) -> PrimaryKeyResolver:
        return self._keys

    def materialize(self, root: object) -> RowHandle:
        """Write ``root`` and everything reachable from it; return the root's row."""

        if root is None:
            raise InvalidArgumentError("Cannot insert None")
        self._require_transaction()

        root_handle, root_steps = self._enter(root)
        stack: list[tuple[RowHandle, _Steps]] = []
        if root_steps is not None:
            stack.append((root_handle, root_steps))

        reply: RowHandle | None = None
        while stack:
            handle, steps = stack[-1]
            try:
                child = steps.send(reply)
            except StopIteration:
                stack.pop()
                reply = handle
                continue
            child_handle, child_steps = self._enter(child)
            if child_steps is None:
                reply = child_handle
            else:
                stack.append((child_handle, child_steps))
                reply = None
        return root_handle

    def materialize_all(self, roots: Iterable[object]) -> list[RowHandle]:
        """Materialize each root in order, sharing identity and key maps."""

        if roots is None:
            raise InvalidArgumentError("Cannot insert a None sequence")
        try:
            iterator = iter(roots)
        except TypeError as exc:
            raise InvalidArgumentError(
                f"Expected an iterable of objects, got {type(roots).__name__}"
            ) from exc
        self._require_transaction()

        handles: list[RowHandle] = []
        for index, root in enumerate(iterator):
            if root is None:
                raise InvalidArgumentError(f"Element {index} of the sequence is None")
            handles.append(self.materialize(root))
        return handles

    def _require_transaction(self) -> None:
        if not self._store.in_write_transaction:
            raise TransactionStateError("Inserting objects requires an open write transaction")

    def _enter(self, obj: object) -> tuple[RowHandle, _Steps | None]:
        handle = self._identities.get(obj)
        if handle is not None:
            self.stats.reused += 1
            return handle, None

        descriptor = self._catalog.describe(obj)
        key = NO_KEY if descriptor.primary_key is None else descriptor.key_of(obj)

        handle = self._managed(obj) if self._managed is not None else None
        if handle is not None:
            self.stats.merged += 1
        elif key is not NO_KEY and self._update:
            handle = self._keys.resolve(descriptor, key)
            if handle is None:
                handle = self._create(descriptor, key)
            else:
                self.stats.merged += 1
        else:
            handle = self._create(descriptor, key)

        self._identities.put(obj, handle)
        if key is not NO_KEY:
            self._keys.register(descriptor, key, handle)
        return handle, self._populate(obj, descriptor, handle)

    def _create(self, descriptor: TypeDescriptor, key: object) -> RowHandle:
        handle = self._store.create_row(descriptor, key)
        self.stats.created += 1
        return handle

    def _populate(self, obj: object, descriptor: TypeDescriptor, handle: RowHandle) -> _Steps:
        values: dict[str, object] = {}
        for field in descriptor.scalar_fields:
            if field.primary_key:
                continue
            value = getattr(obj, field.name)
            field.validate(descriptor.name, value)
            values[field.name] = value
        self._store.write_scalars(handle, values)

        for field in descriptor.relation_fields:
            value = getattr(obj, field.name)
            if field.kind is FieldKind.OBJECT:
                target: RowHandle | None = None
                if value is None:
                    if not field.nullable:
                        raise FieldTypeError(descriptor.name, field.name, "reference is required")
                else:
                    self._check_target(descriptor, field, value)
                    target = yield value
                self._store.write_reference(handle, field.name, target)
            elif field.kind is FieldKind.OBJECT_LIST:
                items = self._list_items(descriptor, field, value)
                list_handle = self._store.create_list(handle, field.name)
                for item in items:
                    if item is None:
                        if not field.element_nullable:
                            raise FieldTypeError(
                                descriptor.name, field.name, "None elements are not allowed"
                            )
                        self._store.append_to_list(list_handle, None)
                        continue
                    self._check_target(descriptor, field, item)
                    self._store.append_to_list(list_handle, (yield item))
            else:
                items = self._list_items(descriptor, field, value)
                for item in items:
                    field.validate(descriptor.name, item, element=True)
                list_handle = self._store.create_list(handle, field.name)
                for item in items:
                    self._store.append_to_list(list_handle, item)

    def _check_target(self, owner: TypeDescriptor, field: FieldDescriptor, value: object) -> None:
        if field.target is None:
            raise FieldTypeError(owner.name, field.name, "not a reference field")
        expected = self._catalog.descriptor_for(field.target).model
        if type(value) is expected:
            return
        if type(value) not in self._catalog:
            raise UnknownTypeError(type(value).__qualname__)
        raise FieldTypeError(
            owner.name,
            field.name,
            f"expected {field.target}, got {self._catalog.describe(value).name}",
        )

    @staticmethod
    def _list_items(owner: TypeDescriptor, field: FieldDescriptor, value: object) -> list[object]:
        if value is None:
            return []
        if not isinstance(value, list):
            raise FieldTypeError(
                owner.name, field.name, f"expected {field.type_label}, got {type(value).__name__}"
            )
        return list(value)


def _log_summary(action: str, walker: GraphWalker) -> None:
    log.debug(
        "%s finished: created=%s, merged=%s, reused=%s, key_cache_hits=%s, key_lookups=%s",
        action,
        walker.stats.created,
        walker.stats.merged,
        walker.stats.reused,
        walker.keys.cache_hits,
        walker.keys.store_lookups,
    )


def insert(
    catalog: SchemaCatalog,
    store: RowStore,
    obj: object,
    *,
    managed: ManagedLookup | None = None,
) -> None:
    """Insert ``obj`` and its reachable graph; keyed duplicates are rejected."""

    walker = GraphWalker(catalog, store, update=False, managed=managed)
    walker.materialize(obj)
    _log_summary("insert", walker)


def insert_all(
    catalog: SchemaCatalog,
    store: RowStore,
    objects: Iterable[object],
    *,
    managed: ManagedLookup | None = None,
) -> None:
    walker = GraphWalker(catalog, store, update=False, managed=managed)
    walker.materialize_all(objects)
    _log_summary("insert_all", walker)


def insert_or_update(
    catalog: SchemaCatalog,
    store: RowStore,
    obj: object,
    *,
    managed: ManagedLookup | None = None,
) -> None:
    """Upsert ``obj`` and its reachable graph, merging keyed types by key value."""

    walker = GraphWalker(catalog, store, update=True, managed=managed)
    walker.materialize(obj)
    _log_summary("insert_or_update", walker)


def insert_or_update_all(
    catalog: SchemaCatalog,
    store: RowStore,
    objects: Iterable[object],
    *,
    managed: ManagedLookup | None = None,
) -> None:
    walker = GraphWalker(catalog, store, update=True, managed=managed)
    walker.materialize_all(objects)
    _log_summary("insert_or_update_all", walker)
