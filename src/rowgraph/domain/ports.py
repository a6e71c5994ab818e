"""Port consumed by the graph walker to write rows."""

from __future__ import annotations

from typing import TYPE_CHECKING, Final, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .handles import ListHandle, RowHandle
    from .schema import TypeDescriptor


class _NoKey:
    def __repr__(self) -> str:
        return "NO_KEY"


NO_KEY: Final = _NoKey()
"""Sentinel for ``create_row`` on types without a primary key."""


@runtime_checkable
class RowStore(Protocol):
    """Synchronous row storage, valid only inside the caller's write transaction."""

    @property
    def in_write_transaction(self) -> bool: ...

    def create_row(self, descriptor: TypeDescriptor, key: object = NO_KEY) -> RowHandle:
        """Create an empty row; keyed types receive their key here.

        Raises ``ConstraintViolationError`` when the key is already taken.
        """
        ...

    def find_row_by_key(self, descriptor: TypeDescriptor, key: object) -> RowHandle | None: ...

    def write_scalar(self, handle: RowHandle, field: str, value: object) -> None: ...

    def write_scalars(self, handle: RowHandle, values: Mapping[str, object]) -> None: ...

    def write_reference(self, handle: RowHandle, field: str, target: RowHandle | None) -> None: ...

    def create_list(self, handle: RowHandle, field: str) -> ListHandle:
        """Return an empty list for ``handle.field``, discarding previous content."""
        ...

    def append_to_list(self, list_handle: ListHandle, value: object) -> None: ...
