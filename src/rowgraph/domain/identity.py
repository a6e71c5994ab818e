"""Identity map for one top-level insert call."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .handles import RowHandle


class IdentityTracker:
    """Map source objects to the row already created for them, by identity.

    Entries are keyed by ``id(obj)``. The tracker keeps a reference to every
    object it has seen so an id cannot be recycled while the call is running;
    two equal but distinct instances are always separate entries.
    """

    def __init__(self) -> None:
        self._entries: dict[int, tuple[object, RowHandle]] = {}

    def get(self, obj: object) -> RowHandle | None:
        entry = self._entries.get(id(obj))
        if entry is None:
            return None
        return entry[1]

    def put(self, obj: object, handle: RowHandle) -> None:
        self._entries[id(obj)] = (obj, handle)

    def __contains__(self, obj: object) -> bool:
        return id(obj) in self._entries

    def __len__(self) -> int:
        return len(self._entries)
