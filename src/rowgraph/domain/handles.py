"""Opaque references to rows and row-owned lists."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class RowHandle:
    """A materialized row of ``type_name``; only the store interprets ``row_id``."""

    type_name: str
    row_id: int

    def __str__(self) -> str:
        return f"{self.type_name}#{self.row_id}"


@dataclass(slots=True)
class ListHandle:
    """An ordered list attached to ``owner.field``, appended to by the store."""

    owner: RowHandle
    field: str
    length: int = 0
