"""
Byte offset index for random access into sequential files.

An :class:`OffsetIndex` maps native IDs to the byte offset where each record
starts, and remembers the order IDs were first discovered so records can be
addressed by position as well.
"""

from collections.abc import Iterator
from typing import Optional


class OffsetIndex:
    """
    An ordered, bidirectional map from native ID to byte offset.

    Lookups by ID go through a dict; lookups by position go through the
    list of IDs in discovery order. Re-inserting a known ID replaces its
    offset without moving it.

    Attributes:
        name: What kind of record the index points at.
        init: Whether a full index build has completed.

    Example:
        >>> index = OffsetIndex()
        >>> index.insert("A", 0)
        >>> index.insert("B", 120)
        >>> index.get_by_position(1)
        ('B', 120)
    """

    def __init__(self, name: str = "spectrum"):
        self.name = name
        self.init = False
        self._offsets: dict[str, int] = {}
        self._order: list[str] = []
        self._positions: dict[str, int] = {}

    def insert(self, native_id: str, offset: int) -> None:
        if native_id not in self._offsets:
            self._positions[native_id] = len(self._order)
            self._order.append(native_id)
        self._offsets[native_id] = offset

    def get(self, native_id: str) -> Optional[int]:
        """Offset of ``native_id``, or None if it is not indexed."""
        return self._offsets.get(native_id)

    def get_by_position(self, position: int) -> Optional[tuple[str, int]]:
        """``(native_id, offset)`` at a 0-based position, or None if out of range."""
        if position < 0 or position >= len(self._order):
            return None
        native_id = self._order[position]
        return native_id, self._offsets[native_id]

    def position_of(self, native_id: str) -> Optional[int]:
        """0-based discovery position of ``native_id``, or None."""
        return self._positions.get(native_id)

    def clear(self) -> None:
        """Drop all entries and mark the index as not built."""
        self._offsets.clear()
        self._order.clear()
        self._positions.clear()
        self.init = False

    def is_empty(self) -> bool:
        return not self._order

    def keys(self) -> list[str]:
        return list(self._order)

    def __len__(self) -> int:
        return len(self._order)

    def __contains__(self, native_id: object) -> bool:
        return native_id in self._offsets

    def __iter__(self) -> Iterator[tuple[str, int]]:
        for native_id in self._order:
            yield native_id, self._offsets[native_id]

    def __repr__(self) -> str:
        state = "initialized" if self.init else "uninitialized"
        return f"OffsetIndex({self.name!r}, {len(self)} entries, {state})"
