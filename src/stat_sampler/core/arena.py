"""
Growable slot arenas addressed by generation-checked handles.
"""

from __future__ import annotations

import logging
from typing import Generic, Iterator, List, NamedTuple, Optional, Tuple, TypeVar

from ..exceptions import InvalidArgumentError, OutOfHandlesError

LOG = logging.getLogger(__name__)

T = TypeVar("T")


class Handle(NamedTuple):
    """Opaque reference to an arena slot.

    ``owner`` identifies the arena that issued the handle so handles cannot be
    used against another session; ``generation`` changes every time the slot
    is released, which turns stale handles into lookup failures.
    """

    owner: int
    index: int
    generation: int


class _Slot(Generic[T]):
    __slots__ = ("item", "generation")

    def __init__(self) -> None:
        self.item: Optional[T] = None
        self.generation = 0


class Arena(Generic[T]):
    """Slot storage that doubles its capacity on exhaustion.

    Released slots are reused (lowest index first) with a bumped generation.
    Iteration follows insertion order, not slot order.
    """

    def __init__(
        self,
        owner: int,
        initial_capacity: int = 8,
        max_slots: Optional[int] = None,
        kind: str = "slot",
    ) -> None:
        if initial_capacity <= 0:
            raise InvalidArgumentError("Arena capacity must be positive")
        self.owner = owner
        self.kind = kind
        self.max_slots = max_slots
        self._slots: List[_Slot[T]] = [_Slot() for _ in range(initial_capacity)]
        self._free: List[int] = list(range(initial_capacity))
        self._order: List[int] = []

    @property
    def capacity(self) -> int:
        return len(self._slots)

    def __len__(self) -> int:
        return len(self._order)

    def _grow(self) -> None:
        old = len(self._slots)
        new = old * 2
        if self.max_slots is not None:
            new = min(new, self.max_slots)
        if new <= old:
            raise OutOfHandlesError(f"No free {self.kind} slots (limit {self.max_slots})")
        self._slots.extend(_Slot() for _ in range(new - old))
        self._free.extend(range(old, new))
        LOG.debug("Grew %s arena %d from %d to %d slots", self.kind, self.owner, old, new)

    def insert(self, item: T) -> Handle:
        if not self._free:
            self._grow()
        self._free.sort()
        index = self._free.pop(0)
        slot = self._slots[index]
        slot.item = item
        self._order.append(index)
        return Handle(self.owner, index, slot.generation)

    def _slot_for(self, handle: Handle) -> _Slot[T]:
        if not isinstance(handle, Handle):
            raise InvalidArgumentError(f"Expected a {self.kind} handle, got {handle!r}")
        if handle.owner != self.owner:
            raise InvalidArgumentError(f"{self.kind} handle belongs to another owner")
        if not 0 <= handle.index < len(self._slots):
            raise InvalidArgumentError(f"{self.kind} handle index out of range")
        slot = self._slots[handle.index]
        if slot.item is None or slot.generation != handle.generation:
            raise InvalidArgumentError(f"Stale or released {self.kind} handle")
        return slot

    def get(self, handle: Handle) -> T:
        item = self._slot_for(handle).item
        assert item is not None
        return item

    def contains(self, handle: Handle) -> bool:
        try:
            self._slot_for(handle)
        except InvalidArgumentError:
            return False
        return True

    def release(self, handle: Handle) -> T:
        slot = self._slot_for(handle)
        item = slot.item
        assert item is not None
        slot.item = None
        slot.generation += 1
        self._order.remove(handle.index)
        self._free.append(handle.index)
        return item

    def items(self) -> Iterator[Tuple[Handle, T]]:
        """Yield live ``(handle, item)`` pairs in insertion order.

        Iterates over a snapshot, so callbacks may release slots meanwhile.
        """
        for index in list(self._order):
            slot = self._slots[index]
            if slot.item is not None:
                yield Handle(self.owner, index, slot.generation), slot.item

    def handles(self) -> List[Handle]:
        return [handle for handle, _ in self.items()]


__all__ = ["Arena", "Handle"]
