"""Simple in-memory repositories used by the operations ledger."""

from __future__ import annotations

from collections import deque
from typing import (
    Callable,
    Deque,
    Generic,
    Iterable,
    Iterator,
    List,
    MutableMapping,
    Optional,
    TypeVar,
)

T = TypeVar("T")


class RepositoryError(RuntimeError):
    """Base exception for repository errors."""


class DuplicateRecordError(RepositoryError):
    """Raised when attempting to insert a record that already exists."""


class RecordNotFoundError(RepositoryError):
    """Raised when a requested record is missing."""


class InMemoryRepository(Generic[T]):
    """Ordered repository backed by a dictionary and an id deque.

    Iteration follows collection order. ``add(..., front=True)`` prepends in
    constant time, so collections shown most-recent-first keep that order
    without sorting.
    """

    def __init__(self, key: Callable[[T], str] = lambda item: item.id) -> None:
        self._key = key
        self._items: MutableMapping[str, T] = {}
        self._order: Deque[str] = deque()

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return (self._items[item_id] for item_id in self._order)

    def add(self, item: T, *, front: bool = False) -> None:
        item_id = self._key(item)
        if item_id in self._items:
            raise DuplicateRecordError(f"Record with id {item_id!r} already exists")
        self._items[item_id] = item
        if front:
            self._order.appendleft(item_id)
        else:
            self._order.append(item_id)

    def get(self, item_id: str) -> T:
        try:
            return self._items[item_id]
        except KeyError as exc:
            raise RecordNotFoundError(f"Record with id {item_id!r} not found") from exc

    def find(self, item_id: Optional[str]) -> Optional[T]:
        if item_id is None:
            return None
        return self._items.get(item_id)

    def list(self) -> List[T]:
        return [self._items[item_id] for item_id in self._order]

    def ids(self) -> List[str]:
        return [item_id for item_id in self._order]

    def replace_all(self, items: Iterable[T]) -> None:
        """Swap the whole collection, keeping the given order."""

        replacement: MutableMapping[str, T] = {}
        for item in items:
            item_id = self._key(item)
            if item_id in replacement:
                raise DuplicateRecordError(f"Record with id {item_id!r} already exists")
            replacement[item_id] = item
        self._items = replacement
        self._order = deque(replacement)


__all__ = [
    "InMemoryRepository",
    "RepositoryError",
    "DuplicateRecordError",
    "RecordNotFoundError",
]
