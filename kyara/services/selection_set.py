from __future__ import annotations

import collections.abc
from typing import Callable, Iterable, Iterator

ChangeListener = Callable[[], None]


class SelectionSet(collections.abc.Set):
    """Globally selected character ids, independent of which anime they belong to."""

    def __init__(self, ids: Iterable[int] = ()) -> None:
        self._ids: set[int] = set(ids)
        self._listeners: list[ChangeListener] = []

    def __contains__(self, character_id: object) -> bool:
        return character_id in self._ids

    def __iter__(self) -> Iterator[int]:
        return iter(self._ids)

    def __len__(self) -> int:
        return len(self._ids)

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def snapshot(self) -> frozenset[int]:
        return frozenset(self._ids)

    def is_selected(self, character_id: int) -> bool:
        return character_id in self._ids

    def add(self, character_id: int) -> bool:
        return self.add_many((character_id,))

    def remove(self, character_id: int) -> bool:
        return self.remove_many((character_id,))

    def add_many(self, character_ids: Iterable[int]) -> bool:
        new_ids = set(character_ids) - self._ids
        if not new_ids:
            return False
        self._ids = self._ids | new_ids
        self._notify()
        return True

    def remove_many(self, character_ids: Iterable[int]) -> bool:
        gone = self._ids & set(character_ids)
        if not gone:
            return False
        self._ids = self._ids - gone
        self._notify()
        return True

    def clear(self) -> bool:
        if not self._ids:
            return False
        self._ids = set()
        self._notify()
        return True

    def replace(self, character_ids: Iterable[int]) -> bool:
        ids = set(character_ids)
        if ids == self._ids:
            return False
        self._ids = ids
        self._notify()
        return True

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()
