from __future__ import annotations
"""The set of file names the user has checked."""
from typing import Iterable, Iterator


class SelectionSet:
    """Ordered set of selected file names.

    The selection outlives collection reloads, so :meth:`reconcile` has to be
    called with the new names after every reload.
    """

    def __init__(self, names: Iterable[str] = ()):
        self._names: dict[str, None] = dict.fromkeys(names)

    def __contains__(self, name: object) -> bool:
        return name in self._names

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._names))

    def __len__(self) -> int:
        return len(self._names)

    @property
    def names(self) -> list[str]:
        return list(self._names)

    def select(self, name: str) -> None:
        self._names[name] = None

    def deselect(self, name: str) -> None:
        self._names.pop(name, None)

    def toggle(self, name: str) -> bool:
        """Flip one name and return whether it is selected afterwards."""

        if name in self._names:
            del self._names[name]
            return False
        self._names[name] = None
        return True

    def replace(self, names: Iterable[str]) -> None:
        self._names = dict.fromkeys(names)

    def clear(self) -> None:
        self._names.clear()

    def reconcile(self, available: Iterable[str]) -> list[str]:
        """Drop names that are no longer available and return them."""

        keep = set(available)
        removed = [name for name in self._names if name not in keep]
        for name in removed:
            del self._names[name]
        return removed
