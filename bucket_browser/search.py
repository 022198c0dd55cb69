from __future__ import annotations
"""Search filter over a bucket's files."""
from typing import Iterable

from .models import FileEntry

_SCALAR_TYPES = (str, int, float, bool)


def matches(entry: FileEntry, query: str) -> bool:
    """Case-insensitive match on name, tag keys/values and scalar metadata."""

    needle = query.lower()
    if not needle:
        return True
    if needle in entry.name.lower():
        return True
    for tag in entry.tags:
        if needle in tag.key.lower() or needle in tag.value.lower():
            return True
    for value in (entry.metadata or {}).values():
        if isinstance(value, _SCALAR_TYPES) and needle in str(value).lower():
            return True
    return False


def filter_files(entries: Iterable[FileEntry], query: str) -> list[FileEntry]:
    """Return the entries matching ``query`` in their original order."""

    return [entry for entry in entries if matches(entry, query)]
