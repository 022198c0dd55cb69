from __future__ import annotations
"""Data models representing buckets, files and collection state."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Optional, TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from .previews import PreviewHandle


IMAGE_EXTENSIONS = ("jpg", "jpeg", "png", "gif", "webp")


def is_image_name(name: str) -> bool:
    """Return True when the file name carries an image-class extension."""

    _, dot, extension = name.rpartition(".")
    return bool(dot) and extension.lower() in IMAGE_EXTENSIONS


def _parse_timestamp(value: object) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _optional_int(value: object) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class Tag:
    """A user-assigned key/value label attached to a file."""

    key: str
    value: str

    @classmethod
    def from_payload(cls, payload: object) -> Optional["Tag"]:
        """Build the canonical tag shape from a loosely-cased API payload."""

        if isinstance(payload, Tag):
            return payload
        if not isinstance(payload, Mapping):
            return None
        key = payload.get("key", payload.get("Key"))
        value = payload.get("value", payload.get("Value"))
        if key is None and value is None:
            return None
        return cls(key="" if key is None else str(key), value="" if value is None else str(value))

    def to_payload(self) -> dict[str, str]:
        return {"key": self.key, "value": self.value}


def tags_from_payload(payload: object) -> tuple[Tag, ...]:
    if not isinstance(payload, (list, tuple)):
        return ()
    tags = (Tag.from_payload(item) for item in payload)
    return tuple(tag for tag in tags if tag is not None)


@dataclass(frozen=True)
class Bucket:
    """A named container for files."""

    name: str
    created: str = ""
    access: str = ""
    size: Optional[str] = None
    objects: Optional[int] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Bucket":
        size = payload.get("size")
        return cls(
            name=str(payload.get("name") or payload.get("Name") or ""),
            created=str(payload.get("created") or ""),
            access=str(payload.get("access") or ""),
            size=None if size is None else str(size),
            objects=_optional_int(payload.get("objects")),
        )


@dataclass(frozen=True)
class FileMetadata:
    """Tags and the raw key/value blob returned by the metadata endpoint."""

    tags: tuple[Tag, ...] = ()
    values: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: object) -> "FileMetadata":
        if not isinstance(payload, Mapping):
            return cls()
        return cls(tags=tags_from_payload(payload.get("tags")), values=dict(payload))


@dataclass(frozen=True)
class FileEntry:
    """A named object stored in a bucket."""

    name: str
    size: Optional[int] = None
    content_type: Optional[str] = None
    tags: tuple[Tag, ...] = ()
    last_modified: Optional[datetime] = None
    metadata: Optional[dict[str, Any]] = None

    @property
    def is_image(self) -> bool:
        return is_image_name(self.name)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "FileEntry":
        return cls(
            name=str(payload.get("name") or payload.get("Key") or ""),
            size=_optional_int(payload.get("size")),
            content_type=payload.get("contentType") or None,
            tags=tags_from_payload(payload.get("tags")),
            last_modified=_parse_timestamp(payload.get("lastModified")),
        )


class LoadState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class CollectionSnapshot:
    """Immutable view of the active bucket's collection."""

    bucket: Optional[str] = None
    state: LoadState = LoadState.IDLE
    entries: tuple[FileEntry, ...] = ()
    previews: Mapping[str, "PreviewHandle"] = field(default_factory=dict)
    error: Optional[str] = None
    generation: int = 0

    @property
    def names(self) -> list[str]:
        return [entry.name for entry in self.entries]


@dataclass(frozen=True)
class PendingUpload:
    """A local file staged for upload."""

    name: str
    path: Optional[Path] = None
    data: Optional[bytes] = None
    content_type: Optional[str] = None

    @classmethod
    def from_path(cls, path: str | Path, *, name: str | None = None) -> "PendingUpload":
        source = Path(path)
        return cls(name=name or source.name, path=source)

    def read(self) -> bytes:
        if self.data is not None:
            return self.data
        if self.path is None:
            raise ValueError(f"Pending upload '{self.name}' has no content")
        return self.path.read_bytes()
