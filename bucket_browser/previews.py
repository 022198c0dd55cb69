from __future__ import annotations
"""Transient local handles for fetched file content."""
import logging
from pathlib import Path, PurePosixPath
import shutil
import tempfile
from typing import Iterator, Optional
import uuid

LOGGER = logging.getLogger(__name__)


class PreviewHandle:
    """Scratch file holding decoded bytes for one file name.

    The handle is valid until :meth:`release` is called. Releasing more than
    once is harmless.
    """

    def __init__(self, key: str, path: Path, size: int) -> None:
        self.key = key
        self.path = path
        self.size = size
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    @property
    def url(self) -> str:
        return self.path.as_uri()

    def read_bytes(self) -> bytes:
        if self._released:
            raise ValueError(f"Preview handle for '{self.key}' has been released")
        return self.path.read_bytes()

    def release(self) -> bool:
        """Free the backing file; returns False when it was already freed."""

        if self._released:
            return False
        self._released = True
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        except OSError:
            LOGGER.warning("Could not remove preview file %s", self.path, exc_info=True)
        return True

    def __repr__(self) -> str:
        state = "released" if self._released else "live"
        return f"PreviewHandle({self.key!r}, {state})"


class PreviewRegistry:
    """Keeps at most one live :class:`PreviewHandle` per file name."""

    def __init__(self, scratch_dir: str | Path | None = None):
        self._scratch_dir = Path(scratch_dir) if scratch_dir is not None else None
        self._owns_scratch_dir = scratch_dir is None
        self._handles: dict[str, PreviewHandle] = {}

    def __len__(self) -> int:
        return len(self._handles)

    def __contains__(self, key: object) -> bool:
        return key in self._handles

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._handles))

    def get(self, key: str) -> Optional[PreviewHandle]:
        return self._handles.get(key)

    def as_dict(self) -> dict[str, PreviewHandle]:
        return dict(self._handles)

    def acquire(self, key: str, data: bytes) -> PreviewHandle:
        """Materialize ``data`` for ``key``, releasing any previous handle first."""

        self.release(key)
        directory = self._ensure_scratch_dir()
        suffix = PurePosixPath(key).suffix
        path = directory / f"{uuid.uuid4().hex}{suffix}"
        path.write_bytes(data)
        handle = PreviewHandle(key, path, len(data))
        self._handles[key] = handle
        LOGGER.debug("Acquired preview handle for '%s' (%d bytes)", key, len(data))
        return handle

    def release(self, key: str) -> bool:
        handle = self._handles.pop(key, None)
        if handle is None:
            return False
        return handle.release()

    def release_all(self) -> int:
        """Release every outstanding handle and return how many were live."""

        handles = list(self._handles.values())
        self._handles.clear()
        released = sum(1 for handle in handles if handle.release())
        if released:
            LOGGER.debug("Released %d preview handle(s)", released)
        return released

    def close(self) -> None:
        self.release_all()
        if self._owns_scratch_dir and self._scratch_dir is not None:
            shutil.rmtree(self._scratch_dir, ignore_errors=True)
            self._scratch_dir = None

    def _ensure_scratch_dir(self) -> Path:
        if self._scratch_dir is None:
            self._scratch_dir = Path(tempfile.mkdtemp(prefix="bucket-browser-"))
        else:
            self._scratch_dir.mkdir(parents=True, exist_ok=True)
        return self._scratch_dir
