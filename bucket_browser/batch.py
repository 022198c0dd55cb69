from __future__ import annotations
"""Sequential upload, delete and download over a set of files."""
import asyncio
import logging
import mimetypes
from pathlib import Path, PurePosixPath
import shutil
from typing import Callable, Iterable, Optional, Protocol, Sequence

from .collection import CollectionOrchestrator
from .models import CollectionSnapshot, LoadState, PendingUpload, Tag
from .previews import PreviewRegistry
from .selection import SelectionSet
from .services import BrowserError, TransportError

LOGGER = logging.getLogger(__name__)

ConfirmFn = Callable[[Sequence[str]], bool]
ProgressFn = Callable[[int], None]


class BatchError(BrowserError):
    """Raised when some files of a batch could not be processed."""

    def __init__(self, message: str, failures: dict[str, str]):
        super().__init__(message)
        self.failures = failures


class BatchGateway(Protocol):
    def require_session(self) -> object: ...

    async def fetch_bytes(self, bucket_name: str, file_name: str) -> bytes: ...

    async def upload_bytes(
        self,
        bucket_name: str,
        file_name: str,
        data: bytes,
        tags: Iterable[Tag] = (),
        *,
        content_type: str | None = None,
    ) -> None: ...

    async def delete_file(self, bucket_name: str, file_name: str) -> None: ...


def _deny_all(names: Sequence[str]) -> bool:
    return False


def _raise_if_failed(snapshot: CollectionSnapshot) -> None:
    # The batch itself went through; only the follow-up listing failed.
    if snapshot.state is LoadState.FAILED:
        raise TransportError(snapshot.error or "Failed to reload files")


class BatchExecutor:
    """Applies uploads, deletes and downloads to the active bucket.

    Uploads and deletes run one file at a time and stop at the first failure;
    files handled before the failure stay committed. Downloads carry on past
    a failing file and report every failure once the batch is done. The
    executor never edits the collection; it asks the orchestrator to reload.
    """

    def __init__(
        self,
        gateway: BatchGateway,
        collection: CollectionOrchestrator,
        selection: SelectionSet,
        *,
        confirm: ConfirmFn | None = None,
        on_progress: ProgressFn | None = None,
        scratch: PreviewRegistry | None = None,
    ):
        self._gateway = gateway
        self._collection = collection
        self._selection = selection
        self._confirm = confirm or _deny_all
        self._on_progress = on_progress
        self._scratch = scratch or PreviewRegistry()
        self._pending: list[PendingUpload] = []
        self._pending_tags: tuple[Tag, ...] = ()
        self._progress = 0
        self._busy = False

    @property
    def progress(self) -> int:
        return self._progress

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def pending(self) -> list[PendingUpload]:
        return list(self._pending)

    @property
    def pending_tags(self) -> tuple[Tag, ...]:
        return self._pending_tags

    def stage_uploads(self, files: Iterable[PendingUpload | str | Path]) -> None:
        staged = []
        for item in files:
            staged.append(item if isinstance(item, PendingUpload) else PendingUpload.from_path(item))
        self._pending = staged

    def set_upload_tags(self, tags: Iterable[Tag]) -> None:
        self._pending_tags = tuple(tags)

    def discard_pending(self) -> None:
        self._pending = []
        self._pending_tags = ()

    async def upload(self) -> int:
        """Upload the staged files with the shared tags; returns the count sent."""

        files = list(self._pending)
        if not files or self._busy:
            return 0
        self._gateway.require_session()
        bucket_name = self._require_bucket()
        total = len(files)
        self._busy = True
        self._set_progress(0)
        try:
            for index, pending in enumerate(files, start=1):
                data = await asyncio.to_thread(pending.read)
                content_type = pending.content_type or mimetypes.guess_type(pending.name)[0]
                LOGGER.debug("Uploading '%s' to '%s' (%d/%d)", pending.name, bucket_name, index, total)
                await self._gateway.upload_bytes(
                    bucket_name,
                    pending.name,
                    data,
                    self._pending_tags,
                    content_type=content_type,
                )
                self._set_progress(index * 100 // total)
        finally:
            self._busy = False
        snapshot = await self._collection.reload()
        self.discard_pending()
        self._set_progress(0)
        _raise_if_failed(snapshot)
        return total

    async def delete(self, names: Sequence[str]) -> bool:
        """Delete ``names`` after confirmation; returns False when declined."""

        targets = list(names)
        if not targets or self._busy:
            return False
        self._gateway.require_session()
        bucket_name = self._require_bucket()
        if not self._confirm(targets):
            LOGGER.debug("Deletion of %d file(s) not confirmed", len(targets))
            return False
        self._busy = True
        try:
            for name in targets:
                LOGGER.debug("Deleting '%s' from '%s'", name, bucket_name)
                await self._gateway.delete_file(bucket_name, name)
        finally:
            self._busy = False
        snapshot = await self._collection.reload()
        self._selection.clear()
        _raise_if_failed(snapshot)
        return True

    async def download(self, names: Sequence[str], destination: str | Path) -> list[Path]:
        """Save each file under its own name in ``destination``."""

        targets = list(names)
        if not targets or self._busy:
            return []
        self._gateway.require_session()
        bucket_name = self._require_bucket()
        target_dir = Path(destination)
        saved: list[Path] = []
        failures: dict[str, str] = {}
        self._busy = True
        try:
            for name in targets:
                try:
                    saved.append(await self._download_one(bucket_name, name, target_dir))
                except (BrowserError, OSError) as exc:
                    LOGGER.error("Error downloading '%s': %s", name, exc)
                    failures[name] = str(exc)
        finally:
            self._busy = False
        if failures:
            failed = ", ".join(failures)
            first = next(iter(failures.values()))
            raise BatchError(f"Failed to download {failed}: {first}", failures)
        return saved

    async def _download_one(self, bucket_name: str, name: str, target_dir: Path) -> Path:
        data = await self._gateway.fetch_bytes(bucket_name, name)
        handle = self._scratch.acquire(name, data)
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            target = target_dir / (PurePosixPath(name).name or name)
            await asyncio.to_thread(shutil.copyfile, handle.path, target)
        finally:
            self._scratch.release(name)
        LOGGER.debug("Saved '%s' to %s", name, target)
        return target

    def _require_bucket(self) -> str:
        bucket_name = self._collection.bucket
        if bucket_name is None:
            raise BrowserError("No bucket is selected")
        return bucket_name

    def _set_progress(self, value: int) -> None:
        self._progress = value
        if self._on_progress:
            self._on_progress(value)

    def close(self) -> None:
        self._scratch.close()


def resolve_targets(
    collection: CollectionOrchestrator,
    selection: SelectionSet,
    name: Optional[str] = None,
) -> list[str]:
    """Targets for an action: one file, or the selection in collection order."""

    if name is not None:
        return [entry.name for entry in collection.lookup([name])]
    selected = set(selection)
    return [entry.name for entry in collection.snapshot().entries if entry.name in selected]
