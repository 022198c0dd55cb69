from __future__ import annotations
"""Loads a bucket's files and keeps the enriched collection consistent."""
from dataclasses import replace
import logging
from typing import Callable, Iterable, Protocol

from .fanout import FanOut
from .models import CollectionSnapshot, FileEntry, FileMetadata, LoadState
from .previews import PreviewHandle, PreviewRegistry
from .services import BrowserError

LOGGER = logging.getLogger(__name__)

SnapshotListener = Callable[[CollectionSnapshot], None]


class FileGateway(Protocol):
    async def list_files(self, bucket_name: str) -> list[FileEntry]: ...

    async def get_metadata(self, bucket_name: str, file_name: str) -> FileMetadata: ...

    async def fetch_bytes(self, bucket_name: str, file_name: str) -> bytes: ...


class CollectionOrchestrator:
    """Owns the collection snapshot and the preview handles of one view.

    Each call to :meth:`load` starts a new generation. Work that finishes for
    an older generation is dropped, so switching buckets while a load is in
    flight never lets the stale results reach the snapshot.
    """

    def __init__(self, gateway: FileGateway, previews: PreviewRegistry | None = None):
        self._gateway = gateway
        self._previews = previews or PreviewRegistry()
        self._listeners: list[SnapshotListener] = []
        self._generation = 0
        self._bucket: str | None = None
        self._state = LoadState.IDLE
        self._entries: tuple[FileEntry, ...] = ()
        self._error: str | None = None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def bucket(self) -> str | None:
        return self._bucket

    @property
    def state(self) -> LoadState:
        return self._state

    @property
    def previews(self) -> PreviewRegistry:
        return self._previews

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def snapshot(self) -> CollectionSnapshot:
        return CollectionSnapshot(
            bucket=self._bucket,
            state=self._state,
            entries=self._entries,
            previews=self._previews.as_dict(),
            error=self._error,
            generation=self._generation,
        )

    def lookup(self, names: Iterable[str]) -> list[FileEntry]:
        """Resolve names against the current collection, keeping their order."""

        by_name = {entry.name: entry for entry in self._entries}
        return [by_name[name] for name in names if name in by_name]

    async def load(self, bucket_name: str) -> CollectionSnapshot:
        generation = self._begin(bucket_name)
        LOGGER.debug("Loading bucket '%s' (generation %d)", bucket_name, generation)
        try:
            listing = await self._gateway.list_files(bucket_name)
        except BrowserError as exc:
            if self._is_current(generation):
                LOGGER.error("Error loading files for bucket '%s': %s", bucket_name, exc)
                self._state = LoadState.FAILED
                self._error = str(exc)
                self._publish()
            return self.snapshot()
        if not self._is_current(generation):
            return self.snapshot()

        entries = await self._attach_metadata(generation, bucket_name, listing)
        if not self._is_current(generation):
            LOGGER.debug("Discarding stale load of '%s' (generation %d)", bucket_name, generation)
            return self.snapshot()
        self._entries = tuple(entries)
        self._publish()

        await self._attach_previews(generation, bucket_name, self._entries)
        if not self._is_current(generation):
            return self.snapshot()
        self._state = LoadState.READY
        LOGGER.debug(
            "Loaded %d file(s) and %d preview(s) for bucket '%s'",
            len(self._entries),
            len(self._previews),
            bucket_name,
        )
        self._publish()
        return self.snapshot()

    async def reload(self) -> CollectionSnapshot:
        if self._bucket is None:
            return self.snapshot()
        return await self.load(self._bucket)

    async def open_preview(self, file_name: str) -> PreviewHandle:
        """Fetch a full preview for one file, replacing any existing handle."""

        if self._bucket is None:
            raise ValueError("No bucket is selected")
        generation = self._generation
        data = await self._gateway.fetch_bytes(self._bucket, file_name)
        if not self._is_current(generation):
            raise BrowserError(f"Preview of '{file_name}' was superseded by a newer load")
        handle = self._previews.acquire(file_name, data)
        self._publish()
        return handle

    def teardown(self) -> None:
        """Release every preview and return to the idle state."""

        self._generation += 1
        self._previews.release_all()
        self._bucket = None
        self._state = LoadState.IDLE
        self._entries = ()
        self._error = None
        self._publish()

    def _begin(self, bucket_name: str) -> int:
        self._generation += 1
        self._previews.release_all()
        self._bucket = bucket_name
        self._state = LoadState.LOADING
        self._entries = ()
        self._error = None
        self._publish()
        return self._generation

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    async def _attach_metadata(
        self,
        generation: int,
        bucket_name: str,
        listing: list[FileEntry],
    ) -> list[FileEntry]:
        fanout: FanOut[FileMetadata] = FanOut(generation)
        for entry in listing:
            if entry.name not in fanout:
                fanout.add(entry.name, lambda name=entry.name: self._gateway.get_metadata(bucket_name, name))
        metadata: dict[str, FileMetadata] = {}
        for outcome in await fanout.join():
            if outcome.ok:
                metadata[outcome.key] = outcome.value
            else:
                LOGGER.warning("Error fetching metadata for %s: %s", outcome.key, outcome.error)
        enriched = []
        for entry in listing:
            found = metadata.get(entry.name)
            if found is not None:
                entry = replace(entry, tags=found.tags, metadata=dict(found.values))
            enriched.append(entry)
        return enriched

    async def _attach_previews(
        self,
        generation: int,
        bucket_name: str,
        entries: Iterable[FileEntry],
    ) -> None:
        fanout: FanOut[bytes] = FanOut(generation)
        for entry in entries:
            if entry.is_image and entry.name not in fanout:
                fanout.add(entry.name, lambda name=entry.name: self._gateway.fetch_bytes(bucket_name, name))
        if not len(fanout):
            return
        outcomes = await fanout.join()
        if not self._is_current(generation):
            return
        for outcome in outcomes:
            if outcome.ok:
                self._previews.acquire(outcome.key, outcome.value)
            else:
                LOGGER.warning("Error loading image for %s: %s", outcome.key, outcome.error)

    def _publish(self) -> None:
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)

