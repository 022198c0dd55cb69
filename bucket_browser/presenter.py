from __future__ import annotations
"""View-agnostic presenter that wraps controller, collection and batch operations."""
from dataclasses import dataclass, replace
import logging
from pathlib import Path
from typing import Awaitable, Callable, Iterable, Optional, Sequence, TypeVar

from .batch import BatchExecutor, ConfirmFn, resolve_targets
from .collection import CollectionOrchestrator
from .controller import BucketBrowserController, BucketNameSubstitution
from .models import Bucket, CollectionSnapshot, FileEntry, LoadState, PendingUpload, Tag
from .previews import PreviewHandle
from .profiles import ConnectionProfile
from .search import filter_files
from .selection import SelectionSet
from .services import BrowserError, StorageApiService
from .settings import AppSettings, SettingsStorage

ChangeFn = Callable[[], None]
T = TypeVar("T")

LOGGER = logging.getLogger(__name__)


def _format_error(exc: Exception) -> str:
    return str(exc) or exc.__class__.__name__


@dataclass(frozen=True)
class BrowserState:
    """Everything a view needs to render the current bucket."""

    collection: CollectionSnapshot
    visible: tuple[FileEntry, ...]
    selection: tuple[str, ...]
    query: str
    progress: int
    busy: bool
    error: Optional[str]
    notice: Optional[str]
    buckets: tuple[Bucket, ...]


class BucketBrowserPresenter:
    """Runs user actions and exposes the resulting state to a view.

    Failures are stored as the last error until :meth:`clear_error` is
    called; the ``on_change`` callback fires after every state change.
    """

    def __init__(
        self,
        *,
        controller: BucketBrowserController | None = None,
        settings_storage: SettingsStorage | None = None,
        confirm: ConfirmFn | None = None,
        on_change: ChangeFn | None = None,
    ) -> None:
        self._settings_storage = settings_storage or SettingsStorage()
        self._settings = self._settings_storage.load()
        self._controller = controller or BucketBrowserController(
            service=StorageApiService(timeout=self._settings.request_timeout)
        )
        self._on_change = on_change
        self._selection = SelectionSet()
        self._collection = CollectionOrchestrator(self._controller)
        self._collection.subscribe(self._on_snapshot)
        self._executor = BatchExecutor(
            self._controller,
            self._collection,
            self._selection,
            confirm=confirm,
            on_progress=lambda _value: self._notify(),
        )
        self._query = ""
        self._buckets: list[Bucket] = []
        self._error: str | None = None
        self._notice: str | None = None

    @property
    def settings(self) -> AppSettings:
        return replace(self._settings)

    @property
    def is_signed_in(self) -> bool:
        return self._controller.is_signed_in

    @property
    def collection(self) -> CollectionSnapshot:
        return self._collection.snapshot()

    @property
    def selection(self) -> list[str]:
        return self._selection.names

    @property
    def query(self) -> str:
        return self._query

    @property
    def visible_files(self) -> list[FileEntry]:
        return filter_files(self._collection.snapshot().entries, self._query)

    @property
    def buckets(self) -> list[Bucket]:
        return list(self._buckets)

    @property
    def progress(self) -> int:
        return self._executor.progress

    @property
    def busy(self) -> bool:
        return self._executor.busy or self._collection.state is LoadState.LOADING

    @property
    def pending_uploads(self) -> list[PendingUpload]:
        return self._executor.pending

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def notice(self) -> str | None:
        return self._notice

    def state(self) -> BrowserState:
        snapshot = self._collection.snapshot()
        return BrowserState(
            collection=snapshot,
            visible=tuple(filter_files(snapshot.entries, self._query)),
            selection=tuple(self._selection.names),
            query=self._query,
            progress=self._executor.progress,
            busy=self.busy,
            error=self._error,
            notice=self._notice,
            buckets=tuple(self._buckets),
        )

    def clear_error(self) -> None:
        self._error = None
        self._notify()

    def clear_notice(self) -> None:
        self._notice = None
        self._notify()

    def list_profiles(self) -> list[ConnectionProfile]:
        return self._controller.list_profiles()

    def save_profile(self, profile: ConnectionProfile, *, original_name: str | None = None) -> None:
        self._controller.save_profile(profile, original_name=original_name)

    def delete_profile(self, name: str) -> None:
        self._controller.delete_profile(name)

    async def sign_in(
        self,
        *,
        access_key: str,
        secret_key: str,
        api_url: str | None = None,
        verify: bool = True,
    ) -> bool:
        LOGGER.debug("Signing in to %s", api_url or self._settings.api_url)
        result = await self._guard(
            "Sign-in error",
            self._controller.sign_in(
                api_url=api_url or self._settings.api_url,
                access_key=access_key,
                secret_key=secret_key,
                verify=verify,
            ),
        )
        return result is not None

    async def sign_in_with_profile(self, name: str, *, verify: bool = True) -> bool:
        LOGGER.debug("Signing in using profile '%s'", name)
        try:
            self._controller.get_profile(name)
        except ValueError as exc:
            self._error = _format_error(exc)
            self._notify()
            return False
        result = await self._guard(
            f"Sign-in error for profile '{name}'",
            self._controller.sign_in_with_profile(name, verify=verify),
        )
        if result is not None and self._settings.remember_last_bucket:
            self._update_settings(last_profile=name)
        return result is not None

    def sign_out(self) -> None:
        self._collection.teardown()
        self._selection.clear()
        self._executor.discard_pending()
        self._buckets = []
        self._query = ""
        self._error = None
        self._notice = None
        self._controller.sign_out()
        self._notify()

    async def refresh_buckets(self) -> list[Bucket]:
        LOGGER.debug("Refreshing buckets")
        buckets = await self._guard("Bucket refresh error", self._controller.list_buckets())
        if buckets is not None:
            LOGGER.debug("Bucket refresh returned %d bucket(s)", len(buckets))
            self._buckets = buckets
            self._notify()
        return list(self._buckets)

    async def create_bucket(self, name: str) -> Bucket | None:
        def substituted(substitution: BucketNameSubstitution) -> None:
            self._notice = substitution.message
            self._notify()

        bucket = await self._guard(
            f"Bucket creation error for '{name}'",
            self._controller.create_bucket(name, on_substitute=substituted),
        )
        if bucket is not None:
            await self.refresh_buckets()
        return bucket

    async def select_bucket(self, name: str) -> CollectionSnapshot:
        self._error = None
        self._query = ""
        self._selection.clear()
        snapshot = await self._collection.load(name)
        if snapshot.state is LoadState.FAILED:
            self._error = snapshot.error
        elif self._settings.remember_last_bucket:
            self._update_settings(last_bucket=name)
        self._notify()
        return snapshot

    async def reload(self) -> CollectionSnapshot:
        snapshot = await self._collection.reload()
        if snapshot.state is LoadState.FAILED:
            self._error = snapshot.error
        self._notify()
        return snapshot

    def close_bucket(self) -> None:
        self._collection.teardown()
        self._selection.clear()
        self._query = ""
        self._notify()

    def set_query(self, query: str) -> None:
        self._query = query
        self._notify()

    def toggle_selection(self, name: str) -> bool:
        selected = self._selection.toggle(name)
        self._notify()
        return selected

    def select_all_visible(self, checked: bool = True) -> None:
        if checked:
            self._selection.replace(entry.name for entry in self.visible_files)
        else:
            self._selection.clear()
        self._notify()

    def stage_uploads(self, files: Iterable[PendingUpload | str | Path], tags: Iterable[Tag] = ()) -> None:
        self._executor.stage_uploads(files)
        self._executor.set_upload_tags(tags)
        self._notify()

    def set_upload_tags(self, tags: Iterable[Tag]) -> None:
        self._executor.set_upload_tags(tags)
        self._notify()

    def discard_uploads(self) -> None:
        self._executor.discard_pending()
        self._notify()

    async def upload(self) -> bool:
        self._error = None
        count = await self._guard("Error uploading files", self._executor.upload())
        return bool(count)

    async def delete(self, name: str | None = None) -> bool:
        """Delete one file, or the selection when ``name`` is omitted."""

        self._error = None
        targets = resolve_targets(self._collection, self._selection, name)
        deleted = await self._guard("Error deleting files", self._executor.delete(targets))
        return bool(deleted)

    async def download(
        self,
        names: Sequence[str] | None = None,
        destination: str | Path | None = None,
    ) -> list[Path]:
        if names is None:
            names = resolve_targets(self._collection, self._selection)
        target_dir = destination or self._settings.download_dir or Path.cwd()
        saved = await self._guard("Error downloading files", self._executor.download(names, target_dir))
        return saved or []

    async def open_preview(self, name: str) -> PreviewHandle | None:
        return await self._guard(
            f"Failed to load image preview for '{name}'",
            self._collection.open_preview(name),
        )

    def close(self) -> None:
        self._collection.teardown()
        self._collection.previews.close()
        self._executor.close()

    async def _guard(self, description: str, awaitable: Awaitable[T]) -> T | None:
        try:
            return await awaitable
        except BrowserError as exc:
            LOGGER.exception(description)
            self._error = _format_error(exc)
        except OSError as exc:
            LOGGER.exception("Unexpected %s", description[0].lower() + description[1:])
            self._error = _format_error(exc)
        finally:
            self._notify()
        return None

    def _on_snapshot(self, snapshot: CollectionSnapshot) -> None:
        if snapshot.state is not LoadState.LOADING:
            removed = self._selection.reconcile(snapshot.names)
            if removed:
                LOGGER.debug("Dropped %d vanished file(s) from the selection", len(removed))
        self._notify()

    def _update_settings(self, **changes: object) -> None:
        self._settings = replace(self._settings, **changes)
        self._settings_storage.save(self._settings)

    def _notify(self) -> None:
        if self._on_change:
            self._on_change()
