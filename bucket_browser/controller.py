from __future__ import annotations
"""Controller layer: session context and the asynchronous API gateway."""

import asyncio
from dataclasses import dataclass
import logging
from typing import Callable, Iterable, Optional

from .models import Bucket, FileEntry, FileMetadata, Tag
from .naming import NamingViolation, normalize, validate
from .profiles import ConnectionProfile, ProfileStorage
from .services import (
    BrowserError,
    StorageApiService,
    TransportError,
    require_credentials,
)

LOGGER = logging.getLogger(__name__)


class NotSignedInError(BrowserError, RuntimeError):
    """Raised when an API operation is attempted before signing in."""


@dataclass(frozen=True)
class BrowserSession:
    """Credentials for one signed-in period, attached to every request."""

    api_url: str
    access_key: str
    secret_key: str

    def __post_init__(self) -> None:
        require_credentials(self.access_key, self.secret_key)

    def params(self) -> dict[str, str]:
        return {
            "api_url": self.api_url,
            "access_key": self.access_key,
            "secret_key": self.secret_key,
        }


@dataclass(frozen=True)
class BucketNameSubstitution:
    """Reported when a requested bucket name is replaced by a valid one."""

    requested: str
    substituted: str
    violation: NamingViolation

    @property
    def message(self) -> str:
        return (
            f"{self.violation.message} Automatically creating bucket with "
            f"suggested name: {self.substituted}"
        )


class BucketBrowserController:
    """Coordinates user actions with the :class:`StorageApiService`.

    Service calls block, so each one runs in a worker thread and the public
    API methods are coroutines.
    """

    def __init__(
        self,
        service: StorageApiService | None = None,
        storage: ProfileStorage | None = None,
    ):
        self._service = service or StorageApiService()
        self._storage = storage or ProfileStorage()
        self._session: BrowserSession | None = None
        self._profiles: dict[str, ConnectionProfile] = {
            profile.name: profile for profile in self._storage.load()
        }
        self._selected_profile: str | None = None

    @property
    def is_signed_in(self) -> bool:
        return self._session is not None

    @property
    def session(self) -> BrowserSession | None:
        return self._session

    @property
    def selected_profile(self) -> str | None:
        return self._selected_profile

    def list_profiles(self) -> list[ConnectionProfile]:
        return list(self._profiles.values())

    def save_profile(self, profile: ConnectionProfile, *, original_name: str | None = None) -> None:
        """Insert or replace ``profile``; ``original_name`` renames in place."""

        if original_name and original_name != profile.name and original_name in self._profiles:
            self._profiles = {
                (profile.name if name == original_name else name): existing
                for name, existing in self._profiles.items()
                if name != profile.name
            }
        self._profiles[profile.name] = profile
        self._storage.save(self.list_profiles())

    def delete_profile(self, name: str) -> None:
        self.get_profile(name)
        del self._profiles[name]
        if self._selected_profile == name:
            self._selected_profile = None
        self._storage.save(self.list_profiles())

    def get_profile(self, name: str) -> ConnectionProfile:
        try:
            return self._profiles[name]
        except KeyError:
            raise ValueError(f"Profile '{name}' does not exist") from None

    async def sign_in_with_profile(self, name: str, *, verify: bool = True) -> BrowserSession:
        profile = self.get_profile(name)
        session = await self.sign_in(
            api_url=profile.api_url,
            access_key=profile.access_key,
            secret_key=profile.secret_key,
            verify=verify,
        )
        self._selected_profile = name
        return session

    async def sign_in(
        self,
        *,
        api_url: str,
        access_key: str,
        secret_key: str,
        verify: bool = True,
    ) -> BrowserSession:
        """Create the session context, optionally checking it with the API."""

        session = BrowserSession(api_url=api_url, access_key=access_key, secret_key=secret_key)
        if verify:
            accepted = await asyncio.to_thread(self._service.login, **session.params())
            if not accepted:
                raise TransportError("Invalid credentials")
        self._session = session
        LOGGER.debug("Signed in to %s", api_url)
        return session

    def sign_out(self) -> None:
        self._session = None
        self._selected_profile = None
        LOGGER.debug("Signed out")

    def require_session(self) -> BrowserSession:
        if self._session is None:
            raise NotSignedInError("Not signed in")
        return self._session

    async def list_buckets(self) -> list[Bucket]:
        params = self.require_session().params()
        return await asyncio.to_thread(self._service.list_buckets, **params)

    async def create_bucket(
        self,
        name: str,
        *,
        on_substitute: Optional[Callable[[BucketNameSubstitution], None]] = None,
    ) -> Bucket:
        """Create a bucket, repairing an invalid name before the request."""

        params = self.require_session().params()
        bucket_name = name
        violation = validate(name)
        if violation is not None:
            bucket_name = normalize(name)
            substitution = BucketNameSubstitution(
                requested=name,
                substituted=bucket_name,
                violation=violation,
            )
            LOGGER.info("Bucket name '%s' rejected: %s", name, violation.message)
            if on_substitute:
                on_substitute(substitution)
        return await asyncio.to_thread(
            self._service.create_bucket,
            bucket_name=bucket_name,
            **params,
        )

    async def list_files(self, bucket_name: str) -> list[FileEntry]:
        params = self.require_session().params()
        return await asyncio.to_thread(
            self._service.list_files,
            bucket_name=bucket_name,
            **params,
        )

    async def get_metadata(self, bucket_name: str, file_name: str) -> FileMetadata:
        params = self.require_session().params()
        return await asyncio.to_thread(
            self._service.get_metadata,
            bucket_name=bucket_name,
            file_name=file_name,
            **params,
        )

    async def fetch_bytes(self, bucket_name: str, file_name: str) -> bytes:
        params = self.require_session().params()
        return await asyncio.to_thread(
            self._service.fetch_bytes,
            bucket_name=bucket_name,
            file_name=file_name,
            **params,
        )

    async def upload_bytes(
        self,
        bucket_name: str,
        file_name: str,
        data: bytes,
        tags: Iterable[Tag] = (),
        *,
        content_type: str | None = None,
    ) -> None:
        params = self.require_session().params()
        await asyncio.to_thread(
            self._service.upload_bytes,
            bucket_name=bucket_name,
            file_name=file_name,
            data=data,
            tags=tuple(tags),
            content_type=content_type,
            **params,
        )

    async def delete_file(self, bucket_name: str, file_name: str) -> None:
        params = self.require_session().params()
        await asyncio.to_thread(
            self._service.delete_file,
            bucket_name=bucket_name,
            file_name=file_name,
            **params,
        )

