from __future__ import annotations
"""Blocking HTTP client for the object-storage API."""
import json
import logging
from typing import Any, Callable, Iterable, Optional
from urllib.parse import quote

import requests

from .models import Bucket, FileEntry, FileMetadata, Tag

LOGGER = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30
GENERIC_ERROR_MESSAGE = "An unexpected error occurred"
ACCESS_KEY_HEADER = "X-Access-Key"
SECRET_KEY_HEADER = "X-Secret-Key"


class BrowserError(Exception):
    """Base class for errors reported to the user."""


class MissingCredentialsError(BrowserError, ValueError):
    """Raised before any request when a credential value is empty."""

    def __init__(self, message: str = "Access Key and Secret Key are required for authentication."):
        super().__init__(message)


class TransportError(BrowserError):
    """Raised when the API cannot be reached or answers with a failure."""

    def __init__(self, message: str, *, status: int | None = None):
        super().__init__(message)
        self.message = message
        self.status = status


def require_credentials(access_key: str | None, secret_key: str | None) -> None:
    if not access_key or not secret_key:
        raise MissingCredentialsError()


def _error_message(response: requests.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        message = payload.get("message")
        if isinstance(message, str) and message:
            return message
    return f"Request failed with status code {response.status_code}"


def _quote(segment: str) -> str:
    return quote(segment, safe="")


class StorageApiService:
    """Encapsulates the REST calls independent of any UI technology.

    Every method takes the API base URL and both credential values; the
    credentials travel as ``X-Access-Key``/``X-Secret-Key`` headers.
    """

    def __init__(
        self,
        session_factory: Callable[[], requests.Session] | None = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self._session_factory = session_factory or requests.Session
        self._timeout = timeout

    def login(self, *, api_url: str, access_key: str, secret_key: str) -> bool:
        """Check the credentials against ``/auth/login``."""

        require_credentials(access_key, secret_key)
        response = self._send(
            "POST",
            api_url,
            "/auth/login",
            json={"accessKey": access_key, "secretKey": secret_key},
        )
        payload = self._json(response)
        return bool(isinstance(payload, dict) and payload.get("success"))

    def list_buckets(self, *, api_url: str, access_key: str, secret_key: str) -> list[Bucket]:
        response = self._request("GET", api_url, "/buckets", access_key, secret_key)
        payload = self._json(response)
        if not isinstance(payload, list):
            return []
        return [Bucket.from_payload(item) for item in payload if isinstance(item, dict)]

    def create_bucket(
        self,
        *,
        api_url: str,
        access_key: str,
        secret_key: str,
        bucket_name: str,
    ) -> Bucket:
        response = self._request(
            "POST",
            api_url,
            "/buckets/create",
            access_key,
            secret_key,
            json={"bucketName": bucket_name},
        )
        payload = self._json(response)
        if isinstance(payload, dict) and (payload.get("name") or payload.get("Name")):
            return Bucket.from_payload(payload)
        return Bucket(name=bucket_name)

    def list_files(
        self,
        *,
        api_url: str,
        access_key: str,
        secret_key: str,
        bucket_name: str,
    ) -> list[FileEntry]:
        response = self._request(
            "GET",
            api_url,
            f"/buckets/{_quote(bucket_name)}/files",
            access_key,
            secret_key,
        )
        payload = self._json(response)
        if not isinstance(payload, list):
            return []
        return [FileEntry.from_payload(item) for item in payload if isinstance(item, dict)]

    def get_metadata(
        self,
        *,
        api_url: str,
        access_key: str,
        secret_key: str,
        bucket_name: str,
        file_name: str,
    ) -> FileMetadata:
        response = self._request(
            "GET",
            api_url,
            f"/files/{_quote(bucket_name)}/{_quote(file_name)}/metadata",
            access_key,
            secret_key,
        )
        return FileMetadata.from_payload(self._json(response))

    def fetch_bytes(
        self,
        *,
        api_url: str,
        access_key: str,
        secret_key: str,
        bucket_name: str,
        file_name: str,
    ) -> bytes:
        """Download raw content; used for previews and downloads alike."""

        response = self._request(
            "GET",
            api_url,
            f"/files/{_quote(bucket_name)}/{_quote(file_name)}",
            access_key,
            secret_key,
        )
        return response.content

    def upload_bytes(
        self,
        *,
        api_url: str,
        access_key: str,
        secret_key: str,
        bucket_name: str,
        file_name: str,
        data: bytes,
        tags: Iterable[Tag] = (),
        content_type: str | None = None,
    ) -> None:
        tag_list = [tag.to_payload() for tag in tags]
        form: dict[str, str] = {}
        if tag_list:
            form["tags"] = json.dumps(tag_list)
        file_field: tuple[Any, ...] = (file_name, data)
        if content_type:
            file_field = (file_name, data, content_type)
        self._request(
            "POST",
            api_url,
            f"/files/{_quote(bucket_name)}/upload",
            access_key,
            secret_key,
            files={"file": file_field},
            data=form,
        )

    def delete_file(
        self,
        *,
        api_url: str,
        access_key: str,
        secret_key: str,
        bucket_name: str,
        file_name: str,
    ) -> None:
        self._request(
            "DELETE",
            api_url,
            f"/files/{_quote(bucket_name)}/{_quote(file_name)}",
            access_key,
            secret_key,
        )

    def _request(
        self,
        method: str,
        api_url: str,
        path: str,
        access_key: str,
        secret_key: str,
        **kwargs: Any,
    ) -> requests.Response:
        require_credentials(access_key, secret_key)
        headers = {ACCESS_KEY_HEADER: access_key, SECRET_KEY_HEADER: secret_key}
        if "files" not in kwargs:
            headers["Accept"] = "application/json"
        return self._send(method, api_url, path, headers=headers, **kwargs)

    def _send(self, method: str, api_url: str, path: str, **kwargs: Any) -> requests.Response:
        url = api_url.rstrip("/") + path
        LOGGER.debug("%s %s", method, url)
        try:
            with self._create_session() as session:
                response = session.request(method, url, timeout=self._timeout, **kwargs)
        except requests.RequestException as exc:
            LOGGER.error("API error: %s %s: %s", method, url, exc)
            raise TransportError(str(exc) or GENERIC_ERROR_MESSAGE) from exc
        if not response.ok:
            message = _error_message(response)
            LOGGER.error("API error: %s %s -> %s %s", method, url, response.status_code, message)
            raise TransportError(message, status=response.status_code)
        return response

    def _json(self, response: requests.Response) -> Optional[Any]:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise TransportError("Received a malformed response from the server") from exc

    def _create_session(self) -> requests.Session:
        # One session per call; fan-out requests run on separate worker threads.
        return self._session_factory()
