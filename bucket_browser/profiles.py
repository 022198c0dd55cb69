from __future__ import annotations
"""Saved sign-in profiles.

Profile files hold only the public half of each credential pair. Secret keys
go to the OS keychain under the profile name; a secret found in the file (as
written by hand or by older versions) is moved into the keychain on load.
"""
from dataclasses import dataclass
import json
import logging
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

import keyring
from keyring.errors import KeyringError

LOGGER = logging.getLogger(__name__)

FILE_VERSION = 1
T = TypeVar("T")


@dataclass
class ConnectionProfile:
    """An API endpoint plus the credential pair used to sign in to it."""

    name: str
    api_url: str
    access_key: str
    secret_key: str = ""

    @classmethod
    def from_entry(cls, entry: object) -> Optional["ConnectionProfile"]:
        if not isinstance(entry, dict):
            return None
        name = entry.get("name")
        api_url = entry.get("api_url")
        access_key = entry.get("access_key")
        if not all(isinstance(value, str) and value for value in (name, api_url, access_key)):
            return None
        secret_key = entry.get("secret_key")
        return cls(
            name=name,
            api_url=api_url,
            access_key=access_key,
            secret_key=secret_key if isinstance(secret_key, str) else "",
        )

    def to_entry(self) -> dict[str, str]:
        return {"name": self.name, "api_url": self.api_url, "access_key": self.access_key}


class KeychainStore:
    """Secret keys in the OS keychain, one entry per profile name."""

    def __init__(self, service_name: str = "bucket-browser"):
        self._service_name = service_name

    def get_secret(self, profile_name: str) -> str:
        if not profile_name:
            return ""
        return self._call(keyring.get_password, profile_name, default=None) or ""

    def set_secret(self, profile_name: str, secret_key: str) -> None:
        if not profile_name:
            return
        if secret_key:
            self._call(keyring.set_password, profile_name, secret_key, default=None)
        else:
            self.delete_secret(profile_name)

    def delete_secret(self, profile_name: str) -> None:
        if profile_name:
            self._call(keyring.delete_password, profile_name, default=None)

    def _call(self, func: Callable[..., T], *args: str, default: T) -> T:
        try:
            return func(self._service_name, *args)
        except KeyringError as exc:
            # A missing or locked backend must not block signing in.
            LOGGER.warning("Keychain unavailable for '%s': %s", args[0], exc)
            return default


class ProfileStorage:
    """Profiles persisted as JSON in the user's home directory."""

    def __init__(self, storage_path: str | Path | None = None, keychain: KeychainStore | None = None):
        self._path = Path(storage_path) if storage_path else Path.home() / ".bucket_browser_profiles.json"
        self._keychain = keychain or KeychainStore()

    def load(self) -> list[ConnectionProfile]:
        profiles = []
        migrated = False
        for entry in self._read_entries():
            profile = ConnectionProfile.from_entry(entry)
            if profile is None:
                LOGGER.debug("Skipping malformed profile entry in %s", self._path)
                continue
            if profile.secret_key:
                self._keychain.set_secret(profile.name, profile.secret_key)
                migrated = True
            else:
                profile.secret_key = self._keychain.get_secret(profile.name)
            profiles.append(profile)
        if migrated:
            LOGGER.info("Moved plaintext secret keys from %s to the keychain", self._path)
            self._write_entries([profile.to_entry() for profile in profiles])
        return profiles

    def save(self, profiles: list[ConnectionProfile]) -> None:
        stale = {
            entry["name"]
            for entry in self._read_entries()
            if isinstance(entry, dict) and isinstance(entry.get("name"), str)
        }
        for profile in profiles:
            self._keychain.set_secret(profile.name, profile.secret_key)
            stale.discard(profile.name)
        for name in sorted(stale):
            self._keychain.delete_secret(name)
        self._write_entries([profile.to_entry() for profile in profiles])

    def _read_entries(self) -> list[Any]:
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return []
        except (OSError, json.JSONDecodeError) as exc:
            LOGGER.warning("Ignoring unreadable profile file %s: %s", self._path, exc)
            return []
        if isinstance(data, dict):
            data = data.get("profiles")
        return data if isinstance(data, list) else []

    def _write_entries(self, entries: list[dict[str, str]]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"version": FILE_VERSION, "profiles": entries}
        self._path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
