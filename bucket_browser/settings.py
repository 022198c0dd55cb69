from __future__ import annotations
"""Application settings persistence helpers."""

from dataclasses import asdict, dataclass, replace
import json
import os
from pathlib import Path

API_URL_ENV = "BUCKET_BROWSER_API_URL"


@dataclass
class AppSettings:
    """Simple container for persistent app settings."""

    api_url: str = "http://localhost:5000"
    request_timeout: int = 30
    download_dir: str = ""
    remember_last_bucket: bool = True
    last_bucket: str = ""
    last_profile: str = ""


def _positive_int(value: object, default: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def _string(value: object, default: str) -> str:
    return value if isinstance(value, str) else default


class SettingsStorage:
    """JSON-backed persistence for :class:`AppSettings`."""

    def __init__(self, storage_path: str | Path | None = None, environ: dict[str, str] | None = None):
        if storage_path is None:
            storage_path = Path.home() / ".bucket_browser_settings.json"
        self._path = Path(storage_path)
        self._environ = os.environ if environ is None else environ

    def load(self) -> AppSettings:
        settings = self._load_file()
        override = self._environ.get(API_URL_ENV, "").strip()
        if override:
            settings = replace(settings, api_url=override)
        return settings

    def save(self, settings: AppSettings) -> None:
        payload = asdict(settings)
        payload["request_timeout"] = max(int(settings.request_timeout), 1)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError:
            # Persist best-effort; ignore filesystem issues.
            return

    def _load_file(self) -> AppSettings:
        if not self._path.exists():
            return AppSettings()
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return AppSettings()
        if not isinstance(data, dict):
            return AppSettings()
        defaults = AppSettings()
        remember = data.get("remember_last_bucket", defaults.remember_last_bucket)
        return AppSettings(
            api_url=_string(data.get("api_url"), defaults.api_url) or defaults.api_url,
            request_timeout=_positive_int(data.get("request_timeout"), defaults.request_timeout),
            download_dir=_string(data.get("download_dir"), defaults.download_dir),
            remember_last_bucket=remember if isinstance(remember, bool) else defaults.remember_last_bucket,
            last_bucket=_string(data.get("last_bucket"), defaults.last_bucket),
            last_profile=_string(data.get("last_profile"), defaults.last_profile),
        )
