from __future__ import annotations
"""Display formatting and input parsing shared by front ends."""
from dataclasses import dataclass
from datetime import datetime
from importlib.metadata import PackageNotFoundError, metadata
from typing import Iterable, Optional

from .models import Tag

DIST_NAME = "bucket-browser"
DEFAULT_SUMMARY = "Browse buckets and files of an object-storage API."
SIZE_UNITS = ("KB", "MB", "GB", "TB")


@dataclass(frozen=True)
class PackageInfo:
    name: str
    version: str
    summary: str


def load_package_info(dist_name: str = DIST_NAME) -> PackageInfo:
    """Read name, version and summary from the installed distribution."""

    try:
        dist = metadata(dist_name)
    except PackageNotFoundError:
        return PackageInfo(name="Bucket Browser", version="", summary=DEFAULT_SUMMARY)
    return PackageInfo(
        name=dist["Name"],
        version=dist["Version"],
        summary=dist.get("Summary") or DEFAULT_SUMMARY,
    )


def format_size(size: Optional[int]) -> str:
    if size is None:
        return "-"
    if size < 1024:
        return f"{max(size, 0)} B"
    scaled = float(size)
    for unit in SIZE_UNITS:
        scaled /= 1024
        if scaled < 1024:
            break
    return f"{scaled:.1f} {unit}"


def format_last_modified(last_modified: Optional[datetime]) -> str:
    """Show a listing timestamp in local time; naive values are shown as-is."""

    if last_modified is None:
        return "-"
    if last_modified.tzinfo is not None:
        last_modified = last_modified.astimezone()
    return last_modified.strftime("%Y-%m-%d %H:%M:%S")


def format_created(created: str) -> str:
    if not created:
        return "N/A"
    text = created[:-1] + "+00:00" if created.endswith("Z") else created
    try:
        return datetime.fromisoformat(text).strftime("%Y-%m-%d")
    except ValueError:
        return created


def format_tags(tags: Iterable[Tag]) -> str:
    labels = [
        f"{(tag.key or 'No Key').lower()}: {(tag.value or 'No Value').lower()}"
        for tag in tags
    ]
    return ", ".join(labels) if labels else "No tags"


def parse_tag(text: str) -> Tag:
    """Parse ``KEY=VALUE`` into a :class:`Tag`."""

    key, sep, value = text.partition("=")
    key = key.strip()
    if not sep or not key:
        raise ValueError(f"Tag '{text}' must look like KEY=VALUE")
    return Tag(key=key, value=value.strip())
