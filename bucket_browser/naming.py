from __future__ import annotations
"""Bucket naming rules and the repair applied to rejected names."""
from enum import Enum
import re
from typing import Optional

MIN_LENGTH = 3
MAX_LENGTH = 63
REPAIR_PREFIX = "bucket-"
RESERVED_PREFIX = "xn--"
RESERVED_SUFFIX = "-s3alias"
SUFFIX_REPLACEMENT = "-bucket"

_DISALLOWED = re.compile(r"[^a-z0-9.-]")
_ADJACENT_PUNCTUATION = re.compile(r"\.\.|-\.|\.-")
_IPV4_SHAPE = re.compile(r"^[0-9]{1,3}(\.[0-9]{1,3}){3}$")


class NamingViolation(Enum):
    """Reasons a bucket name is rejected, in the order they are checked."""

    LENGTH = "Bucket name must be between 3 and 63 characters long."
    CHARACTERS = "Bucket name can only contain lowercase letters, numbers, dots, and hyphens."
    ADJACENT_PUNCTUATION = (
        "Bucket name must not contain two adjacent periods or a period adjacent to a hyphen."
    )
    IP_ADDRESS = "Bucket name must not resemble an IP address."
    RESERVED_PREFIX = 'Bucket name must not start with the prefix "xn--".'
    RESERVED_SUFFIX = 'Bucket name must not end with the suffix "-s3alias".'

    @property
    def message(self) -> str:
        return self.value


def validate(name: str) -> Optional[NamingViolation]:
    """Return the first rule ``name`` breaks, or ``None`` when it is valid."""

    if not MIN_LENGTH <= len(name) <= MAX_LENGTH:
        return NamingViolation.LENGTH
    if _DISALLOWED.search(name):
        return NamingViolation.CHARACTERS
    if _ADJACENT_PUNCTUATION.search(name):
        return NamingViolation.ADJACENT_PUNCTUATION
    if _IPV4_SHAPE.match(name):
        return NamingViolation.IP_ADDRESS
    if name.startswith(RESERVED_PREFIX):
        return NamingViolation.RESERVED_PREFIX
    if name.endswith(RESERVED_SUFFIX):
        return NamingViolation.RESERVED_SUFFIX
    return None


def is_valid(name: str) -> bool:
    return validate(name) is None


def _collapse_punctuation(name: str) -> str:
    # A single pass can leave new pairs behind ("a...b" -> "a-.b").
    collapsed = _ADJACENT_PUNCTUATION.sub("-", name)
    while collapsed != name:
        name = collapsed
        collapsed = _ADJACENT_PUNCTUATION.sub("-", name)
    return collapsed


def _repair_pass(name: str) -> str:
    name = _collapse_punctuation(name)
    if len(name) < MIN_LENGTH:
        name = REPAIR_PREFIX + name
    elif len(name) > MAX_LENGTH:
        name = name[:MAX_LENGTH]
    if _IPV4_SHAPE.match(name):
        name = REPAIR_PREFIX + name
    if name.startswith(RESERVED_PREFIX):
        name = REPAIR_PREFIX + name
    if name.endswith(RESERVED_SUFFIX):
        name = name[: -len(RESERVED_SUFFIX)] + SUFFIX_REPLACEMENT
    return name


def normalize(name: str) -> str:
    """Suggest a valid bucket name derived from ``name``.

    Repairs run in a fixed order: lowercase and drop disallowed characters,
    collapse forbidden punctuation pairs to a hyphen, fix the length, then
    prefix IP-shaped or ``xn--`` names with ``bucket-`` and swap a
    ``-s3alias`` suffix for ``-bucket``. A prefix added by one repair can
    itself break a rule (``"bucket-" + ".a"``, or a 63 character name growing
    past the limit), so the repairs repeat until the result validates. Valid
    names come back unchanged, which makes the function idempotent.
    """

    candidate = _DISALLOWED.sub("", name.lower())
    candidate = _repair_pass(candidate)
    while validate(candidate) is not None:
        candidate = _repair_pass(candidate)
    return candidate
