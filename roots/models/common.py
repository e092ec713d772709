"""Validation helpers shared by the entity models."""

import re
from datetime import UTC, datetime

from roots.core.hashing import is_content_id

MAX_EXTENSION_KEYS = 32
MAX_EXTENSION_VALUE_LENGTH = 1024

_EXTENSION_KEY_RE = re.compile(r"^[a-z][a-z0-9_.-]{0,63}$")


def check_extensions(value: dict[str, str]) -> dict[str, str]:
    """
    Validate the bounded extension map.

    Extensions replace free-form JSON attachments: a small number of
    namespaced string keys with bounded string values.
    """
    if len(value) > MAX_EXTENSION_KEYS:
        raise ValueError(f"at most {MAX_EXTENSION_KEYS} extension keys allowed")
    for key, item in value.items():
        if not _EXTENSION_KEY_RE.match(key):
            raise ValueError(f"invalid extension key: {key!r}")
        if len(item) > MAX_EXTENSION_VALUE_LENGTH:
            raise ValueError(f"extension {key!r} exceeds {MAX_EXTENSION_VALUE_LENGTH} characters")
    return dict(sorted(value.items()))


def ordered_set(value: list[str]) -> list[str]:
    """De-duplicate and sort identifiers so equal sets compare equal."""
    for item in value:
        if not item:
            raise ValueError("identifiers cannot be empty")
    return sorted(set(value))


def check_content_id(value: str) -> str:
    if not is_content_id(value):
        raise ValueError(f"not a content identifier: {value!r}")
    return value


def ensure_utc(value: datetime) -> datetime:
    """Naive datetimes are taken as UTC; aware ones are converted to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def utc_now() -> datetime:
    return datetime.now(UTC)
