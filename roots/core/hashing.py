"""
Content addressing for archived snapshots and media.

A content id is the SHA-256 digest of the exact bytes, prefixed with the
algorithm name so the format can be recognised (and migrated) later.
"""

import hashlib
import re

ContentId = str

CONTENT_ID_PREFIX = "sha256:"

_CONTENT_ID_RE = re.compile(r"^sha256:[0-9a-f]{64}$")


def identify(data: bytes) -> ContentId:
    """
    Compute the content identifier of a byte sequence.

    Total over any input including empty bytes. Identical bytes always
    yield identical ids; any difference yields an unrelated id.

    Args:
        data: Bytes to identify

    Returns:
        Identifier in format "sha256:hexdigest"
    """
    return CONTENT_ID_PREFIX + hashlib.sha256(bytes(data)).hexdigest()


def is_content_id(value: object) -> bool:
    """Check whether ``value`` is a well-formed content identifier."""
    return isinstance(value, str) and _CONTENT_ID_RE.match(value) is not None
