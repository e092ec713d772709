"""In-process content store addressed by the archive's own content ids."""

from roots.core.content_store.base import ContentStore
from roots.core.hashing import identify
from roots.utils.exceptions import NotFoundError


class InMemoryContentStore(ContentStore):
    """
    Dictionary-backed content store.

    Tokens are the SHA-256 content ids of the bytes, so repeated puts of
    the same bytes are idempotent. ``blobs`` is public so tests can
    simulate out-of-band corruption.
    """

    content_id_tokens = True

    def __init__(self):
        self.blobs: dict[str, bytes] = {}
        self.pinned: set[str] = set()
        self.put_count = 0

    async def put(self, data: bytes) -> str:
        token = identify(data)
        self.blobs.setdefault(token, bytes(data))
        self.put_count += 1
        return token

    async def get(self, token: str) -> bytes:
        try:
            return self.blobs[token]
        except KeyError:
            raise NotFoundError(f"Blob not found: {token}", {"location": token}) from None

    async def pin(self, token: str) -> None:
        if token not in self.blobs:
            raise NotFoundError(f"Cannot pin unknown blob: {token}", {"location": token})
        self.pinned.add(token)

    async def close(self) -> None:
        pass
