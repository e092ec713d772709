"""
IPFS content store speaking the Kubo RPC API over httpx.
"""

import httpx

from roots.core.content_store.base import ContentStore
from roots.utils.exceptions import StoreUnavailable
from roots.utils.logger import get_logger

logger = get_logger(__name__)


class IPFSContentStore(ContentStore):
    """
    Content store backed by an IPFS node.

    Tokens are IPFS CIDs. They differ from the archive's SHA-256 content
    ids; the archive reconciles the two through ContentRecord.location and
    re-hashes every fetched blob before trusting it.
    """

    def __init__(
        self,
        url: str = "http://localhost:5001",
        gateway_url: str = "https://ipfs.io/ipfs",
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize IPFS content store.

        Args:
            url: Kubo RPC endpoint
            gateway_url: Public gateway used to build shareable links
            timeout: Request timeout in seconds
            client: Optional preconfigured httpx client (tests inject a mock transport)
        """
        self.url = url.rstrip("/")
        self.gateway_url = gateway_url.rstrip("/")
        self.timeout = timeout
        self.client = client or httpx.AsyncClient(base_url=self.url, timeout=timeout)

    async def put(self, data: bytes) -> str:
        response = await self._call(
            "add",
            params={"pin": "false"},
            files={"file": ("blob", bytes(data), "application/octet-stream")},
        )
        try:
            cid = response.json()["Hash"]
        except (ValueError, KeyError) as e:
            raise StoreUnavailable(f"IPFS add returned an unexpected payload: {e}") from e

        logger.bind(location=cid, size=len(data)).debug(f"IPFS add: {cid}")
        return cid

    async def get(self, token: str) -> bytes:
        response = await self._call("cat", params={"arg": token})
        return response.content

    async def pin(self, token: str) -> None:
        await self._call("pin/add", params={"arg": token})

    def gateway_link(self, token: str) -> str:
        """Public gateway URL for a CID."""
        return f"{self.gateway_url}/{token}"

    async def close(self) -> None:
        await self.client.aclose()

    async def _call(self, command: str, **kwargs) -> httpx.Response:
        try:
            response = await self.client.post(f"/api/v0/{command}", **kwargs)
            response.raise_for_status()
            return response
        except httpx.TimeoutException as e:
            raise StoreUnavailable(
                f"IPFS {command} timed out", context={"command": command}
            ) from e
        except httpx.HTTPStatusError as e:
            raise StoreUnavailable(
                f"IPFS {command} failed with HTTP {e.response.status_code}",
                context={"command": command, "status": e.response.status_code},
            ) from e
        except httpx.HTTPError as e:
            logger.bind(url=self.url).error(f"IPFS {command} error: {e}")
            raise StoreUnavailable(
                f"IPFS {command} failed: {e}", context={"command": command}
            ) from e
