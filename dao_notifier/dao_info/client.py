"""DAO Notifier — DAO Info Client.

Async client for the indexer query that resolves a DAO address to its
chain, display name and page URL. Built on httpx.AsyncClient.

Any failure (network, non-2xx, invalid JSON, unexpected shape) yields
None: callers treat an unresolvable DAO as "not recognized".
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import httpx

from dao_notifier.config import DaoInfoConfig
from dao_notifier.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class DaoInfo:
    """Metadata of one DAO.

    Attributes:
        address: DAO contract address that was looked up.
        chain_id: Chain the DAO lives on.
        name: Display name from the DAO config.
        url: Link to the DAO page.
    """

    address: str
    chain_id: str
    name: str
    url: str


def _parse_dao_info(address: str, data: Any) -> Optional[DaoInfo]:
    """Validate the indexer response shape and extract the fields.

    Expected: ``{"chainId": ..., "url": ..., "value": {"config": {"name": ...}}}``.
    """
    if not isinstance(data, dict):
        return None
    value = data.get("value")
    config = value.get("config") if isinstance(value, dict) else None
    if not isinstance(config, dict):
        return None

    chain_id = data.get("chainId")
    url = data.get("url")
    name = config.get("name")
    if not all(isinstance(v, str) and v for v in (chain_id, url, name)):
        return None

    return DaoInfo(address=address, chain_id=chain_id, name=name, url=url)


class DaoInfoClient:
    """Async HTTP client for DAO metadata lookups.

    Attributes:
        config: DaoInfoConfig with the indexer URL and timeout.
    """

    def __init__(
        self,
        config: DaoInfoConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: DaoInfoConfig from the app configuration.
            transport: Custom httpx transport, mainly for tests.
        """
        self.config = config
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Lazily create the httpx.AsyncClient."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={"Accept": "application/json"},
                follow_redirects=True,
                timeout=httpx.Timeout(self.config.timeout_seconds),
                transport=self._transport,
            )
        return self._client

    async def get_dao_info(self, address: str) -> Optional[DaoInfo]:
        """Resolve a DAO address.

        Args:
            address: DAO contract address.

        Returns:
            DaoInfo, or None if the DAO could not be resolved.
        """
        client = await self._get_client()
        try:
            resp = await client.get(self.config.base_url, params={"address": address})
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPError as e:
            logger.warning("DAO info request failed for %s: %s", address, e)
            return None
        except ValueError as e:
            logger.warning("DAO info for %s is not valid JSON: %s", address, e)
            return None

        info = _parse_dao_info(address, data)
        if info is None:
            logger.warning("DAO info for %s has an unexpected shape", address)
        else:
            logger.debug("Resolved DAO %s → %s on %s", address, info.name, info.chain_id)
        return info

    async def close(self) -> None:
        """Close the underlying httpx client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.debug("DAO info client closed")

    async def __aenter__(self) -> "DaoInfoClient":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
