"""Shared aiohttp session handling for registry and origin clients."""

import asyncio
import json
import logging
from typing import Any, Optional

import aiohttp

from depbump.errors import NetworkTimeout, RegistryUnreachable

logger = logging.getLogger(__name__)


class HttpClient:
    """Base class for clients that make HTTP requests.

    Manages a shared aiohttp.ClientSession for connection pooling and reuse.
    Every request carries a timeout; timeouts and connection failures are
    translated into :class:`RegistryUnreachable`.

    Attributes:
        timeout: Total timeout of a single request, in seconds.
        connection_limit: Maximum number of simultaneous connections.
    """

    DEFAULT_TIMEOUT = 10
    DEFAULT_CONNECTION_LIMIT = 8

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        connection_limit: int = DEFAULT_CONNECTION_LIMIT,
    ) -> None:
        """Initialize the client.

        Args:
            timeout: Total timeout of a single request, in seconds.
            connection_limit: Maximum number of simultaneous connections.
        """
        self.timeout = timeout
        self.connection_limit = connection_limit
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session.

        Returns:
            The shared aiohttp ClientSession.
        """
        if self._session is None or self._session.closed:
            self._session = self._create_session()
        return self._session

    def _create_session(self) -> aiohttp.ClientSession:
        """Create a new aiohttp.ClientSession.

        Returns:
            A session with a connection cap and a total request timeout.
        """
        connector = aiohttp.TCPConnector(limit=self.connection_limit, ttl_dns_cache=300)
        return aiohttp.ClientSession(
            connector=connector,
            timeout=aiohttp.ClientTimeout(total=self.timeout),
        )

    async def _get(self, url: str, identity: str) -> bytes:
        """Fetch the body of a URL.

        Args:
            url: URL to fetch.
            identity: Identity of the dependency the request is made for.

        Returns:
            The raw response body.

        Raises:
            NetworkTimeout: If the request timed out.
            RegistryUnreachable: On connection errors or a non-200 status.
        """
        logger.debug("GET %s", url)
        session = await self._get_session()
        try:
            async with session.get(url) as response:
                if response.status != 200:
                    raise RegistryUnreachable(
                        identity, url, f"status {response.status}"
                    )
                return await response.read()
        except asyncio.TimeoutError as e:
            raise NetworkTimeout(identity, url, "timed out") from e
        except aiohttp.ClientError as e:
            raise RegistryUnreachable(identity, url, str(e)) from e

    async def _get_json(self, url: str, identity: str) -> Any:
        """Fetch and decode a JSON document.

        Raises:
            RegistryUnreachable: If the request fails or the body is not JSON.
        """
        body = await self._get(url, identity)
        try:
            return json.loads(body)
        except ValueError as e:
            raise RegistryUnreachable(identity, url, "invalid JSON") from e

    async def close(self) -> None:
        """Close the aiohttp session.

        Should be called when done using the client to release resources.
        """
        if self._session is not None and not self._session.closed:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> "HttpClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()
