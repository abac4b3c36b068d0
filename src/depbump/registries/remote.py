"""Client for direct-URL origins such as deno.land.

Direct-URL dependencies have no version listing. Origins that support it
redirect an unversioned URL to the latest versioned one, so the latest
version is discovered by following the redirects of a HEAD request.
"""

import asyncio
import logging
from typing import Optional
from urllib.parse import urljoin

import aiohttp

from depbump.errors import NetworkTimeout, RegistryUnreachable
from depbump.models import Dependency
from depbump.registries.http import HttpClient
from depbump.specifiers import stringify, try_parse

logger = logging.getLogger(__name__)

REDIRECT_STATUSES = frozenset({301, 302, 303, 307, 308})


class RemoteOrigin(HttpClient):
    """Probe and fetch direct-URL modules."""

    MAX_REDIRECTS = 10

    def __init__(self, max_redirects: int = MAX_REDIRECTS, **kwargs) -> None:
        """Initialize the origin client.

        Args:
            max_redirects: Maximum number of redirects followed by a probe.
            **kwargs: Passed to HttpClient (timeout, connection_limit).
        """
        super().__init__(**kwargs)
        self.max_redirects = max_redirects

    async def _follow_redirects(self, url: str, identity: str) -> str:
        """Follow HEAD redirects from a URL and return the final URL."""
        session = await self._get_session()
        current = url
        for _ in range(self.max_redirects + 1):
            logger.debug("HEAD %s", current)
            try:
                async with session.head(current, allow_redirects=False) as response:
                    location = response.headers.get("Location")
                    if response.status in REDIRECT_STATUSES and location:
                        current = urljoin(current, location)
                        continue
                    if response.status >= 400:
                        raise RegistryUnreachable(
                            identity, current, f"status {response.status}"
                        )
                    return current
            except asyncio.TimeoutError as e:
                raise NetworkTimeout(identity, current, "timed out") from e
            except aiohttp.ClientError as e:
                raise RegistryUnreachable(identity, current, str(e)) from e

        raise RegistryUnreachable(identity, url, "too many redirects")

    async def probe_latest(self, dep: Dependency) -> Optional[str]:
        """Discover the latest version of a direct-URL dependency.

        Args:
            dep: Dependency to probe.

        Returns:
            The version found in the redirect target, or the current
            constraint of ``dep`` if the origin does not redirect.

        Raises:
            RegistryUnreachable: If the origin cannot be reached.
        """
        url = stringify(dep, constraint=False)
        final = await self._follow_redirects(url, dep.identity)
        if final == url:
            logger.debug("No redirect for %s", url)
            return dep.constraint

        redirected = try_parse(final, strict=False)
        if redirected is None or redirected.constraint is None:
            logger.debug("Redirect target %s carries no version", final)
            return dep.constraint
        return redirected.constraint

    async def fetch_module(self, url: str, identity: str) -> bytes:
        """Fetch the source of a remote module."""
        return await self._get(url, identity)
