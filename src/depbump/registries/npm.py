"""npm registry client.

Both operations read the package document ("packument") served at
``<registry>/<name>``; it is fetched once per package and shared.
"""

import asyncio
import logging
from typing import Any

from depbump.errors import IntegrityComputationFailed, RegistryUnreachable
from depbump.models import Dependency, PackageInfo, Scheme
from depbump.registries.base import BaseRegistry
from depbump.registries.http import HttpClient

logger = logging.getLogger(__name__)


class NpmRegistry(HttpClient, BaseRegistry):
    """Client for an npm-compatible registry."""

    BASE_URL = "https://registry.npmjs.org"

    def __init__(self, base_url: str = BASE_URL, **kwargs: Any) -> None:
        """Initialize the npm client.

        Args:
            base_url: Root URL of the registry.
            **kwargs: Passed to HttpClient (timeout, connection_limit).
        """
        super().__init__(**kwargs)
        self.base_url = base_url.rstrip("/")
        self._packuments: dict[str, asyncio.Task] = {}

    @property
    def scheme(self) -> Scheme:
        return Scheme.NPM

    @property
    def name(self) -> str:
        return "npm"

    async def _fetch_packument(self, dep: Dependency) -> dict[str, Any]:
        url = f"{self.base_url}/{dep.name}"
        data = await self._get_json(url, dep.identity)
        if not isinstance(data, dict) or not isinstance(data.get("versions"), dict):
            raise RegistryUnreachable(dep.identity, url, "unexpected package document")
        return data

    async def _get_packument(self, dep: Dependency) -> dict[str, Any]:
        """Return the packument, sharing one in-flight request per package."""
        task = self._packuments.get(dep.name)
        if task is None:
            task = asyncio.ensure_future(self._fetch_packument(dep))
            self._packuments[dep.name] = task
        try:
            return await asyncio.shield(task)
        except Exception:
            # Failed fetches are not memoised
            if self._packuments.get(dep.name) is task:
                del self._packuments[dep.name]
            raise

    async def fetch_versions(self, dep: Dependency) -> list[str]:
        """List all versions of an npm package."""
        packument = await self._get_packument(dep)
        return list(packument["versions"])

    async def fetch_package(self, dep: Dependency, version: str) -> PackageInfo:
        """Fetch ``dist.integrity`` and dependencies of an npm package version."""
        packument = await self._get_packument(dep)
        identifier = f"{dep.identity}@{version}"

        manifest = packument["versions"].get(version)
        if not isinstance(manifest, dict):
            raise IntegrityComputationFailed(identifier, "version not found")

        integrity = (manifest.get("dist") or {}).get("integrity")
        if not integrity:
            raise IntegrityComputationFailed(identifier, "missing dist.integrity")

        dependencies = [
            Dependency(scheme=Scheme.NPM, name=name, constraint=constraint)
            for name, constraint in sorted((manifest.get("dependencies") or {}).items())
        ]
        return PackageInfo(integrity=integrity, dependencies=dependencies)

    async def close(self) -> None:
        """Close the session and forget cached package documents."""
        for task in self._packuments.values():
            task.cancel()
        self._packuments.clear()
        await super().close()
