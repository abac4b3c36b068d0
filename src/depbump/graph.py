"""Module graph loading for direct-URL dependencies.

Locking a direct-URL dependency records the content hash of every remote
module it transitively imports. The loader walks that graph starting from
the root URL.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from urllib.parse import urljoin, urlsplit

from depbump.registries.remote import RemoteOrigin
from depbump.scanners.esm import iter_import_specifiers

logger = logging.getLogger(__name__)


class ModuleGraphLoader(ABC):
    """Loads the remote module graph rooted at a URL."""

    @abstractmethod
    async def load(self, url: str) -> dict[str, bytes]:
        """Load every remote module reachable from ``url``.

        Args:
            url: Root module URL.

        Returns:
            Map of module URL to module source, sorted by URL.

        Raises:
            RegistryUnreachable: If a module cannot be fetched.
        """
        ...


class RemoteModuleGraph(ModuleGraphLoader):
    """Breadth-first loader that fetches modules through a RemoteOrigin.

    Relative imports are resolved against the importing module. Imports of
    other schemes (``jsr:``, ``npm:``, ``node:``) end the walk.

    Attributes:
        origin: Client used to fetch module sources.
    """

    def __init__(self, origin: RemoteOrigin) -> None:
        self.origin = origin
        self._sources: dict[str, bytes] = {}

    async def _fetch(self, module: str, root: str) -> bytes:
        source = self._sources.get(module)
        if source is None:
            source = await self.origin.fetch_module(module, root)
            self._sources[module] = source
        return source

    async def load(self, url: str) -> dict[str, bytes]:
        modules: dict[str, bytes] = {}
        frontier = [url]

        while frontier:
            sources = await asyncio.gather(
                *(self._fetch(module, url) for module in frontier)
            )
            discovered: set[str] = set()
            for module, source in zip(frontier, sources):
                modules[module] = source
                discovered.update(self._imports(module, source))
            frontier = sorted(discovered - modules.keys())

        logger.debug("Loaded %d remote modules from %s", len(modules), url)
        return dict(sorted(modules.items()))

    @staticmethod
    def _imports(module: str, source: bytes) -> set[str]:
        text = source.decode("utf-8", errors="replace")
        found = set()
        for specifier, _ in iter_import_specifiers(text):
            if specifier.startswith(("./", "../", "/")):
                specifier = urljoin(module, specifier)
            if urlsplit(specifier).scheme in ("http", "https"):
                found.add(specifier)
        return found
