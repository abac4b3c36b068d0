"""JSR registry client.

Lists package versions from ``<name>/meta.json`` (excluding yanked ones) and
describes a version from ``<name>/<version>_meta.json``. The integrity of a
JSR package is the SHA-256 digest of that version metadata document, and
its dependency edges are the ``jsr:`` and ``npm:`` specifiers imported by
its module graph.
"""

import hashlib
import json
import logging
from typing import Any

from depbump.errors import IntegrityComputationFailed, RegistryUnreachable
from depbump.models import Dependency, PackageInfo, Scheme
from depbump.registries.base import BaseRegistry
from depbump.registries.http import HttpClient
from depbump.specifiers import bare, stringify, try_parse

logger = logging.getLogger(__name__)

EDGE_PREFIXES = ("jsr:", "npm:")


class JsrRegistry(HttpClient, BaseRegistry):
    """Client for the JSR registry API."""

    BASE_URL = "https://jsr.io"

    def __init__(self, base_url: str = BASE_URL, **kwargs: Any) -> None:
        """Initialize the JSR client.

        Args:
            base_url: Root URL of the registry.
            **kwargs: Passed to HttpClient (timeout, connection_limit).
        """
        super().__init__(**kwargs)
        self.base_url = base_url.rstrip("/")

    @property
    def scheme(self) -> Scheme:
        return Scheme.JSR

    @property
    def name(self) -> str:
        return "JSR"

    async def fetch_versions(self, dep: Dependency) -> list[str]:
        """List non-yanked versions of a JSR package."""
        url = f"{self.base_url}/{dep.name}/meta.json"
        meta = await self._get_json(url, dep.identity)

        versions = meta.get("versions") if isinstance(meta, dict) else None
        if not isinstance(versions, dict):
            raise RegistryUnreachable(dep.identity, url, "unexpected package metadata")

        return [
            version
            for version, info in versions.items()
            if not (isinstance(info, dict) and info.get("yanked"))
        ]

    async def fetch_package(self, dep: Dependency, version: str) -> PackageInfo:
        """Fetch integrity and dependency edges of a JSR package version."""
        url = f"{self.base_url}/{dep.name}/{version}_meta.json"
        body = await self._get(url, dep.identity)

        identifier = f"{dep.identity}@{version}"
        try:
            meta = json.loads(body)
        except ValueError as e:
            raise IntegrityComputationFailed(identifier, "invalid version metadata") from e
        if not isinstance(meta, dict):
            raise IntegrityComputationFailed(identifier, "invalid version metadata")

        return PackageInfo(
            integrity=hashlib.sha256(body).hexdigest(),
            dependencies=self._collect_dependencies(meta),
        )

    def _collect_dependencies(self, meta: dict[str, Any]) -> list[Dependency]:
        """Collect the registry dependencies imported by a module graph.

        Args:
            meta: Version metadata containing ``moduleGraph2`` or
                ``moduleGraph1``.

        Returns:
            Unique dependencies without subpaths, sorted by specifier.
        """
        graph = meta.get("moduleGraph2") or meta.get("moduleGraph1") or {}
        found: dict[str, Dependency] = {}

        for module in graph.values():
            entries = module.get("dependencies") or []
            if isinstance(entries, dict):
                specifiers = list(entries)
            else:
                specifiers = [entry.get("specifier", "") for entry in entries]

            for specifier in specifiers:
                if not specifier.startswith(EDGE_PREFIXES):
                    continue
                dep = try_parse(specifier)
                if dep is None:
                    logger.debug("Skipping unversioned dependency %s", specifier)
                    continue
                dep = bare(dep)
                found[stringify(dep)] = dep

        return [found[key] for key in sorted(found)]
