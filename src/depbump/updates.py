"""Update resolution across registries and direct-URL origins.

The resolver turns a dependency into an UpdateDecision: the latest version
available, the latest released (non pre-release) version, and the latest
version the current constraint admits.
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Optional

from depbump.constraints import max_satisfying, parse_range, parse_version
from depbump.errors import (
    ConstraintUnsatisfiable,
    NoVersionsFound,
    ResolutionSkipped,
    UnsupportedConstraintShape,
)
from depbump.models import Dependency, Scheme, UpdateDecision
from depbump.registries.base import BaseRegistry
from depbump.registries.jsr import JsrRegistry
from depbump.registries.npm import NpmRegistry
from depbump.registries.remote import RemoteOrigin

if TYPE_CHECKING:
    from depbump.cache import VersionCache

logger = logging.getLogger(__name__)


class UpdateResolver:
    """Resolves update decisions, one network round trip per identity.

    Version lists and remote probes are memoised as shared tasks keyed by
    dependency identity, so concurrent callers asking about the same
    package await the same request.

    Attributes:
        jsr: Client for ``jsr:`` dependencies.
        npm: Client for ``npm:`` dependencies.
        remote: Client for direct-URL dependencies.
        cache: Optional persistent cache of registry version lists.
    """

    def __init__(
        self,
        jsr: Optional[JsrRegistry] = None,
        npm: Optional[NpmRegistry] = None,
        remote: Optional[RemoteOrigin] = None,
        cache: Optional["VersionCache"] = None,
    ) -> None:
        """Initialize UpdateResolver with optional custom clients.

        Args:
            jsr: Optional custom JsrRegistry. If not provided, creates default.
            npm: Optional custom NpmRegistry. If not provided, creates default.
            remote: Optional custom RemoteOrigin. If not provided, creates default.
            cache: Optional VersionCache consulted before registries.
        """
        self.jsr = jsr or JsrRegistry()
        self.npm = npm or NpmRegistry()
        self.remote = remote or RemoteOrigin()
        self.cache = cache
        self._versions: dict[str, asyncio.Task] = {}
        self._probes: dict[str, asyncio.Task] = {}

    def registry_for(self, scheme: Scheme) -> BaseRegistry:
        """Return the registry client serving a scheme.

        Raises:
            ValueError: If the scheme is not a registry scheme.
        """
        for registry in (self.jsr, self.npm):
            if registry.scheme is scheme:
                return registry
        raise ValueError(f"No registry for scheme {scheme.value}")

    async def _shared(self, tasks: dict[str, asyncio.Task], key: str, factory):
        """Await a task shared by every caller using the same key."""
        task = tasks.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            tasks[key] = task
        try:
            return await asyncio.shield(task)
        except Exception:
            if tasks.get(key) is task:
                del tasks[key]
            raise

    async def _load_versions(self, dep: Dependency) -> list[str]:
        if self.cache is not None:
            cached = self.cache.get(dep.identity)
            if cached is not None:
                logger.debug("Cache hit for %s", dep.identity)
                return cached

        registry = self.registry_for(dep.scheme)
        logger.debug("Fetching versions of %s from %s", dep.identity, registry.name)
        versions = await registry.fetch_versions(dep)
        if self.cache is not None:
            self.cache.set(dep.identity, versions)
        return versions

    async def fetch_versions(self, dep: Dependency) -> list[str]:
        """Return the published versions of a registry dependency."""
        return await self._shared(
            self._versions, dep.identity, lambda: self._load_versions(dep)
        )

    async def get_update(self, dep: Dependency) -> UpdateDecision:
        """Resolve the update decision for a dependency.

        Args:
            dep: Dependency to resolve.

        Returns:
            UpdateDecision for the dependency's identity and constraint.

        Raises:
            NoVersionsFound: If no usable version exists.
            ConstraintUnsatisfiable: If no version matches the constraint.
            RegistryUnreachable: If the registry or origin cannot be reached.
        """
        if dep.is_remote:
            return await self._get_remote_update(dep)
        return await self._get_registry_update(dep)

    async def _get_registry_update(self, dep: Dependency) -> UpdateDecision:
        raw = await self.fetch_versions(dep)
        versions = [v for v in (parse_version(text) for text in raw) if v is not None]
        if not versions:
            raise NoVersionsFound(dep.identity)

        latest = max(versions)
        released = [v for v in versions if not v.prerelease]

        satisfying = None
        if dep.constraint is not None:
            try:
                parse_range(dep.constraint, allow_union=True)
            except UnsupportedConstraintShape:
                logger.debug(
                    "Cannot match %s against constraint %s", dep.identity, dep.constraint
                )
            else:
                satisfying = max_satisfying(versions, dep.constraint)
                if satisfying is None:
                    raise ConstraintUnsatisfiable(dep.identity, dep.constraint)

        return UpdateDecision(
            latest=str(latest),
            released=str(max(released)) if released else None,
            satisfying=str(satisfying) if satisfying is not None else None,
        )

    async def _get_remote_update(self, dep: Dependency) -> UpdateDecision:
        latest = await self._shared(
            self._probes, dep.identity, lambda: self.remote.probe_latest(dep)
        )
        if latest is None:
            raise NoVersionsFound(dep.identity)

        parsed = parse_version(latest)
        return UpdateDecision(
            latest=latest,
            released=latest if parsed is not None and not parsed.prerelease else None,
            satisfying=dep.constraint,
        )

    async def resolve_batch(
        self, deps: list[Dependency], fail_fast: bool = False
    ) -> dict[Dependency, Optional[UpdateDecision]]:
        """Resolve multiple dependencies concurrently.

        Uses asyncio.gather so that partial failures don't stop the batch,
        unless ``fail_fast`` is set, in which case the first error other
        than a skip cancels the remaining work and is re-raised.

        Args:
            deps: Dependencies to resolve.
            fail_fast: Abort the batch on the first fatal error.

        Returns:
            Dictionary mapping each dependency to its decision, or None if
            resolution failed or was skipped.
        """
        logger.info("Starting batch resolution of %d dependencies", len(deps))

        tasks = [asyncio.ensure_future(self.get_update(dep)) for dep in deps]
        if fail_fast:
            try:
                await asyncio.gather(*(self._skipping(task) for task in tasks))
            except Exception:
                for task in tasks:
                    task.cancel()
                raise
        results = await asyncio.gather(*tasks, return_exceptions=True)

        result_dict: dict[Dependency, Optional[UpdateDecision]] = {}
        for dep, result in zip(deps, results):
            if isinstance(result, ResolutionSkipped):
                logger.warning("Skipping %s: %s", dep.identity, result)
                result_dict[dep] = None
            elif isinstance(result, BaseException):
                logger.error("Exception resolving %s: %s", dep.identity, result)
                result_dict[dep] = None
            else:
                result_dict[dep] = result

        successful = sum(1 for decision in result_dict.values() if decision is not None)
        logger.info(
            "Batch resolution complete: %d/%d successful", successful, len(deps)
        )
        return result_dict

    @staticmethod
    async def _skipping(task: asyncio.Future) -> None:
        try:
            await task
        except ResolutionSkipped:
            pass

    async def close(self) -> None:
        """Close the HTTP sessions of all clients."""
        for task in (*self._versions.values(), *self._probes.values()):
            task.cancel()
        await self.jsr.close()
        await self.npm.close()
        await self.remote.close()

    async def __aenter__(self) -> "UpdateResolver":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()
