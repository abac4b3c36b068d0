"""Lock fragment construction and merging.

A lock fragment is a partial Lockfile describing one dependency and its
transitive closure. Updating a dependency in a lockfile means building the
fragment of its new version, extracting the fragment of its old version,
and merging the two while keeping every entry still required by another
dependency.
"""

import asyncio
import copy
import hashlib
import logging
from dataclasses import dataclass, field
from typing import Optional

from depbump.errors import ConstraintUnsatisfiable
from depbump.graph import ModuleGraphLoader, RemoteModuleGraph
from depbump.lockfile import REGISTRY_SCHEMES, Lockfile
from depbump.models import Dependency, PackageDeps, Scheme
from depbump.specifiers import bare, stringify
from depbump.updates import UpdateResolver

logger = logging.getLogger(__name__)


def lock_key(dep: Dependency) -> Dependency:
    """Return the dependency as it is keyed in a lockfile.

    Registry requirements are recorded without subpath, while a direct URL
    is recorded as a whole.
    """
    return dep if dep.is_remote else bare(dep)


def requirement(dep: Dependency) -> str:
    """Return the lockfile requirement string of a dependency."""
    return stringify(lock_key(dep))


def resolved_identifier(dep: Dependency, version: str) -> str:
    """Return the resolved identifier of a dependency at a version."""
    return stringify(lock_key(dep).with_constraint(version))


def is_locked(lockfile: Lockfile, dep: Dependency, version: str) -> bool:
    """Check whether a lockfile already pins a dependency to a version."""
    if dep.is_remote:
        return resolved_identifier(dep, version) in lockfile.remote
    return lockfile.specifiers.get(requirement(dep)) == resolved_identifier(dep, version)


@dataclass
class _TraversalContext:
    """State of one fragment build.

    The visited set is keyed by resolved identifier and is only tested and
    updated between awaits.
    """

    lock: Lockfile
    visited: set[str] = field(default_factory=set)


class LockBuilder:
    """Builds, extracts and merges lock fragments.

    Attributes:
        resolver: Resolver used for registry metadata and child versions.
        graph: Loader of remote module graphs for direct-URL dependencies.
    """

    def __init__(
        self,
        resolver: UpdateResolver,
        graph: Optional[ModuleGraphLoader] = None,
    ) -> None:
        self.resolver = resolver
        self.graph = graph or RemoteModuleGraph(resolver.remote)

    async def create_lock(self, dep: Dependency, version: str) -> Lockfile:
        """Build the lock fragment of a dependency at a target version.

        Registry dependencies are locked with their whole transitive
        closure; every child is re-resolved to the highest version its own
        declared constraint admits. Direct-URL dependencies are locked by
        hashing every remote module reachable from the target URL.

        Args:
            dep: Dependency being locked, with its new constraint.
            version: Concrete version to lock it to.

        Returns:
            A self-contained lock fragment.

        Raises:
            RegistryUnreachable: If any fetch in the closure fails.
            IntegrityComputationFailed: If any package has no integrity.
            ResolutionSkipped: If a child cannot be resolved.
        """
        lock = Lockfile()
        if dep.is_remote:
            await self._lock_remote(lock, dep, version)
            return lock

        dep = lock_key(dep)
        lock.workspace = [stringify(dep)]
        await self._insert(_TraversalContext(lock), dep, version, specifier=True)
        return lock

    async def _lock_remote(self, lock: Lockfile, dep: Dependency, version: str) -> None:
        url = resolved_identifier(dep, version)
        modules = await self.graph.load(url)
        for module, source in modules.items():
            lock.insert_remote(module, hashlib.sha256(source).hexdigest())

    async def _insert(
        self,
        ctx: _TraversalContext,
        dep: Dependency,
        version: str,
        specifier: bool,
    ) -> None:
        """Insert a package and its closure into the fragment."""
        identifier = resolved_identifier(dep, version)
        if specifier:
            ctx.lock.insert_package_specifier(stringify(dep), identifier)
        if identifier in ctx.visited:
            logger.debug("Already locked %s", identifier)
            return
        ctx.visited.add(identifier)

        registry = self.resolver.registry_for(dep.scheme)
        info = await registry.fetch_package(dep, version)
        key = stringify(dep.with_constraint(version), scheme=False)
        ctx.lock.insert_package(dep.scheme, key, info.integrity)

        children = [bare(child) for child in info.dependencies]
        targets = await asyncio.gather(*(self._target(child) for child in children))

        deps: Optional[PackageDeps] = None
        if dep.scheme is Scheme.JSR:
            if children:
                deps = [stringify(child) for child in children]
        else:
            deps = {
                child.name: stringify(child.with_constraint(target), scheme=False)
                for child, target in zip(children, targets)
            }
        if deps is not None:
            ctx.lock.add_package_deps(dep.scheme, key, deps)

        # Only requirements of JSR packages are recorded as specifiers
        await asyncio.gather(
            *(
                self._insert(ctx, child, target, specifier=dep.scheme is Scheme.JSR)
                for child, target in zip(children, targets)
            )
        )

    async def _target(self, child: Dependency) -> str:
        decision = await self.resolver.get_update(child)
        if decision.satisfying is None:
            raise ConstraintUnsatisfiable(child.identity, child.constraint or "")
        return decision.satisfying

    async def extract(self, lockfile: Lockfile, dep: Dependency) -> Lockfile:
        """Extract the fragment of a dependency already in a lockfile.

        Args:
            lockfile: The authoritative lockfile; it is not modified.
            dep: Dependency as currently written in the sources.

        Returns:
            The entries of ``lockfile`` reachable from the dependency.
        """
        if dep.is_remote:
            fragment = Lockfile()
            url = stringify(dep)
            if url in lockfile.remote:
                modules = await self.graph.load(url)
                fragment.remote = {
                    module: lockfile.remote[module]
                    for module in modules
                    if module in lockfile.remote
                }
            return fragment

        fragment = lockfile.copy()
        fragment.filename = None
        fragment.set_workspace_config([requirement(dep)])
        fragment.remote = {}
        return fragment

    async def update(
        self,
        lockfile: Lockfile,
        deps: list[Dependency],
        old: Dependency,
        new: Dependency,
        version: str,
    ) -> Lockfile:
        """Move one dependency of a lockfile to a new version.

        Args:
            lockfile: The authoritative lockfile, updated in place.
            deps: Every dependency currently recorded in the lockfile,
                ``old`` included.
            old: The dependency before the update.
            new: The dependency after the update.
            version: Concrete version to lock ``new`` to.

        Returns:
            The updated lockfile.
        """
        fragment = await self.create_lock(new, version)
        others = [d for d in deps if lock_key(d) != lock_key(old)]
        owned, *other_fragments = await asyncio.gather(
            self.extract(lockfile, old),
            *(self.extract(lockfile, d) for d in others),
        )
        return merge(lockfile, fragment, owned=owned, others=other_fragments)


def merge(
    lockfile: Lockfile,
    fragment: Lockfile,
    owned: Optional[Lockfile] = None,
    others: Optional[list[Lockfile]] = None,
) -> Lockfile:
    """Merge a lock fragment into a lockfile.

    Entries of ``owned`` (the fragment of the dependency before its update)
    are deleted unless one of ``others`` still references them. Without
    ``others``, nothing is deleted.

    Args:
        lockfile: Lockfile to update in place.
        fragment: Fragment of the updated dependency.
        owned: Fragment of the dependency before the update.
        others: Fragments of every other dependency of the lockfile.

    Returns:
        The updated lockfile.
    """
    if owned is not None and others is not None:
        _delete_unshared(lockfile, owned, others)

    lockfile.specifiers.update(fragment.specifiers)
    for scheme in REGISTRY_SCHEMES:
        for key, record in fragment.packages[scheme].items():
            lockfile.packages[scheme][key] = copy.deepcopy(record)
    lockfile.remote.update(fragment.remote)

    if owned is not None:
        roots = set(lockfile.workspace)
        replaced = roots & set(owned.workspace)
        if replaced:
            lockfile.workspace = sorted((roots - replaced) | set(fragment.workspace))

    return lockfile


def _delete_unshared(lockfile: Lockfile, owned: Lockfile, others: list[Lockfile]) -> None:
    for key in owned.specifiers:
        if not any(key in other.specifiers for other in others):
            logger.debug("Removing specifier %s", key)
            lockfile.specifiers.pop(key, None)

    for scheme in REGISTRY_SCHEMES:
        for key in owned.packages[scheme]:
            if not any(key in other.packages[scheme] for other in others):
                logger.debug("Removing %s package %s", scheme.value, key)
                lockfile.packages[scheme].pop(key, None)

    for key in owned.remote:
        if not any(key in other.remote for other in others):
            logger.debug("Removing remote %s", key)
            lockfile.remote.pop(key, None)
