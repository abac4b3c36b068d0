"""Coordination of resolution, rewriting and locking over many references.

References are grouped by dependency identity so that a package written
in several places costs a single registry round trip, while every
reference still receives its own update record.
"""

import asyncio
import logging
from collections import defaultdict
from typing import Optional

from depbump.constraints import increase
from depbump.errors import ResolutionSkipped
from depbump.lockfile import Lockfile
from depbump.locks import LockBuilder, is_locked, lock_key
from depbump.models import (
    CollectResult,
    Dependency,
    DependencyRef,
    DependencyUpdate,
    UpdateDecision,
    UpdatePolicy,
    UpdateState,
)
from depbump.specifiers import try_parse
from depbump.updates import UpdateResolver

logger = logging.getLogger(__name__)


def select_target(decision: UpdateDecision, policy: UpdatePolicy) -> Optional[str]:
    """Pick the version a dependency is moved to under a policy.

    The released policy falls back to the latest version when nothing
    but pre-releases exist.
    """
    if policy is UpdatePolicy.LATEST:
        return decision.latest
    if policy is UpdatePolicy.SATISFYING:
        return decision.satisfying
    return decision.released or decision.latest


class UpdateOrchestrator:
    """Turns dependency references into update records.

    Attributes:
        resolver: Resolver shared by every identity of a run.
        builder: Lock builder used for lockfile reconciliation.
        concurrency: Maximum number of identities resolved at once.
    """

    DEFAULT_CONCURRENCY = 8

    def __init__(
        self,
        resolver: UpdateResolver,
        builder: Optional[LockBuilder] = None,
        concurrency: int = DEFAULT_CONCURRENCY,
    ) -> None:
        self.resolver = resolver
        self.builder = builder or LockBuilder(resolver)
        self.concurrency = concurrency

    async def collect(
        self,
        refs: list[DependencyRef],
        lockfile: Optional[Lockfile] = None,
        rewrite: bool = True,
        policy: UpdatePolicy = UpdatePolicy.RELEASED,
        fail_fast: bool = False,
    ) -> CollectResult:
        """Compute an update record for every reference.

        Args:
            refs: References found by the scanners.
            lockfile: Lockfile to reconcile, updated in place. If None, no
                lock fragments are built.
            rewrite: Rewrite constraints to admit the target version.
            policy: Which version of each decision to target.
            fail_fast: Abort on the first error other than a skip.

        Returns:
            CollectResult with the records, the failures by identity, and
            the reconciled lockfile.

        Raises:
            DepbumpError: The first fatal error, if ``fail_fast`` is set.
        """
        groups: dict[str, list[DependencyRef]] = defaultdict(list)
        for ref in refs:
            if ref.dependency.constraint is None:
                logger.warning("Skipping unversioned dependency %s", ref.specifier)
                continue
            groups[ref.dependency.identity].append(ref)

        # Every root of the lockfile takes part in reference counting,
        # scanned or not
        locked: list[Dependency] = []
        if lockfile is not None:
            roots = (try_parse(root) for root in lockfile.workspace)
            locked.extend(lock_key(root) for root in roots if root is not None)
        locked.extend(lock_key(ref.dependency) for group in groups.values() for ref in group)

        result = CollectResult(lockfile=lockfile)
        run = _Run(
            orchestrator=self,
            result=result,
            rewrite=rewrite,
            policy=policy,
            locked=locked,
        )
        semaphore = asyncio.Semaphore(self.concurrency)

        async def process(identity: str, group: list[DependencyRef]) -> None:
            async with semaphore:
                try:
                    await run.process(group)
                except Exception as e:
                    if fail_fast:
                        raise
                    logger.error("Failed to update %s: %s", identity, e)
                    result.errors[identity] = e

        logger.info("Collecting updates for %d dependencies", len(groups))
        tasks = [
            asyncio.ensure_future(process(identity, group))
            for identity, group in groups.items()
        ]
        if tasks:
            done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
            for task in done:
                if not task.cancelled() and task.exception() is not None:
                    raise task.exception()

        result.updates.sort(key=lambda update: (update.ref.source.path, update.dependency.name))
        return result


class _Run:
    """State shared by the identities of one collect call."""

    def __init__(
        self,
        orchestrator: UpdateOrchestrator,
        result: CollectResult,
        rewrite: bool,
        policy: UpdatePolicy,
        locked: list[Dependency],
    ) -> None:
        self.orchestrator = orchestrator
        self.result = result
        self.rewrite = rewrite
        self.policy = policy
        # Dependencies as currently recorded, deduplicated in order
        self.locked = list(dict.fromkeys(locked))
        self.moved: dict[Dependency, Dependency] = {}
        self.lock = asyncio.Lock()

    async def process(self, group: list[DependencyRef]) -> None:
        # Versions are fetched once per identity; decisions differ by constraint
        decisions: dict[Dependency, UpdateDecision] = {}

        for ref in group:
            dep = ref.dependency
            key = lock_key(dep)
            if key not in decisions:
                try:
                    decisions[key] = await self.orchestrator.resolver.get_update(key)
                except ResolutionSkipped as e:
                    logger.warning("Skipping %s: %s", ref.specifier, e)
                    continue
            decision = decisions[key]
            target = select_target(decision, self.policy)
            if target is None:
                logger.warning("No %s version for %s", self.policy.value, dep.identity)
                continue

            if self.rewrite:
                to = dep.with_constraint(
                    target if dep.is_remote else increase(dep.constraint, target)
                )
                version = target
            else:
                to = dep
                version = decision.satisfying

            update = DependencyUpdate(
                ref=ref,
                decision=decision,
                to=to,
                version=version or dep.constraint,
            )
            update.state = await self._reconcile(update, version)
            self.result.updates.append(update)

    async def _reconcile(self, update: DependencyUpdate, version: Optional[str]) -> UpdateState:
        lockfile = self.result.lockfile
        state = UpdateState.REWRITTEN if update.changed else UpdateState.UNCHANGED
        if lockfile is None:
            return state
        if version is None:
            return UpdateState.UNLOCKED

        old, new = lock_key(update.dependency), lock_key(update.to)
        async with self.lock:
            if self.moved.get(old) == new:
                return UpdateState.LOCKED
            if not update.changed and is_locked(lockfile, old, version):
                return state

            try:
                await self.orchestrator.builder.update(
                    lockfile, self.locked, old, new, version
                )
            except ResolutionSkipped as e:
                # Nothing was merged; the rewrite stands but stays unlocked
                logger.error("Cannot lock %s: %s", update.dependency.identity, e)
                self.result.errors[update.dependency.identity] = e
                return UpdateState.UNLOCKED
            self.locked = [new if dep == old else dep for dep in self.locked]
            if new not in self.locked:
                self.locked.append(new)
            self.moved[old] = new
        return UpdateState.LOCKED
