"""Core data models for depbump.

This module defines the fundamental data structures used throughout the
update pipeline: parsed dependency specifiers, update decisions returned by
registries, references to dependencies found in source files, and the
per-reference update records produced by the orchestrator.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Optional, Union

if TYPE_CHECKING:
    from depbump.lockfile import Lockfile


class Scheme(str, Enum):
    """Addressing scheme of a dependency specifier."""

    JSR = "jsr"
    NPM = "npm"
    HTTP = "http"
    HTTPS = "https"

    @property
    def is_remote(self) -> bool:
        """Return True for direct-URL schemes."""
        return self in (Scheme.HTTP, Scheme.HTTPS)

    @property
    def prefix(self) -> str:
        """Return the specifier prefix, e.g. ``"jsr:"`` or ``"https://"``."""
        return f"{self.value}://" if self.is_remote else f"{self.value}:"


@dataclass(frozen=True)
class Dependency:
    """Immutable, parsed components of a dependency specifier.

    The scheme is the tag of the variant: registry dependencies (``jsr``,
    ``npm``) always carry a constraint, while direct-URL dependencies
    (``http``, ``https``) may be unversioned, in which case ``name`` holds
    the whole host and path.

    Attributes:
        scheme: Addressing scheme (e.g. ``Scheme.JSR``).
        name: Package name or host+path (e.g. ``"@std/fs"``, ``"deno.land/std"``).
        constraint: Version constraint (e.g. ``"^0.222.0"``), or None.
        subpath: Entrypoint within the package (e.g. ``"/exists"``), or "".
    """

    scheme: Scheme
    name: str
    constraint: Optional[str] = None
    subpath: str = ""

    @property
    def identity(self) -> str:
        """Return the canonical ``scheme:name`` key of this dependency."""
        return f"{self.scheme.value}:{self.name}"

    @property
    def is_remote(self) -> bool:
        """Return True if this is a direct-URL dependency."""
        return self.scheme.is_remote

    def with_constraint(self, constraint: Optional[str]) -> "Dependency":
        """Return a copy of this dependency with another constraint."""
        return replace(self, constraint=constraint)


@dataclass
class UpdateDecision:
    """Resolution outcome for one dependency.

    Attributes:
        latest: Highest version available, pre-releases included.
        released: Highest version that is not a pre-release, if any.
        satisfying: Highest version matching the current constraint, if any.
    """

    latest: str
    released: Optional[str] = None
    satisfying: Optional[str] = None


@dataclass
class PackageInfo:
    """Registry metadata for one concrete package version.

    Attributes:
        integrity: Integrity hash recorded in the lockfile.
        dependencies: Declared dependency edges, subpaths stripped.
    """

    integrity: str
    dependencies: list[Dependency] = field(default_factory=list)


class SourceKind(str, Enum):
    """Kind of file a dependency reference was found in."""

    MODULE = "module"
    IMPORT_MAP = "import_map"


@dataclass(frozen=True)
class SourceSpan:
    """Location of a specifier string literal, without its quotes.

    Attributes:
        line: Zero-based line number.
        start: Zero-based column of the first character.
        end: Zero-based column one past the last character.
    """

    line: int
    start: int
    end: int


@dataclass(frozen=True)
class DependencySource:
    """Where a dependency reference was found.

    Attributes:
        kind: Module or import map.
        path: Path of the file containing the reference.
        key: Import map key, for import map references.
        span: Location of the specifier, for module references.
    """

    kind: SourceKind
    path: str
    key: Optional[str] = None
    span: Optional[SourceSpan] = None


@dataclass(frozen=True)
class DependencyRef:
    """A textual occurrence of a dependency in a source file.

    Attributes:
        specifier: The specifier exactly as written in the source.
        dependency: Parsed components of the specifier.
        source: Where the specifier was found.
    """

    specifier: str
    dependency: Dependency
    source: DependencySource


class UpdateState(str, Enum):
    """States of a dependency reference during an update."""

    DISCOVERED = "discovered"
    RESOLVED = "resolved"
    REWRITTEN = "rewritten"
    UNCHANGED = "unchanged"
    LOCKED = "locked"
    UNLOCKED = "unlocked"


class UpdatePolicy(str, Enum):
    """Which version of an update decision a dependency is moved to."""

    RELEASED = "released"
    LATEST = "latest"
    SATISFYING = "satisfying"


@dataclass
class DependencyUpdate:
    """Patch instruction for one dependency reference.

    Attributes:
        ref: The reference being updated.
        decision: Resolution outcome shared by all references of the identity.
        to: The dependency after the update.
        version: Concrete version the dependency is moved or locked to.
        state: Terminal state of the reference.
    """

    ref: DependencyRef
    decision: UpdateDecision
    to: Dependency
    version: str
    state: UpdateState = UpdateState.RESOLVED

    @property
    def dependency(self) -> Dependency:
        """Return the dependency before the update."""
        return self.ref.dependency

    @property
    def changed(self) -> bool:
        """Return True if the reference needs a textual rewrite."""
        return self.to != self.ref.dependency


@dataclass
class CollectResult:
    """Outcome of an orchestrated update over a set of references.

    Attributes:
        updates: One record per reference that resolved successfully.
        errors: Failures keyed by dependency identity.
        lockfile: The merged lockfile, when reconciliation was requested.
    """

    updates: list[DependencyUpdate] = field(default_factory=list)
    errors: dict[str, Exception] = field(default_factory=dict)
    lockfile: Optional["Lockfile"] = None


# npm records map names to resolved identifiers, JSR records list requirements.
PackageDeps = Union[list[str], dict[str, str]]
