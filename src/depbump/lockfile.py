"""Lockfile model, parser and serializer.

Handles the version 3 lockfile format::

    {
      "version": "3",
      "packages": {
        "specifiers": {"jsr:@std/assert@^0.222.0": "jsr:@std/assert@0.222.0"},
        "jsr": {"@std/assert@0.222.0": {"integrity": "...", "dependencies": [...]}},
        "npm": {"debug@4.3.0": {"integrity": "...", "dependencies": {"ms": "ms@2.1.2"}}}
      },
      "remote": {"https://deno.land/std@0.220.0/assert/assert.ts": "..."},
      "workspace": {"dependencies": ["jsr:@std/assert@^0.222.0"]}
    }

Maps are always written with sorted keys so that diffs stay deterministic.
The same class represents both the authoritative lockfile and the partial
lock fragments produced while computing updates.
"""

import copy
import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from depbump.models import PackageDeps, Scheme

logger = logging.getLogger(__name__)

LOCKFILE_VERSION = "3"

REGISTRY_SCHEMES = (Scheme.JSR, Scheme.NPM)


@dataclass
class PackageRecord:
    """Lock entry of one resolved registry package.

    Attributes:
        integrity: Integrity hash of the package version.
        dependencies: Requirement strings (JSR) or name to resolved
            identifier map (npm); None when a JSR package has no edges.
    """

    integrity: str
    dependencies: Optional[PackageDeps] = None

    def to_json(self) -> dict[str, Any]:
        """Serialize the record, sorting its dependencies."""
        data: dict[str, Any] = {"integrity": self.integrity}
        if isinstance(self.dependencies, dict):
            data["dependencies"] = dict(sorted(self.dependencies.items()))
        elif self.dependencies:
            data["dependencies"] = sorted(self.dependencies)
        return data

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "PackageRecord":
        """Deserialize a record from lockfile JSON."""
        deps = data.get("dependencies")
        if isinstance(deps, list):
            deps = list(deps)
        elif isinstance(deps, dict):
            deps = dict(deps)
        return cls(integrity=data.get("integrity", ""), dependencies=deps)


def _detect_eol(text: str) -> str:
    return "\r\n" if "\r\n" in text else "\n"


def package_key(resolved: str) -> tuple[Scheme, str]:
    """Split a resolved identifier like ``"jsr:@std/fmt@0.222.1"``.

    Returns:
        The scheme and the package key (``"@std/fmt@0.222.1"``).

    Raises:
        ValueError: If the identifier has no registry scheme.
    """
    head, _, key = resolved.partition(":")
    try:
        scheme = Scheme(head)
    except ValueError:
        raise ValueError(f"Invalid resolved identifier: {resolved}") from None
    if scheme not in REGISTRY_SCHEMES or not key:
        raise ValueError(f"Invalid resolved identifier: {resolved}")
    return scheme, key


class Lockfile:
    """In-memory lockfile.

    Attributes:
        filename: Path the lockfile was read from, if any.
        version: Format version tag.
        specifiers: Requirement string to resolved identifier map.
        packages: Per-scheme map of package key to PackageRecord.
        remote: Direct URL to content hash map.
        workspace: Root requirement strings.
        eol: End-of-line sequence used when serializing.
    """

    def __init__(
        self,
        filename: Optional[Path] = None,
        version: str = LOCKFILE_VERSION,
        eol: str = "\n",
    ) -> None:
        self.filename = filename
        self.version = version
        self.eol = eol
        self.specifiers: dict[str, str] = {}
        self.packages: dict[Scheme, dict[str, PackageRecord]] = {
            scheme: {} for scheme in REGISTRY_SCHEMES
        }
        self.remote: dict[str, str] = {}
        self.workspace: list[str] = []

    @classmethod
    def from_json(
        cls,
        data: dict[str, Any],
        filename: Optional[Path] = None,
        eol: str = "\n",
    ) -> "Lockfile":
        """Build a Lockfile from decoded lockfile JSON.

        Raises:
            ValueError: If the document is not a version 3 lockfile.
        """
        if not isinstance(data, dict):
            raise ValueError("Lockfile must be a JSON object")
        version = str(data.get("version", ""))
        if version != LOCKFILE_VERSION:
            raise ValueError(f"Unsupported lockfile version: {version!r}")

        lock = cls(filename=filename, version=version, eol=eol)
        packages = data.get("packages") or {}
        lock.specifiers = dict(packages.get("specifiers") or {})
        for scheme in REGISTRY_SCHEMES:
            for key, record in (packages.get(scheme.value) or {}).items():
                lock.packages[scheme][key] = PackageRecord.from_json(record)
        lock.remote = dict(data.get("remote") or {})
        lock.workspace = list((data.get("workspace") or {}).get("dependencies") or [])
        return lock

    @classmethod
    def parse(cls, text: str, filename: Optional[Path] = None) -> "Lockfile":
        """Parse lockfile text.

        Raises:
            ValueError: If the text is not valid lockfile JSON.
        """
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in lockfile {filename or ''}: {e}") from e
        return cls.from_json(data, filename=filename, eol=_detect_eol(text))

    @classmethod
    def read(cls, path: Path) -> "Lockfile":
        """Read and parse a lockfile from disk.

        Raises:
            FileNotFoundError: If the file does not exist.
            ValueError: If the file is not a valid lockfile.
        """
        if not path.exists():
            raise FileNotFoundError(f"Lockfile not found: {path}")
        with open(path, encoding="utf-8", newline="") as f:
            return cls.parse(f.read(), filename=path)

    def copy(self) -> "Lockfile":
        """Return a deep copy of this lockfile."""
        return copy.deepcopy(self)

    def is_empty(self) -> bool:
        """Return True if the lockfile holds no entries at all."""
        return not (
            self.specifiers
            or self.remote
            or self.workspace
            or any(self.packages.values())
        )

    def to_json(self) -> dict[str, Any]:
        """Serialize to lockfile JSON with sorted maps.

        Empty per-scheme package maps are omitted, and so are ``packages``
        and ``workspace`` when empty. ``remote`` is always present.
        """
        data: dict[str, Any] = {"version": self.version}

        packages: dict[str, Any] = {}
        if self.specifiers or any(self.packages.values()):
            packages["specifiers"] = dict(sorted(self.specifiers.items()))
        for scheme in REGISTRY_SCHEMES:
            records = self.packages[scheme]
            if records:
                packages[scheme.value] = {
                    key: records[key].to_json() for key in sorted(records)
                }
        if packages:
            data["packages"] = packages

        data["remote"] = dict(sorted(self.remote.items()))

        if self.workspace:
            data["workspace"] = {"dependencies": sorted(set(self.workspace))}
        return data

    def to_string(self) -> str:
        """Serialize to text, preserving the end-of-line convention."""
        text = json.dumps(self.to_json(), indent=2, ensure_ascii=False) + "\n"
        return text.replace("\n", self.eol) if self.eol != "\n" else text

    def write(self, path: Optional[Path] = None) -> None:
        """Write the lockfile to ``path`` or to the file it was read from.

        Raises:
            ValueError: If no path is known.
        """
        target = path or self.filename
        if target is None:
            raise ValueError("No path to write the lockfile to")
        with open(target, "w", encoding="utf-8", newline="") as f:
            f.write(self.to_string())
        logger.debug("Wrote lockfile %s", target)

    def insert_package_specifier(self, requirement: str, resolved: str) -> None:
        """Map a requirement string to a resolved identifier."""
        self.specifiers[requirement] = resolved

    def insert_package(self, scheme: Scheme, key: str, integrity: str) -> None:
        """Insert a package record, keeping edges of an existing one."""
        record = self.packages[scheme].get(key)
        if record is None:
            self.packages[scheme][key] = PackageRecord(integrity=integrity)
        else:
            record.integrity = integrity

    def add_package_deps(self, scheme: Scheme, key: str, deps: PackageDeps) -> None:
        """Set the dependency edges of an inserted package record.

        Raises:
            KeyError: If the package has not been inserted.
        """
        self.packages[scheme][key].dependencies = deps

    def insert_remote(self, url: str, checksum: str) -> None:
        """Record the content hash of a direct-URL module."""
        self.remote[url] = checksum

    def reachable(self, roots: Iterable[str]) -> tuple[set[str], dict[Scheme, set[str]]]:
        """Compute the entries reachable from root requirement strings.

        Returns:
            The reachable specifier keys and, per scheme, the reachable
            package keys.
        """
        specifiers: set[str] = set()
        packages: dict[Scheme, set[str]] = {scheme: set() for scheme in REGISTRY_SCHEMES}
        pending = list(roots)

        while pending:
            requirement = pending.pop()
            if requirement in specifiers or requirement not in self.specifiers:
                continue
            specifiers.add(requirement)
            try:
                scheme, key = package_key(self.specifiers[requirement])
            except ValueError:
                logger.debug("Ignoring unresolvable specifier %s", requirement)
                continue
            pending.extend(self._walk_package(scheme, key, packages))

        return specifiers, packages

    def _walk_package(
        self, scheme: Scheme, key: str, seen: dict[Scheme, set[str]]
    ) -> list[str]:
        """Mark a package and its npm closure, returning JSR-style edges."""
        requirements: list[str] = []
        stack = [(scheme, key)]
        while stack:
            scheme, key = stack.pop()
            if key in seen[scheme]:
                continue
            record = self.packages[scheme].get(key)
            if record is None:
                continue
            seen[scheme].add(key)
            if isinstance(record.dependencies, dict):
                stack.extend((Scheme.NPM, value) for value in record.dependencies.values())
            elif record.dependencies:
                requirements.extend(record.dependencies)
        return requirements

    def set_workspace_config(self, dependencies: Iterable[str]) -> None:
        """Replace the root requirements and drop unreachable entries.

        Specifiers and package records no longer reachable from the new
        roots are removed. Remote hashes are left untouched.
        """
        self.workspace = list(dependencies)
        specifiers, packages = self.reachable(self.workspace)
        self.specifiers = {
            key: value for key, value in self.specifiers.items() if key in specifiers
        }
        for scheme in REGISTRY_SCHEMES:
            self.packages[scheme] = {
                key: record
                for key, record in self.packages[scheme].items()
                if key in packages[scheme]
            }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Lockfile):
            return NotImplemented
        return self.to_json() == other.to_json()

    def __repr__(self) -> str:
        return f"Lockfile(filename={self.filename!r}, specifiers={len(self.specifiers)}, remote={len(self.remote)})"
