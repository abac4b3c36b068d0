"""depbump - Find and apply updates of jsr:, npm: and URL dependencies.

This package resolves the newest versions of the dependencies declared in
import maps and modules, rewrites their version constraints, and keeps a
lockfile consistent with the result.
"""

__version__ = "0.1.0"

from depbump.lockfile import Lockfile
from depbump.models import (
    CollectResult,
    Dependency,
    DependencyRef,
    DependencyUpdate,
    Scheme,
    UpdateDecision,
    UpdatePolicy,
    UpdateState,
)
from depbump.specifiers import parse, stringify

__all__ = [
    "__version__",
    "CollectResult",
    "Dependency",
    "DependencyRef",
    "DependencyUpdate",
    "Lockfile",
    "Scheme",
    "UpdateDecision",
    "UpdatePolicy",
    "UpdateState",
    "parse",
    "stringify",
]
