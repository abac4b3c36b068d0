"""Version constraint algebra.

Constraints follow npm semver range semantics (exact versions, ``~`` and
``^`` ranges). The central operation is :func:`increase`, which rewrites a
constraint into the smallest constraint of the same kind admitting a new
target version.
"""

import logging
import re
from collections.abc import Iterable
from enum import Enum
from functools import lru_cache
from typing import Optional

import semantic_version

from depbump.errors import UnsupportedConstraintShape

logger = logging.getLogger(__name__)

# Bound of a caret or tilde range; partial and wildcard components allowed.
PARTIAL_BOUND = re.compile(r"^\d+(?:\.(?:\d+|[xX*])){0,2}$")


class ConstraintKind(str, Enum):
    """Kind of a single-comparator-set constraint."""

    EXACT = "exact"
    TILDE = "tilde"
    CARET = "caret"


def parse_version(text: str) -> Optional[semantic_version.Version]:
    """Parse a concrete version, tolerating a leading ``v`` or ``=``.

    Args:
        text: Version string such as ``"0.222.1"`` or ``"v1.0.0"``.

    Returns:
        The parsed Version, or None if the string is not a full semver.
    """
    text = text.strip()
    if text[:1] in ("v", "="):
        text = text[1:]
    try:
        return semantic_version.Version(text)
    except ValueError:
        return None


@lru_cache(maxsize=1024)
def parse_range(constraint: str, allow_union: bool = False) -> semantic_version.NpmSpec:
    """Parse a constraint into an npm range.

    Args:
        constraint: Range such as ``"^1.2.0"``.
        allow_union: Accept several comparator sets joined by ``||``.
            Matching tolerates unions, rewriting does not.

    Raises:
        UnsupportedConstraintShape: If the constraint is not a valid npm
            range, or is a union and unions are not allowed.
    """
    if not allow_union and "||" in constraint:
        raise UnsupportedConstraintShape(constraint)
    try:
        return semantic_version.NpmSpec(constraint.strip())
    except ValueError as e:
        raise UnsupportedConstraintShape(constraint) from e


def classify(constraint: str) -> ConstraintKind:
    """Determine the kind of a constraint.

    Raises:
        UnsupportedConstraintShape: For any shape other than a bare version,
            a caret range or a tilde range (e.g. ``">=1.0.0 <2.0.0"``,
            ``"1.x"`` or the partial version ``"1"``).
    """
    text = constraint.strip()
    if text.startswith("^"):
        kind, bound = ConstraintKind.CARET, text[1:]
    elif text.startswith("~") and not text.startswith("~>"):
        kind, bound = ConstraintKind.TILDE, text[1:]
    else:
        if parse_version(text.lstrip("=")) is None:
            raise UnsupportedConstraintShape(constraint)
        return ConstraintKind.EXACT

    bound = bound.strip()
    if parse_version(bound) is None and not PARTIAL_BOUND.match(bound):
        raise UnsupportedConstraintShape(constraint)
    return kind


def satisfies(version: semantic_version.Version, constraint: str) -> bool:
    """Check whether a version satisfies a constraint."""
    return parse_range(constraint, allow_union=True).match(version)


def max_satisfying(
    versions: Iterable[semantic_version.Version], constraint: str
) -> Optional[semantic_version.Version]:
    """Return the highest version satisfying a constraint, if any."""
    return parse_range(constraint, allow_union=True).select(list(versions))


def increase(constraint: str, version: str) -> str:
    """Increase a version constraint to admit the given version.

    The result has the same kind as the input. A constraint already
    satisfied by ``version`` is returned verbatim; a bare version is
    replaced by ``version``; caret and tilde ranges are truncated below
    their compatibility boundary.

    Args:
        constraint: The current constraint, e.g. ``"^1.1.0"``.
        version: The version to satisfy, e.g. ``"2.1.0"``.

    Returns:
        The increased constraint, e.g. ``"^2.0.0"``.

    Raises:
        UnsupportedConstraintShape: If the constraint cannot be rewritten.
        ValueError: If ``version`` is not a valid semver.
    """
    spec = parse_range(constraint)

    target = parse_version(version)
    if target is None:
        raise ValueError(f"Invalid version: {version}")

    if spec.match(target):
        return constraint

    kind = classify(constraint)
    logger.debug("Increasing %s constraint %s to %s", kind.value, constraint, version)

    if kind is ConstraintKind.EXACT:
        return version

    if kind is ConstraintKind.CARET:
        if target.major:
            return f"^{target.major}.0.0"
        if target.minor:
            return f"^0.{target.minor}.0"
        return f"^0.0.{target.patch}"

    if target.major:
        return f"~{target.major}.{target.minor}.0"
    return f"~{target.major}.{target.minor}.{target.patch}"
