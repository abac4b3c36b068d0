"""Parsing and formatting of dependency specifiers.

A specifier has the form ``<scheme>:[/]<name>@<constraint>[/<subpath>]``
for registry schemes (``jsr:``, ``npm:``) and
``<scheme>://<host>/<path>@<constraint>[/<subpath>]`` for direct URLs.

Example:
    >>> parse("jsr:@std/fs@^0.222.0/exists")
    Dependency(scheme=<Scheme.JSR: 'jsr'>, name='@std/fs', constraint='^0.222.0', subpath='/exists')
"""

import re
from dataclasses import replace
from typing import Optional
from urllib.parse import urlsplit

from depbump.errors import MalformedSpecifier
from depbump.models import Dependency, Scheme

# Greedy name, a constraint without slashes, then the rest as subpath.
SPECIFIER_PATTERN = re.compile(r"^(?P<name>.+)@(?P<constraint>[^/]+)(?P<subpath>/.*)?$")

_SCHEMES = {scheme.value: scheme for scheme in Scheme}


def _split_scheme(specifier: str) -> tuple[Scheme, str]:
    """Split a specifier into its scheme and the body after the prefix."""
    head, sep, rest = specifier.partition(":")
    scheme = _SCHEMES.get(head.lower()) if sep else None
    if scheme is None:
        raise MalformedSpecifier(specifier, "Invalid protocol")

    if scheme.is_remote:
        if not rest.startswith("//"):
            raise MalformedSpecifier(specifier)
        url = urlsplit(specifier)
        return scheme, url.netloc + url.path

    return scheme, rest


def parse(specifier: str, strict: bool = True) -> Dependency:
    """Parse a specifier string into a Dependency.

    Args:
        specifier: Specifier such as ``"npm:debug@^4.3.0"``.
        strict: If True, registry specifiers without an ``@constraint``
            segment are rejected. If False, they parse with no constraint.
            Unversioned direct URLs are always accepted.

    Returns:
        The parsed Dependency.

    Raises:
        MalformedSpecifier: If the scheme is unknown or the body does not
            match the grammar of the scheme.
    """
    specifier = specifier.strip()
    scheme, body = _split_scheme(specifier)

    matched = SPECIFIER_PATTERN.match(body)
    if matched is None:
        if not scheme.is_remote and strict:
            raise MalformedSpecifier(specifier, "Missing version constraint")
        name = body.lstrip("/") if not scheme.is_remote else body
        if not name:
            raise MalformedSpecifier(specifier)
        return Dependency(scheme=scheme, name=name)

    name = matched.group("name")
    # jsr specifiers may have a leading slash, e.g. jsr:/@std/testing@^0.222.0/bdd
    if not scheme.is_remote:
        name = name.lstrip("/")
    if not name:
        raise MalformedSpecifier(specifier)

    return Dependency(
        scheme=scheme,
        name=name,
        constraint=matched.group("constraint"),
        subpath=matched.group("subpath") or "",
    )


def try_parse(specifier: str, strict: bool = True) -> Optional[Dependency]:
    """Parse a specifier, returning None instead of raising."""
    try:
        return parse(specifier, strict=strict)
    except MalformedSpecifier:
        return None


def stringify(
    dep: Dependency,
    *,
    scheme: bool = True,
    constraint: bool = True,
    subpath: bool = True,
) -> str:
    """Format a Dependency back into a specifier string.

    Args:
        dep: Dependency to format.
        scheme: Include the scheme prefix.
        constraint: Include the ``@constraint`` segment, if any.
        subpath: Include the subpath, if any.

    Returns:
        The specifier, e.g. ``"jsr:@std/fs@^0.222.0/exists"``, or a bare
        package identifier such as ``"@std/fs@0.222.0"`` when the scheme
        is omitted.
    """
    result = dep.scheme.prefix if scheme else ""
    result += dep.name
    if constraint and dep.constraint:
        result += f"@{dep.constraint}"
    if subpath and dep.subpath:
        result += dep.subpath
    return result


def identify(dep: Dependency) -> str:
    """Return the identity key (``scheme:name``) of a dependency."""
    return dep.identity


def identical(a: Dependency, b: Dependency) -> bool:
    """Check whether two dependencies refer to the same requirement."""
    return a.scheme == b.scheme and a.name == b.name


def bare(dep: Dependency) -> Dependency:
    """Return the dependency without its subpath."""
    return replace(dep, subpath="") if dep.subpath else dep
